"""Certificate purpose profiles.

Maps a purpose tag to the keyUsage / extendedKeyUsage / basicConstraints
triple applied when generating a request and when signing it. Values are
kept in their textual form and turned into ``cryptography`` extension
objects on demand.
"""

import logging
from dataclasses import dataclass

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID

from certui.errors import InvalidProfile

logger = logging.getLogger(__name__)

# Expected extensions per purpose.
PROFILES = {
    "server_tls": {
        "key_usage": "critical,digitalSignature,keyEncipherment",
        "extended_key_usage": "serverAuth",
        "basic_constraints": "CA:FALSE",
    },
    "client_tls": {
        "key_usage": "critical,digitalSignature",
        "extended_key_usage": "clientAuth",
        "basic_constraints": "CA:FALSE",
    },
    "code_signing": {
        "key_usage": "critical,digitalSignature",
        "extended_key_usage": "codeSigning",
        "basic_constraints": "CA:FALSE",
    },
}

# Issued certificates always mark basicConstraints critical; requests do not.
SIGNING_BASIC_CONSTRAINTS = "critical,CA:FALSE"

KEY_USAGE_BITS = {
    "digitalSignature": "digital_signature",
    "nonRepudiation": "content_commitment",
    "keyEncipherment": "key_encipherment",
    "dataEncipherment": "data_encipherment",
    "keyAgreement": "key_agreement",
    "keyCertSign": "key_cert_sign",
    "cRLSign": "crl_sign",
}

EXTENDED_KEY_USAGES = {
    "serverAuth": ExtendedKeyUsageOID.SERVER_AUTH,
    "clientAuth": ExtendedKeyUsageOID.CLIENT_AUTH,
    "codeSigning": ExtendedKeyUsageOID.CODE_SIGNING,
}


def _split_critical(value: str) -> tuple[bool, list[str]]:
    """Split ``critical,a,b`` into (True, ["a", "b"])."""
    parts = [p.strip() for p in value.split(",") if p.strip()]
    critical = bool(parts) and parts[0] == "critical"
    return critical, parts[1:] if critical else parts


def build_key_usage(value: str) -> tuple[x509.KeyUsage, bool]:
    critical, names = _split_critical(value)
    flags = {attr: False for attr in KEY_USAGE_BITS.values()}
    for name in names:
        flags[KEY_USAGE_BITS[name]] = True
    return x509.KeyUsage(encipher_only=False, decipher_only=False, **flags), critical


def build_extended_key_usage(value: str) -> tuple[x509.ExtendedKeyUsage, bool]:
    critical, names = _split_critical(value)
    return x509.ExtendedKeyUsage([EXTENDED_KEY_USAGES[n] for n in names]), critical


def build_basic_constraints(value: str) -> tuple[x509.BasicConstraints, bool]:
    critical, names = _split_critical(value)
    is_ca = any(n.upper() == "CA:TRUE" for n in names)
    return x509.BasicConstraints(ca=is_ca, path_length=None), critical


@dataclass(frozen=True)
class ExtensionProfile:
    purpose: str
    key_usage: str
    extended_key_usage: str
    basic_constraints: str

    def request_extensions(self) -> list[tuple[x509.ExtensionType, bool]]:
        """basicConstraints, keyUsage, extendedKeyUsage as requested in a CSR."""
        return [
            build_basic_constraints(self.basic_constraints),
            build_key_usage(self.key_usage),
            build_extended_key_usage(self.extended_key_usage),
        ]

    def signing_extensions(self) -> list[tuple[x509.ExtensionType, bool]]:
        """Same triple with the signing-time basicConstraints criticality."""
        return [
            build_basic_constraints(SIGNING_BASIC_CONSTRAINTS),
            build_key_usage(self.key_usage),
            build_extended_key_usage(self.extended_key_usage),
        ]


def resolve_profile(purpose: str) -> ExtensionProfile:
    """Return the extension profile for a purpose tag.

    Raises:
        InvalidProfile: the tag is not one of ``PROFILES``.
    """
    entry = PROFILES.get(purpose or "")
    if entry is None:
        logger.debug("Rejected unknown purpose %r", purpose)
        raise InvalidProfile()
    return ExtensionProfile(purpose=purpose, **entry)
