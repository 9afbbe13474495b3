"""RSA key and PKCS#10 request generation."""

import logging
from dataclasses import dataclass

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from certui.errors import GenerationFailed
from certui.services.profiles import resolve_profile
from certui.services.subject import build_subject, parse_san, render_san_section, to_general_names

logger = logging.getLogger(__name__)

PUBLIC_EXPONENT = 65537


@dataclass(frozen=True)
class GeneratedRequest:
    key_pem: str
    csr_pem: str
    subject: str


def generate_private_key(key_size: int) -> rsa.RSAPrivateKey:
    """Generate an RSA private key of exactly ``key_size`` bits."""
    try:
        return rsa.generate_private_key(public_exponent=PUBLIC_EXPONENT, key_size=key_size)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise GenerationFailed(f"Failed to generate {key_size}-bit RSA key: {e}")


def private_key_to_pem(private_key: rsa.RSAPrivateKey) -> str:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def generate_request(fields, san_text: str | None, purpose: str, key_size: int) -> GeneratedRequest:
    """Generate a private key and a CSR carrying the purpose's extensions.

    Input problems (unknown purpose, missing CN, bad SAN entry) are raised
    before any key material is produced. Nothing is persisted here; the
    caller stores the returned pair only on success.
    """
    profile = resolve_profile(purpose)
    subject = build_subject(fields, include_email=True)
    san_entries = parse_san(san_text)
    san = x509.SubjectAlternativeName(to_general_names(san_entries)) if san_entries else None

    private_key = generate_private_key(key_size)
    try:
        builder = x509.CertificateSigningRequestBuilder().subject_name(subject.to_name())
        for extension, critical in profile.request_extensions():
            builder = builder.add_extension(extension, critical=critical)
        if san is not None:
            builder = builder.add_extension(san, critical=False)

        csr = builder.sign(private_key, hashes.SHA256())
        csr_pem = csr.public_bytes(serialization.Encoding.PEM).decode("ascii")
        key_pem = private_key_to_pem(private_key)
    except (ValueError, TypeError) as e:
        raise GenerationFailed(f"Failed to generate CSR: {e}")

    logger.info("Generated %s CSR for %s (%d-bit RSA)", purpose, subject, key_size)
    if san_entries:
        logger.debug("Requested alt names:\n%s", render_san_section(san_entries))
    return GeneratedRequest(key_pem=key_pem, csr_pem=csr_pem, subject=str(subject))
