"""Download artifacts: PEM files, fullchain and PKCS#12 bundles."""

import logging
import re

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import BestAvailableEncryption, pkcs12

from certui.errors import ChainUnavailable, ExportFailed, ExportPasswordRequired, KeyUnavailable
from certui.services.cert_parser import load_certificate

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def download_filename(common_name: str, suffix: str) -> str:
    """``my host`` + ``.cert.pem`` -> ``my_host.cert.pem``."""
    return f"{_UNSAFE_FILENAME_CHARS.sub('_', common_name or '')}{suffix}"


def key_pem_of(record, status_code: int | None = None) -> str:
    if not record.key_pem:
        raise KeyUnavailable(status_code=status_code)
    return record.key_pem


def chain_pem_of(record) -> str:
    if not record.chain_pem:
        raise ChainUnavailable()
    return record.chain_pem


def fullchain_pem(cert_pem: str, chain_pem: str | None) -> str:
    """Certificate followed by a newline and the chain; chain left out if absent."""
    if chain_pem:
        return cert_pem + "\n" + chain_pem
    return cert_pem


def export_pkcs12(record, password: str | None) -> bytes:
    """Password-protected PKCS#12 with key, certificate and chain.

    Built in-process; the password never reaches a shell.
    """
    if not password:
        raise ExportPasswordRequired()
    key_pem = key_pem_of(record)

    certificate = load_certificate(record.cert_pem)
    try:
        private_key = serialization.load_pem_private_key(key_pem.encode("utf-8"), password=None)
        chain = x509.load_pem_x509_certificates(record.chain_pem.encode("utf-8")) if record.chain_pem else None
        bundle = pkcs12.serialize_key_and_certificates(
            name=(record.common_name or "").encode("utf-8") or None,
            key=private_key,
            cert=certificate,
            cas=chain,
            encryption_algorithm=BestAvailableEncryption(password.encode("utf-8")),
        )
    except (ValueError, TypeError) as e:
        logger.error("PKCS#12 export failed for certificate %s: %s", record.id, e)
        raise ExportFailed()

    logger.info("Exported certificate %s as PKCS#12", record.id)
    return bundle
