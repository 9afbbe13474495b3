"""Certificate metadata extraction from PEM."""

from dataclasses import dataclass
from datetime import datetime

from cryptography import x509
from cryptography.x509.oid import NameOID

from certui.errors import InvalidCertificate

UNKNOWN_COMMON_NAME = "Unknown"


@dataclass(frozen=True)
class CertificateInfo:
    common_name: str
    subject: str
    issuer: str
    serial_number: str
    not_before: datetime
    not_after: datetime


def format_serial(serial: int) -> str:
    """Uppercase hex, padded to whole bytes."""
    digits = f"{serial:X}"
    return digits if len(digits) % 2 == 0 else "0" + digits


def load_certificate(pem) -> x509.Certificate:
    if isinstance(pem, str):
        pem = pem.encode("utf-8")
    if not pem or not pem.strip():
        raise InvalidCertificate("Certificate PEM is required")
    try:
        return x509.load_pem_x509_certificate(pem)
    except ValueError as e:
        raise InvalidCertificate(f"Invalid certificate PEM: {e}")


def common_name_of(name: x509.Name) -> str:
    attributes = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        return UNKNOWN_COMMON_NAME
    return str(attributes[0].value)


def describe_certificate(cert: x509.Certificate) -> CertificateInfo:
    return CertificateInfo(
        common_name=common_name_of(cert.subject),
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        serial_number=format_serial(cert.serial_number),
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
    )


def parse_certificate(pem) -> CertificateInfo:
    """Parse subject, issuer, serial and validity window from PEM.

    A subject without a CN yields ``common_name == "Unknown"``. Malformed
    input raises InvalidCertificate and returns nothing.
    """
    return describe_certificate(load_certificate(pem))
