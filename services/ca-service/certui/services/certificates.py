"""Certificate catalogue: import, list, read, delete."""

import logging

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from certui.errors import CertificateNotFound
from certui.models.certificate import SOURCE_IMPORTED, Certificate
from certui.services.cert_parser import parse_certificate

logger = logging.getLogger(__name__)


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


def import_certificate(
    session: Session,
    cert_pem: str,
    key_pem: str | None = None,
    chain_pem: str | None = None,
) -> Certificate:
    """Record an externally issued certificate.

    The PEM is parsed before anything is written; InvalidCertificate
    leaves the catalogue unchanged.
    """
    info = parse_certificate(cert_pem)

    row = Certificate(
        csr_id=None,
        common_name=info.common_name,
        serial_number=info.serial_number,
        issuer=info.issuer,
        subject=info.subject,
        not_before=info.not_before,
        not_after=info.not_after,
        cert_pem=cert_pem,
        key_pem=_blank_to_none(key_pem),
        chain_pem=_blank_to_none(chain_pem),
        source=SOURCE_IMPORTED,
    )
    session.add(row)
    session.commit()
    logger.info("Imported certificate %s (CN=%s, serial %s)", row.id, info.common_name, info.serial_number)
    return row


def list_certificates(session: Session) -> list[Certificate]:
    return list(
        session.scalars(
            select(Certificate).order_by(Certificate.created_at.desc(), Certificate.id.desc())
        )
    )


def get_certificate(session: Session, certificate_id: int) -> Certificate:
    row = session.get(Certificate, certificate_id)
    if row is None:
        raise CertificateNotFound()
    return row


def delete_certificate(session: Session, certificate_id: int) -> None:
    result = session.execute(delete(Certificate).where(Certificate.id == certificate_id))
    session.commit()
    if result.rowcount == 0:
        raise CertificateNotFound()
    logger.info("Deleted certificate %s", certificate_id)
