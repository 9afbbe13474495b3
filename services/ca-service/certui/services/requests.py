"""Signing request catalogue: create, list, read, delete."""

import logging

from sqlalchemy import delete, exists, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from certui.errors import RequestHasCertificates, RequestNotFound
from certui.models.certificate import Certificate
from certui.models.signing_request import STATUS_PENDING, SigningRequest
from certui.services.keygen import generate_request

logger = logging.getLogger(__name__)

SUBJECT_FIELDS = (
    "common_name",
    "organization",
    "organizational_unit",
    "country",
    "state",
    "locality",
    "email",
)


def create_request(
    session: Session,
    fields: dict,
    san: str | None = None,
    purpose: str = "server_tls",
    key_size: int = 2048,
) -> SigningRequest:
    """Generate a key + CSR and store them as a pending request.

    Generation happens first; a failure there leaves no row behind.
    """
    generated = generate_request(fields, san, purpose, key_size)

    row = SigningRequest(
        purpose=purpose,
        san=(san or "").strip(),
        key_type="RSA",
        key_size=key_size,
        csr_pem=generated.csr_pem,
        key_pem=generated.key_pem,
        status=STATUS_PENDING,
        **{name: (fields.get(name) or "").strip() for name in SUBJECT_FIELDS},
    )
    session.add(row)
    session.commit()
    logger.info("Stored CSR %s (%s, %s)", row.id, purpose, generated.subject)
    return row


def list_requests(session: Session) -> list[SigningRequest]:
    return list(
        session.scalars(
            select(SigningRequest).order_by(SigningRequest.created_at.desc(), SigningRequest.id.desc())
        )
    )


def get_request(session: Session, request_id: int) -> SigningRequest:
    row = session.get(SigningRequest, request_id)
    if row is None:
        raise RequestNotFound()
    return row


def delete_request(session: Session, request_id: int) -> None:
    """Delete a request that has no issued certificates."""
    has_certificates = session.execute(
        select(exists().where(Certificate.csr_id == request_id))
    ).scalar()
    if has_certificates:
        raise RequestHasCertificates()

    try:
        result = session.execute(delete(SigningRequest).where(SigningRequest.id == request_id))
        session.commit()
    except IntegrityError:
        # A certificate was issued between the check and the delete
        session.rollback()
        raise RequestHasCertificates()

    if result.rowcount == 0:
        raise RequestNotFound()
    logger.info("Deleted CSR %s", request_id)
