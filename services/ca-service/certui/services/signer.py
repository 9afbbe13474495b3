"""Signing engine: turns a pending request into a CA-issued certificate."""

import logging
import secrets
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from sqlalchemy import exists, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from certui.errors import AlreadySigned, GenerationFailed, RequestNotFound
from certui.models.certificate import SOURCE_SIGNED, Certificate
from certui.models.signing_request import STATUS_PENDING, STATUS_SIGNED, SigningRequest
from certui.services.ca_store import CaArtifactStore, CaMaterial
from certui.services.cert_parser import describe_certificate
from certui.services.profiles import resolve_profile
from certui.services.subject import build_san_extension

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY_DAYS = 365
SERIAL_BYTES = 16
SERIAL_ATTEMPTS = 5


def generate_serial_number() -> str:
    """128 random bits as uppercase hex."""
    return secrets.token_hex(SERIAL_BYTES).upper()


def _serial_taken(session: Session, serial_hex: str) -> bool:
    serial_int = int(serial_hex, 16)
    normalized = f"{serial_int:X}"
    normalized = normalized if len(normalized) % 2 == 0 else "0" + normalized
    return session.execute(
        select(
            exists().where(
                Certificate.source == SOURCE_SIGNED,
                Certificate.serial_number == normalized,
            )
        )
    ).scalar()


def allocate_serial(session: Session) -> int:
    """Random serial not yet used by a certificate this CA issued."""
    for _ in range(SERIAL_ATTEMPTS):
        serial_hex = generate_serial_number()
        if int(serial_hex, 16) == 0:
            continue
        if not _serial_taken(session, serial_hex):
            return int(serial_hex, 16)
        logger.warning("Serial number collision on %s, drawing again", serial_hex)
    raise GenerationFailed("Could not allocate a unique serial number")


def build_certificate(
    request: SigningRequest,
    ca: CaMaterial,
    serial: int,
    validity_days: int,
) -> x509.Certificate:
    """Sign the request's public key and subject with the CA key."""
    profile = resolve_profile(request.purpose)
    san = build_san_extension(request.san)

    try:
        csr = x509.load_pem_x509_csr(request.csr_pem.encode("ascii"))
    except ValueError as e:
        raise GenerationFailed(f"Stored CSR is unreadable: {e}")

    public_key = csr.public_key()
    not_before = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(csr.subject)
        .issuer_name(ca.certificate.subject)
        .public_key(public_key)
        .serial_number(serial)
        .not_valid_before(not_before)
        .not_valid_after(not_before + timedelta(days=validity_days))
    )
    for extension, critical in profile.signing_extensions():
        builder = builder.add_extension(extension, critical=critical)
    builder = builder.add_extension(
        x509.SubjectKeyIdentifier.from_public_key(public_key), critical=False
    ).add_extension(
        x509.AuthorityKeyIdentifier.from_issuer_public_key(ca.private_key.public_key()),
        critical=False,
    )
    if san is not None:
        builder = builder.add_extension(san, critical=False)

    try:
        return builder.sign(private_key=ca.private_key, algorithm=hashes.SHA256())
    except (ValueError, TypeError) as e:
        raise GenerationFailed(f"Failed to sign CSR: {e}")


def sign_request(
    session: Session,
    store: CaArtifactStore,
    request_id: int,
    validity_days: int = DEFAULT_VALIDITY_DAYS,
) -> Certificate:
    """Issue a certificate for a pending request.

    The pending -> signed transition is a conditional UPDATE executed in
    the same transaction as the certificate INSERT. Of several concurrent
    calls for one request exactly one commits; the others see zero rows
    updated and raise AlreadySigned without writing anything.
    """
    ca = store.load()

    request = session.get(SigningRequest, request_id, populate_existing=True)
    if request is None:
        raise RequestNotFound()
    if request.status != STATUS_PENDING:
        raise AlreadySigned()

    serial = allocate_serial(session)
    certificate = build_certificate(request, ca, serial, validity_days)
    cert_pem = certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")
    info = describe_certificate(certificate)
    key_pem = request.key_pem
    # End the read transaction before the write one begins
    session.rollback()

    try:
        result = session.execute(
            update(SigningRequest)
            .where(SigningRequest.id == request_id, SigningRequest.status == STATUS_PENDING)
            .values(status=STATUS_SIGNED, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            session.rollback()
            raise AlreadySigned()

        record = Certificate(
            csr_id=request_id,
            common_name=info.common_name,
            serial_number=info.serial_number,
            issuer=info.issuer,
            subject=info.subject,
            not_before=info.not_before,
            not_after=info.not_after,
            cert_pem=cert_pem,
            key_pem=key_pem,
            chain_pem=ca.cert_pem,
            source=SOURCE_SIGNED,
        )
        session.add(record)
        session.commit()
    except IntegrityError as e:
        session.rollback()
        logger.error("Failed to record certificate for CSR %s: %s", request_id, e)
        raise GenerationFailed("Failed to save certificate")

    logger.info(
        "Signed CSR %s -> certificate %s (serial %s, %d days)",
        request_id, record.id, info.serial_number, validity_days,
    )
    return record
