"""CA identity settings and one-time root initialization."""

import logging
import secrets
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from certui.config import get_settings
from certui.errors import CaAlreadyInitialized, CaServiceError, GenerationFailed, MissingCommonName
from certui.models.ca_settings import CaSettings
from certui.services.ca_store import CaArtifactStore, CaMaterial
from certui.services.keygen import generate_private_key, private_key_to_pem
from certui.services.subject import build_subject

logger = logging.getLogger(__name__)

SETTINGS_ID = 1
IDENTITY_FIELDS = ("common_name", "organization", "organizational_unit", "country", "state", "locality")


def get_ca_settings(session: Session, store: CaArtifactStore) -> dict:
    """Current CA identity.

    ``initialized`` is true only when the stored flag is set AND both
    artifacts are on disk; artifacts removed out-of-band read as not
    initialized.
    """
    row = session.get(CaSettings, SETTINGS_ID, populate_existing=True)
    settings = {name: (getattr(row, name, "") or "") for name in IDENTITY_FIELDS}
    settings["key_type"] = (row.key_type if row else None) or "RSA"
    settings["key_size"] = (row.key_size if row else None) or 2048
    settings["initialized"] = bool(row is not None and row.initialized and store.exists())
    return settings


def save_ca_settings(session: Session, key_size: int = 2048, **identity) -> CaSettings:
    """Create or update the singleton identity row.

    The initialization flag and generation are never changed here.
    """
    values = {name: (identity.get(name) or "").strip() for name in IDENTITY_FIELDS}
    values["key_type"] = "RSA"
    values["key_size"] = key_size

    row = session.get(CaSettings, SETTINGS_ID)
    if row is None:
        row = CaSettings(id=SETTINGS_ID, initialized=False, generation=0, **values)
        session.add(row)
        try:
            session.commit()
            logger.info("CA settings created (CN=%s)", values["common_name"])
            return row
        except IntegrityError:
            # Another worker created the row first; fall through to update it
            session.rollback()
            row = session.get(CaSettings, SETTINGS_ID)

    for name, value in values.items():
        setattr(row, name, value)
    session.commit()
    logger.info("CA settings updated (CN=%s)", values["common_name"])
    return row


def build_root_certificate(private_key, subject, validity_days: int) -> x509.Certificate:
    """Self-signed CA certificate for ``subject``."""
    name = subject.to_name()
    public_key = private_key.public_key()
    not_before = datetime.now(timezone.utc)
    ski = x509.SubjectKeyIdentifier.from_public_key(public_key)

    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(public_key)
        .serial_number(int.from_bytes(secrets.token_bytes(16), "big") or 1)
        .not_valid_before(not_before)
        .not_valid_after(not_before + timedelta(days=validity_days))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(ski, critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(ski),
            critical=False,
        )
    )
    return builder.sign(private_key=private_key, algorithm=hashes.SHA256())


def _claim(session: Session, row: CaSettings, force: bool) -> int:
    """Claim the right to write CA artifacts. Returns the claimed generation."""
    stmt = update(CaSettings).where(CaSettings.id == SETTINGS_ID)
    if force:
        stmt = stmt.where(CaSettings.generation == row.generation)
    else:
        stmt = stmt.where(CaSettings.initialized.is_(False))
    stmt = stmt.values(
        initialized=True,
        generation=CaSettings.generation + 1,
        updated_at=datetime.now(timezone.utc),
    ).execution_options(synchronize_session=False)

    result = session.execute(stmt)
    if result.rowcount != 1:
        session.rollback()
        if force:
            raise CaAlreadyInitialized("CA initialization is already in progress")
        raise CaAlreadyInitialized()
    session.commit()
    return row.generation + 1


def _release(session: Session, generation: int, initialized: bool) -> None:
    session.execute(
        update(CaSettings)
        .where(CaSettings.id == SETTINGS_ID, CaSettings.generation == generation)
        .values(initialized=initialized)
        .execution_options(synchronize_session=False)
    )
    session.commit()


def initialize_ca(
    session: Session,
    store: CaArtifactStore,
    force: bool = False,
    validity_days: int | None = None,
) -> CaMaterial:
    """Generate the CA key and self-signed certificate.

    The stored flag is claimed with a conditional update before any
    artifact is written, so two concurrent calls cannot both overwrite
    the root. Without ``force`` an already-claimed CA is rejected with
    CaAlreadyInitialized. ``force`` replaces the root and thereby breaks
    the chain of every certificate issued so far.
    """
    row = session.get(CaSettings, SETTINGS_ID, populate_existing=True)
    if row is None or not (row.common_name or "").strip():
        raise MissingCommonName(
            "CA settings must be saved with at least a Common Name before initialization"
        )

    subject = build_subject(row)
    key_size = row.key_size or 2048
    previous_flag = bool(row.initialized)
    days = validity_days or get_settings().ca_validity_days

    generation = _claim(session, row, force)
    if force:
        logger.warning("Forced CA re-initialization (generation %d): previous root is replaced", generation)

    try:
        private_key = generate_private_key(key_size)
        certificate = build_root_certificate(private_key, subject, days)
        cert_pem = certificate.public_bytes(serialization.Encoding.PEM).decode("ascii")
        store.write(private_key_to_pem(private_key), cert_pem)
    except CaServiceError:
        _release(session, generation, previous_flag if force else False)
        raise
    except (ValueError, TypeError, OSError) as e:
        logger.error("CA initialization failed: %s", e, exc_info=True)
        _release(session, generation, previous_flag if force else False)
        raise GenerationFailed("Failed to initialize CA")

    logger.info("CA initialized: %s (%d-bit RSA, %d days)", subject, key_size, days)
    return CaMaterial(private_key=private_key, certificate=certificate, cert_pem=cert_pem)


def read_ca_certificate(store: CaArtifactStore) -> str:
    """Public CA certificate PEM; 404 until the CA exists."""
    return store.read_cert_pem(status_code=404)
