import os
import tempfile
from datetime import datetime, timedelta, timezone

# Settings are read once at import; point them at a scratch area first.
_SCRATCH = tempfile.mkdtemp(prefix="certui-tests-")
os.environ.setdefault("SQLITE_PATH", os.path.join(_SCRATCH, "app.db"))
os.environ.setdefault("STORAGE_DIR", _SCRATCH)
os.environ.setdefault("RECONCILE_ENABLED", "false")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from certui.auth import require_user
from certui.database import build_engine, get_session, init_db
from certui.main import app
from certui.services.ca_manager import initialize_ca, save_ca_settings
from certui.services.ca_store import CaArtifactStore, get_ca_store


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'certui.db'}", pool_size=10, max_overflow=10)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(tmp_path):
    return CaArtifactStore(str(tmp_path / "ca"))


@pytest.fixture
def ca_identity():
    return {
        "common_name": "Test Root CA",
        "organization": "Acme",
        "organizational_unit": "PKI",
        "country": "US",
        "state": "",
        "locality": "",
    }


@pytest.fixture
def initialized_ca(session, store, ca_identity):
    save_ca_settings(session, key_size=2048, **ca_identity)
    return initialize_ca(session, store)


@pytest.fixture
def client(session_factory, store):
    def _session():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_ca_store] = lambda: store
    app.dependency_overrides[require_user] = lambda: {"id": 1, "username": "tester"}
    # Not used as a context manager: lifespan would touch the default database
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_certificate():
    """Self-signed certificate PEM (plus key PEM) with the given subject."""

    def _make(attributes=None):
        if attributes is None:
            attributes = [(NameOID.COMMON_NAME, "external.example.com")]
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        name = x509.Name([x509.NameAttribute(oid, value) for oid, value in attributes])
        now = datetime.now(timezone.utc)
        cert = (
            x509.CertificateBuilder()
            .subject_name(name)
            .issuer_name(name)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + timedelta(days=30))
            .sign(key, hashes.SHA256())
        )
        cert_pem = cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
        key_pem = key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode("ascii")
        return cert_pem, key_pem

    return _make
