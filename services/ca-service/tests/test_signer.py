import random
import threading
import time
from datetime import timedelta

import pytest
from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID, ExtensionOID
from sqlalchemy import func, select

from certui.errors import AlreadySigned, CaNotInitialized, RequestNotFound
from certui.models.certificate import Certificate
from certui.models.signing_request import SigningRequest
from certui.services.cert_parser import parse_certificate
from certui.services.requests import create_request
from certui.services.signer import generate_serial_number, sign_request

FIELDS = {"common_name": "api.example.com", "organization": "Acme", "email": "ops@example.com"}


def _certificate_count(session):
    return session.scalar(select(func.count()).select_from(Certificate))


@pytest.fixture
def pending(session):
    return create_request(session, FIELDS, san="api.example.com, 10.0.0.1", purpose="server_tls")


def test_sign_issues_certificate(session, store, initialized_ca, pending):
    record = sign_request(session, store, pending.id, validity_days=90)

    cert = x509.load_pem_x509_certificate(record.cert_pem.encode())
    cert.verify_directly_issued_by(initialized_ca.certificate)
    assert cert.not_valid_after_utc - cert.not_valid_before_utc == timedelta(days=90)

    bc = cert.extensions.get_extension_for_oid(ExtensionOID.BASIC_CONSTRAINTS)
    assert bc.critical is True and bc.value.ca is False
    assert list(cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value) == [
        ExtendedKeyUsageOID.SERVER_AUTH
    ]
    san = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    assert san.get_values_for_type(x509.DNSName) == ["api.example.com"]
    assert [str(ip) for ip in san.get_values_for_type(x509.IPAddress)] == ["10.0.0.1"]

    ski = cert.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
    assert ski == x509.SubjectKeyIdentifier.from_public_key(cert.public_key())
    aki = cert.extensions.get_extension_for_class(x509.AuthorityKeyIdentifier).value
    ca_ski = initialized_ca.certificate.extensions.get_extension_for_class(x509.SubjectKeyIdentifier).value
    assert aki.key_identifier == ca_ski.digest

    assert record.source == "signed"
    assert record.csr_id == pending.id
    assert record.key_pem == pending.key_pem
    assert record.chain_pem == initialized_ca.cert_pem
    assert record.issuer == initialized_ca.certificate.subject.rfc4514_string()

    session.expire_all()
    assert session.get(SigningRequest, pending.id).status == "signed"


def test_signed_common_name_round_trips(session, store, initialized_ca, pending):
    record = sign_request(session, store, pending.id)
    assert parse_certificate(record.cert_pem).common_name == pending.common_name
    assert record.common_name == "api.example.com"


def test_sign_twice_rejected(session, store, initialized_ca, pending):
    sign_request(session, store, pending.id)
    with pytest.raises(AlreadySigned):
        sign_request(session, store, pending.id)
    assert _certificate_count(session) == 1


def test_sign_before_ca_initialized(session, store, pending):
    with pytest.raises(CaNotInitialized):
        sign_request(session, store, pending.id)
    assert _certificate_count(session) == 0
    session.expire_all()
    assert session.get(SigningRequest, pending.id).status == "pending"


def test_sign_unknown_request(session, store, initialized_ca):
    with pytest.raises(RequestNotFound):
        sign_request(session, store, 4242)


def test_request_without_san_gets_no_san(session, store, initialized_ca):
    request = create_request(session, {"common_name": "signer"}, san="", purpose="code_signing")
    cert = x509.load_pem_x509_certificate(sign_request(session, store, request.id).cert_pem.encode())
    with pytest.raises(x509.ExtensionNotFound):
        cert.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    assert list(cert.extensions.get_extension_for_class(x509.ExtendedKeyUsage).value) == [
        ExtendedKeyUsageOID.CODE_SIGNING
    ]


@pytest.mark.parametrize("trial", range(3))
def test_concurrent_sign_has_single_winner(session_factory, store, initialized_ca, trial):
    setup = session_factory()
    request_id = create_request(setup, {"common_name": f"race-{trial}.example.com"}).id
    setup.close()

    workers = 6
    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def _sign():
        session = session_factory()
        try:
            barrier.wait()
            time.sleep(random.uniform(0, 0.02))
            sign_request(session, store, request_id)
            outcome = "ok"
        except AlreadySigned:
            outcome = "already_signed"
        finally:
            session.close()
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=_sign) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("already_signed") == workers - 1

    check = session_factory()
    try:
        issued = check.scalar(
            select(func.count()).select_from(Certificate).where(Certificate.csr_id == request_id)
        )
        assert issued == 1
        assert check.get(SigningRequest, request_id).status == "signed"
    finally:
        check.close()


def test_serial_numbers_are_128_bit_hex_and_unique():
    serials = {generate_serial_number() for _ in range(20000)}
    assert len(serials) == 20000
    assert all(len(s) == 32 and s == s.upper() for s in serials)


def test_issued_serials_unique(session, store, initialized_ca):
    issued = []
    for i in range(8):
        request = create_request(session, {"common_name": f"host{i}.example.com"})
        issued.append(sign_request(session, store, request.id).serial_number)
    assert len(set(issued)) == len(issued)
