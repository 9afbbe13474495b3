import os

from cryptography import x509
from cryptography.hazmat.primitives.serialization import pkcs12


def _init_ca(client):
    response = client.post(
        "/api/ca/settings",
        json={"common_name": "API Root CA", "organization": "Acme", "country": "US"},
    )
    assert response.status_code == 200
    response = client.post("/api/ca/init")
    assert response.status_code == 200
    return response.json()


def _create_csr(client, **overrides):
    body = {"common_name": "web.example.com", "san": "web.example.com, 10.0.0.5"}
    body.update(overrides)
    response = client.post("/api/csr", json=body)
    assert response.status_code == 200
    return response.json()["id"]


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "ca-service"
        assert data["ca_initialized"] is False

    def test_health_reports_initialized_ca(self, client, store):
        _init_ca(client)
        assert client.get("/health").json()["ca_initialized"] is True

        os.unlink(store.cert_path)
        assert client.get("/health").json()["ca_initialized"] is False

    def test_health_ignores_artifacts_without_stored_flag(self, client, store, make_certificate):
        cert_pem, key_pem = make_certificate()
        store.write(key_pem, cert_pem)
        assert client.get("/health").json()["ca_initialized"] is False


class TestCa:
    def test_settings_round_trip(self, client):
        _init_ca(client)
        settings = client.get("/api/ca/settings").json()["settings"]
        assert settings["common_name"] == "API Root CA"
        assert settings["key_type"] == "RSA"
        assert settings["initialized"] is True

    def test_settings_reject_bad_key_size(self, client):
        response = client.post("/api/ca/settings", json={"common_name": "x", "key_size": 1024})
        assert response.status_code == 422

    def test_init_without_common_name(self, client):
        response = client.post("/api/ca/init")
        assert response.status_code == 400
        assert response.json() == {
            "error": "MissingCommonName",
            "kind": "validation",
            "detail": "CA settings must be saved with at least a Common Name before initialization",
        }

    def test_reinit_requires_force(self, client):
        first = _init_ca(client)
        response = client.post("/api/ca/init")
        assert response.status_code == 409
        assert response.json()["error"] == "CaAlreadyInitialized"

        forced = client.post("/api/ca/init", json={"force": True})
        assert forced.status_code == 200
        assert forced.json()["serial_number"] != first["serial_number"]

    def test_ca_cert_download(self, client):
        response = client.get("/api/ca/cert")
        assert response.status_code == 404
        assert response.json()["error"] == "CaNotInitialized"

        _init_ca(client)
        response = client.get("/api/ca/cert")
        assert response.status_code == 200
        assert 'filename="ca.cert.pem"' in response.headers["content-disposition"]
        cert = x509.load_pem_x509_certificate(response.content)
        assert cert.issuer == cert.subject


class TestCsr:
    def test_create_and_inspect(self, client):
        csr_id = _create_csr(client, preset="client_tls", email="ops@example.com")

        detail = client.get(f"/api/csr/{csr_id}").json()["csr"]
        assert detail["purpose"] == "client_tls"
        assert detail["status"] == "pending"
        assert detail["email"] == "ops@example.com"
        assert "key_pem" not in detail
        assert [c["id"] for c in client.get("/api/csr").json()["csrs"]] == [csr_id]

        key = client.get(f"/api/csr/{csr_id}/download/key")
        assert key.status_code == 200
        assert 'filename="web.example.com.key.pem"' in key.headers["content-disposition"]
        assert b"PRIVATE KEY" in key.content

    def test_unknown_preset(self, client):
        response = client.post("/api/csr", json={"common_name": "x", "preset": "email_signing"})
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidProfile"
        assert client.get("/api/csr").json()["csrs"] == []

    def test_missing_request(self, client):
        response = client.get("/api/csr/999")
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"

    def test_delete(self, client):
        csr_id = _create_csr(client)
        assert client.delete(f"/api/csr/{csr_id}").json() == {"ok": True}
        assert client.delete(f"/api/csr/{csr_id}").status_code == 404


class TestSigningFlow:
    def test_sign_download_export(self, client):
        _init_ca(client)
        csr_id = _create_csr(client)

        response = client.post(f"/api/certificates/sign/{csr_id}", json={"days": 30})
        assert response.status_code == 200
        cert_id = response.json()["id"]
        assert response.json()["certificate"]["csr_id"] == csr_id

        again = client.post(f"/api/certificates/sign/{csr_id}")
        assert again.status_code == 409
        assert again.json()["error"] == "AlreadySigned"
        assert client.get(f"/api/csr/{csr_id}").json()["csr"]["status"] == "signed"
        assert client.delete(f"/api/csr/{csr_id}").status_code == 409

        fullchain = client.get(f"/api/certificates/{cert_id}/download/fullchain")
        assert fullchain.status_code == 200
        assert len(x509.load_pem_x509_certificates(fullchain.content)) == 2

        chain = client.get(f"/api/certificates/{cert_id}/download/chain")
        assert chain.content == client.get("/api/ca/cert").content

        export = client.post(f"/api/certificates/{cert_id}/export/pkcs12", json={"password": "s3cret"})
        assert export.status_code == 200
        assert export.headers["content-type"] == "application/x-pkcs12"
        key, cert, extra = pkcs12.load_key_and_certificates(export.content, b"s3cret")
        assert key is not None and len(extra) == 1

    def test_export_password_with_shell_characters(self, client):
        _init_ca(client)
        csr_id = _create_csr(client)
        cert_id = client.post(f"/api/certificates/sign/{csr_id}").json()["id"]

        password = 'a"b\'c$(id)`x`'
        export = client.post(f"/api/certificates/{cert_id}/export/pkcs12", json={"password": password})
        assert export.status_code == 200
        key, cert, extra = pkcs12.load_key_and_certificates(export.content, password.encode())
        assert key is not None
        serial = client.get(f"/api/certificates/{cert_id}").json()["certificate"]["serial_number"]
        assert cert.serial_number == int(serial, 16)

    def test_sign_before_ca_init(self, client):
        csr_id = _create_csr(client)
        response = client.post(f"/api/certificates/sign/{csr_id}")
        assert response.status_code == 400
        assert response.json()["error"] == "CaNotInitialized"
        assert client.get(f"/api/csr/{csr_id}").json()["csr"]["status"] == "pending"

    def test_sign_rejects_out_of_range_days(self, client):
        _init_ca(client)
        csr_id = _create_csr(client)
        assert client.post(f"/api/certificates/sign/{csr_id}", json={"days": 0}).status_code == 422


class TestImportedCertificates:
    def test_import_and_downloads(self, client, make_certificate):
        cert_pem, _ = make_certificate()
        response = client.post("/api/certificates/import", json={"cert_pem": cert_pem})
        assert response.status_code == 200
        cert_id = response.json()["id"]
        assert response.json()["certificate"]["source"] == "imported"

        key = client.get(f"/api/certificates/{cert_id}/download/key")
        assert key.status_code == 404
        assert key.json()["error"] == "KeyUnavailable"

        export = client.post(f"/api/certificates/{cert_id}/export/pkcs12", json={"password": "x"})
        assert export.status_code == 400
        assert export.json()["error"] == "KeyUnavailable"

        assert client.get(f"/api/certificates/{cert_id}/download/chain").status_code == 404
        assert client.get(f"/api/certificates/{cert_id}/download/fullchain").text == cert_pem

    def test_import_invalid(self, client):
        response = client.post("/api/certificates/import", json={"cert_pem": "nope"})
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidCertificate"

    def test_export_without_password(self, client, make_certificate):
        cert_pem, key_pem = make_certificate()
        cert_id = client.post("/api/certificates/import", json={"cert_pem": cert_pem, "key_pem": key_pem}).json()["id"]
        response = client.post(f"/api/certificates/{cert_id}/export/pkcs12", json={})
        assert response.status_code == 400
        assert response.json()["error"] == "ExportPasswordRequired"

    def test_delete(self, client, make_certificate):
        cert_id = client.post("/api/certificates/import", json={"cert_pem": make_certificate()[0]}).json()["id"]
        assert client.delete(f"/api/certificates/{cert_id}").status_code == 200
        assert client.get(f"/api/certificates/{cert_id}").status_code == 404
        assert client.get("/api/certificates").json()["certificates"] == []
