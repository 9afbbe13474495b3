import pytest

from certui.auth import create_token, hash_password, require_user, verify_password
from certui.main import app
from certui.models.user import User


@pytest.fixture
def auth_client(client, session_factory):
    """Client with real authentication and one known account."""
    session = session_factory()
    session.add(User(username="admin", password_hash=hash_password("correct horse")))
    session.commit()
    session.close()

    app.dependency_overrides.pop(require_user)
    return client


def test_password_hashing():
    hashed = hash_password("secret")
    assert hashed != "secret"
    assert verify_password("secret", hashed)
    assert not verify_password("other", hashed)
    assert not verify_password("secret", "not-a-bcrypt-hash")


def test_protected_routes_require_login(auth_client):
    for path in ("/api/csr", "/api/certificates", "/api/ca/settings", "/api/auth/me"):
        assert auth_client.get(path).status_code == 401
    assert auth_client.get("/health").status_code == 200


def test_login_sets_cookie(auth_client):
    response = auth_client.post("/api/auth/login", json={"username": "admin", "password": "correct horse"})
    assert response.status_code == 200
    assert response.json() == {"ok": True, "username": "admin"}
    assert "token" in response.cookies

    me = auth_client.get("/api/auth/me")
    assert me.status_code == 200
    assert me.json()["user"]["username"] == "admin"


def test_bearer_token(auth_client):
    token = create_token(User(id=7, username="robot"))
    response = auth_client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.json() == {"user": {"id": 7, "username": "robot"}}

    bad = auth_client.get("/api/csr", headers={"Authorization": "Bearer garbage"})
    assert bad.status_code == 401


@pytest.mark.parametrize(
    "body, status",
    [
        ({"username": "admin", "password": "wrong"}, 401),
        ({"username": "nobody", "password": "correct horse"}, 401),
        ({"username": "admin"}, 400),
    ],
)
def test_login_failures(auth_client, body, status):
    response = auth_client.post("/api/auth/login", json=body)
    assert response.status_code == status
    assert "token" not in response.cookies
