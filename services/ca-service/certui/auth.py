"""Password login and JWT session cookies.

A single admin account is seeded from ``ADMIN_PASSWORD``. Sessions are
HS256 tokens carried in the http-only ``token`` cookie or, for API
clients, an ``Authorization: Bearer`` header.
"""

import logging
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import HTTPException, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from certui.config import get_settings
from certui.models.user import User

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "token"
JWT_ALGORITHM = "HS256"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("ascii")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))
    except ValueError:
        return False


def create_token(user: User) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "iat": now,
        "exp": now + timedelta(hours=settings.token_expire_hours),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, get_settings().jwt_secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")


def authenticate(session: Session, username: str, password: str) -> User | None:
    user = session.scalars(select(User).where(User.username == username)).first()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return user


def seed_admin_user(session: Session) -> None:
    """Create the admin account on first start if a password is configured."""
    settings = get_settings()
    if not settings.admin_password:
        logger.warning(
            "ADMIN_PASSWORD is not set. Set it in the environment before running in production."
        )
        return

    existing = session.scalars(select(User).where(User.username == settings.admin_username)).first()
    if existing is not None:
        return

    session.add(User(username=settings.admin_username, password_hash=hash_password(settings.admin_password)))
    session.commit()
    logger.info("Admin user %s created", settings.admin_username)


def require_user(request: Request) -> dict:
    """Dependency: the authenticated caller, or 401."""
    token = request.cookies.get(TOKEN_COOKIE)
    if not token:
        header = request.headers.get("Authorization", "")
        if header.lower().startswith("bearer "):
            token = header[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized")

    claims = decode_token(token)
    return {"id": int(claims["sub"]), "username": claims.get("username")}
