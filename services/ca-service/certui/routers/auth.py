"""Login, logout and current-user endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from certui.auth import TOKEN_COOKIE, authenticate, create_token, require_user
from certui.config import get_settings
from certui.database import get_session
from certui.schemas.auth import CurrentUser, LoginRequest, LoginResponse, MeResponse

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/auth/login", response_model=LoginResponse)
def login(body: LoginRequest, response: Response, session: Session = Depends(get_session)):
    if not body.username or not body.password:
        raise HTTPException(status_code=400, detail="Username and password are required")

    user = authenticate(session, body.username, body.password)
    if user is None:
        logger.warning("Failed login for %s", body.username)
        raise HTTPException(status_code=401, detail="Invalid credentials")

    settings = get_settings()
    response.set_cookie(
        TOKEN_COOKIE,
        create_token(user),
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        max_age=settings.token_expire_hours * 3600,
    )
    return LoginResponse(ok=True, username=user.username)


@router.post("/auth/logout")
def logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE)
    return {"ok": True}


@router.get("/auth/me", response_model=MeResponse)
def me(user: dict = Depends(require_user)):
    return MeResponse(user=CurrentUser(**user))
