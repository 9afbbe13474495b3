from pydantic import BaseModel


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""


class LoginResponse(BaseModel):
    ok: bool
    username: str


class CurrentUser(BaseModel):
    id: int
    username: str | None = None


class MeResponse(BaseModel):
    user: CurrentUser
