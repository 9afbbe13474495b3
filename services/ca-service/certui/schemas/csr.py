from datetime import datetime
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

from certui.schemas.ca import COUNTRY_PATTERN


class CsrCreate(BaseModel):
    # Checked by the profile resolver so unknown values surface as InvalidProfile
    purpose: str = Field("server_tls", validation_alias=AliasChoices("purpose", "preset"))
    common_name: str = ""
    organization: str = ""
    organizational_unit: str = ""
    country: str = Field("", pattern=COUNTRY_PATTERN)
    state: str = ""
    locality: str = ""
    email: str = ""
    san: str = ""
    key_type: Literal["RSA"] = "RSA"
    key_size: Literal[2048, 4096] = 2048


class CsrSummary(BaseModel):
    id: int
    purpose: str
    common_name: str
    organization: str
    organizational_unit: str
    country: str
    state: str
    locality: str
    email: str
    san: str
    key_type: str
    key_size: int
    status: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class CsrDetail(CsrSummary):
    csr_pem: str


class CsrCreateResponse(BaseModel):
    ok: bool
    id: int
    csr_pem: str


class CsrListResponse(BaseModel):
    csrs: list[CsrSummary]


class CsrDetailResponse(BaseModel):
    csr: CsrDetail
