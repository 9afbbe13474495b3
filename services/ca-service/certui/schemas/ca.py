from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

COUNTRY_PATTERN = r"^([A-Za-z]{2})?$"


class CaSettingsIn(BaseModel):
    common_name: str = ""
    organization: str = ""
    organizational_unit: str = ""
    country: str = Field("", pattern=COUNTRY_PATTERN)
    state: str = ""
    locality: str = ""
    key_type: Literal["RSA"] = "RSA"
    key_size: Literal[2048, 4096] = 2048


class CaSettingsOut(BaseModel):
    common_name: str
    organization: str
    organizational_unit: str
    country: str
    state: str
    locality: str
    key_type: str
    key_size: int
    initialized: bool


class CaSettingsResponse(BaseModel):
    settings: CaSettingsOut


class CaInitRequest(BaseModel):
    # Replaces an existing root; all issued certificates lose their chain
    force: bool = False


class CaInitResponse(BaseModel):
    ok: bool
    subject: str
    serial_number: str
    not_after: datetime
