from datetime import datetime

from pydantic import BaseModel, Field


class CertificateSummary(BaseModel):
    id: int
    csr_id: int | None = None
    common_name: str
    serial_number: str
    issuer: str
    subject: str
    not_before: datetime | None = None
    not_after: datetime | None = None
    source: str
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class CertificateDetail(CertificateSummary):
    cert_pem: str


class CertificateListResponse(BaseModel):
    certificates: list[CertificateSummary]


class CertificateDetailResponse(BaseModel):
    certificate: CertificateDetail


class CertificateImport(BaseModel):
    cert_pem: str | None = None
    key_pem: str | None = None
    chain_pem: str | None = None


class SignRequest(BaseModel):
    # Falls back to DEFAULT_VALIDITY_DAYS
    days: int | None = Field(None, ge=1, le=3650)


class CertificateWriteResponse(BaseModel):
    ok: bool
    id: int
    certificate: CertificateDetail


class Pkcs12ExportRequest(BaseModel):
    password: str | None = None
