"""Certificate endpoints: sign, import, inspect, download, export, delete."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from certui.auth import require_user
from certui.config import get_settings
from certui.database import get_session
from certui.routers.responses import PKCS12_MEDIA_TYPE, attachment
from certui.schemas.certificate import (
    CertificateDetail,
    CertificateDetailResponse,
    CertificateImport,
    CertificateListResponse,
    CertificateSummary,
    CertificateWriteResponse,
    Pkcs12ExportRequest,
    SignRequest,
)
from certui.services.ca_store import CaArtifactStore, get_ca_store
from certui.services.certificates import (
    delete_certificate,
    get_certificate,
    import_certificate,
    list_certificates,
)
from certui.services.exporter import (
    chain_pem_of,
    download_filename,
    export_pkcs12,
    fullchain_pem,
    key_pem_of,
)
from certui.services.signer import sign_request

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_user)])


@router.get("/certificates", response_model=CertificateListResponse)
def list_all(session: Session = Depends(get_session)):
    return CertificateListResponse(
        certificates=[CertificateSummary.model_validate(r) for r in list_certificates(session)]
    )


@router.get("/certificates/{certificate_id}", response_model=CertificateDetailResponse)
def get_one(certificate_id: int, session: Session = Depends(get_session)):
    return CertificateDetailResponse(
        certificate=CertificateDetail.model_validate(get_certificate(session, certificate_id))
    )


@router.post("/certificates/import", response_model=CertificateWriteResponse)
def import_one(body: CertificateImport, session: Session = Depends(get_session)):
    """Store an externally issued certificate, optionally with key and chain."""
    row = import_certificate(session, body.cert_pem or "", body.key_pem, body.chain_pem)
    return CertificateWriteResponse(ok=True, id=row.id, certificate=CertificateDetail.model_validate(row))


@router.post("/certificates/sign/{csr_id}", response_model=CertificateWriteResponse)
def sign_one(
    csr_id: int,
    body: SignRequest | None = None,
    session: Session = Depends(get_session),
    store: CaArtifactStore = Depends(get_ca_store),
):
    """Sign a pending CSR with the CA key."""
    days = (body.days if body else None) or get_settings().default_validity_days
    row = sign_request(session, store, csr_id, validity_days=days)
    return CertificateWriteResponse(ok=True, id=row.id, certificate=CertificateDetail.model_validate(row))


@router.get("/certificates/{certificate_id}/download/cert")
def download_cert(certificate_id: int, session: Session = Depends(get_session)):
    row = get_certificate(session, certificate_id)
    return attachment(row.cert_pem, download_filename(row.common_name, ".cert.pem"))


@router.get("/certificates/{certificate_id}/download/key")
def download_key(certificate_id: int, session: Session = Depends(get_session)):
    row = get_certificate(session, certificate_id)
    return attachment(key_pem_of(row, status_code=404), download_filename(row.common_name, ".key.pem"))


@router.get("/certificates/{certificate_id}/download/chain")
def download_chain(certificate_id: int, session: Session = Depends(get_session)):
    row = get_certificate(session, certificate_id)
    return attachment(chain_pem_of(row), download_filename(row.common_name, ".chain.pem"))


@router.get("/certificates/{certificate_id}/download/fullchain")
def download_fullchain(certificate_id: int, session: Session = Depends(get_session)):
    row = get_certificate(session, certificate_id)
    return attachment(
        fullchain_pem(row.cert_pem, row.chain_pem),
        download_filename(row.common_name, ".fullchain.pem"),
    )


@router.post("/certificates/{certificate_id}/export/pkcs12")
def export_p12(
    certificate_id: int,
    body: Pkcs12ExportRequest | None = None,
    session: Session = Depends(get_session),
):
    """Password-protected PKCS#12 with key, certificate and chain."""
    password = body.password if body else None
    row = get_certificate(session, certificate_id)
    bundle = export_pkcs12(row, password)
    return attachment(bundle, download_filename(row.common_name, ".p12"), media_type=PKCS12_MEDIA_TYPE)


@router.delete("/certificates/{certificate_id}")
def remove_one(certificate_id: int, session: Session = Depends(get_session)):
    delete_certificate(session, certificate_id)
    return {"ok": True}
