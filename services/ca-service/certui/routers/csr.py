"""Signing request endpoints: create, list, inspect, download, delete."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from certui.auth import require_user
from certui.database import get_session
from certui.routers.responses import attachment
from certui.schemas.csr import (
    CsrCreate,
    CsrCreateResponse,
    CsrDetail,
    CsrDetailResponse,
    CsrListResponse,
    CsrSummary,
)
from certui.services.exporter import download_filename
from certui.services.requests import create_request, delete_request, get_request, list_requests

logger = logging.getLogger(__name__)
router = APIRouter(dependencies=[Depends(require_user)])


@router.post("/csr", response_model=CsrCreateResponse)
def create_csr(body: CsrCreate, session: Session = Depends(get_session)):
    """Generate a key pair and CSR; stored as pending."""
    fields = body.model_dump(exclude={"purpose", "san", "key_type", "key_size"})
    row = create_request(
        session,
        fields,
        san=body.san,
        purpose=body.purpose,
        key_size=body.key_size,
    )
    return CsrCreateResponse(ok=True, id=row.id, csr_pem=row.csr_pem)


@router.get("/csr", response_model=CsrListResponse)
def list_csrs(session: Session = Depends(get_session)):
    return CsrListResponse(csrs=[CsrSummary.model_validate(r) for r in list_requests(session)])


@router.get("/csr/{csr_id}", response_model=CsrDetailResponse)
def get_csr(csr_id: int, session: Session = Depends(get_session)):
    return CsrDetailResponse(csr=CsrDetail.model_validate(get_request(session, csr_id)))


@router.get("/csr/{csr_id}/download/csr")
def download_csr(csr_id: int, session: Session = Depends(get_session)):
    row = get_request(session, csr_id)
    return attachment(row.csr_pem, download_filename(row.common_name, ".csr.pem"))


@router.get("/csr/{csr_id}/download/key")
def download_csr_key(csr_id: int, session: Session = Depends(get_session)):
    row = get_request(session, csr_id)
    return attachment(row.key_pem, download_filename(row.common_name, ".key.pem"))


@router.delete("/csr/{csr_id}")
def remove_csr(csr_id: int, session: Session = Depends(get_session)):
    delete_request(session, csr_id)
    return {"ok": True}
