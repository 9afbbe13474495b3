"""CA settings, initialization and public certificate endpoints."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from certui.auth import require_user
from certui.database import get_session
from certui.routers.responses import attachment
from certui.schemas.ca import (
    CaInitRequest,
    CaInitResponse,
    CaSettingsIn,
    CaSettingsOut,
    CaSettingsResponse,
)
from certui.services.ca_manager import (
    get_ca_settings,
    initialize_ca,
    read_ca_certificate,
    save_ca_settings,
)
from certui.services.ca_store import CaArtifactStore, get_ca_store
from certui.services.cert_parser import describe_certificate

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/ca/settings", response_model=CaSettingsResponse, dependencies=[Depends(require_user)])
def read_settings(
    session: Session = Depends(get_session),
    store: CaArtifactStore = Depends(get_ca_store),
):
    return CaSettingsResponse(settings=CaSettingsOut(**get_ca_settings(session, store)))


@router.post("/ca/settings", dependencies=[Depends(require_user)])
def write_settings(body: CaSettingsIn, session: Session = Depends(get_session)):
    save_ca_settings(session, **body.model_dump(exclude={"key_type"}))
    return {"ok": True}


@router.post("/ca/init", response_model=CaInitResponse, dependencies=[Depends(require_user)])
def init_ca(
    body: CaInitRequest | None = None,
    session: Session = Depends(get_session),
    store: CaArtifactStore = Depends(get_ca_store),
):
    """Create the CA key and self-signed root. Runs once unless forced."""
    material = initialize_ca(session, store, force=bool(body and body.force))
    info = describe_certificate(material.certificate)
    return CaInitResponse(
        ok=True,
        subject=info.subject,
        serial_number=info.serial_number,
        not_after=info.not_after,
    )


@router.get("/ca/cert")
def download_ca_certificate(store: CaArtifactStore = Depends(get_ca_store)):
    """CA certificate download. Public so clients can build trust chains."""
    return attachment(read_ca_certificate(store), "ca.cert.pem")
