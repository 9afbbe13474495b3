import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from certui.config import get_settings
from certui.database import get_session
from certui.schemas.health import HealthResponse
from certui.services.ca_manager import get_ca_settings
from certui.services.ca_store import CaArtifactStore, get_ca_store

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health_check(
    session: Session = Depends(get_session),
    store: CaArtifactStore = Depends(get_ca_store),
):
    settings = get_settings()
    return HealthResponse(
        status="ok",
        service=settings.service_name,
        version=settings.service_version,
        db_type=settings.db_type,
        ca_initialized=get_ca_settings(session, store)["initialized"],
    )
