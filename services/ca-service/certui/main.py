import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from certui.config import get_settings
from certui.errors import CaServiceError
from certui.routers import auth, ca, certificates, csr, health

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI):
    settings = get_settings()
    logger.info(
        "Starting %s (port=%d, db=%s, storage=%s)",
        settings.service_name,
        settings.server_port,
        settings.db_type,
        settings.storage_dir,
    )

    from certui.auth import seed_admin_user
    from certui.database import SessionLocal, init_db
    from certui.tasks.scheduler import run_reconciliation, start_scheduler, stop_scheduler

    init_db()
    session = SessionLocal()
    try:
        seed_admin_user(session)
    finally:
        session.close()

    repaired = run_reconciliation()
    if repaired:
        logger.info("Startup reconciliation repaired %d CSR(s)", repaired)

    try:
        start_scheduler()
    except Exception as e:
        logger.warning("Failed to start scheduler: %s", e)

    yield

    # Shutdown
    logger.info("Shutting down %s", settings.service_name)
    stop_scheduler()


app = FastAPI(
    title="certui CA Service",
    description="Private certificate authority: CSR generation, signing, import and export",
    version=get_settings().service_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in get_settings().cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CaServiceError)
async def ca_service_error_handler(request: Request, exc: CaServiceError):
    if exc.kind == "operational":
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail, exc_info=exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.code, "kind": exc.kind, "detail": exc.detail},
    )


# Register routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router, prefix="/api", tags=["auth"])
app.include_router(ca.router, prefix="/api", tags=["ca"])
app.include_router(csr.router, prefix="/api", tags=["csr"])
app.include_router(certificates.router, prefix="/api", tags=["certificates"])


def run():
    import uvicorn

    uvicorn.run("certui.main:app", host="0.0.0.0", port=get_settings().server_port)
