import logging
import os

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from certui.config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def build_engine(database_url: str, pool_size: int = 5, max_overflow: int = 10) -> Engine:
    """Create a sync engine for the CA database.

    SQLite connections are shared across FastAPI worker threads and wait on
    the database lock instead of failing fast, so concurrent writers
    serialize on the conditional status updates.
    """
    if database_url.startswith("sqlite"):
        path = database_url.split("sqlite:///", 1)[-1]
        if path and path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
            pool_size=pool_size,
            max_overflow=max_overflow,
            echo=False,
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        echo=False,
    )


settings = get_settings()

engine = build_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_pool_overflow,
)
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


def get_session():
    """Dependency for endpoints: one session per request."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def init_db(bind: Engine | None = None) -> None:
    """Create tables that do not exist yet."""
    # Import models so their tables register on Base.metadata
    from certui.models import ca_settings, certificate, signing_request, user  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database schema ready (%s)", (bind or engine).url.render_as_string(hide_password=True))
