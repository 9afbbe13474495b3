"""SQLAlchemy model for the singleton ca_settings row (READ-WRITE)."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String

from certui.database import Base


def _utcnow():
    return datetime.now(timezone.utc)


class CaSettings(Base):
    """CA identity. Exactly one row, id = 1."""

    __tablename__ = "ca_settings"
    __table_args__ = (CheckConstraint("id = 1", name="ca_settings_singleton"),)

    id = Column(Integer, primary_key=True, default=1)
    common_name = Column(String(255), nullable=False, default="")
    organization = Column(String(255), nullable=False, default="")
    organizational_unit = Column(String(255), nullable=False, default="")
    country = Column(String(2), nullable=False, default="")
    state = Column(String(128), nullable=False, default="")
    locality = Column(String(128), nullable=False, default="")
    key_type = Column(String(10), nullable=False, default="RSA")
    key_size = Column(Integer, nullable=False, default=2048)

    # Stored flag only; readers AND it with artifact presence
    initialized = Column(Boolean, nullable=False, default=False)
    # CAS token for the initialization claim
    generation = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
