"""SQLAlchemy model for app_user table."""

from sqlalchemy import Column, DateTime, Integer, String

from certui.database import Base
from certui.models.ca_settings import _utcnow


class User(Base):
    __tablename__ = "app_user"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(64), unique=True, nullable=False)
    password_hash = Column(String(128), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
