"""SQLAlchemy model for signing_request table (READ-WRITE)."""

from sqlalchemy import Column, DateTime, Integer, String, Text

from certui.database import Base
from certui.models.ca_settings import _utcnow

STATUS_PENDING = "pending"
STATUS_SIGNED = "signed"


class SigningRequest(Base):
    """A PKCS#10 request together with the private key generated for it."""

    __tablename__ = "signing_request"

    id = Column(Integer, primary_key=True, autoincrement=True)
    purpose = Column(String(20), nullable=False)  # server_tls / client_tls / code_signing

    # Subject
    common_name = Column(String(255), nullable=False)
    organization = Column(String(255), nullable=False, default="")
    organizational_unit = Column(String(255), nullable=False, default="")
    country = Column(String(2), nullable=False, default="")
    state = Column(String(128), nullable=False, default="")
    locality = Column(String(128), nullable=False, default="")
    email = Column(String(255), nullable=False, default="")
    san = Column(Text, nullable=False, default="")

    key_type = Column(String(10), nullable=False, default="RSA")
    key_size = Column(Integer, nullable=False, default=2048)

    csr_pem = Column(Text, nullable=False)
    key_pem = Column(Text, nullable=False)

    status = Column(String(10), nullable=False, default=STATUS_PENDING, index=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
