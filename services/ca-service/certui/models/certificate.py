"""SQLAlchemy model for certificate table (READ-WRITE)."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, text

from certui.database import Base
from certui.models.ca_settings import _utcnow

SOURCE_SIGNED = "signed"
SOURCE_IMPORTED = "imported"


class Certificate(Base):
    """Issued or imported certificate with its parsed metadata."""

    __tablename__ = "certificate"
    __table_args__ = (
        # Serials are unique only among certificates this CA issued
        Index(
            "uq_certificate_signed_serial",
            "serial_number",
            unique=True,
            sqlite_where=text("source = 'signed'"),
            postgresql_where=text("source = 'signed'"),
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    csr_id = Column(Integer, ForeignKey("signing_request.id"), nullable=True, index=True)

    common_name = Column(String(255), nullable=False)
    serial_number = Column(String(128), nullable=False)
    issuer = Column(Text, nullable=False)
    subject = Column(Text, nullable=False)
    not_before = Column(DateTime(timezone=True))
    not_after = Column(DateTime(timezone=True))

    cert_pem = Column(Text, nullable=False)
    key_pem = Column(Text)
    chain_pem = Column(Text)

    source = Column(String(10), nullable=False)  # signed / imported
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)
