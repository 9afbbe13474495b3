"""Repair requests left pending although a certificate was issued for them.

Signing writes the certificate and the status change in one transaction,
so this only finds rows written outside that path (older deployments,
manual edits, restored backups).
"""

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from certui.models.certificate import SOURCE_SIGNED, Certificate
from certui.models.signing_request import STATUS_PENDING, STATUS_SIGNED, SigningRequest

logger = logging.getLogger(__name__)


def find_orphaned_requests(session: Session) -> list[int]:
    """Ids of pending requests that already have a signed certificate."""
    rows = session.execute(
        select(SigningRequest.id)
        .join(Certificate, Certificate.csr_id == SigningRequest.id)
        .where(
            SigningRequest.status == STATUS_PENDING,
            Certificate.source == SOURCE_SIGNED,
        )
        .distinct()
    )
    return [r[0] for r in rows]


def reconcile_signed_requests(session: Session) -> int:
    """Mark orphaned requests as signed. Returns the number repaired."""
    orphaned = find_orphaned_requests(session)
    if not orphaned:
        return 0

    result = session.execute(
        update(SigningRequest)
        .where(SigningRequest.id.in_(orphaned), SigningRequest.status == STATUS_PENDING)
        .values(status=STATUS_SIGNED, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    session.commit()
    logger.warning("Reconciled %d pending CSR(s) with issued certificates: %s", result.rowcount, orphaned)
    return result.rowcount
