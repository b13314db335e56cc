# erps/services/audit_service.py
"""
Audit History Recorder.
record() adds one row inside the caller's transaction and flushes it, so a transition
and its audit entry commit or roll back together. A failed audit write is logged at
ERROR and raised as INTERNAL: a transition without its audit row is a defect.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from erps.models.audit_history import AuditHistory
from erps.services.lifecycle_rules import RecordType
from erps.utils.errors import InternalError
from erps.utils.logger import get_logger

logger = get_logger(__name__)

SYSTEM_ACTOR = "SYSTEM"


class AuditRecorder:
    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        record_id: str,
        record_type: RecordType,
        action_type: str,
        status_before: Optional[str],
        status_after: Optional[str],
        performed_by: str,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
        is_override: bool = False,
        ip_address: Optional[str] = None,
        performed_at: Optional[datetime] = None,
    ) -> AuditHistory:
        entry = AuditHistory(
            record_id=record_id,
            record_type=record_type.value,
            action_type=action_type,
            status_before=status_before,
            status_after=status_after,
            performed_by=performed_by or SYSTEM_ACTOR,
            performed_at=performed_at or datetime.utcnow(),
            reason=reason,
            notes=notes,
            is_override=is_override,
            ip_address=ip_address,
        )
        try:
            self.db.add(entry)
            self.db.flush()
        except SQLAlchemyError as e:
            logger.error(
                f"[AUDIT] FAILED to write {action_type} for {record_type.value}:{record_id} "
                f"({status_before} -> {status_after}): {e}",
                exc_info=True,
            )
            raise InternalError("Audit history could not be written; transition rolled back") from e

        logger.info(
            f"[AUDIT] {record_type.value}:{record_id} {action_type} "
            f"{status_before} -> {status_after} by {entry.performed_by}"
            + (" [OVERRIDE]" if is_override else "")
        )
        return entry

    def history(self, record_id: str, record_type: Optional[RecordType] = None, limit: int = 200):
        """Entries for a record, most recent first."""
        q = self.db.query(AuditHistory).filter(AuditHistory.record_id == record_id)
        if record_type is not None:
            q = q.filter(AuditHistory.record_type == record_type.value)
        return q.order_by(AuditHistory.performed_at.desc(), AuditHistory.id.desc()).limit(limit).all()

    def count(self, record_id: str) -> int:
        return self.db.query(AuditHistory).filter(AuditHistory.record_id == record_id).count()
