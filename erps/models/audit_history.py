# erps/models/audit_history.py
"""
Audit history, one immutable row per lifecycle transition.
Rows are inserted by erps.services.audit_service and never updated or deleted;
the mapper events below refuse both at flush time.
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text, event
from erps.database import Base


class AuditHistory(Base):
    __tablename__ = "audit_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    record_id = Column(String(36), nullable=False, index=True)
    record_type = Column(String(20), nullable=False)         # WARRANTY | INSPECTION | USER
    action_type = Column(String(50), nullable=False, index=True)
    status_before = Column(String(40))
    status_after = Column(String(40))
    performed_by = Column(String(36), nullable=False)       # user id or SYSTEM
    performed_at = Column(DateTime, nullable=False, index=True)
    reason = Column(Text)
    notes = Column(Text)
    is_override = Column(Boolean, default=False, nullable=False)
    ip_address = Column(String(64))

    def __repr__(self):
        return f"<AuditHistory {self.record_type}:{self.record_id} {self.action_type} {self.status_before}->{self.status_after}>"


@event.listens_for(AuditHistory, "before_update")
def _refuse_update(mapper, connection, target):
    raise RuntimeError(f"audit_history rows are append-only (update of {target.id})")


@event.listens_for(AuditHistory, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise RuntimeError(f"audit_history rows are append-only (delete of {target.id})")
