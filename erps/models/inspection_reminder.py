# erps/models/inspection_reminder.py
"""
Sent inspection reminders: the idempotency ledger for the reminder sweep.
One row per (warranty, tier, due date); a new due date starts a fresh set of tiers.
"""

import uuid
from sqlalchemy import Boolean, Column, Date, DateTime, String, UniqueConstraint
from erps.database import Base


class InspectionReminder(Base):
    __tablename__ = "inspection_reminders"
    __table_args__ = (
        UniqueConstraint("warranty_id", "tier", "due_date", name="uq_reminder_warranty_tier_due"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    warranty_id = Column(String(36), nullable=False, index=True)
    tier = Column(String(20), nullable=False)        # DUE_IN_30 | ... | OVERDUE_30
    due_date = Column(Date, nullable=False)
    delivered = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<InspectionReminder {self.warranty_id} tier={self.tier} due={self.due_date}>"
