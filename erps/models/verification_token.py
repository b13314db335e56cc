# erps/models/verification_token.py
"""
Verification (installer / inspector) and activation (customer) tokens.
The token column is unique; at most one active token per (record_id, purpose).
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from erps.database import Base


class VerificationToken(Base):
    __tablename__ = "verification_tokens"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    token = Column(String(128), unique=True, nullable=False, index=True)
    record_id = Column(String(36), nullable=False, index=True)
    purpose = Column(String(40), nullable=False)  # WARRANTY_VERIFICATION | INSPECTION_VERIFICATION | CUSTOMER_ACTIVATION
    expires_at = Column(DateTime, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    used_at = Column(DateTime)
    revoked_at = Column(DateTime)     # superseded or withdrawn; expiry alone leaves it NULL
    reminders_sent = Column(Integer, default=0, nullable=False)
    last_reminder_sent_at = Column(DateTime)
    created_at = Column(DateTime, nullable=False)

    def __repr__(self):
        return f"<VerificationToken {self.id} purpose={self.purpose} active={self.is_active}>"
