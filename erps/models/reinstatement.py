# erps/models/reinstatement.py
"""Reinstatements of lapsed warranties. Written only by reinstatement_service."""

import uuid
from sqlalchemy import Column, Date, DateTime, String, Text
from erps.database import Base


class Reinstatement(Base):
    __tablename__ = "warranty_reinstatements"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    warranty_id = Column(String(36), nullable=False, index=True)
    reinstated_by = Column(String(36), nullable=False)
    reason = Column(Text, nullable=False)
    inspection_id = Column(String(36))
    notes = Column(Text)
    previous_lapsed_at = Column(DateTime)
    new_inspection_due_date = Column(Date)
    reinstated_at = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<Reinstatement {self.id} warranty={self.warranty_id}>"
