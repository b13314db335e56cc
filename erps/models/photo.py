# erps/models/photo.py
"""
Categorized evidence photos for warranties and inspections.
Upload itself happens in the blob store; only the resulting URL is stored here.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, String, Text
from erps.database import Base


class Photo(Base):
    __tablename__ = "photos"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    warranty_id = Column(String(36), index=True)     # exactly one of warranty_id / inspection_id
    inspection_id = Column(String(36), index=True)
    category = Column(String(50))                    # GENERATOR | COUPLER | CORROSION_OR_CLEAR | ...
    url = Column(Text, nullable=False)
    description = Column(Text)
    is_deleted = Column(Boolean, default=False, nullable=False)
    uploaded_at = Column(DateTime)

    def __repr__(self):
        return f"<Photo {self.id} category={self.category}>"
