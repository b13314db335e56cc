# erps/models/warranty_terms.py
"""
Published warranty terms. A warranty may point at one terms row; the revision the
customer actually accepted is copied onto the warranty at activation.
"""

import uuid
from sqlalchemy import Boolean, Column, DateTime, String, Text
from erps.database import Base


class WarrantyTerms(Base):
    __tablename__ = "warranty_terms"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    warranty_name = Column(String(200), nullable=False)
    description = Column(Text)
    revision = Column(String(50), nullable=False)
    generator_light_colour = Column(String(50))
    terms_and_conditions = Column(Text)
    inspection_instructions = Column(Text)
    add_type = Column(String(20), nullable=False)       # ADD_WARRANTY | REPLACE_WARRANTY
    warranty_to_replace_id = Column(String(36))
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False)
    created_by = Column(String(36))
    created_at = Column(DateTime)
    modified_at = Column(DateTime)

    def __repr__(self):
        return f"<WarrantyTerms {self.id} {self.warranty_name} rev={self.revision}>"
