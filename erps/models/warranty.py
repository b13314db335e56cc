# erps/models/warranty.py
"""
Warranty records, one row per installed ERPS unit.
verification_status is written only through erps.services.record_store.conditional_update,
never assigned directly outside the lifecycle services.
"""

import uuid
from sqlalchemy import Boolean, Column, Date, DateTime, Integer, String, Text
from erps.database import Base


class Warranty(Base):
    __tablename__ = "warranties"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    agent_id = Column(String(36), index=True)
    installer_id = Column(String(36), nullable=False, index=True)

    # Owner contact
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    company_name = Column(String(200))
    email = Column(String(200), nullable=False)
    phone_number = Column(String(50), nullable=False)

    # Vehicle / unit
    make = Column(String(100))
    model = Column(String(100))
    registration_number = Column(String(50))
    vin_number = Column(String(50), index=True)
    generator_serial_number = Column(String(100))
    number_of_couplers = Column(Integer)
    date_installed = Column(Date)

    # Corrosion declaration: NULL means "not declared yet"
    corrosion_found = Column(Boolean)
    corrosion_details = Column(Text)

    # Lifecycle
    verification_status = Column(String(40), nullable=False, default="DRAFT", index=True)
    verification_token = Column(String(128), unique=True)       # only while SUBMITTED
    verification_token_expires_at = Column(DateTime)
    submitted_by = Column(String(36))
    submitted_at = Column(DateTime)
    verified_by = Column(String(36))
    verified_at = Column(DateTime)
    rejection_reason = Column(Text)

    # Customer activation
    activated_at = Column(DateTime)
    customer_terms_accepted_at = Column(DateTime)
    customer_terms_accepted_ip = Column(String(64))
    customer_signature = Column(Text)
    warranty_terms_id = Column(String(36))         # terms offered; NULL means the standard terms
    accepted_terms_revision = Column(String(100))  # "<name> rev <revision>" as accepted

    # Inspection cadence
    inspection_due_date = Column(Date, index=True)
    last_reminder_tier = Column(String(20))
    last_reminder_sent_at = Column(DateTime)
    lapsed_at = Column(DateTime)

    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime)
    modified_at = Column(DateTime)

    @property
    def customer_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def vehicle_label(self) -> str:
        return f"{self.make or ''} {self.model or ''} (VIN: {self.vin_number or 'n/a'})".strip()

    def __repr__(self):
        return f"<Warranty {self.id} status={self.verification_status} vin={self.vin_number}>"
