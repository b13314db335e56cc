# erps/models/inspection.py
"""
Annual inspection records against a warranty.
Checklist booleans are nullable: NULL = not answered, False = answered "no".
Each *_condition (PASS | ISSUE) is paired with a *_notes column.
"""

import uuid
from sqlalchemy import Boolean, Column, Date, DateTime, String, Text
from erps.database import Base

INSPECTION_AREAS = (
    "roof_turret",
    "pillars",
    "sills",
    "guards_lf",
    "guards_rf",
    "guards_lr",
    "guards_rr",
    "inner_guards",
    "under_bonnet",
    "firewall",
    "boot_water_ingress",
    "underbody_seams",
)

CHECKLIST_FIELDS = (
    "generator_mounted_correctly",
    "red_light_illuminated",
    "couplers_secure_sealed",
    "owner_advised_paint_damage",
    "owner_understands_operation",
)


class Inspection(Base):
    __tablename__ = "annual_inspections"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    warranty_id = Column(String(36), nullable=False, index=True)
    inspector_id = Column(String(36), nullable=False, index=True)
    inspection_date = Column(Date)

    # Checklist
    generator_mounted_correctly = Column(Boolean)
    red_light_illuminated = Column(Boolean)
    couplers_secure_sealed = Column(Boolean)
    owner_advised_paint_damage = Column(Boolean)
    owner_understands_operation = Column(Boolean)

    # Per-area condition
    roof_turret_condition = Column(String(10))
    roof_turret_notes = Column(Text)
    pillars_condition = Column(String(10))
    pillars_notes = Column(Text)
    sills_condition = Column(String(10))
    sills_notes = Column(Text)
    guards_lf_condition = Column(String(10))
    guards_lf_notes = Column(Text)
    guards_rf_condition = Column(String(10))
    guards_rf_notes = Column(Text)
    guards_lr_condition = Column(String(10))
    guards_lr_notes = Column(Text)
    guards_rr_condition = Column(String(10))
    guards_rr_notes = Column(Text)
    inner_guards_condition = Column(String(10))
    inner_guards_notes = Column(Text)
    under_bonnet_condition = Column(String(10))
    under_bonnet_notes = Column(Text)
    firewall_condition = Column(String(10))
    firewall_notes = Column(Text)
    boot_water_ingress_condition = Column(String(10))
    boot_water_ingress_notes = Column(Text)
    underbody_seams_condition = Column(String(10))
    underbody_seams_notes = Column(Text)

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
    warranty_extended_until = Column(Date)                       # set only on VERIFIED

    is_deleted = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime)
    modified_at = Column(DateTime)

    def __repr__(self):
        return f"<Inspection {self.id} warranty={self.warranty_id} status={self.verification_status}>"
