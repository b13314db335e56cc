# erps/schemas/inspection.py
from datetime import date, datetime
from typing import Optional
from erps.schemas.base import CamelModel
from erps.schemas.photo import PhotoIn


class InspectionFields(CamelModel):
    inspection_date: Optional[date] = None

    # Checklist: omit = unanswered, false is an answer
    generator_mounted_correctly: Optional[bool] = None
    red_light_illuminated: Optional[bool] = None
    couplers_secure_sealed: Optional[bool] = None
    owner_advised_paint_damage: Optional[bool] = None
    owner_understands_operation: Optional[bool] = None

    # Area conditions: PASS | ISSUE (ISSUE needs notes)
    roof_turret_condition: Optional[str] = None
    roof_turret_notes: Optional[str] = None
    pillars_condition: Optional[str] = None
    pillars_notes: Optional[str] = None
    sills_condition: Optional[str] = None
    sills_notes: Optional[str] = None
    guards_lf_condition: Optional[str] = None
    guards_lf_notes: Optional[str] = None
    guards_rf_condition: Optional[str] = None
    guards_rf_notes: Optional[str] = None
    guards_lr_condition: Optional[str] = None
    guards_lr_notes: Optional[str] = None
    guards_rr_condition: Optional[str] = None
    guards_rr_notes: Optional[str] = None
    inner_guards_condition: Optional[str] = None
    inner_guards_notes: Optional[str] = None
    under_bonnet_condition: Optional[str] = None
    under_bonnet_notes: Optional[str] = None
    firewall_condition: Optional[str] = None
    firewall_notes: Optional[str] = None
    boot_water_ingress_condition: Optional[str] = None
    boot_water_ingress_notes: Optional[str] = None
    underbody_seams_condition: Optional[str] = None
    underbody_seams_notes: Optional[str] = None

    corrosion_found: Optional[bool] = None
    corrosion_details: Optional[str] = None


class InspectionCreate(InspectionFields):
    warranty_id: Optional[str] = None
    inspector_id: Optional[str] = None
    photos: list[PhotoIn] = []


class InspectionUpdate(InspectionFields):
    pass


class InspectionCreated(CamelModel):
    id: str
    warranty_id: str
    verification_status: str


class InspectionOut(InspectionFields):
    id: str
    warranty_id: str
    inspector_id: str
    verification_status: str
    verification_token_expires_at: Optional[datetime] = None
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    warranty_extended_until: Optional[date] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
