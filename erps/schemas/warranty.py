# erps/schemas/warranty.py
from datetime import date, datetime
from typing import Optional
from erps.schemas.base import CamelModel
from erps.schemas.photo import PhotoIn


class WarrantyFields(CamelModel):
    # Everything optional here: missing values are reported together by the service
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company_name: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    make: Optional[str] = None
    model: Optional[str] = None
    registration_number: Optional[str] = None
    vin_number: Optional[str] = None
    generator_serial_number: Optional[str] = None
    number_of_couplers: Optional[int] = None
    date_installed: Optional[date] = None
    corrosion_found: Optional[bool] = None
    corrosion_details: Optional[str] = None
    warranty_terms_id: Optional[str] = None


class WarrantyCreate(WarrantyFields):
    installer_id: Optional[str] = None
    photos: list[PhotoIn] = []


class WarrantyUpdate(WarrantyFields):
    pass


class WarrantyCreated(CamelModel):
    id: str
    verification_status: str


class WarrantyOut(CamelModel):
    id: str
    agent_id: Optional[str]
    installer_id: str
    first_name: str
    last_name: str
    company_name: Optional[str]
    email: str
    phone_number: str
    make: Optional[str]
    model: Optional[str]
    registration_number: Optional[str]
    vin_number: Optional[str]
    generator_serial_number: Optional[str]
    number_of_couplers: Optional[int]
    date_installed: Optional[date]
    corrosion_found: Optional[bool]
    corrosion_details: Optional[str]
    verification_status: str
    verification_token_expires_at: Optional[datetime]
    submitted_by: Optional[str]
    submitted_at: Optional[datetime]
    verified_by: Optional[str]
    verified_at: Optional[datetime]
    rejection_reason: Optional[str]
    activated_at: Optional[datetime]
    customer_terms_accepted_at: Optional[datetime]
    warranty_terms_id: Optional[str] = None
    accepted_terms_revision: Optional[str] = None
    inspection_due_date: Optional[date]
    last_reminder_tier: Optional[str]
    last_reminder_sent_at: Optional[datetime]
    lapsed_at: Optional[datetime]
    created_at: Optional[datetime]
    modified_at: Optional[datetime]


class ReinstateRequest(CamelModel):
    reason: Optional[str] = None
    inspection_id: Optional[str] = None
    notes: Optional[str] = None


class EligibilityOut(CamelModel):
    eligible: bool
    reason: str
    days_lapsed: Optional[int]
    has_qualifying_inspection: bool
    inspection_id: Optional[str]
    lapsed_at: Optional[datetime]


class ReinstatementOut(CamelModel):
    id: str
    warranty_id: str
    reinstated_by: str
    reason: str
    inspection_id: Optional[str]
    notes: Optional[str]
    previous_lapsed_at: Optional[datetime]
    new_inspection_due_date: Optional[date]
    reinstated_at: datetime
