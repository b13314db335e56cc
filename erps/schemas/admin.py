# erps/schemas/admin.py
from datetime import datetime
from typing import Optional
from erps.schemas.base import CamelModel


class AdminVerifyRequest(CamelModel):
    reason: Optional[str] = None
    notes: Optional[str] = None
    skip_customer_notification: bool = False


class OverrideRequest(CamelModel):
    target_status: Optional[str] = None
    reason: Optional[str] = None
    notes: Optional[str] = None
    skip_customer_notification: bool = False


class AuditEntryOut(CamelModel):
    id: int
    record_id: str
    record_type: str
    action_type: str
    status_before: Optional[str]
    status_after: Optional[str]
    performed_by: str
    performed_at: datetime
    reason: Optional[str]
    notes: Optional[str]
    is_override: bool
    ip_address: Optional[str]


class JobTriggerOut(CamelModel):
    job: str
    status: str                     # completed | skipped
    result: Optional[dict] = None


class ActivationResent(CamelModel):
    warranty_id: str
    email: Optional[str]
    phone_number: Optional[str]
    token_expires_at: datetime
    delivered: bool


class TermsCreate(CamelModel):
    warranty_name: Optional[str] = None
    description: Optional[str] = None
    revision: Optional[str] = None
    generator_light_colour: Optional[str] = None
    terms_and_conditions: Optional[str] = None
    inspection_instructions: Optional[str] = None
    add_type: Optional[str] = None          # ADD_WARRANTY | REPLACE_WARRANTY
    warranty_to_replace_id: Optional[str] = None
    is_active: bool = True


class TermsOut(CamelModel):
    id: str
    warranty_name: str
    description: Optional[str]
    revision: str
    generator_light_colour: Optional[str]
    terms_and_conditions: Optional[str]
    inspection_instructions: Optional[str]
    add_type: str
    warranty_to_replace_id: Optional[str]
    is_active: bool
    created_by: Optional[str]
    created_at: Optional[datetime]
