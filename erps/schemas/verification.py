# erps/schemas/verification.py
"""Public token-authenticated payloads: installer / inspector confirmation and customer activation."""

from datetime import date, datetime
from typing import Optional
from erps.schemas.base import CamelModel


class VerifyRequest(CamelModel):
    action: Optional[str] = None            # CONFIRM | DECLINE
    rejection_reason: Optional[str] = None  # required for DECLINE


class VerifyResult(CamelModel):
    id: str
    verification_status: str
    rejection_reason: Optional[str] = None
    verified_at: Optional[datetime] = None


class ActivationDetails(CamelModel):
    warranty_id: str
    customer_name: str
    company_name: Optional[str]
    vehicle: str
    vin_number: Optional[str]
    registration_number: Optional[str]
    date_installed: Optional[date]
    generator_serial_number: Optional[str]
    verification_status: str
    token_expires_at: datetime
    terms_name: str
    terms_revision: str


class TermsSummary(CamelModel):
    id: Optional[str] = None             # None for the standard terms
    warranty_name: str
    description: Optional[str] = None
    revision: str
    terms_and_conditions: Optional[str] = None


class ActivationTerms(CamelModel):
    warranty_id: str
    terms: TermsSummary


class ActivationAccept(CamelModel):
    accept_terms: bool = False
    customer_signature: Optional[str] = None


class ActivationResult(CamelModel):
    id: str
    verification_status: str
    activated_at: Optional[datetime]
    inspection_due_date: Optional[date]
    accepted_terms_revision: Optional[str] = None
