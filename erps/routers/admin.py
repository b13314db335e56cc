# erps/routers/admin.py
"""
ERPS admin actions. Status changes write an audit row with isOverride=true.
POST /erps-admin/warranties/{id}/verify              manual installer verification
POST /erps-admin/warranties/{id}/override            force any status (never LAPSED -> ACTIVE)
POST /erps-admin/warranties/{id}/resend-activation   re-issue the customer activation link
POST /erps-admin/inspections/{id}/verify             manual inspector verification
POST /erps-admin/inspections/{id}/override           force an inspection status (never out of VERIFIED)
POST /erps-admin/warranty-terms                      publish terms (ADD_WARRANTY / REPLACE_WARRANTY)
GET  /erps-admin/warranty-terms[/{id}]               list / read terms
"""

from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from erps.database import get_db
from erps.dependencies import get_actor_id, get_inspection_lifecycle, get_warranty_lifecycle
from erps.services import terms_service
from erps.services.inspection_service import InspectionLifecycle
from erps.services.warranty_service import WarrantyLifecycle
from erps.schemas.admin import ActivationResent, AdminVerifyRequest, OverrideRequest, TermsCreate, TermsOut
from erps.schemas.inspection import InspectionOut
from erps.schemas.warranty import WarrantyOut

router = APIRouter(prefix="/erps-admin")


@router.post("/warranties/{warranty_id}/verify", response_model=WarrantyOut, summary="Admin verification of a warranty")
async def admin_verify_warranty(
    warranty_id: str,
    body: AdminVerifyRequest,
    actor_id: Optional[str] = Depends(get_actor_id),
    lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle),
):
    return await lifecycle.admin_verify(
        warranty_id, actor_id, body.reason, notes=body.notes,
        skip_customer_notification=body.skip_customer_notification,
    )


@router.post("/warranties/{warranty_id}/override", response_model=WarrantyOut, summary="Force a warranty status")
async def override_warranty(
    warranty_id: str,
    body: OverrideRequest,
    actor_id: Optional[str] = Depends(get_actor_id),
    lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle),
):
    return await lifecycle.admin_override(
        warranty_id, actor_id, body.target_status, body.reason, notes=body.notes,
        skip_customer_notification=body.skip_customer_notification,
    )


@router.post("/inspections/{inspection_id}/verify", response_model=InspectionOut,
             summary="Admin verification of an inspection")
async def admin_verify_inspection(
    inspection_id: str,
    body: AdminVerifyRequest,
    actor_id: Optional[str] = Depends(get_actor_id),
    lifecycle: InspectionLifecycle = Depends(get_inspection_lifecycle),
):
    return await lifecycle.admin_verify(inspection_id, actor_id, body.reason, notes=body.notes)


@router.post("/inspections/{inspection_id}/override", response_model=InspectionOut, summary="Force an inspection status")
async def override_inspection(
    inspection_id: str,
    body: OverrideRequest,
    actor_id: Optional[str] = Depends(get_actor_id),
    lifecycle: InspectionLifecycle = Depends(get_inspection_lifecycle),
):
    return await lifecycle.admin_override(inspection_id, actor_id, body.target_status, body.reason, notes=body.notes)


@router.post("/warranties/{warranty_id}/resend-activation", response_model=ActivationResent,
             summary="Re-send the customer activation link")
async def resend_activation(
    warranty_id: str,
    actor_id: Optional[str] = Depends(get_actor_id),
    lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle),
):
    return await lifecycle.resend_activation(warranty_id, actor_id)


# ── Warranty terms ────────────────────────────────────────────────────────────
@router.post("/warranty-terms", response_model=TermsOut, status_code=status.HTTP_201_CREATED,
             summary="Publish warranty terms")
def create_warranty_terms(
    body: TermsCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    return terms_service.create_terms(db, actor_id, body.model_dump(exclude_unset=True))


@router.get("/warranty-terms", response_model=list[TermsOut], summary="List warranty terms")
def list_warranty_terms(active_only: bool = False, db: Session = Depends(get_db)):
    return terms_service.list_terms(db, active_only=active_only)


@router.get("/warranty-terms/{terms_id}", response_model=TermsOut, summary="Warranty terms detail")
def get_warranty_terms(terms_id: str, db: Session = Depends(get_db)):
    return terms_service.get_terms(db, terms_id)
