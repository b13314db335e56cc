# erps/routers/warranties.py
"""
Warranty registration and lifecycle endpoints (agent / installer / admin).
POST /warranties                 create DRAFT
POST /warranties/{id}/submit     evidence gate + send installer link
POST /warranties/{id}/reinstate  LAPSED -> ACTIVE (admin)
"""

from typing import Optional
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from erps.database import get_db
from erps.dependencies import get_actor_id, get_notifier, get_warranty_lifecycle
from erps.services import reinstatement_service
from erps.services.audit_service import AuditRecorder
from erps.services.lifecycle_rules import RecordType
from erps.services.notification_service import LifecycleNotifier
from erps.services.warranty_service import WarrantyLifecycle
from erps.schemas.admin import AuditEntryOut
from erps.schemas.photo import PhotoIn, PhotoOut
from erps.schemas.warranty import (
    EligibilityOut, ReinstatementOut, ReinstateRequest, WarrantyCreate, WarrantyCreated, WarrantyOut,
    WarrantyUpdate,
)

router = APIRouter()


@router.post("/warranties", response_model=WarrantyCreated, status_code=status.HTTP_201_CREATED,
             summary="Register a warranty (DRAFT)")
def create_warranty(
    body: WarrantyCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle),
):
    fields = body.model_dump(exclude_unset=True, exclude={"installer_id", "photos"})
    evidence = [photo.model_dump() for photo in body.photos]
    return lifecycle.create(fields, body.installer_id, evidence, agent_id=actor_id)


@router.get("/warranties/{warranty_id}", response_model=WarrantyOut, summary="Warranty detail")
def get_warranty(warranty_id: str, lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle)):
    return lifecycle.get(warranty_id)


@router.patch("/warranties/{warranty_id}", response_model=WarrantyOut, summary="Edit a DRAFT warranty")
def update_warranty(
    warranty_id: str,
    body: WarrantyUpdate,
    lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle),
):
    return lifecycle.update_draft(warranty_id, body.model_dump(exclude_unset=True))


@router.delete("/warranties/{warranty_id}", response_model=WarrantyOut, summary="Soft-delete a DRAFT/REJECTED warranty")
def delete_warranty(
    warranty_id: str,
    actor_id: Optional[str] = Depends(get_actor_id),
    lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle),
):
    return lifecycle.soft_delete(warranty_id, actor_id)


@router.get("/warranties/{warranty_id}/photos", response_model=list[PhotoOut], summary="Evidence photos")
def list_photos(warranty_id: str, lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle)):
    return lifecycle.photos(warranty_id)


@router.post("/warranties/{warranty_id}/photos", response_model=PhotoOut, status_code=status.HTTP_201_CREATED,
             summary="Attach a categorized photo (DRAFT only)")
def attach_photo(
    warranty_id: str,
    body: PhotoIn,
    lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle),
):
    return lifecycle.attach_photo(warranty_id, body.model_dump())


@router.post("/warranties/{warranty_id}/submit", response_model=WarrantyOut, summary="Submit for installer verification")
async def submit_warranty(
    warranty_id: str,
    actor_id: Optional[str] = Depends(get_actor_id),
    lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle),
):
    return await lifecycle.submit(warranty_id, actor_id)


@router.post("/warranties/{warranty_id}/resend-verification", response_model=WarrantyOut,
             summary="Re-issue the installer verification link (admin)")
async def resend_verification(
    warranty_id: str,
    actor_id: Optional[str] = Depends(get_actor_id),
    lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle),
):
    return await lifecycle.resend_verification(warranty_id, actor_id)


@router.get("/warranties/{warranty_id}/audit-history", response_model=list[AuditEntryOut],
            summary="Audit trail, most recent first")
def warranty_audit_history(
    warranty_id: str,
    limit: int = 200,
    lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle),
):
    lifecycle.get(warranty_id)
    return lifecycle.audit.history(warranty_id, RecordType.WARRANTY, limit=limit)


# ── Reinstatement ─────────────────────────────────────────────────────────────
@router.get("/warranties/{warranty_id}/reinstatement-eligibility", response_model=EligibilityOut,
            summary="Can this warranty be reinstated?")
def reinstatement_eligibility(warranty_id: str, db: Session = Depends(get_db)):
    return reinstatement_service.check_eligibility(db, warranty_id)


@router.post("/warranties/{warranty_id}/reinstate", response_model=WarrantyOut, summary="Reinstate a LAPSED warranty (admin)")
async def reinstate_warranty(
    warranty_id: str,
    body: ReinstateRequest,
    actor_id: Optional[str] = Depends(get_actor_id),
    notifier: LifecycleNotifier = Depends(get_notifier),
    db: Session = Depends(get_db),
):
    return await reinstatement_service.reinstate(
        db, warranty_id, actor_id, body.reason,
        inspection_id=body.inspection_id, notes=body.notes, notifier=notifier,
    )


@router.get("/warranties/{warranty_id}/reinstatements", response_model=list[ReinstatementOut],
            summary="Reinstatement history")
def reinstatement_history(warranty_id: str, db: Session = Depends(get_db)):
    return reinstatement_service.history(db, warranty_id)
