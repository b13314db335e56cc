# erps/routers/inspections.py
"""Annual inspection endpoints. Mirror the warranty endpoints."""

from typing import Optional
from fastapi import APIRouter, Depends, status
from erps.dependencies import get_actor_id, get_inspection_lifecycle
from erps.services.inspection_service import InspectionLifecycle
from erps.services.lifecycle_rules import RecordType
from erps.schemas.admin import AuditEntryOut
from erps.schemas.inspection import InspectionCreate, InspectionCreated, InspectionOut, InspectionUpdate
from erps.schemas.photo import PhotoIn, PhotoOut

router = APIRouter()


@router.post("/inspections", response_model=InspectionCreated, status_code=status.HTTP_201_CREATED,
             summary="Record an annual inspection (DRAFT)")
def create_inspection(
    body: InspectionCreate,
    actor_id: Optional[str] = Depends(get_actor_id),
    lifecycle: InspectionLifecycle = Depends(get_inspection_lifecycle),
):
    fields = body.model_dump(exclude_unset=True, exclude={"warranty_id", "inspector_id", "photos"})
    evidence = [photo.model_dump() for photo in body.photos]
    return lifecycle.create(body.warranty_id, body.inspector_id or actor_id, fields, evidence)


@router.get("/inspections/{inspection_id}", response_model=InspectionOut, summary="Inspection detail")
def get_inspection(inspection_id: str, lifecycle: InspectionLifecycle = Depends(get_inspection_lifecycle)):
    return lifecycle.get(inspection_id)


@router.patch("/inspections/{inspection_id}", response_model=InspectionOut, summary="Edit a DRAFT inspection")
def update_inspection(
    inspection_id: str,
    body: InspectionUpdate,
    lifecycle: InspectionLifecycle = Depends(get_inspection_lifecycle),
):
    return lifecycle.update_draft(inspection_id, body.model_dump(exclude_unset=True))


@router.get("/warranties/{warranty_id}/inspections", response_model=list[InspectionOut],
            summary="Inspections recorded against a warranty")
def warranty_inspections(warranty_id: str, lifecycle: InspectionLifecycle = Depends(get_inspection_lifecycle)):
    return lifecycle.for_warranty(warranty_id)


@router.get("/inspections/{inspection_id}/photos", response_model=list[PhotoOut], summary="Evidence photos")
def list_photos(inspection_id: str, lifecycle: InspectionLifecycle = Depends(get_inspection_lifecycle)):
    return lifecycle.photos(inspection_id)


@router.post("/inspections/{inspection_id}/photos", response_model=PhotoOut, status_code=status.HTTP_201_CREATED,
             summary="Attach a categorized photo (DRAFT only)")
def attach_photo(
    inspection_id: str,
    body: PhotoIn,
    lifecycle: InspectionLifecycle = Depends(get_inspection_lifecycle),
):
    return lifecycle.attach_photo(inspection_id, body.model_dump())


@router.post("/inspections/{inspection_id}/submit", response_model=InspectionOut,
             summary="Submit for inspector verification")
async def submit_inspection(
    inspection_id: str,
    actor_id: Optional[str] = Depends(get_actor_id),
    lifecycle: InspectionLifecycle = Depends(get_inspection_lifecycle),
):
    return await lifecycle.submit(inspection_id, actor_id)


@router.get("/inspections/{inspection_id}/audit-history", response_model=list[AuditEntryOut],
            summary="Audit trail, most recent first")
def inspection_audit_history(
    inspection_id: str,
    limit: int = 200,
    lifecycle: InspectionLifecycle = Depends(get_inspection_lifecycle),
):
    lifecycle.get(inspection_id)
    return lifecycle.audit.history(inspection_id, RecordType.INSPECTION, limit=limit)
