# erps/routers/verification.py
"""
Public, token-authenticated endpoints. No API key, no actor header:
the token in the path is the credential.
"""

from fastapi import APIRouter, Depends
from erps.dependencies import get_inspection_lifecycle, get_warranty_lifecycle
from erps.services.inspection_service import InspectionLifecycle
from erps.services.warranty_service import WarrantyLifecycle
from erps.schemas.verification import VerifyRequest, VerifyResult

router = APIRouter()


@router.post("/verify-warranty/{token}", response_model=VerifyResult, summary="Installer confirms or declines")
async def verify_warranty(
    token: str,
    body: VerifyRequest,
    lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle),
):
    return await lifecycle.verify(token, body.action, body.rejection_reason)


@router.post("/verify-inspection/{token}", response_model=VerifyResult, summary="Inspector confirms or declines")
async def verify_inspection(
    token: str,
    body: VerifyRequest,
    lifecycle: InspectionLifecycle = Depends(get_inspection_lifecycle),
):
    return await lifecycle.verify(token, body.action, body.rejection_reason)
