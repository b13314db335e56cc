# erps/routers/customer_activation.py
"""
Public customer activation page. The token in the path is the credential;
unknown, used or expired links answer 400.
"""

from typing import Optional
from fastapi import APIRouter, Depends
from erps.dependencies import get_client_ip, get_warranty_lifecycle
from erps.services.warranty_service import WarrantyLifecycle
from erps.schemas.verification import ActivationAccept, ActivationDetails, ActivationResult, ActivationTerms

router = APIRouter()


@router.get("/customer/activation/{token}", response_model=ActivationDetails, summary="Warranty summary for the customer")
def activation_details(token: str, lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle)):
    return lifecycle.get_activation_details(token)


@router.get("/customer/activation/{token}/terms", response_model=ActivationTerms,
            summary="Warranty terms the customer is asked to accept")
def activation_terms(token: str, lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle)):
    return lifecycle.get_activation_terms(token)


@router.post("/customer/activation/{token}/accept", response_model=ActivationResult,
             summary="Customer accepts terms, warranty becomes ACTIVE")
async def accept_terms(
    token: str,
    body: ActivationAccept,
    ip_address: Optional[str] = Depends(get_client_ip),
    lifecycle: WarrantyLifecycle = Depends(get_warranty_lifecycle),
):
    return await lifecycle.customer_accept(token, ip_address, body.accept_terms, body.customer_signature)
