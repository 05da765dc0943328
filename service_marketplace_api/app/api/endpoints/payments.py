"""
Payment endpoints.

Payments are recorded as ``pending``; no payment provider is called
from here.
"""

from typing import List, Optional

from fastapi import APIRouter, Query, status

from service_marketplace_api.app.core.errors import MarketplaceError
from service_marketplace_api.app.schemas.payment import PaymentCreate, PaymentRead
from service_marketplace_api.app.services.payment_service import PaymentService


router = APIRouter()


@router.post("/pay", response_model=PaymentRead, status_code=status.HTTP_201_CREATED)
async def create_payment(payment: PaymentCreate) -> PaymentRead:
    try:
        return await PaymentService.create_payment(payment)
    except MarketplaceError as e:
        raise e.to_http() from e


@router.get("", response_model=List[PaymentRead])
async def list_payments(
    service: Optional[int] = Query(None),
    customer: Optional[int] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
) -> List[PaymentRead]:
    """List payments, newest first, filtered by service, customer or status."""
    return await PaymentService.list_payments(service=service, customer=customer, status=status_filter)
