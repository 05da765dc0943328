"""
Pydantic models for payment records.

Payments are created ``pending``.  Moving them to ``completed`` or
``failed`` is the job of a payment-gateway webhook, which this API does
not implement.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class PaymentBase(BaseModel):
    service: int
    customer: int
    provider: int
    amount: float = Field(..., allow_inf_nan=False, examples=[150.0])
    payment_method: Optional[str] = Field(None, alias="paymentMethod", examples=["card"])
    payment_provider_id: Optional[str] = Field(
        None,
        alias="paymentProviderId",
        description="Transaction id at the payment provider (e.g. Stripe)",
    )

    model_config = {
        "populate_by_name": True,
    }


class PaymentCreate(PaymentBase):
    """Schema for recording a payment."""
    pass


class PaymentRead(PaymentBase):
    id: int
    payment_status: str = Field("pending", alias="paymentStatus")
    payment_date: Optional[datetime] = Field(None, alias="paymentDate")
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }
