"""
Pydantic models for service requests (negotiation proposals).
"""

from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

from .service import ServiceRead


class RequestStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class ServiceRequestCreate(BaseModel):
    service: int = Field(..., description="ID of the service the proposal is for")
    proposer: int = Field(..., description="ID of the user making the proposal")
    proposed_value: float = Field(..., alias="proposedValue", allow_inf_nan=False, examples=[120.0])
    proposed_date: datetime = Field(..., alias="proposedDate", examples=["2030-01-15T09:00:00Z"])

    model_config = {
        "populate_by_name": True,
    }


class ServiceRequestRead(BaseModel):
    id: int
    service: int
    proposer: int
    proposed_value: float = Field(..., alias="proposedValue")
    proposed_date: datetime = Field(..., alias="proposedDate")
    status: RequestStatus
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }


class ResolveRequest(BaseModel):
    decision: Literal["accept", "decline"]
    actor_id: int = Field(..., alias="actorId")

    model_config = {
        "populate_by_name": True,
    }


class ResolveResult(BaseModel):
    request: ServiceRequestRead
    service: ServiceRead
