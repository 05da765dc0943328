"""
Pydantic models for service listings.

A service is offered by its creator at an asking ``value`` and stays
``open`` for proposals until one is accepted or the creator cancels
it.  Status changes go through ``ServiceStatusUpdate`` only; the
descriptive fields are edited through ``ServiceUpdate``.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .address import Address


class ServiceStatus(str, Enum):
    OPEN = "open"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    CANCELED = "canceled"


class ServiceType(str, Enum):
    PLUMBER = "plumber"
    TI = "TI"
    CLEANING = "cleaning"
    TRANSPORT = "transport"
    ADMINISTRATIVE = "administrative"
    AUTO_REPAIR = "auto repair"
    REPAIR = "repair"
    WELLNESS = "wellness"
    ANIMAL = "animal"


class ServiceBase(BaseModel):
    name: str = Field(..., min_length=1, examples=["Fix kitchen sink"])
    description: str = Field(..., min_length=1, examples=["The sink drains very slowly"])
    value: float = Field(..., gt=0, allow_inf_nan=False, examples=[150.0])
    location: Address
    service_type: ServiceType = Field(..., alias="serviceType")

    model_config = {
        "populate_by_name": True,
    }


class ServiceCreate(ServiceBase):
    """Schema for creating a service.  ``images`` are filled from the uploads."""

    creator: int
    images: list[str] = Field(default_factory=list)


class ServiceRead(ServiceBase):
    id: int
    creator: int
    status: ServiceStatus
    proposed_value: Optional[float] = Field(None, alias="proposedValue")
    accepted_by: Optional[int] = Field(None, alias="acceptedBy")
    images: list[str] = Field(default_factory=list)
    created_at: Optional[datetime] = Field(None, alias="createdAt")
    updated_at: Optional[datetime] = Field(None, alias="updatedAt")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }


class ServiceUpdate(BaseModel):
    """Edit of the descriptive fields of an open service.

    Only the creator may edit.  Omitted fields keep their current
    value.
    """

    actor_id: int = Field(..., alias="actorId")
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    value: Optional[float] = Field(None, gt=0, allow_inf_nan=False)

    model_config = {
        "populate_by_name": True,
    }

    def changes(self) -> dict:
        return self.model_dump(exclude={"actor_id"}, exclude_none=True)


class ServiceStatusUpdate(BaseModel):
    requested_status: ServiceStatus = Field(..., alias="requestedStatus")
    actor_id: int = Field(..., alias="actorId")

    model_config = {
        "populate_by_name": True,
    }
