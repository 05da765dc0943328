"""
Pydantic models for user data.

The stored password hash is never part of a response model.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .address import Address


class UserBase(BaseModel):
    name: str = Field(..., min_length=1, examples=["Maria Souza"])
    email: str = Field(..., min_length=3, examples=["maria@example.com"])
    phone_number: str = Field(..., min_length=1, alias="phoneNumber", examples=["+55 41 99999-0000"])
    address: Address

    model_config = {
        "populate_by_name": True,
    }


class UserCreate(UserBase):
    """Schema for registering a user.  ``photo`` is filled from the upload."""

    password: str = Field(..., min_length=1)
    photo: Optional[str] = None


class UserLogin(BaseModel):
    email: str
    password: str


class UserRead(UserBase):
    """Schema for reading a user from the API."""

    id: int
    photo: Optional[str] = None
    created_at: Optional[datetime] = Field(None, alias="createdAt")

    model_config = {
        "populate_by_name": True,
        "from_attributes": True,
    }
