"""
Identity Schemas

Pydantic models for identity registration and lookup.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class RegisterIdentityRequest(BaseModel):
    """Register a user or device."""

    address: str = Field(..., max_length=130)
    name: str = Field(..., max_length=255)
    role: str = Field(..., max_length=255, description="Free-form, e.g. Device_Lock, User_Employee, Guest")


class IdentityResponse(BaseModel):
    """Registered identity."""

    address: str
    name: str
    role: str
    registered: bool
    registration_timestamp: datetime
    registration_tx_hash: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
