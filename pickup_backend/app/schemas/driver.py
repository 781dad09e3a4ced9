"""
Driver schemas.

Driver profile, presence updates and presence history.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from pickup_backend.app.models.enums import DriverStatus


class DriverResponse(BaseModel):
    id: int
    tenant_id: int
    auth_user_id: str
    full_name: str
    phone_number: Optional[str]
    email: Optional[str]
    vehicle_registration: Optional[str]
    driver_status: DriverStatus
    is_active: bool
    last_activity_update: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class DriverCreate(BaseModel):
    """Schema for onboarding a driver into a tenant."""
    auth_user_id: str = Field(..., min_length=1, max_length=100, description="Identity provider subject")
    full_name: str = Field(..., min_length=1, max_length=255)
    phone_number: Optional[str] = Field(default=None, max_length=50)
    email: Optional[str] = Field(default=None, max_length=255)
    vehicle_registration: Optional[str] = Field(default=None, max_length=20)


class DriverStatusUpdate(BaseModel):
    """Presence change requested by the driver app."""
    new_status: str = Field(..., description="available, busy, break or offline")
    reason: Optional[str] = Field(default=None, max_length=255)


class DriverStatusHistoryResponse(BaseModel):
    id: int
    driver_id: int
    old_status: Optional[DriverStatus]
    new_status: DriverStatus
    reason: Optional[str]
    source: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class DriverStatusChangeResponse(BaseModel):
    driver: DriverResponse
    changed: bool
    history: Optional[DriverStatusHistoryResponse] = None


class DriverDeactivationResponse(BaseModel):
    """Deactivated driver plus what happened to their open pickups."""
    driver: DriverResponse
    released_pickup_ids: List[int] = []
    in_progress_pickup_ids: List[int] = []
