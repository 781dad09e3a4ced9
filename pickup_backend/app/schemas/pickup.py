"""
Pickup order schemas.

Request and response bodies for the driver and tenant-admin pickup endpoints.
"""

from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime

from pickup_backend.app.models.enums import PickupStatus, ActorType


class PickupOrderSummary(BaseModel):
    """Pickup as shown in driver and dispatch lists."""
    id: int
    tenant_id: int
    scrapyard_id: Optional[int]
    customer_request_id: Optional[str]
    assigned_driver_id: Optional[int]
    status: PickupStatus
    owner_name: Optional[str]
    contact_phone: Optional[str]
    pickup_address: Optional[str]
    car_registration_number: Optional[str]
    car_brand: Optional[str]
    car_model: Optional[str]
    car_year: Optional[int]
    quote_amount: Optional[float]
    final_price: Optional[float]
    scheduled_pickup_date: Optional[date]
    actual_pickup_date: Optional[date]
    driver_notes: Optional[str]
    completion_photos: Optional[List[str]]
    created_at: datetime
    updated_at: datetime
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    canceled_at: Optional[datetime]
    next_status: Optional[PickupStatus] = None

    class Config:
        from_attributes = True


class PickupListResponse(BaseModel):
    """Schema for paginated pickup list."""
    pickups: List[PickupOrderSummary]
    total: int
    limit: int
    offset: int


class AssignmentEventResponse(BaseModel):
    """One entry of a pickup's audit trail."""
    id: int
    pickup_order_id: int
    action: str
    old_status: Optional[PickupStatus]
    new_status: PickupStatus
    old_driver_id: Optional[int]
    new_driver_id: Optional[int]
    actor_type: ActorType
    actor_id: Optional[str]
    reason: Optional[str]
    photos: Optional[List[str]]
    created_at: datetime

    class Config:
        from_attributes = True


class AssignmentResultResponse(BaseModel):
    """Returned by every successful pickup mutation."""
    pickup: PickupOrderSummary
    event: Optional[AssignmentEventResponse] = None
    previous_status: PickupStatus


class SelfAssignRequest(BaseModel):
    notes: Optional[str] = Field(default=None, max_length=1000)


class RejectRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000, description="Why the driver cannot perform the pickup")


class RescheduleRequest(BaseModel):
    scheduled_pickup_date: date = Field(..., description="New pickup date")
    reason: Optional[str] = Field(default=None, max_length=1000)


class StatusUpdateRequest(BaseModel):
    """
    Driver status progression.

    new_status is kept as a plain string so that unknown or illegal targets
    are reported as illegal transitions rather than schema errors.
    """
    new_status: str = Field(..., description="in_progress or completed")
    final_price: Optional[float] = Field(default=None, ge=0, description="Required when completing")
    driver_notes: Optional[str] = Field(default=None, max_length=2000)
    completion_photos: Optional[List[str]] = None


class DriverAssignmentRequest(BaseModel):
    """Schema for a tenant admin assigning a driver to a pickup."""
    driver_id: int
    notes: Optional[str] = Field(default=None, max_length=1000)


class UnassignRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class CancelRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=1000)
