"""
Pickup Order database model.

Pickup orders are created by the customer-intake flow and then claimed,
executed and completed by drivers.
"""

from sqlalchemy import Column, Integer, String, Text, Float, Date, DateTime, Enum, ForeignKey, JSON, Index
from sqlalchemy.sql import func
from pickup_backend.app.db.session import Base
from pickup_backend.app.models.enums import PickupStatus
from pickup_backend.app.domain.pickups import status_rules


class PickupOrder(Base):
    """
    Pickup Order model.

    Invariant: assigned_driver_id is set whenever status is assigned or
    in_progress, and is empty while the order sits in the unassigned pool.
    """
    __tablename__ = "pickup_orders"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership
    tenant_id = Column(Integer, ForeignKey('tenants.id'), nullable=False, index=True)
    scrapyard_id = Column(Integer, ForeignKey('scrapyards.id'), nullable=True, index=True)
    customer_request_id = Column(String(64), nullable=True, index=True)

    # Assignment
    assigned_driver_id = Column(Integer, ForeignKey('drivers.id'), nullable=True, index=True)

    # Status
    status = Column(
        Enum(PickupStatus),
        default=PickupStatus.PENDING,
        nullable=False,
        index=True
    )

    # Customer and vehicle
    owner_name = Column(String(255), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    pickup_address = Column(String(500), nullable=True)
    car_registration_number = Column(String(20), nullable=True)
    car_brand = Column(String(100), nullable=True)
    car_model = Column(String(100), nullable=True)
    car_year = Column(Integer, nullable=True)

    # Pricing
    quote_amount = Column(Float, nullable=True)
    final_price = Column(Float, nullable=True)

    # Execution
    scheduled_pickup_date = Column(Date, nullable=True)
    actual_pickup_date = Column(Date, nullable=True)
    driver_notes = Column(Text, nullable=True)
    completion_photos = Column(JSON, nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    canceled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index('ix_pickup_orders_pool', 'tenant_id', 'status', 'assigned_driver_id'),
    )

    @property
    def next_status(self):
        """Status the driver's primary action moves this pickup to, if any."""
        return status_rules.next_status(self.status)

    def __repr__(self):
        return f"<PickupOrder(id={self.id}, tenant_id={self.tenant_id}, status='{self.status.value}')>"
