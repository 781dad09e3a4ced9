"""
Driver database model.

A driver belongs to exactly one tenant and is linked to the identity
provider through auth_user_id.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from pickup_backend.app.db.session import Base
from pickup_backend.app.models.enums import DriverStatus


class Driver(Base):
    """
    Driver model.

    driver_status is the driver's presence (available/busy/break/offline).
    It has its own lifecycle and history, separate from pickup assignment.
    """
    __tablename__ = "drivers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership
    tenant_id = Column(Integer, ForeignKey('tenants.id'), nullable=False, index=True)

    # Identity provider subject
    auth_user_id = Column(String(100), unique=True, index=True, nullable=False)

    # Contact
    full_name = Column(String(255), nullable=False)
    phone_number = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    vehicle_registration = Column(String(20), nullable=True)

    # Presence
    driver_status = Column(
        Enum(DriverStatus),
        default=DriverStatus.OFFLINE,
        nullable=False,
        index=True
    )
    last_activity_update = Column(DateTime(timezone=True), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return f"<Driver(id={self.id}, tenant_id={self.tenant_id}, status='{self.driver_status.value}')>"
