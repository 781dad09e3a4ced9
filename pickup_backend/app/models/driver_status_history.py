"""
Driver Status History database model.

Append-only log of driver presence changes.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey
from sqlalchemy.sql import func
from pickup_backend.app.db.session import Base
from pickup_backend.app.models.enums import DriverStatus


class DriverStatusHistory(Base):
    """One row per presence change of a driver."""
    __tablename__ = "driver_status_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    driver_id = Column(Integer, ForeignKey('drivers.id'), nullable=False, index=True)

    old_status = Column(Enum(DriverStatus), nullable=True)
    new_status = Column(Enum(DriverStatus), nullable=False)
    reason = Column(String(255), nullable=True)
    source = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<DriverStatusHistory(driver_id={self.driver_id}, {self.old_status} -> {self.new_status})>"
