"""
Assignment Event database model.

Immutable audit trail of every pickup status or assignment transition.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, ForeignKey, JSON, event
from sqlalchemy.sql import func
from pickup_backend.app.db.session import Base
from pickup_backend.app.models.enums import PickupStatus, ActorType


class AssignmentEvent(Base):
    """
    Assignment event model.

    Rows are written in the same transaction as the pickup change they
    describe and are never updated or deleted afterwards.
    """
    __tablename__ = "pickup_status_updates"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    pickup_order_id = Column(Integer, ForeignKey('pickup_orders.id'), nullable=False, index=True)
    tenant_id = Column(Integer, ForeignKey('tenants.id'), nullable=False, index=True)

    # What happened
    action = Column(String(50), nullable=False, index=True)
    old_status = Column(Enum(PickupStatus), nullable=True)
    new_status = Column(Enum(PickupStatus), nullable=False)
    old_driver_id = Column(Integer, nullable=True)
    new_driver_id = Column(Integer, nullable=True)

    # Who did it
    actor_type = Column(Enum(ActorType), nullable=False)
    actor_id = Column(String(100), nullable=True)

    reason = Column(Text, nullable=True)
    photos = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<AssignmentEvent(id={self.id}, pickup={self.pickup_order_id}, action='{self.action}')>"


class AppendOnlyViolation(Exception):
    """Raised when code tries to rewrite audit history."""


@event.listens_for(AssignmentEvent, "before_update")
def _reject_event_update(mapper, connection, target):
    raise AppendOnlyViolation(f"Assignment event {target.id} is immutable")


@event.listens_for(AssignmentEvent, "before_delete")
def _reject_event_delete(mapper, connection, target):
    raise AppendOnlyViolation(f"Assignment event {target.id} cannot be deleted")
