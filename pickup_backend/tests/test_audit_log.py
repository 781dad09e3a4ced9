"""
Assignment audit trail tests.

Events are append-only and written in the same transaction as the change.
"""

import pytest

from pickup_backend.app.domain.pickups.assignment_service import AssignmentService
from pickup_backend.app.models.assignment_event import AppendOnlyViolation
from pickup_backend.app.models.enums import ActorType, PickupStatus
from pickup_backend.app.services.audit import AssignmentAction, get_tenant_audit_trail
from pickup_backend.tests.helpers import add_pickup


@pytest.mark.asyncio
async def test_events_cannot_be_updated(db_session, tenant, ctx_a):
    pickup = await add_pickup(db_session, tenant)
    result = await AssignmentService().self_assign(db_session, ctx_a, pickup.id)

    result.event.reason = "rewritten"
    with pytest.raises(AppendOnlyViolation):
        await db_session.commit()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_events_cannot_be_deleted(db_session, tenant, ctx_a):
    pickup = await add_pickup(db_session, tenant)
    result = await AssignmentService().self_assign(db_session, ctx_a, pickup.id)

    await db_session.delete(result.event)
    with pytest.raises(AppendOnlyViolation):
        await db_session.commit()
    await db_session.rollback()


@pytest.mark.asyncio
async def test_tenant_audit_trail_filters(db_session, tenant, other_tenant, driver_a, ctx_a, ctx_foreign, admin_ctx):
    service = AssignmentService()
    first = await add_pickup(db_session, tenant)
    second = await add_pickup(db_session, tenant)
    foreign = await add_pickup(db_session, other_tenant)

    await service.self_assign(db_session, ctx_a, first.id)
    await service.reject(db_session, ctx_a, first.id, reason="Fel adress")
    await service.cancel(db_session, admin_ctx, second.id, reason="Kund ångrade sig")
    await service.self_assign(db_session, ctx_foreign, foreign.id)

    trail = await get_tenant_audit_trail(db_session, tenant.id)
    assert [e.action for e in trail] == [
        AssignmentAction.CANCELED, AssignmentAction.REJECTED, AssignmentAction.SELF_ASSIGNED
    ]
    assert trail[0].actor_type == ActorType.ADMIN
    assert trail[0].old_status == PickupStatus.SCHEDULED
    assert trail[0].new_status == PickupStatus.CANCELED

    rejected = await get_tenant_audit_trail(db_session, tenant.id, action=AssignmentAction.REJECTED)
    assert len(rejected) == 1
    assert rejected[0].reason == "Fel adress"
