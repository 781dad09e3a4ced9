"""
Unit tests for the pickup state machine.
"""

import pytest
from pickup_backend.app.models.enums import PickupStatus
from pickup_backend.app.domain.pickups import status_rules


@pytest.mark.parametrize("current,requested", [
    (PickupStatus.ASSIGNED, PickupStatus.IN_PROGRESS),
    (PickupStatus.IN_PROGRESS, PickupStatus.COMPLETED),
])
def test_driver_forward_moves_are_legal(current, requested):
    assert status_rules.is_legal_advance(current, requested)


@pytest.mark.parametrize("current,requested", [
    (PickupStatus.ASSIGNED, PickupStatus.COMPLETED),
    (PickupStatus.IN_PROGRESS, PickupStatus.ASSIGNED),
    (PickupStatus.SCHEDULED, PickupStatus.IN_PROGRESS),
    (PickupStatus.PENDING, PickupStatus.ASSIGNED),
    (PickupStatus.COMPLETED, PickupStatus.IN_PROGRESS),
    (PickupStatus.ASSIGNED, PickupStatus.CANCELED),
    (PickupStatus.ASSIGNED, None),
])
def test_everything_else_is_illegal(current, requested):
    assert not status_rules.is_legal_advance(current, requested)


def test_claimable_and_terminal_sets_are_disjoint():
    assert not status_rules.CLAIMABLE_STATUSES & status_rules.TERMINAL_STATUSES
    assert status_rules.is_claimable(PickupStatus.PENDING)
    assert status_rules.is_claimable(PickupStatus.SCHEDULED)
    assert not status_rules.is_claimable(PickupStatus.ASSIGNED)
    assert status_rules.is_terminal(PickupStatus.COMPLETED)
    assert status_rules.is_terminal(PickupStatus.CANCELED)
    assert not status_rules.is_terminal(PickupStatus.IN_PROGRESS)


def test_parse_status():
    assert status_rules.parse_status("IN_PROGRESS") == PickupStatus.IN_PROGRESS
    assert status_rules.parse_status(PickupStatus.COMPLETED) == PickupStatus.COMPLETED
    assert status_rules.parse_status("teleported") is None


def test_next_status_drives_the_primary_action():
    assert status_rules.next_status(PickupStatus.ASSIGNED) == PickupStatus.IN_PROGRESS
    assert status_rules.next_status(PickupStatus.IN_PROGRESS) == PickupStatus.COMPLETED
    assert status_rules.next_status(PickupStatus.COMPLETED) is None
