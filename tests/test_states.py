from __future__ import annotations

import pytest

from medroute.lifecycle.states import (
    AlertOrigin,
    AlertStatus,
    InvalidTransition,
    check_transition,
    effective_status,
    is_active,
)


@pytest.mark.parametrize(
    "origin,status,target",
    [
        ("crowd", "pending", AlertStatus.ACCEPTED),
        ("crowd", "pending", AlertStatus.DECLINED),
        ("crowd", "pending", AlertStatus.ARRIVED),
        ("crowd", "accepted", AlertStatus.ARRIVED),
        ("crowd", "accepted", AlertStatus.DECLINED),
        ("driver", "en_route", AlertStatus.ARRIVED),
        ("driver", "en_route", AlertStatus.DECLINED),
    ],
)
def test_allowed_transitions(origin, status, target):
    assert check_transition(origin, status, target) is AlertStatus(status)


@pytest.mark.parametrize("terminal", ["arrived", "declined"])
@pytest.mark.parametrize("target", [AlertStatus.ARRIVED, AlertStatus.DECLINED, AlertStatus.ACCEPTED])
def test_terminal_states_are_final(terminal, target):
    with pytest.raises(InvalidTransition) as excinfo:
        check_transition("crowd", terminal, target)
    assert excinfo.value.current is AlertStatus(terminal)
    assert excinfo.value.target is target


def test_driver_alerts_cannot_be_accepted():
    with pytest.raises(InvalidTransition, match="Only crowd alerts"):
        check_transition(AlertOrigin.DRIVER, AlertStatus.EN_ROUTE, AlertStatus.ACCEPTED)


def test_accepted_cannot_be_accepted_again():
    with pytest.raises(InvalidTransition):
        check_transition("crowd", "accepted", AlertStatus.ACCEPTED)


def test_missing_status_reads_as_initial_status():
    assert effective_status("driver", None) is AlertStatus.EN_ROUTE
    assert effective_status("crowd", None) is AlertStatus.PENDING
    assert effective_status("crowd", "") is AlertStatus.PENDING


@pytest.mark.parametrize(
    "status,active",
    [("pending", True), ("accepted", True), ("en_route", True), (None, True), ("arrived", False), ("declined", False)],
)
def test_active_means_non_terminal(status, active):
    assert is_active("crowd", status) is active


def test_unknown_status_is_rejected():
    with pytest.raises(ValueError):
        effective_status("crowd", "teleported")
