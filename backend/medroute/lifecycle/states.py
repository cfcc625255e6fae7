"""Pre-alert status vocabulary and the transitions a hospital may apply.

Crowd reports start as ``pending`` and must be triaged; a driver's own
hospital selection is committed immediately as ``en_route``. ``arrived`` and
``declined`` are terminal and move the alert to the completed history.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional


class AlertOrigin(str, Enum):
    DRIVER = "driver"
    CROWD = "crowd"


class AlertStatus(str, Enum):
    PENDING = "pending"
    EN_ROUTE = "en_route"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    ARRIVED = "arrived"


TERMINAL_STATUSES: FrozenSet[AlertStatus] = frozenset({AlertStatus.ARRIVED, AlertStatus.DECLINED})

INITIAL_STATUS: Dict[AlertOrigin, AlertStatus] = {
    AlertOrigin.DRIVER: AlertStatus.EN_ROUTE,
    AlertOrigin.CROWD: AlertStatus.PENDING,
}

ALLOWED_TRANSITIONS: Dict[AlertStatus, FrozenSet[AlertStatus]] = {
    AlertStatus.PENDING: frozenset({AlertStatus.ACCEPTED, AlertStatus.DECLINED, AlertStatus.ARRIVED}),
    AlertStatus.ACCEPTED: frozenset({AlertStatus.ARRIVED, AlertStatus.DECLINED}),
    AlertStatus.EN_ROUTE: frozenset({AlertStatus.ARRIVED, AlertStatus.DECLINED}),
    AlertStatus.ARRIVED: frozenset(),
    AlertStatus.DECLINED: frozenset(),
}

# Alerts whose origin may be accepted by the hospital.
ACCEPTABLE_ORIGINS: FrozenSet[AlertOrigin] = frozenset({AlertOrigin.CROWD})


class InvalidTransition(ValueError):
    def __init__(self, current: AlertStatus, target: AlertStatus, reason: str | None = None) -> None:
        self.current = current
        self.target = target
        message = reason or f"Cannot move alert from {current.value} to {target.value}"
        super().__init__(message)


def effective_status(origin: AlertOrigin | str, status: Optional[AlertStatus | str]) -> AlertStatus:
    """Status of a stored alert; records written without one read as their origin's initial status."""
    if status:
        return AlertStatus(status)
    return INITIAL_STATUS[AlertOrigin(origin)]


def is_active(origin: AlertOrigin | str, status: Optional[AlertStatus | str]) -> bool:
    return effective_status(origin, status) not in TERMINAL_STATUSES


def check_transition(origin: AlertOrigin | str, status: Optional[AlertStatus | str], target: AlertStatus) -> AlertStatus:
    current = effective_status(origin, status)
    if target is AlertStatus.ACCEPTED and AlertOrigin(origin) not in ACCEPTABLE_ORIGINS:
        raise InvalidTransition(current, target, "Only crowd alerts can be accepted")
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(current, target)
    return current
