# tutorhub/models/status.py
"""Closed status vocabularies and their transition tables."""
import enum
from typing import Dict, FrozenSet, Mapping

from sqlalchemy import Enum

from ..core.exceptions import InvalidTransition


def enum_column(enum_cls) -> Enum:
    """Store enum values (not member names) in a plain VARCHAR column."""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=32,
    )


class SessionStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class VerificationStatus(str, enum.Enum):
    WAITING_DEMO = "waiting_demo"
    PENDING_VERIFICATION = "pending_verification"
    APPROVED = "approved"
    REJECTED = "rejected"


SESSION_TRANSITIONS: Mapping[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.SCHEDULED: frozenset({SessionStatus.IN_PROGRESS}),
    SessionStatus.IN_PROGRESS: frozenset({SessionStatus.COMPLETED}),
    SessionStatus.COMPLETED: frozenset(),
}

VERIFICATION_TRANSITIONS: Mapping[VerificationStatus, FrozenSet[VerificationStatus]] = {
    VerificationStatus.WAITING_DEMO: frozenset({VerificationStatus.PENDING_VERIFICATION}),
    VerificationStatus.PENDING_VERIFICATION: frozenset({
        VerificationStatus.APPROVED,
        VerificationStatus.REJECTED,
    }),
    VerificationStatus.APPROVED: frozenset(),
    VerificationStatus.REJECTED: frozenset({VerificationStatus.PENDING_VERIFICATION}),
}

_TABLES: Dict[type, Mapping] = {
    SessionStatus: SESSION_TRANSITIONS,
    VerificationStatus: VERIFICATION_TRANSITIONS,
}


def can_transition(current: enum.Enum, target: enum.Enum) -> bool:
    table = _TABLES[type(target)]
    return target in table.get(type(target)(current), frozenset())


def ensure_transition(kind: str, current: enum.Enum, target: enum.Enum) -> None:
    """Raise InvalidTransition unless current -> target is in the table."""
    if not can_transition(current, target):
        raise InvalidTransition(kind, type(target)(current).value, target.value)
