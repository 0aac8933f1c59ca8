from __future__ import annotations

from enum import StrEnum


class GuardState(StrEnum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    CHECKING_AUTH = "CHECKING_AUTH"
    CHECKING_PERMISSION = "CHECKING_PERMISSION"
    GRANTED = "GRANTED"
    DENIED = "DENIED"
    REDIRECTING = "REDIRECTING"


GUARD_ALLOWED_TRANSITIONS: dict[GuardState, set[GuardState]] = {
    GuardState.UNAUTHENTICATED: {GuardState.CHECKING_AUTH},
    GuardState.CHECKING_AUTH: {
        GuardState.CHECKING_PERMISSION,
        GuardState.UNAUTHENTICATED,
    },
    GuardState.CHECKING_PERMISSION: {
        GuardState.GRANTED,
        GuardState.DENIED,
        GuardState.REDIRECTING,
        GuardState.UNAUTHENTICATED,
    },
    GuardState.GRANTED: {GuardState.CHECKING_AUTH, GuardState.UNAUTHENTICATED},
    GuardState.DENIED: {GuardState.CHECKING_AUTH, GuardState.UNAUTHENTICATED},
    GuardState.REDIRECTING: {GuardState.UNAUTHENTICATED},
}


def can_guard_transition(source: GuardState, target: GuardState) -> bool:
    return target in GUARD_ALLOWED_TRANSITIONS.get(source, set())
