"""Tests for the appointment status state machine."""

from itertools import product

import pytest

from app.core.exceptions import InvalidTransitionException, ValidationException
from app.schemas.appointments import AppointmentStatus
from app.services.status_guard import allowed_transitions, is_terminal, request_transition

PENDING = AppointmentStatus.PENDING
CONFIRMED = AppointmentStatus.CONFIRMED
COMPLETED = AppointmentStatus.COMPLETED
CANCELLED = AppointmentStatus.CANCELLED

ALLOWED = {
    (PENDING, CONFIRMED),
    (PENDING, CANCELLED),
    (CONFIRMED, COMPLETED),
    (CONFIRMED, CANCELLED),
} | {(status, status) for status in AppointmentStatus}


@pytest.mark.parametrize("current,requested", sorted(ALLOWED))
def test_allowed_transitions_succeed(
    current: AppointmentStatus,
    requested: AppointmentStatus,
) -> None:
    """Every allowed pair returns the requested status."""
    assert request_transition(current, requested) == requested


@pytest.mark.parametrize(
    "current,requested",
    sorted(set(product(AppointmentStatus, repeat=2)) - ALLOWED),
)
def test_other_transitions_fail(
    current: AppointmentStatus,
    requested: AppointmentStatus,
) -> None:
    """Every other pair is rejected, naming both states."""
    with pytest.raises(InvalidTransitionException) as exc_info:
        request_transition(current, requested)

    assert exc_info.value.current == current.value
    assert exc_info.value.requested == requested.value
    assert current.value in exc_info.value.message
    assert requested.value in exc_info.value.message
    assert exc_info.value.status_code == 409


def test_completed_cannot_return_to_pending() -> None:
    """Terminal statuses have no way back."""
    with pytest.raises(InvalidTransitionException):
        request_transition("completed", "pending")


def test_cancelled_cannot_be_confirmed() -> None:
    """Cancelled appointments stay cancelled."""
    with pytest.raises(InvalidTransitionException):
        request_transition("cancelled", "confirmed")


def test_repeat_request_is_noop() -> None:
    """Requesting the current status again succeeds."""
    assert request_transition("pending", "pending") == PENDING


def test_unknown_status_is_validation_error() -> None:
    """Values outside the status set are rejected as input errors."""
    with pytest.raises(ValidationException) as exc_info:
        request_transition("pending", "archived")

    assert exc_info.value.__suppress_context__
    assert exc_info.value.__cause__ is None


def test_terminal_statuses() -> None:
    """Completed and cancelled are terminal."""
    assert is_terminal(COMPLETED)
    assert is_terminal(CANCELLED)
    assert not is_terminal(PENDING)
    assert not is_terminal(CONFIRMED)
    assert allowed_transitions(PENDING) == {CONFIRMED, CANCELLED}
