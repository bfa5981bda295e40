"""Appointment status state machine."""

from app.core.exceptions import InvalidTransitionException, ValidationException
from app.schemas.appointments import AppointmentStatus

# Direct transitions out of each status. Terminal statuses map to nothing.
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


def coerce_status(value: AppointmentStatus | str) -> AppointmentStatus:
    """
    Convert a raw value into a known status.

    Raises:
        ValidationException: If the value is not a known status
    """
    try:
        return AppointmentStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in AppointmentStatus)
        raise ValidationException(
            f"Unknown appointment status '{value}', expected one of: {allowed}"
        ) from None


def allowed_transitions(current: AppointmentStatus | str) -> frozenset[AppointmentStatus]:
    """Statuses directly reachable from ``current``."""
    return ALLOWED_TRANSITIONS[coerce_status(current)]


def is_terminal(status: AppointmentStatus | str) -> bool:
    """Whether no further transitions are possible."""
    return not allowed_transitions(status)


def request_transition(
    current: AppointmentStatus | str,
    requested: AppointmentStatus | str,
) -> AppointmentStatus:
    """
    Validate a status change.

    Requesting the current status again is accepted as a no-op so duplicate
    submissions do not fail.

    Args:
        current: Status currently persisted
        requested: Desired status

    Returns:
        The validated target status

    Raises:
        InvalidTransitionException: If ``requested`` is not directly reachable
    """
    source = coerce_status(current)
    target = coerce_status(requested)

    if target == source or target in ALLOWED_TRANSITIONS[source]:
        return target

    raise InvalidTransitionException(source.value, target.value)
