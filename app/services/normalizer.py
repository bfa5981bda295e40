"""Conversion of raw storage rows into canonical appointments.

Rows arrive in one of two shapes. The enriched ``v_doctor_appointments`` view
carries a precomputed day and time plus display fields, while the base
``appointments`` table (and realtime insert events, which mirror it) carries a
single combined ``appointment_date`` timestamp and free-text notes. Both are
parsed into a tagged union first, then every canonical field is resolved by a
single function so that each fallback path is explicit.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime, tzinfo
from typing import Any, Literal

from pydantic import TypeAdapter, ValidationError

from app.core.exceptions import StructuralException
from app.schemas.appointments import (
    Appointment,
    AppointmentStatus,
    BaseRow,
    RawAppointmentRow,
    ViewRow,
)

RowShape = Literal["view", "base"]

# Keys only the enriched view produces
VIEW_ONLY_KEYS = frozenset(
    {
        "appointment_day",
        "appointment_time",
        "display_patient_name",
        "display_username",
        "doctor_name",
        "specialization",
    }
)

# Canonical enrichment field -> source fields in order of preference
ENRICHMENT_SOURCES: dict[str, tuple[str, ...]] = {
    "patient_name": ("display_patient_name", "patient_name"),
    "username": ("display_username", "patient_username"),
    "reason": ("reason", "notes"),
    "doctor_name": ("doctor_name",),
    "specialization": ("specialization",),
}

_row_adapter: TypeAdapter[ViewRow | BaseRow] = TypeAdapter(RawAppointmentRow)


def detect_shape(row: Mapping[str, Any]) -> RowShape:
    """Guess the storage shape of an untagged row."""
    return "view" if VIEW_ONLY_KEYS.intersection(row.keys()) else "base"


def parse_raw_row(row: Mapping[str, Any], shape: RowShape | None = None) -> ViewRow | BaseRow:
    """
    Parse a raw mapping into one of the two explicit row shapes.

    Args:
        row: Raw storage row
        shape: Known origin of the row, inferred from its keys when omitted

    Returns:
        Tagged row model

    Raises:
        StructuralException: If a required field is missing or a value is malformed
    """
    tagged = {**row, "shape": shape or detect_shape(row)}
    try:
        return _row_adapter.validate_python(tagged)
    except ValidationError as e:
        raise _structural_error(e) from e


def resolve_schedule(row: ViewRow | BaseRow, tz: tzinfo | None = None) -> tuple[str, str]:
    """
    Resolve the (date, time) pair of a row.

    Precomputed view columns win when both are non-empty. Otherwise the
    combined timestamp is split into local date and wall-clock time. With
    neither available both parts are empty strings.
    """
    if isinstance(row, ViewRow) and row.appointment_day and row.appointment_time:
        return row.appointment_day, row.appointment_time

    if row.appointment_date is not None:
        return split_timestamp(row.appointment_date, tz)

    return "", ""


def split_timestamp(value: datetime, tz: tzinfo | None = None) -> tuple[str, str]:
    """Split a timestamp into zero-padded ``YYYY-MM-DD`` and ``HH:MM:SS`` parts."""
    # Naive values are already wall-clock time
    local = value.astimezone(tz) if value.tzinfo is not None else value
    return local.strftime("%Y-%m-%d"), local.strftime("%H:%M:%S")


def resolve_status(row: ViewRow | BaseRow) -> str:
    """Stored status, or pending when missing."""
    return row.status or AppointmentStatus.PENDING.value


def resolve_enrichment(row: ViewRow | BaseRow, field: str) -> str | None:
    """First non-empty source value for a display field, else None."""
    for source in ENRICHMENT_SOURCES[field]:
        value = getattr(row, source, None)
        if value:
            return value
    return None


def normalize_appointment(
    row: Mapping[str, Any] | ViewRow | BaseRow,
    shape: RowShape | None = None,
    tz: tzinfo | None = None,
) -> Appointment:
    """
    Normalize a raw storage row into a canonical appointment.

    Args:
        row: Raw mapping or already parsed row model
        shape: Known origin of a raw mapping
        tz: Zone used to localize timezone-aware timestamps (process zone if None)

    Returns:
        Canonical appointment

    Raises:
        StructuralException: If the row cannot form a valid appointment
    """
    parsed = row if isinstance(row, ViewRow | BaseRow) else parse_raw_row(row, shape)
    date, time = resolve_schedule(parsed, tz)

    try:
        return Appointment(
            id=parsed.id,
            patient_id=parsed.patient_id,
            # therapist_id is the internal name of the assigned clinician
            doctor_id=parsed.therapist_id,
            status=resolve_status(parsed),
            date=date,
            time=time,
            created_at=parsed.created_at,
            updated_at=parsed.updated_at,
            **{field: resolve_enrichment(parsed, field) for field in ENRICHMENT_SOURCES},
        )
    except ValidationError as e:
        raise _structural_error(e) from e


def normalize_many(
    rows: Iterable[Mapping[str, Any]],
    shape: RowShape | None = None,
    tz: tzinfo | None = None,
) -> list[Appointment]:
    """Normalize rows preserving their order."""
    return [normalize_appointment(row, shape, tz) for row in rows]


def _structural_error(exc: ValidationError) -> StructuralException:
    error = exc.errors()[0]
    field = next((part for part in reversed(error["loc"]) if isinstance(part, str)), None)
    if field in ("view", "base"):
        field = None
    if error["type"] == "missing":
        message = f"Appointment record is missing required field '{field}'"
    elif field:
        message = f"Appointment record has invalid '{field}': {error['msg']}"
    else:
        message = f"Appointment record is invalid: {error['msg']}"
    return StructuralException(message, field=field)
