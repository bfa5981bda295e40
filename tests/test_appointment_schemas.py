"""Tests for the canonical appointment model and request schemas."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from app.schemas.appointments import Appointment, AppointmentCreate, AppointmentStatus

CREATED = datetime(2025, 10, 1, 9, 0, tzinfo=timezone.utc)


def make_appointment(**overrides) -> Appointment:
    values = {
        "id": "a1",
        "patient_id": "p1",
        "doctor_id": "d1",
        "status": "pending",
        "date": "2025-10-30",
        "time": "14:00:00",
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    values.update(overrides)
    return Appointment(**values)


def test_valid_appointment() -> None:
    """A complete record constructs."""
    appointment = make_appointment()
    assert appointment.status == AppointmentStatus.PENDING
    assert appointment.patient_name is None


@pytest.mark.parametrize("field", ["patient_id", "doctor_id"])
@pytest.mark.parametrize("value", ["", "   "])
def test_empty_references_rejected(field: str, value: str) -> None:
    """Patient and doctor references are required."""
    with pytest.raises(ValidationError):
        make_appointment(**{field: value})


def test_unknown_status_rejected() -> None:
    """Only the four statuses are accepted."""
    with pytest.raises(ValidationError):
        make_appointment(status="scheduled")


@pytest.mark.parametrize("date,time", [("2025-10-30", ""), ("", "14:00:00")])
def test_partial_schedule_rejected(date: str, time: str) -> None:
    """Date and time come as a pair."""
    with pytest.raises(ValidationError):
        make_appointment(date=date, time=time)


def test_unknown_schedule_allowed() -> None:
    """Both parts empty is the explicit unknown value."""
    appointment = make_appointment(date="", time="")
    assert (appointment.date, appointment.time) == ("", "")


def test_updated_before_created_rejected() -> None:
    """Timestamps stay ordered."""
    with pytest.raises(ValidationError):
        make_appointment(updated_at=datetime(2025, 9, 1, tzinfo=timezone.utc))


def test_appointment_is_immutable() -> None:
    """Snapshots cannot be mutated in place."""
    appointment = make_appointment()
    with pytest.raises(ValidationError):
        appointment.status = AppointmentStatus.CONFIRMED  # type: ignore[misc]


def test_json_dump_uses_status_value() -> None:
    """Serialized records expose plain status strings."""
    data = make_appointment(status="confirmed").model_dump(mode="json")
    assert data["status"] == "confirmed"
    assert data["date"] == "2025-10-30"


def test_create_normalizes_short_time() -> None:
    """HH:MM input is stored with seconds."""
    data = AppointmentCreate(patient_id="p1", doctor_id="d1", date="2025-10-30", time="14:00")
    assert data.time == "14:00:00"
    assert data.scheduled_at() == datetime(2025, 10, 30, 14, 0, 0)


@pytest.mark.parametrize(
    "overrides",
    [
        {"date": "30/10/2025"},
        {"date": "2025-02-30"},
        {"time": "25:00:00"},
        {"time": "2pm"},
        {"patient_id": " "},
        {"doctor_id": ""},
    ],
)
def test_create_rejects_malformed_input(overrides: dict) -> None:
    """Malformed create input fails validation."""
    values = {"patient_id": "p1", "doctor_id": "d1", "date": "2025-10-30", "time": "14:00:00"}
    values.update(overrides)

    with pytest.raises(ValidationError):
        AppointmentCreate(**values)
