"""Appointment schemas: canonical record, raw storage rows and request payloads."""

import re
from datetime import date as date_type
from datetime import datetime
from datetime import time as time_type
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator, model_validator

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


def _stringify(value: Any) -> Any:
    # UUID and integer keys are opaque to callers
    if value is None or isinstance(value, str):
        return value
    return str(value)


def _day_to_str(value: Any) -> Any:
    if isinstance(value, date_type) and not isinstance(value, datetime):
        return value.isoformat()
    return value


def _time_to_str(value: Any) -> Any:
    if isinstance(value, time_type):
        return value.strftime("%H:%M:%S")
    return value


OpaqueId = Annotated[str, BeforeValidator(_stringify)]
OptionalText = Annotated[str | None, BeforeValidator(_stringify)]


class Appointment(BaseModel):
    """Canonical appointment, independent of the storage shape it was read from."""

    model_config = ConfigDict(frozen=True)

    id: OpaqueId
    patient_id: OpaqueId
    doctor_id: OpaqueId
    status: AppointmentStatus
    date: str = ""
    time: str = ""
    created_at: datetime
    updated_at: datetime

    # Display-only enrichment
    patient_name: str | None = None
    username: str | None = None
    reason: str | None = None
    doctor_name: str | None = None
    specialization: str | None = None

    @field_validator("patient_id", "doctor_id")
    @classmethod
    def validate_reference(cls, v: str) -> str:
        """Reject empty references."""
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def validate_invariants(self) -> "Appointment":
        """Keep the date/time pair whole and timestamps ordered."""
        if bool(self.date) != bool(self.time):
            raise ValueError("date and time must be both present or both empty")

        # Mixed naive/aware values cannot be ordered
        if (self.created_at.tzinfo is None) == (self.updated_at.tzinfo is None):
            if self.created_at > self.updated_at:
                raise ValueError("created_at must not be later than updated_at")
        return self


class _RawRow(BaseModel):
    """Fields shared by both storage shapes."""

    model_config = ConfigDict(extra="ignore")

    id: OpaqueId
    patient_id: OpaqueId
    therapist_id: OpaqueId
    status: str | None = None
    appointment_date: datetime | None = None
    created_at: datetime
    updated_at: datetime

    reason: OptionalText = None
    patient_name: OptionalText = None
    patient_username: OptionalText = None


class ViewRow(_RawRow):
    """Row read from the enriched ``v_doctor_appointments`` view."""

    shape: Literal["view"] = "view"
    appointment_day: Annotated[str | None, BeforeValidator(_day_to_str)] = None
    appointment_time: Annotated[str | None, BeforeValidator(_time_to_str)] = None
    display_patient_name: OptionalText = None
    display_username: OptionalText = None
    doctor_name: OptionalText = None
    specialization: OptionalText = None


class BaseRow(_RawRow):
    """Row read from the base ``appointments`` table or an insert event."""

    shape: Literal["base"] = "base"
    notes: OptionalText = None


RawAppointmentRow = Annotated[ViewRow | BaseRow, Field(discriminator="shape")]


class AppointmentCreate(BaseModel):
    """Schema for creating a new appointment."""

    patient_id: str = Field(..., min_length=1)
    doctor_id: str = Field(..., min_length=1)
    date: str
    time: str

    @field_validator("patient_id", "doctor_id")
    @classmethod
    def validate_reference(cls, v: str) -> str:
        """Reject blank identifiers."""
        if not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("date")
    @classmethod
    def validate_date(cls, v: str) -> str:
        """Require a real calendar date in YYYY-MM-DD form."""
        if not DATE_PATTERN.match(v):
            raise ValueError("date must be formatted as YYYY-MM-DD")
        date_type.fromisoformat(v)
        return v

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Require a 24-hour wall-clock time, normalized to HH:MM:SS."""
        if not TIME_PATTERN.match(v):
            raise ValueError("time must be formatted as HH:MM or HH:MM:SS")
        return time_type.fromisoformat(v).strftime("%H:%M:%S")

    def scheduled_at(self) -> datetime:
        """Combine date and time into the single persisted instant."""
        return datetime.combine(
            date_type.fromisoformat(self.date),
            time_type.fromisoformat(self.time),
        )


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""

    total: int
    items: list[Appointment]
