"""Appointment repository: create, list and status updates against the store."""

import asyncio
from collections.abc import Awaitable
from datetime import tzinfo
from typing import Any, TypeVar

import structlog
from pydantic import ValidationError

from app.core.exceptions import (
    AppException,
    NotFoundException,
    StorageException,
    ValidationException,
)
from app.schemas.appointments import Appointment, AppointmentCreate, AppointmentStatus
from app.services.appointment_store import BASE_COLLECTION, VIEW_COLLECTION, AppointmentStore
from app.services.normalizer import normalize_appointment, normalize_many
from app.services.status_guard import coerce_status, request_transition

logger = structlog.get_logger()

T = TypeVar("T")


class AppointmentRepository:
    """
    Issues appointment reads and writes against an injected store.

    Every row read back is normalized into a canonical ``Appointment``.
    The repository holds no locks. ``update_status`` reads the current status
    and writes the new one in two statements, so two concurrent updates of the
    same appointment resolve as last-write-wins in the store.
    """

    def __init__(
        self,
        store: AppointmentStore,
        *,
        timeout: float | None = None,
        tz: tzinfo | None = None,
    ):
        """
        Initialize repository.

        Args:
            store: Backend implementing the store interface
            timeout: Upper bound in seconds for each store call, None for no bound
            tz: Zone used to split timezone-aware timestamps
        """
        self.store = store
        self.timeout = timeout
        self.tz = tz

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Run a store call, mapping backend failures to StorageException."""
        try:
            if self.timeout is None:
                return await awaitable
            return await asyncio.wait_for(awaitable, self.timeout)
        except AppException:
            raise
        except asyncio.TimeoutError as e:
            logger.warning("store_call_timed_out", operation=operation, timeout=self.timeout)
            raise StorageException(f"Store {operation} timed out") from e
        except Exception as e:
            logger.error("store_call_failed", operation=operation, error=str(e))
            raise StorageException(f"Store {operation} failed") from e

    async def create(
        self,
        patient_id: str,
        doctor_id: str,
        date: str,
        time: str,
    ) -> Appointment:
        """
        Create a pending appointment.

        Args:
            patient_id: ID of the patient
            doctor_id: ID of the assigned doctor
            date: Calendar date, ``YYYY-MM-DD``
            time: Wall-clock time, ``HH:MM:SS`` (``HH:MM`` accepted)

        Returns:
            The stored appointment

        Raises:
            ValidationException: If an input is empty or malformed
            StorageException: If the store fails
        """
        try:
            data = AppointmentCreate(patient_id=patient_id, doctor_id=doctor_id, date=date, time=time)
        except ValidationError as e:
            error = e.errors()[0]
            field = error["loc"][0] if error["loc"] else "input"
            raise ValidationException(f"Invalid {field}: {error['msg']}") from e

        values: dict[str, Any] = {
            "patient_id": data.patient_id,
            "therapist_id": data.doctor_id,
            "appointment_date": data.scheduled_at(),
            "status": AppointmentStatus.PENDING.value,
        }

        row = await self._call("insert", self.store.insert(BASE_COLLECTION, values))
        appointment = normalize_appointment(row, "base", self.tz)

        logger.info(
            "appointment_created",
            appointment_id=appointment.id,
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
        )
        return appointment

    async def get(self, appointment_id: str) -> Appointment:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
        """
        rows = await self._call("select", self.store.select(BASE_COLLECTION, {"id": appointment_id}))
        if not rows:
            raise NotFoundException(f"Appointment '{appointment_id}' not found")
        return normalize_appointment(rows[0], "base", self.tz)

    async def list_for_doctor(self, doctor_id: str) -> list[Appointment]:
        """Appointments assigned to a doctor, earliest first, with display data."""
        rows = await self._call(
            "select",
            self.store.select(
                VIEW_COLLECTION,
                {"therapist_id": doctor_id},
                order_by="appointment_date",
            ),
        )
        return normalize_many(rows, "view", self.tz)

    async def list_for_patient(self, patient_id: str) -> list[Appointment]:
        """Appointments booked by a patient, earliest first."""
        rows = await self._call(
            "select",
            self.store.select(
                BASE_COLLECTION,
                {"patient_id": patient_id},
                order_by="appointment_date",
            ),
        )
        return normalize_many(rows, "base", self.tz)

    async def update_status(self, appointment_id: str, new_status: AppointmentStatus | str) -> None:
        """
        Move an appointment to a new status.

        The change is validated against the status most recently read from the
        store. Requesting the current status again is a no-op. Once this
        returns, subsequent reads reflect the new status.

        Raises:
            ValidationException: If ``new_status`` is not a known status
            InvalidTransitionException: If the change is not allowed
            NotFoundException: If appointment not found
            StorageException: If the store fails
        """
        requested = coerce_status(new_status)
        current = await self.get(appointment_id)
        target = request_transition(current.status, requested)

        if target == current.status:
            logger.info(
                "appointment_status_unchanged",
                appointment_id=appointment_id,
                status=target.value,
            )
            return

        rows = await self._call(
            "update",
            self.store.update(BASE_COLLECTION, {"id": appointment_id}, {"status": target.value}),
        )
        if not rows:
            raise NotFoundException(f"Appointment '{appointment_id}' not found")

        logger.info(
            "appointment_status_updated",
            appointment_id=appointment_id,
            old_status=current.status.value,
            new_status=target.value,
        )
