"""Appointment functions called by the presentation layer."""

import structlog

from app.schemas.appointments import Appointment, AppointmentStatus
from app.services.appointment_repository import AppointmentRepository
from app.services.change_notifier import ChangeNotifier, InsertCallback, Subscription

logger = structlog.get_logger()


class AppointmentService:
    """Service for managing appointments."""

    def __init__(self, repository: AppointmentRepository, notifier: ChangeNotifier | None = None):
        """Initialize service with repository and optional change notifier."""
        self.repository = repository
        self.notifier = notifier

    async def create_appointment(
        self,
        patient_id: str,
        doctor_id: str,
        date: str,
        time: str,
    ) -> Appointment:
        """
        Create a new appointment.

        Args:
            patient_id: ID of the patient booking the appointment
            doctor_id: ID of the doctor
            date: Appointment date, YYYY-MM-DD
            time: Appointment time, HH:MM:SS

        Returns:
            Created appointment in pending status
        """
        return await self.repository.create(patient_id, doctor_id, date, time)

    async def get_appointment(self, appointment_id: str) -> Appointment:
        """Get appointment by ID."""
        return await self.repository.get(appointment_id)

    async def list_doctor_appointments(self, doctor_id: str) -> list[Appointment]:
        """List a doctor's appointments, earliest first."""
        items = await self.repository.list_for_doctor(doctor_id)
        logger.debug("doctor_appointments_listed", doctor_id=doctor_id, count=len(items))
        return items

    async def list_patient_appointments(self, patient_id: str) -> list[Appointment]:
        """List a patient's appointments, earliest first."""
        items = await self.repository.list_for_patient(patient_id)
        logger.debug("patient_appointments_listed", patient_id=patient_id, count=len(items))
        return items

    async def update_appointment_status(
        self,
        appointment_id: str,
        status: AppointmentStatus | str,
    ) -> Appointment:
        """
        Update appointment status and return the stored record.

        Raises:
            InvalidTransitionException: If the change is not allowed
            NotFoundException: If appointment not found
        """
        await self.repository.update_status(appointment_id, status)
        return await self.repository.get(appointment_id)

    async def subscribe_to_doctor_appointments(
        self,
        doctor_id: str,
        on_insert: InsertCallback,
    ) -> Subscription:
        """
        Receive appointments created for a doctor as they are inserted.

        Returns once listening; appointments created afterwards are delivered.

        Returns:
            Subscription handle, call ``unsubscribe()`` to stop delivery
        """
        if self.notifier is None:
            raise RuntimeError("Realtime notifications are not configured")
        return await self.notifier.subscribe(doctor_id, on_insert)
