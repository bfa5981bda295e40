"""Database models."""

from app.models.appointments import appointments, doctor_appointments_view
from app.models.doctors import doctors
from app.models.patients import patients

__all__ = [
    "appointments",
    "doctor_appointments_view",
    "doctors",
    "patients",
]
