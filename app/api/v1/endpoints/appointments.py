"""Appointment endpoints."""

import asyncio

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from app.dependencies import AppointmentServiceDep
from app.schemas.appointments import (
    Appointment,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentStatusUpdate,
)

router = APIRouter()
logger = structlog.get_logger()


@router.post(
    "/appointments",
    response_model=Appointment,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Create new appointment",
)
async def create_appointment(
    data: AppointmentCreate,
    service: AppointmentServiceDep,
) -> Appointment:
    """
    Create a new pending appointment.

    Args:
        data: Appointment creation data
        service: Appointment service

    Returns:
        Created appointment
    """
    return await service.create_appointment(data.patient_id, data.doctor_id, data.date, data.time)


@router.get(
    "/appointments/{appointment_id}",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: str,
    service: AppointmentServiceDep,
) -> Appointment:
    """
    Get a specific appointment by ID.

    Raises:
        NotFoundException: If appointment not found
    """
    return await service.get_appointment(appointment_id)


@router.patch(
    "/appointments/{appointment_id}/status",
    response_model=Appointment,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: str,
    data: AppointmentStatusUpdate,
    service: AppointmentServiceDep,
) -> Appointment:
    """
    Update appointment status (confirm, complete, cancel).

    Args:
        appointment_id: Appointment ID
        data: Status update data
        service: Appointment service

    Returns:
        Updated appointment

    Raises:
        InvalidTransitionException: If the change is not allowed
        NotFoundException: If appointment not found
    """
    return await service.update_appointment_status(appointment_id, data.status)


@router.get(
    "/doctors/{doctor_id}/appointments",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List a doctor's appointments",
)
async def list_doctor_appointments(
    doctor_id: str,
    service: AppointmentServiceDep,
) -> AppointmentListResponse:
    """List appointments assigned to a doctor, earliest first."""
    items = await service.list_doctor_appointments(doctor_id)
    return AppointmentListResponse(total=len(items), items=items)


@router.get(
    "/patients/{patient_id}/appointments",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List a patient's appointments",
)
async def list_patient_appointments(
    patient_id: str,
    service: AppointmentServiceDep,
) -> AppointmentListResponse:
    """List appointments booked by a patient, earliest first."""
    items = await service.list_patient_appointments(patient_id)
    return AppointmentListResponse(total=len(items), items=items)


@router.websocket("/doctors/{doctor_id}/appointments/stream")
async def stream_doctor_appointments(
    websocket: WebSocket,
    doctor_id: str,
    service: AppointmentServiceDep,
) -> None:
    """
    Push appointments created for a doctor over a WebSocket.

    Sends ``{"type": "subscribed"}`` once listening, then one
    ``{"type": "INSERT", "appointment": ...}`` message per new appointment.
    """
    await websocket.accept()

    queue: asyncio.Queue[Appointment] = asyncio.Queue()
    subscription = await service.subscribe_to_doctor_appointments(doctor_id, queue.put_nowait)

    async def forward() -> None:
        while True:
            appointment = await queue.get()
            await websocket.send_json(
                {"type": "INSERT", "appointment": appointment.model_dump(mode="json")}
            )

    await websocket.send_json({"type": "subscribed", "doctor_id": doctor_id})
    sender = asyncio.create_task(forward())
    try:
        # Inbound messages are ignored; receiving only detects disconnects
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.info("appointment_stream_disconnected", doctor_id=doctor_id)
    finally:
        subscription.unsubscribe()
        sender.cancel()
        # Send failures after a disconnect end the sender, collect them here
        await asyncio.gather(sender, return_exceptions=True)
