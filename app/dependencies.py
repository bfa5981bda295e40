"""FastAPI dependencies."""

from datetime import tzinfo
from functools import lru_cache
from typing import Annotated
from zoneinfo import ZoneInfo

from fastapi import Depends
from starlette.requests import HTTPConnection

from app.config import settings
from app.core.redis_client import RedisEventStream, get_redis_client
from app.database import AsyncSessionLocal
from app.services.appointment_repository import AppointmentRepository
from app.services.appointment_service import AppointmentService
from app.services.appointment_store import SqlAppointmentStore
from app.services.change_notifier import ChangeNotifier


@lru_cache
def get_display_timezone() -> tzinfo | None:
    """Configured display zone, None for the server's local zone."""
    if settings.display_timezone:
        return ZoneInfo(settings.display_timezone)
    return None


def get_event_stream() -> RedisEventStream:
    """Realtime event stream over the shared Redis client."""
    return RedisEventStream(get_redis_client())


def get_appointment_store(
    event_stream: Annotated[RedisEventStream, Depends(get_event_stream)],
) -> SqlAppointmentStore:
    """SQL appointment store publishing inserts to the event stream."""
    return SqlAppointmentStore(AsyncSessionLocal, publisher=event_stream)


def get_notifier(connection: HTTPConnection) -> ChangeNotifier | None:
    """Application-wide change notifier created at startup."""
    return getattr(connection.app.state, "notifier", None)


def get_appointment_service(
    store: Annotated[SqlAppointmentStore, Depends(get_appointment_store)],
    notifier: Annotated[ChangeNotifier | None, Depends(get_notifier)],
) -> AppointmentService:
    """
    Build the appointment service for a request.

    Args:
        store: Appointment store
        notifier: Change notifier, if realtime delivery is running

    Returns:
        Appointment service
    """
    repository = AppointmentRepository(
        store,
        timeout=settings.store_timeout_seconds,
        tz=get_display_timezone(),
    )
    return AppointmentService(repository, notifier)


# Type aliases for dependency injection
AppointmentServiceDep = Annotated[AppointmentService, Depends(get_appointment_service)]
