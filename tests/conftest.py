import asyncio
import os
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Tests never talk to real services
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("DISPLAY_TIMEZONE", "UTC")

from app.dependencies import get_appointment_service
from app.main import app
from app.services.appointment_repository import AppointmentRepository
from app.services.appointment_service import AppointmentService
from app.services.appointment_store import BASE_COLLECTION, VIEW_COLLECTION
from app.services.change_notifier import ChangeNotifier


class InMemoryEventStream:
    """
    Event stream double.

    Every listener of a table receives every insert into it, regardless of
    the filter it asked for, so the notifier's own filtering is exercised.
    Like the broker, a listener only sees events emitted after ``open``
    returns.
    """

    def __init__(self) -> None:
        self.listeners: list[tuple[str, asyncio.Queue]] = []
        self.published: list[tuple[str, dict[str, Any]]] = []

    def emit(self, table: str, record: dict[str, Any]) -> int:
        self.published.append((table, record))
        count = 0
        for listener_table, queue in list(self.listeners):
            if listener_table == table:
                queue.put_nowait(dict(record))
                count += 1
        return count

    async def publish_insert(self, table: str, record: dict[str, Any]) -> int:
        return self.emit(table, record)

    async def open(self, table: str, column: str, value: str):
        # Subscribing is a round trip to the broker
        await asyncio.sleep(0)
        entry: tuple[str, asyncio.Queue] = (table, asyncio.Queue())
        self.listeners.append(entry)
        return self._drain(entry)

    async def _drain(self, entry: tuple[str, asyncio.Queue]):
        try:
            while True:
                yield await entry[1].get()
        finally:
            self.listeners.remove(entry)


class InMemoryAppointmentStore:
    """Store double holding base rows and deriving view rows from them."""

    def __init__(self, publisher: InMemoryEventStream | None = None) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.patients: dict[str, dict[str, Any]] = {}
        self.doctors: dict[str, dict[str, Any]] = {}
        self.publisher = publisher
        self.calls: list[tuple[str, str]] = []
        self.fail_with: Exception | None = None
        self.delay: float = 0

    async def _enter(self, operation: str, collection: str) -> None:
        self.calls.append((operation, collection))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

    def add_row(self, **values: Any) -> dict[str, Any]:
        now = datetime(2025, 10, 1, 9, 0, tzinfo=timezone.utc)
        row = {
            "id": str(uuid4()),
            "status": "pending",
            "appointment_date": None,
            "reason": None,
            "notes": None,
            "created_at": now,
            "updated_at": now,
            **values,
        }
        self.rows[row["id"]] = row
        return row

    async def insert(self, collection: str, values: dict[str, Any]) -> dict[str, Any]:
        await self._enter("insert", collection)
        now = datetime.now(timezone.utc)
        row = self.add_row(created_at=now, updated_at=now, **values)
        if self.publisher is not None:
            await self.publisher.publish_insert(BASE_COLLECTION, dict(row))
        return dict(row)

    async def select(
        self,
        collection: str,
        where: dict[str, Any],
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        await self._enter("select", collection)
        source = self._view_rows() if collection == VIEW_COLLECTION else self.rows.values()
        matched = [
            dict(row)
            for row in source
            if all(str(row.get(key)) == str(value) for key, value in where.items())
        ]
        if order_by:
            matched.sort(key=lambda row: (row[order_by] is None, row[order_by] or datetime.min))
        return matched

    async def update(
        self,
        collection: str,
        where: dict[str, Any],
        values: dict[str, Any],
    ) -> list[dict[str, Any]]:
        await self._enter("update", collection)
        matched = [
            row
            for row in self.rows.values()
            if all(str(row.get(key)) == str(value) for key, value in where.items())
        ]
        for row in matched:
            row.update(values)
            row["updated_at"] = datetime.now(timezone.utc)
        return [dict(row) for row in matched]

    def _view_rows(self):
        for row in self.rows.values():
            scheduled = row["appointment_date"]
            patient = self.patients.get(row["patient_id"], {})
            doctor = self.doctors.get(row["therapist_id"], {})
            yield {
                "id": row["id"],
                "patient_id": row["patient_id"],
                "therapist_id": row["therapist_id"],
                "status": row["status"],
                "appointment_date": scheduled,
                "appointment_day": scheduled.strftime("%Y-%m-%d") if scheduled else None,
                "appointment_time": scheduled.strftime("%H:%M:%S") if scheduled else None,
                "created_at": row["created_at"],
                "updated_at": row["updated_at"],
                "display_patient_name": patient.get("patient_name"),
                "display_username": patient.get("username"),
                "reason": row.get("reason") or row.get("notes"),
                "doctor_name": doctor.get("name"),
                "specialization": doctor.get("specialization"),
            }


@pytest.fixture
def event_stream() -> InMemoryEventStream:
    """In-memory insert event stream."""
    return InMemoryEventStream()


@pytest.fixture
def store(event_stream: InMemoryEventStream) -> InMemoryAppointmentStore:
    """In-memory store publishing inserts to the event stream."""
    return InMemoryAppointmentStore(publisher=event_stream)


@pytest.fixture
def repository(store: InMemoryAppointmentStore) -> AppointmentRepository:
    """Repository over the in-memory store, splitting timestamps in UTC."""
    return AppointmentRepository(store, timeout=1.0, tz=timezone.utc)


@pytest_asyncio.fixture
async def notifier(event_stream: InMemoryEventStream) -> AsyncGenerator[ChangeNotifier, None]:
    """Change notifier released after the test."""
    notifier = ChangeNotifier(event_stream, tz=timezone.utc)
    yield notifier
    await notifier.close()


@pytest.fixture
def service(repository: AppointmentRepository, notifier: ChangeNotifier) -> AppointmentService:
    """Presentation-facing appointment service."""
    return AppointmentService(repository, notifier)


@pytest_asyncio.fixture
async def client(service: AppointmentService) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""
    app.dependency_overrides[get_appointment_service] = lambda: service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def view_row() -> dict:
    """Row as produced by the enriched doctor view."""
    return {
        "id": "a1",
        "patient_id": "p1",
        "therapist_id": "d1",
        "status": "confirmed",
        "appointment_date": "2025-10-30T14:00:00",
        "appointment_day": "2025-10-30",
        "appointment_time": "14:00:00",
        "created_at": "2025-10-01T09:00:00+00:00",
        "updated_at": "2025-10-02T09:00:00+00:00",
        "display_patient_name": "Jane Roe",
        "display_username": "jroe",
        "reason": "Follow-up",
        "doctor_name": "Dr. Smith",
        "specialization": "Cardiology",
    }


@pytest.fixture
def base_row() -> dict:
    """Row as stored in the base appointments table."""
    return {
        "id": "a2",
        "patient_id": "p1",
        "therapist_id": "d1",
        "status": "pending",
        "appointment_date": "2025-10-30T14:00:00",
        "notes": "Headache for two weeks",
        "created_at": "2025-10-01T09:00:00+00:00",
        "updated_at": "2025-10-01T09:00:00+00:00",
    }


@pytest.fixture
def sample_appointment_data() -> dict:
    """Sample appointment data for testing."""
    return {
        "patient_id": "p1",
        "doctor_id": "d1",
        "date": "2025-10-30",
        "time": "14:00:00",
    }
