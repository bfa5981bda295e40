"""Realtime delivery of newly created appointments to per-doctor subscribers."""

import asyncio
import inspect
import threading
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import tzinfo
from typing import Any, Protocol
from uuid import uuid4

import structlog

from app.core.exceptions import StructuralException, ValidationException
from app.schemas.appointments import Appointment
from app.services.appointment_store import BASE_COLLECTION
from app.services.normalizer import normalize_appointment

logger = structlog.get_logger()

InsertCallback = Callable[[Appointment], Awaitable[None] | None]


class EventStream(Protocol):
    """Source of insert events scoped by table and an equality filter."""

    async def open(self, table: str, column: str, value: str) -> AsyncGenerator[dict[str, Any], None]:
        """Start listening and return the inserted rows in emission order."""
        ...


class Subscription:
    """Handle returned by ``ChangeNotifier.subscribe``; release it to stop delivery."""

    def __init__(self, notifier: "ChangeNotifier", doctor_id: str, callback: InsertCallback):
        """Initialize subscription."""
        self.id = uuid4().hex
        self.doctor_id = doctor_id
        self.callback = callback
        self.delivered = 0
        self._notifier = notifier
        self._task: asyncio.Task[None] | None = None
        self._active = True
        self._delivering = False

    @property
    def active(self) -> bool:
        """Whether new events are still delivered."""
        return self._active

    def unsubscribe(self) -> bool:
        """Stop further delivery. Returns False if already released."""
        return self._notifier.unsubscribe(self)

    def __repr__(self) -> str:
        return f"Subscription(id={self.id!r}, doctor_id={self.doctor_id!r}, active={self._active})"


class ChangeNotifier:
    """
    Subscription registry for appointment insert events.

    Each subscription consumes its own filtered event stream in a dedicated
    task, so deliveries keep the stream's order and a slow or failing callback
    only affects its own subscription. The registry may be mutated from any
    thread; subscribing requires a running event loop.
    """

    table = BASE_COLLECTION
    filter_column = "therapist_id"

    def __init__(self, event_stream: EventStream, *, tz: tzinfo | None = None):
        """Initialize notifier with the event source."""
        self.event_stream = event_stream
        self.tz = tz
        self._subscriptions: dict[str, Subscription] = {}
        self._lock = threading.Lock()

    @property
    def subscription_count(self) -> int:
        """Number of live subscriptions."""
        with self._lock:
            return len(self._subscriptions)

    async def subscribe(self, doctor_id: str, on_insert: InsertCallback) -> Subscription:
        """
        Deliver every appointment created for ``doctor_id`` to ``on_insert``.

        Returns once the event stream is listening; every appointment
        inserted afterwards is delivered.

        Args:
            doctor_id: Doctor whose new appointments are wanted
            on_insert: Plain or async callable receiving each new appointment

        Returns:
            Subscription handle

        Raises:
            ValidationException: If ``doctor_id`` is empty
        """
        if not doctor_id or not doctor_id.strip():
            raise ValidationException("doctor_id must not be empty")

        subscription = Subscription(self, doctor_id, on_insert)
        loop = asyncio.get_running_loop()
        listening: asyncio.Future[None] = loop.create_future()

        with self._lock:
            self._subscriptions[subscription.id] = subscription
            subscription._task = loop.create_task(
                self._consume(subscription, listening),
                name=f"appointments-doctor-{doctor_id}",
            )

        try:
            await listening
        except BaseException:
            subscription._active = False
            with self._lock:
                self._subscriptions.pop(subscription.id, None)
            subscription._task.cancel()
            raise

        logger.info("subscription_created", subscription_id=subscription.id, doctor_id=doctor_id)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> bool:
        """
        Release a subscription.

        A delivery already running completes; nothing is delivered afterwards.

        Returns:
            True if the subscription was live
        """
        subscription._active = False
        with self._lock:
            registered = self._subscriptions.pop(subscription.id, None)

        if registered is None:
            return False

        task = subscription._task
        # A consumer mid-delivery exits on its own once the callback returns
        if task is not None and not task.done() and not subscription._delivering:
            task.get_loop().call_soon_threadsafe(task.cancel)

        logger.info(
            "subscription_released",
            subscription_id=subscription.id,
            doctor_id=subscription.doctor_id,
            delivered=subscription.delivered,
        )
        return True

    async def close(self) -> None:
        """Release every subscription and wait for their consumers to stop."""
        with self._lock:
            subscriptions = list(self._subscriptions.values())
            self._subscriptions.clear()

        tasks = []
        for subscription in subscriptions:
            subscription._active = False
            if subscription._task is not None:
                subscription._task.cancel()
                tasks.append(subscription._task)

        await asyncio.gather(*tasks, return_exceptions=True)

    async def _consume(self, subscription: Subscription, listening: asyncio.Future[None]) -> None:
        stream: AsyncGenerator[dict[str, Any], None] | None = None
        try:
            stream = await self.event_stream.open(
                self.table, self.filter_column, subscription.doctor_id
            )
            if not listening.done():
                listening.set_result(None)

            async for record in stream:
                if not subscription.active:
                    break
                # Streams may filter server-side, the assignment is checked again here
                if str(record.get(self.filter_column)) != subscription.doctor_id:
                    continue
                await self._deliver(subscription, record)
                if not subscription.active:
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not listening.done():
                # Reported to the subscriber by subscribe()
                listening.set_exception(e)
                return
            logger.error(
                "subscription_stream_failed",
                subscription_id=subscription.id,
                doctor_id=subscription.doctor_id,
                error=str(e),
            )
        finally:
            if not listening.done():
                listening.cancel()
            if stream is not None:
                await stream.aclose()
            subscription._active = False
            with self._lock:
                self._subscriptions.pop(subscription.id, None)

    async def _deliver(self, subscription: Subscription, record: dict[str, Any]) -> None:
        subscription._delivering = True
        try:
            appointment = normalize_appointment(record, "base", self.tz)
            result = subscription.callback(appointment)
            if inspect.isawaitable(result):
                await result
            subscription.delivered += 1
        except StructuralException as e:
            logger.warning(
                "insert_event_malformed",
                subscription_id=subscription.id,
                field=e.field,
                error=e.message,
            )
        except Exception as e:
            logger.error(
                "subscription_callback_failed",
                subscription_id=subscription.id,
                doctor_id=subscription.doctor_id,
                error=str(e),
            )
        finally:
            subscription._delivering = False
