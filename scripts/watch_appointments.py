#!/usr/bin/env python3
"""
Print appointments created for a doctor as they arrive.

Usage:
    python scripts/watch_appointments.py <doctor_id>
    python scripts/watch_appointments.py <doctor_id> --timeout 60

Environment Variables:
    REDIS_HOST / REDIS_PORT: Redis server carrying insert events
"""

import argparse
import asyncio
import contextlib
import json

from app.core.redis_client import close_redis_connection
from app.dependencies import get_display_timezone, get_event_stream
from app.middleware.logging import configure_logging
from app.schemas.appointments import Appointment
from app.services.change_notifier import ChangeNotifier


def print_appointment(appointment: Appointment) -> None:
    """Print one appointment as a JSON line."""
    print(json.dumps(appointment.model_dump(mode="json")), flush=True)


async def watch(doctor_id: str, timeout: float | None) -> None:
    """Subscribe to a doctor's new appointments until interrupted or timed out."""
    notifier = ChangeNotifier(get_event_stream(), tz=get_display_timezone())
    subscription = await notifier.subscribe(doctor_id, print_appointment)
    print(f"Watching appointments for doctor {doctor_id}...")

    try:
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(asyncio.Event().wait(), timeout)
    finally:
        subscription.unsubscribe()
        await notifier.close()
        await close_redis_connection()
        print(f"✓ Delivered {subscription.delivered} appointment(s)")


def main() -> None:
    """Parse arguments and start watching."""
    parser = argparse.ArgumentParser(description="Watch new appointments for a doctor")
    parser.add_argument("doctor_id", help="Doctor ID to watch")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until interrupted)",
    )
    args = parser.parse_args()

    configure_logging()
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(watch(args.doctor_id, args.timeout))


if __name__ == "__main__":
    main()
