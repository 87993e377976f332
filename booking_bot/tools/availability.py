"""
Time slot generation for a booking date.

Slots start at the configured hours and last the configured duration.
They are built in the venue's time zone, so "20:00" means 20:00 at the
club regardless of where the server runs.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from booking_bot.config import settings


def venue_zone(timezone_name: Optional[str]) -> ZoneInfo:
    """Resolve a venue time zone, falling back to the configured default."""
    try:
        return ZoneInfo(timezone_name or settings.booking.default_timezone)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo(settings.booking.default_timezone)


def generate_slots(on_date: date, timezone_name: Optional[str] = None) -> list[tuple[datetime, datetime]]:
    """Return (start, end) pairs for every configured slot on ``on_date``."""
    zone = venue_zone(timezone_name)
    duration = timedelta(hours=settings.booking.slot_duration_hours)
    slots = []
    for hour in settings.booking.slot_start_hours:
        start = datetime.combine(on_date, time(hour=hour), tzinfo=zone)
        slots.append((start, start + duration))
    return slots


def find_slot(
    on_date: date, start: datetime, end: datetime, timezone_name: Optional[str] = None
) -> Optional[tuple[datetime, datetime]]:
    """Return the generated slot matching (start, end), in the venue zone."""
    for slot_start, slot_end in generate_slots(on_date, timezone_name):
        if start == slot_start and end == slot_end:
            return slot_start, slot_end
    return None
