"""
Mutable per-session booking draft.

Accumulates the selections of one booking workflow pass and the data of
the secondary flows (venue info, booking management, questions). The
booking-flow fields are filled strictly in workflow order: each setter
refuses to run before the earlier steps are set, and re-selecting an
earlier step clears everything after it.

Usage:
    draft = DraftBooking(user=user)
    draft.set_venue(venue)
    draft.set_date(date(2025, 3, 10))
    draft.set_table(table)
    ok, reason = draft.set_guest_count(4, table.seats)
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional

from booking_bot.config import settings
from booking_bot.conversation.states import BOOKING_STEPS, BookingState
from booking_bot.schemas.entities import Booking, BookingStatus, TableInfo, User, Venue
from booking_bot.utils import has_control_chars, normalize_phone

logger = logging.getLogger(__name__)

# Validation thresholds
MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 50

PHONE_PATTERN = re.compile(
    r"^(\+?\d{1,4}[\s.-]?)?\(?\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{2}[\s.-]?\d{2}$"
)

# Booking-flow fields owned by each step, in workflow order
STEP_FIELDS: dict[BookingState, tuple[str, ...]] = {
    BookingState.CHOOSE_CLUB: ("venue",),
    BookingState.CHOOSE_DATE: ("date",),
    BookingState.CHOOSE_TABLE: ("table",),
    BookingState.ENTER_PEOPLE: ("guests",),
    BookingState.CHOOSE_SLOT: ("slot_start", "slot_end"),
    BookingState.ENTER_GUEST_NAME: ("guest_name",),
    BookingState.ENTER_GUEST_PHONE: ("guest_phone",),
    BookingState.CONFIRM_BOOKING: (),
}

BOOKING_FIELDS: tuple[str, ...] = tuple(
    name for step in BOOKING_STEPS for name in STEP_FIELDS[step]
)

FLOW_FIELDS: tuple[str, ...] = (
    "venue_for_info",
    "booking_to_manage_id",
    "question",
    "booking_to_rate_id",
)


class DraftSequenceError(ValueError):
    """Raised when a booking field is set before the steps preceding it."""


@dataclass
class DraftBooking:
    """Per-session record of booking selections and flow data."""

    # Context
    user: Optional[User] = None
    language_code: str = settings.locale.default_language
    message_id: Optional[int] = None

    # Booking flow
    venue: Optional[Venue] = None
    date: Optional[date] = None
    table: Optional[TableInfo] = None
    guests: Optional[int] = None
    slot_start: Optional[datetime] = None
    slot_end: Optional[datetime] = None
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None

    # Secondary flows
    venue_for_info: Optional[Venue] = None
    booking_to_manage_id: Optional[int] = None
    question: Optional[str] = None
    booking_to_rate_id: Optional[int] = None

    @property
    def venue_id(self) -> Optional[int]:
        return self.venue.id if self.venue else None

    @property
    def table_id(self) -> Optional[int]:
        return self.table.id if self.table else None

    # ------------------------------------------------------------------ #
    # Ordered setters
    # ------------------------------------------------------------------ #

    def _require_before(self, step: BookingState) -> None:
        for earlier in BOOKING_STEPS[: BOOKING_STEPS.index(step)]:
            for name in STEP_FIELDS[earlier]:
                if getattr(self, name) is None:
                    raise DraftSequenceError(
                        f"Cannot set {step.value} data before '{name}' is set"
                    )

    def _set_step(self, step: BookingState, **values) -> None:
        self._require_before(step)
        self.clear_from_step(step)
        for name, value in values.items():
            setattr(self, name, value)

    def set_venue(self, venue: Venue) -> None:
        self._set_step(BookingState.CHOOSE_CLUB, venue=venue)

    def set_date(self, value: date) -> None:
        self._set_step(BookingState.CHOOSE_DATE, date=value)

    def set_table(self, table: TableInfo) -> None:
        self._set_step(BookingState.CHOOSE_TABLE, table=table)

    def set_slot(self, start: datetime, end: datetime) -> None:
        self._set_step(BookingState.CHOOSE_SLOT, slot_start=start, slot_end=end)

    # ------------------------------------------------------------------ #
    # Validating setters
    # ------------------------------------------------------------------ #

    def max_guests(self, table_seats: Optional[int]) -> int:
        if table_seats is None:
            return settings.booking.max_guests_default
        return table_seats + settings.booking.guest_slack

    def set_guest_count(self, count: Optional[int], table_seats: Optional[int]) -> tuple[bool, str]:
        """Validate and store the party size.

        Returns:
            (success, reason); the draft is untouched when success is False.
        """
        self._require_before(BookingState.ENTER_PEOPLE)
        min_guests = settings.booking.min_guests
        max_guests = self.max_guests(table_seats)
        if count is None or count < min_guests or count > max_guests:
            logger.debug("Guest count %r outside [%d, %d]", count, min_guests, max_guests)
            return False, f"Guest count must be between {min_guests} and {max_guests}."
        self._set_step(BookingState.ENTER_PEOPLE, guests=count)
        return True, f"Guests: {count}"

    def set_guest_name(self, name: str) -> tuple[bool, str]:
        self._require_before(BookingState.ENTER_GUEST_NAME)
        cleaned = (name or "").strip()
        if not MIN_NAME_LENGTH <= len(cleaned) <= MAX_NAME_LENGTH:
            return False, (
                f"Name must be {MIN_NAME_LENGTH}-{MAX_NAME_LENGTH} characters long."
            )
        if has_control_chars(cleaned):
            return False, "Name contains control characters."
        self._set_step(BookingState.ENTER_GUEST_NAME, guest_name=cleaned)
        return True, f"Guest name: {cleaned}"

    def set_guest_phone(self, phone: str) -> tuple[bool, str]:
        self._require_before(BookingState.ENTER_GUEST_PHONE)
        raw = (phone or "").strip()
        if not PHONE_PATTERN.match(raw):
            return False, f"Phone '{raw}' does not look like a phone number."
        normalized = normalize_phone(raw)
        self._set_step(BookingState.ENTER_GUEST_PHONE, guest_phone=normalized)
        return True, f"Guest phone: {normalized}"

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def missing_fields(self) -> list[str]:
        missing = [name for name in BOOKING_FIELDS if getattr(self, name) is None]
        if self.user is None:
            missing.append("user")
        return missing

    def to_booking_entity(self) -> Optional[Booking]:
        """Build a persistence-ready booking, or None if anything is missing."""
        if self.missing_fields():
            return None
        return Booking(
            venue_id=self.venue.id,
            table_id=self.table.id,
            user_id=self.user.id,
            guests_count=self.guests,
            date_start=self.slot_start,
            date_end=self.slot_end,
            status=BookingStatus.NEW,
            guest_name=self.guest_name,
            guest_phone=self.guest_phone,
            loyalty_points_earned=self.guests * settings.booking.points_per_guest,
            created_at=datetime.now(timezone.utc),
        )

    # ------------------------------------------------------------------ #
    # Clearing
    # ------------------------------------------------------------------ #

    def clear_from_step(self, step: BookingState) -> None:
        """Clear the fields of ``step`` and of every later booking step."""
        for later in BOOKING_STEPS[BOOKING_STEPS.index(step):]:
            for name in STEP_FIELDS[later]:
                setattr(self, name, None)

    def clear_booking_data(self) -> None:
        for name in BOOKING_FIELDS:
            setattr(self, name, None)

    def clear_flow_data(self) -> None:
        for name in FLOW_FIELDS:
            setattr(self, name, None)

    def has_booking_data(self) -> bool:
        return any(getattr(self, name) is not None for name in BOOKING_FIELDS)

    def copy(self) -> "DraftBooking":
        """Working copy for one event; field values are immutable records."""
        return copy.copy(self)
