"""
In-memory bookings repository.

In production, this would be the bookings table with a unique index on
(table, date) over active bookings. The store enforces the same rule, so
two chats racing for one table cannot both insert a booking.
"""

import logging
from datetime import date
from typing import Optional

from booking_bot.schemas.entities import Booking, BookingStatus, BookingWithVenueName
from booking_bot.tools.venues import InMemoryVenuesRepo

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = frozenset({BookingStatus.NEW, BookingStatus.PENDING, BookingStatus.CONFIRMED})


class BookingConflictError(Exception):
    """Raised when the table already has an active booking on that date."""

    def __init__(self, table_id: int, on_date: date) -> None:
        super().__init__(f"Table {table_id} is already booked on {on_date.isoformat()}")
        self.table_id = table_id
        self.on_date = on_date


class InMemoryBookingsRepo:
    def __init__(self, venues: InMemoryVenuesRepo) -> None:
        self._venues = venues
        self._bookings: dict[int, Booking] = {}
        self._next_id = 1

    def _conflicts(self, table_id: int, on_date: date) -> bool:
        return any(
            b.table_id == table_id and b.booking_date == on_date and b.status in ACTIVE_STATUSES
            for b in self._bookings.values()
        )

    async def _with_venue_name(self, booking: Booking) -> BookingWithVenueName:
        venue = await self._venues.find_by_id(booking.venue_id)
        return BookingWithVenueName(
            booking=booking, venue_name=venue.name if venue else f"#{booking.venue_id}"
        )

    async def is_table_available(self, table_id: int, on_date: date) -> bool:
        return not self._conflicts(table_id, on_date)

    async def create(self, booking: Booking) -> Booking:
        """Store a booking and assign its id.

        Raises:
            BookingConflictError: the table is already taken on that date.
        """
        if self._conflicts(booking.table_id, booking.booking_date):
            raise BookingConflictError(booking.table_id, booking.booking_date)
        stored = booking.model_copy(update={"id": self._next_id})
        self._bookings[stored.id] = stored
        self._next_id += 1
        logger.info(
            "Booking created: #%d table=%d on %s for %s",
            stored.id, stored.table_id, stored.booking_date, stored.guest_name,
        )
        return stored

    async def find_by_id(self, booking_id: int) -> Optional[BookingWithVenueName]:
        booking = self._bookings.get(booking_id)
        if booking is None:
            return None
        return await self._with_venue_name(booking)

    async def list_by_user(self, user_id: int) -> list[BookingWithVenueName]:
        """Active bookings of a user, earliest first."""
        bookings = sorted(
            (b for b in self._bookings.values()
             if b.user_id == user_id and b.status in ACTIVE_STATUSES),
            key=lambda b: b.date_start,
        )
        return [await self._with_venue_name(b) for b in bookings]

    async def cancel(self, booking_id: int, user_id: int) -> bool:
        booking = self._bookings.get(booking_id)
        if booking is None or booking.user_id != user_id:
            return False
        if booking.status == BookingStatus.CANCELLED:
            return False
        self._bookings[booking_id] = booking.model_copy(update={"status": BookingStatus.CANCELLED})
        logger.info("Booking cancelled: #%d", booking_id)
        return True

    async def update_status(self, booking_id: int, status: BookingStatus) -> bool:
        booking = self._bookings.get(booking_id)
        if booking is None:
            return False
        self._bookings[booking_id] = booking.model_copy(update={"status": status})
        return True

    async def add_feedback(
        self, booking_id: int, user_id: int, rating: int, comment: Optional[str] = None
    ) -> bool:
        booking = self._bookings.get(booking_id)
        if booking is None or booking.user_id != user_id:
            return False
        self._bookings[booking_id] = booking.model_copy(
            update={"feedback_rating": rating, "feedback_comment": comment}
        )
        logger.info("Feedback for booking #%d: %d", booking_id, rating)
        return True

    def all(self) -> list[Booking]:
        return list(self._bookings.values())
