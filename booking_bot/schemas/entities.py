"""Venue, table, user and booking records exchanged with the repositories."""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Venue(BaseModel):
    """A club that accepts table bookings."""
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    address: str = ""
    timezone: str = "Europe/Moscow"
    is_active: bool = True
    description: Optional[str] = None
    working_hours: Optional[str] = None
    phone: Optional[str] = None


class TableInfo(BaseModel):
    """A bookable table inside a venue."""
    model_config = ConfigDict(frozen=True)

    id: int
    venue_id: int
    number: int
    seats: int
    label: Optional[str] = None
    is_active: bool = True


class User(BaseModel):
    """Chat user known to the bot."""
    model_config = ConfigDict(frozen=True)

    id: int
    telegram_id: int
    user_name: Optional[str] = None
    phone: Optional[str] = None
    language_code: str = "ru"
    loyalty_points: int = 0


class BookingStatus(str, Enum):
    NEW = "new"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class Booking(BaseModel):
    """Booking record. ``id`` is 0 until the repository assigns one."""
    model_config = ConfigDict(frozen=True)

    id: int = 0
    venue_id: int
    table_id: int
    user_id: int
    guests_count: int
    date_start: datetime
    date_end: datetime
    status: BookingStatus = BookingStatus.NEW
    guest_name: str
    guest_phone: str
    comment: Optional[str] = None
    loyalty_points_earned: int = 0
    feedback_rating: Optional[int] = None
    feedback_comment: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def booking_date(self) -> date:
        return self.date_start.date()


class BookingWithVenueName(BaseModel):
    """Booking joined with the display name of its venue."""
    model_config = ConfigDict(frozen=True)

    booking: Booking
    venue_name: str
