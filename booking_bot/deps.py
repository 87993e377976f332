"""
Contracts of the external collaborators consumed by the state machine.

The chat facade, the repositories and the clock are injected through
``BookingDeps``. Production implementations (Telegram adapter, SQL
repositories) live outside this package; ``booking_bot.tools`` provides
in-memory ones for the console demo and the tests.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Optional, Protocol

from booking_bot.prompts.locale import LocalizedStrings
from booking_bot.schemas.entities import (
    Booking,
    BookingStatus,
    BookingWithVenueName,
    TableInfo,
    User,
    Venue,
)

Step = Optional[tuple[int, int]]
Slot = tuple[datetime, datetime]


class ChatFacade(Protocol):
    """Renders prompts to one chat.

    Every call is best-effort: delivery failures are logged by the
    implementation and never raised into the state machine. When
    ``message_id`` is given the implementation may edit that message in
    place instead of sending a new one.
    """

    async def send_welcome(self, chat_id: int, user_name: Optional[str], strings: LocalizedStrings, venues: list[Venue], message_id: Optional[int] = None) -> None: ...
    async def send_language_selection(self, chat_id: int, strings: LocalizedStrings, languages: list[str], message_id: Optional[int] = None) -> None: ...
    async def send_help(self, chat_id: int, strings: LocalizedStrings, venues: list[Venue], message_id: Optional[int] = None) -> None: ...

    async def send_choose_club(self, chat_id: int, venues: list[Venue], strings: LocalizedStrings, message_id: Optional[int] = None, step: Step = None) -> None: ...
    async def send_calendar(self, chat_id: int, year: int, month: int, strings: LocalizedStrings, message_id: Optional[int] = None, step: Step = None) -> None: ...
    async def send_choose_table(self, chat_id: int, tables: list[TableInfo], venue: Venue, selected_date: date, strings: LocalizedStrings, message_id: Optional[int] = None, step: Step = None) -> None: ...
    async def ask_people_count(self, chat_id: int, strings: LocalizedStrings, max_guests: int, message_id: Optional[int] = None, step: Step = None) -> None: ...
    async def send_choose_slot(self, chat_id: int, venue: Venue, table: TableInfo, slots: list[Slot], strings: LocalizedStrings, message_id: Optional[int] = None, step: Step = None) -> None: ...
    async def ask_guest_name(self, chat_id: int, strings: LocalizedStrings, message_id: Optional[int] = None, step: Step = None) -> None: ...
    async def ask_guest_phone(self, chat_id: int, strings: LocalizedStrings, message_id: Optional[int] = None, step: Step = None) -> None: ...
    async def send_confirm(self, chat_id: int, summary: str, strings: LocalizedStrings, message_id: Optional[int] = None, step: Step = None) -> None: ...
    async def send_booking_success(self, chat_id: int, booking: Booking, strings: LocalizedStrings, venues: list[Venue], message_id: Optional[int] = None) -> None: ...
    async def send_action_cancelled(self, chat_id: int, strings: LocalizedStrings, venues: list[Venue], message_id: Optional[int] = None) -> None: ...

    async def send_venue_selection(self, chat_id: int, venues: list[Venue], strings: LocalizedStrings, message_id: Optional[int] = None) -> None: ...
    async def send_venue_details(self, chat_id: int, venue: Venue, strings: LocalizedStrings, message_id: Optional[int] = None) -> None: ...
    async def send_my_bookings(self, chat_id: int, bookings: list[BookingWithVenueName], strings: LocalizedStrings, message_id: Optional[int] = None) -> None: ...
    async def send_manage_booking(self, chat_id: int, booking: BookingWithVenueName, strings: LocalizedStrings, message_id: Optional[int] = None) -> None: ...
    async def send_booking_cancelled(self, chat_id: int, booking: BookingWithVenueName, strings: LocalizedStrings, venues: list[Venue], message_id: Optional[int] = None) -> None: ...
    async def ask_feedback(self, chat_id: int, booking: BookingWithVenueName, strings: LocalizedStrings, message_id: Optional[int] = None) -> None: ...
    async def send_feedback_thanks(self, chat_id: int, rating: int, points: int, strings: LocalizedStrings, venues: list[Venue], message_id: Optional[int] = None) -> None: ...
    async def send_ask_question(self, chat_id: int, strings: LocalizedStrings, message_id: Optional[int] = None) -> None: ...
    async def send_question_received(self, chat_id: int, strings: LocalizedStrings, venues: list[Venue], message_id: Optional[int] = None) -> None: ...

    async def send_error(self, chat_id: int, strings: LocalizedStrings, text: str, venues: list[Venue], message_id: Optional[int] = None) -> None: ...
    async def send_info(self, chat_id: int, strings: LocalizedStrings, text: str, message_id: Optional[int] = None) -> None: ...
    async def send_unknown_input(self, chat_id: int, strings: LocalizedStrings, venues: list[Venue], message_id: Optional[int] = None) -> None: ...


class UsersRepo(Protocol):
    async def get_or_create(self, telegram_id: int, user_name: Optional[str], language_code: str) -> User: ...
    async def update_language(self, user_id: int, language_code: str) -> Optional[User]: ...
    async def add_loyalty_points(self, user_id: int, points: int) -> Optional[User]: ...


class VenuesRepo(Protocol):
    async def list_active(self) -> list[Venue]: ...
    async def find_by_id(self, venue_id: int) -> Optional[Venue]: ...


class TablesRepo(Protocol):
    async def list_available(self, venue_id: int, on_date: date) -> list[TableInfo]: ...
    async def find_by_id(self, table_id: int) -> Optional[TableInfo]: ...


class BookingsRepo(Protocol):
    async def create(self, booking: Booking) -> Booking: ...
    async def find_by_id(self, booking_id: int) -> Optional[BookingWithVenueName]: ...
    async def list_by_user(self, user_id: int) -> list[BookingWithVenueName]: ...
    async def cancel(self, booking_id: int, user_id: int) -> bool: ...
    async def update_status(self, booking_id: int, status: BookingStatus) -> bool: ...
    async def add_feedback(self, booking_id: int, user_id: int, rating: int, comment: Optional[str] = None) -> bool: ...
    async def is_table_available(self, table_id: int, on_date: date) -> bool: ...


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BookingDeps:
    """Everything the actions talk to."""

    bot: ChatFacade
    users: UsersRepo
    venues: VenuesRepo
    tables: TablesRepo
    bookings: BookingsRepo
    clock: Callable[[], datetime] = field(default=utc_now)
