"""Shared test fixtures and helpers."""

import asyncio
from datetime import date, datetime, timezone
from typing import Optional

import pytest

from booking_bot.conversation import callbacks
from booking_bot.conversation.draft import DraftBooking
from booking_bot.conversation.session_registry import Session, SessionRegistry
from booking_bot.conversation.state_machine import BookingStateMachine
from booking_bot.conversation.states import BookingState
from booking_bot.deps import BookingDeps
from booking_bot.schemas.entities import User
from booking_bot.schemas.update_schema import Update
from booking_bot.tools.availability import generate_slots
from booking_bot.tools.bookings import InMemoryBookingsRepo
from booking_bot.tools.tables import InMemoryTablesRepo
from booking_bot.tools.users import InMemoryUsersRepo
from booking_bot.tools.venues import InMemoryVenuesRepo

CHAT_ID = 100
TELEGRAM_USER_ID = 500

# 12:00 in Moscow, where the demo venues are
FIXED_NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)
BOOKING_DATE = date(2025, 3, 10)
VENUE_ID = 7
TABLE_ID = 42


class RecordingFacade:
    """Chat facade that records every call as (method, chat_id, args)."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, int, tuple]] = []

    def __getattr__(self, name: str):
        if name.startswith("_"):
            raise AttributeError(name)

        async def record(chat_id, *args, **kwargs):
            self.calls.append((name, chat_id, args + tuple(kwargs.values())))
            await asyncio.sleep(0)

        return record

    def names(self, chat_id: Optional[int] = None) -> list[str]:
        return [name for name, chat, _ in self.calls if chat_id is None or chat == chat_id]

    def sent(self, name: str) -> list[tuple]:
        return [args for method, _, args in self.calls if method == name]

    def infos(self) -> list[str]:
        # send_info(chat_id, strings, text, message_id)
        return [args[1] for args in self.sent("send_info")]

    def errors(self) -> list[str]:
        # send_error(chat_id, strings, text, venues, message_id)
        return [args[1] for args in self.sent("send_error")]

    def clear(self) -> None:
        self.calls.clear()


@pytest.fixture
def bot():
    return RecordingFacade()


@pytest.fixture
def deps(bot):
    venues = InMemoryVenuesRepo()
    bookings = InMemoryBookingsRepo(venues)
    return BookingDeps(
        bot=bot,
        users=InMemoryUsersRepo(),
        venues=venues,
        tables=InMemoryTablesRepo(bookings),
        bookings=bookings,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def machine(deps):
    return BookingStateMachine(deps)


@pytest.fixture
def registry(deps):
    return SessionRegistry(deps, idle_timeout_sec=0)


@pytest.fixture
def user():
    return User(id=1, telegram_id=TELEGRAM_USER_ID, user_name="ivan", language_code="ru")


def make_session(
    user: User,
    state: BookingState = BookingState.MAIN_MENU,
    draft: Optional[DraftBooking] = None,
) -> Session:
    """Helper to create a Session already past the entry state."""
    return Session(
        chat_id=CHAT_ID,
        user_id=user.telegram_id,
        state=state,
        draft=draft or DraftBooking(user=user, language_code="ru"),
    )


def text_update(text: str, chat_id: int = CHAT_ID, message_id: Optional[int] = None) -> Update:
    return Update(
        chat_id=chat_id,
        user_id=TELEGRAM_USER_ID + chat_id,
        user_name="ivan",
        language_code="ru",
        message_id=message_id,
        text=text,
    )


def callback_update(data: str, chat_id: int = CHAT_ID, message_id: Optional[int] = None) -> Update:
    return Update(
        chat_id=chat_id,
        user_id=TELEGRAM_USER_ID + chat_id,
        user_name="ivan",
        language_code="ru",
        message_id=message_id,
        callback_data=data,
    )


def evening_slot() -> tuple[datetime, datetime]:
    """The 20:00-22:00 slot on the booking date."""
    return generate_slots(BOOKING_DATE, "Europe/Moscow")[1]


def booking_updates(chat_id: int = CHAT_ID) -> list[Update]:
    """Updates taking a fresh chat from /start to the confirmation prompt."""
    return [
        text_update("/start", chat_id),
        callback_update(callbacks.book_club(VENUE_ID), chat_id),
        callback_update(callbacks.choose_date(BOOKING_DATE), chat_id),
        callback_update(callbacks.choose_table(TABLE_ID), chat_id),
        text_update("4", chat_id),
        callback_update(callbacks.choose_slot(*evening_slot()), chat_id),
        text_update("Ivan", chat_id),
        text_update("+79123456789", chat_id),
    ]


async def feed(registry: SessionRegistry, updates: list[Update]) -> list:
    """Handle updates one after another, returning the engine results."""
    return [await registry.handle(update) for update in updates]
