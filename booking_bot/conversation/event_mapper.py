"""
Translation of raw chat updates into booking events.

Text is checked for commands first, then for main-menu labels in the
user's language, then for "book at <venue>" labels, and finally read as
the free-text answer the current state expects. Button payloads are
decoded by prefix. Malformed payloads are logged and dropped.

The mapper never touches session state; the only outside read is the
list of active venues used to recognize "book at <venue>" labels.
"""

import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

from booking_bot.conversation import callbacks
from booking_bot.conversation.events import (
    BackPressedEvent,
    CalendarMonthChangeEvent,
    CancelActionEvent,
    CancelBookingEvent,
    ChangeBookingEvent,
    ChangeLanguageCommandEvent,
    ClubChosenEvent,
    ConfirmBookingEvent,
    DateChosenEvent,
    Event,
    GuestNameEnteredEvent,
    GuestPhoneEnteredEvent,
    HelpCommandEvent,
    LanguageSelectedEvent,
    MainMenuAction,
    MainMenuActionEvent,
    ManageBookingEvent,
    PeopleEnteredEvent,
    QuestionEnteredEvent,
    RateBookingEvent,
    SlotChosenEvent,
    StartCommandEvent,
    TableChosenEvent,
    VenueChosenForInfoEvent,
    VenuePhotosRequestedEvent,
    VenuePostersRequestedEvent,
)
from booking_bot.conversation.states import BookingState
from booking_bot.deps import VenuesRepo
from booking_bot.prompts.locale import COMMAND_HELP, COMMAND_LANG, COMMAND_START, LocalizedStrings
from booking_bot.schemas.update_schema import Update

logger = logging.getLogger(__name__)

MENU_CALLBACKS: dict[str, MainMenuAction] = {
    callbacks.MAIN_MENU_VENUE_INFO: MainMenuAction.SHOW_VENUE_INFO,
    callbacks.MAIN_MENU_MY_BOOKINGS: MainMenuAction.MY_BOOKINGS,
    callbacks.MAIN_MENU_BOOK_TABLE: MainMenuAction.BOOK_TABLE,
    callbacks.MAIN_MENU_ASK_QUESTION: MainMenuAction.ASK_QUESTION,
    callbacks.MAIN_MENU_OPEN_APP: MainMenuAction.OPEN_APP,
    callbacks.MAIN_MENU_HELP: MainMenuAction.SHOW_HELP,
    callbacks.MAIN_MENU_CHANGE_LANG: MainMenuAction.CHANGE_LANGUAGE,
}


class MalformedPayloadError(ValueError):
    """A callback payload had the right prefix but unusable fields."""


def _parse_id(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise MalformedPayloadError(f"not an id: {raw!r}") from None
    if value <= 0:
        raise MalformedPayloadError(f"not an id: {raw!r}")
    return value


def _parse_date(raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise MalformedPayloadError(f"not a date: {raw!r}") from None


def _parse_month(raw: str) -> tuple[int, int]:
    # prev_2025-04 / next_2025-04
    _, _, year_month = raw.rpartition("_")
    try:
        year, month = (int(part) for part in year_month.split("-"))
    except ValueError:
        raise MalformedPayloadError(f"not a month: {raw!r}") from None
    if not 1 <= month <= 12:
        raise MalformedPayloadError(f"not a month: {raw!r}")
    return year, month


def _parse_epoch(raw: str) -> datetime:
    try:
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (ValueError, OverflowError, OSError):
        raise MalformedPayloadError(f"not an epoch: {raw!r}") from None


def _command_token(text: str) -> Optional[str]:
    """'/start@club_bot extra' -> '/start'; None when not a command."""
    if not text.startswith("/"):
        return None
    token = text.split(maxsplit=1)[0]
    return token.split("@", 1)[0].lower()


class EventMapper:
    """Maps one ``Update`` to zero or one ``Event``."""

    def __init__(self, venues: VenuesRepo) -> None:
        self._venues = venues

    async def map(
        self,
        update: Update,
        state: BookingState,
        strings: LocalizedStrings,
    ) -> Optional[Event]:
        if update.chat_id is None or update.user_id is None:
            return None
        if update.text is not None:
            return await self._map_text(update, state, strings)
        if update.callback_data is not None:
            return self._map_callback(update)
        return None

    # ------------------------------------------------------------------ #
    # Text
    # ------------------------------------------------------------------ #

    async def _map_text(
        self, update: Update, state: BookingState, strings: LocalizedStrings
    ) -> Optional[Event]:
        ids = self._ids(update)
        text = update.text.strip()

        command = _command_token(text)
        if command == COMMAND_START:
            return StartCommandEvent(
                **ids, user_name=update.user_name, language_code=update.language_code
            )
        if command == COMMAND_HELP:
            return HelpCommandEvent(**ids)
        if command == COMMAND_LANG:
            return ChangeLanguageCommandEvent(**ids)

        for action_value, label in strings.main_menu_labels().items():
            if text == label:
                return MainMenuActionEvent(**ids, action=MainMenuAction(action_value))

        for venue in await self._venues.list_active():
            if text == strings.menu_book_table_in_club(venue.name):
                return ClubChosenEvent(**ids, club_id=venue.id)

        if command is not None:
            return None
        if state == BookingState.ENTER_PEOPLE:
            try:
                count: Optional[int] = int(text)
            except ValueError:
                count = None
            return PeopleEnteredEvent(**ids, count=count, text=text)
        if state == BookingState.ENTER_GUEST_NAME:
            return GuestNameEnteredEvent(**ids, name=text)
        if state == BookingState.ENTER_GUEST_PHONE:
            return GuestPhoneEnteredEvent(**ids, phone=text)
        if state == BookingState.ASK_QUESTION:
            return QuestionEnteredEvent(**ids, question=text)
        return None

    # ------------------------------------------------------------------ #
    # Buttons
    # ------------------------------------------------------------------ #

    def _map_callback(self, update: Update) -> Optional[Event]:
        data = update.callback_data
        ids = self._ids(update)

        if data in MENU_CALLBACKS:
            return MainMenuActionEvent(**ids, action=MENU_CALLBACKS[data])
        if data == callbacks.CONFIRM_BOOKING:
            return ConfirmBookingEvent(**ids)
        if data == callbacks.CANCEL_ACTION:
            return CancelActionEvent(**ids)

        for prefix, build in self._prefix_table():
            if data.startswith(prefix):
                try:
                    return build(ids, data[len(prefix):])
                except MalformedPayloadError as exc:
                    logger.warning("Dropping malformed callback %r: %s", data, exc)
                    return None

        logger.warning("Unknown callback data: %r", data)
        return None

    def _prefix_table(self) -> list[tuple[str, Callable[[dict, str], Event]]]:
        return [
            (callbacks.SELECT_LANG, self._language),
            (callbacks.BOOK_CLUB, lambda ids, p: ClubChosenEvent(**ids, club_id=_parse_id(p))),
            (callbacks.CHOOSE_DATE, lambda ids, p: DateChosenEvent(**ids, date=_parse_date(p))),
            (callbacks.CALENDAR_MONTH, self._month),
            (callbacks.CHOOSE_TABLE, lambda ids, p: TableChosenEvent(**ids, table_id=_parse_id(p))),
            (callbacks.CHOOSE_SLOT, self._slot),
            (callbacks.BACK_TO, self._back),
            (callbacks.VENUE_INFO, lambda ids, p: VenueChosenForInfoEvent(**ids, venue_id=_parse_id(p))),
            (callbacks.VENUE_POSTERS, lambda ids, p: VenuePostersRequestedEvent(**ids, venue_id=_parse_id(p))),
            (callbacks.VENUE_PHOTOS, lambda ids, p: VenuePhotosRequestedEvent(**ids, venue_id=_parse_id(p))),
            (callbacks.MANAGE_BOOKING, lambda ids, p: ManageBookingEvent(**ids, booking_id=_parse_id(p))),
            (callbacks.DO_CANCEL_BOOKING, lambda ids, p: CancelBookingEvent(**ids, booking_id=_parse_id(p))),
            (callbacks.DO_CHANGE_BOOKING, lambda ids, p: ChangeBookingEvent(**ids, booking_id=_parse_id(p))),
            (callbacks.RATE_BOOKING, self._rating),
        ]

    @staticmethod
    def _language(ids: dict, payload: str) -> Event:
        if not payload.isalpha():
            raise MalformedPayloadError(f"not a language code: {payload!r}")
        return LanguageSelectedEvent(**ids, language_code=payload.lower())

    @staticmethod
    def _month(ids: dict, payload: str) -> Event:
        year, month = _parse_month(payload)
        return CalendarMonthChangeEvent(**ids, year=year, month=month)

    @staticmethod
    def _slot(ids: dict, payload: str) -> Event:
        parts = payload.split(":")
        if len(parts) != 2:
            raise MalformedPayloadError(f"expected start:end, got {payload!r}")
        start, end = (_parse_epoch(part) for part in parts)
        if end <= start:
            raise MalformedPayloadError(f"slot ends before it starts: {payload!r}")
        return SlotChosenEvent(**ids, start=start, end=end)

    @staticmethod
    def _back(ids: dict, payload: str) -> Event:
        if not payload:
            raise MalformedPayloadError("empty back target")
        return BackPressedEvent(**ids, target_state=payload)

    @staticmethod
    def _rating(ids: dict, payload: str) -> Event:
        parts = payload.split(":")
        if len(parts) > 2:
            raise MalformedPayloadError(f"expected id[:rating], got {payload!r}")
        booking_id = _parse_id(parts[0])
        rating = None
        if len(parts) == 2:
            try:
                rating = int(parts[1])
            except ValueError:
                raise MalformedPayloadError(f"not a rating: {parts[1]!r}") from None
        return RateBookingEvent(**ids, booking_id=booking_id, rating=rating)

    @staticmethod
    def _ids(update: Update) -> dict:
        return {
            "chat_id": update.chat_id,
            "user_id": update.user_id,
            "message_id": update.message_id,
        }
