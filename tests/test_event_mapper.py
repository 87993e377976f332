"""Tests for mapping raw updates to booking events."""

from datetime import date, datetime, timezone

import pytest

from booking_bot.conversation import callbacks
from booking_bot.conversation.event_mapper import EventMapper, _command_token
from booking_bot.conversation.events import (
    BackPressedEvent,
    CalendarMonthChangeEvent,
    CancelActionEvent,
    ChangeBookingEvent,
    ChangeLanguageCommandEvent,
    ClubChosenEvent,
    ConfirmBookingEvent,
    DateChosenEvent,
    GuestNameEnteredEvent,
    GuestPhoneEnteredEvent,
    HelpCommandEvent,
    LanguageSelectedEvent,
    MainMenuAction,
    MainMenuActionEvent,
    PeopleEnteredEvent,
    QuestionEnteredEvent,
    RateBookingEvent,
    SlotChosenEvent,
    StartCommandEvent,
    TableChosenEvent,
    VenuePhotosRequestedEvent,
    VenuePostersRequestedEvent,
)
from booking_bot.conversation.states import BookingState
from booking_bot.prompts.locale import ENGLISH, RUSSIAN
from booking_bot.schemas.update_schema import Update
from booking_bot.tools.venues import InMemoryVenuesRepo
from tests.conftest import callback_update, evening_slot, text_update

S = BookingState


@pytest.fixture
def mapper():
    return EventMapper(InMemoryVenuesRepo())


async def map_text(mapper, text, state=S.MAIN_MENU, strings=RUSSIAN):
    return await mapper.map(text_update(text, message_id=3), state, strings)


async def map_callback(mapper, data, state=S.MAIN_MENU):
    return await mapper.map(callback_update(data, message_id=3), state, RUSSIAN)


class TestCommands:
    def test_command_token_strips_bot_suffix(self):
        assert _command_token("/START@club_bot now") == "/start"

    def test_plain_text_is_not_a_command(self):
        assert _command_token("start") is None

    @pytest.mark.asyncio
    async def test_start_carries_user_details(self, mapper):
        event = await map_text(mapper, "/start")
        assert isinstance(event, StartCommandEvent)
        assert event.user_name == "ivan"
        assert event.language_code == "ru"
        assert event.message_id == 3

    @pytest.mark.asyncio
    async def test_help_and_lang(self, mapper):
        assert isinstance(await map_text(mapper, "/help"), HelpCommandEvent)
        assert isinstance(await map_text(mapper, "/lang"), ChangeLanguageCommandEvent)

    @pytest.mark.asyncio
    async def test_unknown_command_maps_to_nothing(self, mapper):
        assert await map_text(mapper, "/pay", state=S.ENTER_GUEST_NAME) is None

    @pytest.mark.asyncio
    async def test_command_wins_over_free_text_state(self, mapper):
        event = await map_text(mapper, "/start", state=S.ENTER_GUEST_NAME)
        assert isinstance(event, StartCommandEvent)


class TestMenuLabels:
    @pytest.mark.asyncio
    async def test_russian_label(self, mapper):
        event = await map_text(mapper, "Мои бронирования")
        assert isinstance(event, MainMenuActionEvent)
        assert event.action == MainMenuAction.MY_BOOKINGS

    @pytest.mark.asyncio
    async def test_label_matched_in_user_language_only(self, mapper):
        assert await map_text(mapper, "My Bookings", strings=RUSSIAN) is None
        event = await map_text(mapper, "My Bookings", strings=ENGLISH)
        assert event.action == MainMenuAction.MY_BOOKINGS

    @pytest.mark.asyncio
    async def test_book_at_venue_label(self, mapper):
        event = await map_text(mapper, "Бронь в Mix Lounge")
        assert isinstance(event, ClubChosenEvent)
        assert event.club_id == 7

    @pytest.mark.asyncio
    async def test_inactive_venue_label_not_recognized(self, mapper):
        assert await map_text(mapper, "Бронь в Closed Club") is None

    @pytest.mark.asyncio
    async def test_menu_label_wins_in_text_state(self, mapper):
        event = await map_text(mapper, "Задать вопрос", state=S.ENTER_GUEST_NAME)
        assert isinstance(event, MainMenuActionEvent)


class TestStateText:
    @pytest.mark.asyncio
    async def test_people_count(self, mapper):
        event = await map_text(mapper, " 5 ", state=S.ENTER_PEOPLE)
        assert isinstance(event, PeopleEnteredEvent)
        assert event.count == 5

    @pytest.mark.asyncio
    async def test_non_numeric_people_count(self, mapper):
        event = await map_text(mapper, "five", state=S.ENTER_PEOPLE)
        assert isinstance(event, PeopleEnteredEvent)
        assert event.count is None
        assert event.text == "five"

    @pytest.mark.asyncio
    async def test_name_phone_question(self, mapper):
        assert isinstance(await map_text(mapper, "Ivan", state=S.ENTER_GUEST_NAME), GuestNameEnteredEvent)
        assert isinstance(await map_text(mapper, "+7912", state=S.ENTER_GUEST_PHONE), GuestPhoneEnteredEvent)
        event = await map_text(mapper, "Is there parking?", state=S.ASK_QUESTION)
        assert isinstance(event, QuestionEnteredEvent)
        assert event.question == "Is there parking?"

    @pytest.mark.asyncio
    async def test_free_text_elsewhere_maps_to_nothing(self, mapper):
        assert await map_text(mapper, "hello", state=S.CHOOSE_DATE) is None


class TestCallbacks:
    @pytest.mark.asyncio
    async def test_menu_button(self, mapper):
        event = await map_callback(mapper, callbacks.MAIN_MENU_VENUE_INFO)
        assert event.action == MainMenuAction.SHOW_VENUE_INFO

    @pytest.mark.asyncio
    async def test_confirm_and_cancel(self, mapper):
        assert isinstance(await map_callback(mapper, callbacks.CONFIRM_BOOKING), ConfirmBookingEvent)
        assert isinstance(await map_callback(mapper, callbacks.CANCEL_ACTION), CancelActionEvent)

    @pytest.mark.asyncio
    async def test_ids_and_dates(self, mapper):
        assert (await map_callback(mapper, "book_club:7")).club_id == 7
        assert (await map_callback(mapper, "table:42")).table_id == 42
        event = await map_callback(mapper, "cal_date:2025-03-10")
        assert isinstance(event, DateChosenEvent)
        assert event.date == date(2025, 3, 10)

    @pytest.mark.asyncio
    async def test_language(self, mapper):
        event = await map_callback(mapper, "select_lang:EN")
        assert isinstance(event, LanguageSelectedEvent)
        assert event.language_code == "en"

    @pytest.mark.asyncio
    async def test_calendar_month(self, mapper):
        event = await map_callback(mapper, callbacks.calendar_month("next", 2025, 4))
        assert isinstance(event, CalendarMonthChangeEvent)
        assert (event.year, event.month) == (2025, 4)

    @pytest.mark.asyncio
    async def test_slot_round_trips_instants(self, mapper):
        start, end = evening_slot()
        event = await map_callback(mapper, callbacks.choose_slot(start, end))
        assert isinstance(event, SlotChosenEvent)
        assert event.start == start
        assert event.end == end
        assert event.start.tzinfo == timezone.utc

    @pytest.mark.asyncio
    async def test_back(self, mapper):
        event = await map_callback(mapper, "back_to:choose_date")
        assert isinstance(event, BackPressedEvent)
        assert event.target_state == "choose_date"

    @pytest.mark.asyncio
    async def test_rating_with_and_without_score(self, mapper):
        event = await map_callback(mapper, "rate_bk:12")
        assert isinstance(event, RateBookingEvent)
        assert (event.booking_id, event.rating) == (12, None)
        assert (await map_callback(mapper, "rate_bk:12:4")).rating == 4

    @pytest.mark.asyncio
    async def test_venue_media_and_change_buttons(self, mapper):
        posters = await map_callback(mapper, callbacks.venue_posters(7))
        photos = await map_callback(mapper, callbacks.venue_photos(8))
        change = await map_callback(mapper, callbacks.change_booking(3))
        assert isinstance(posters, VenuePostersRequestedEvent)
        assert posters.venue_id == 7
        assert isinstance(photos, VenuePhotosRequestedEvent)
        assert photos.venue_id == 8
        assert isinstance(change, ChangeBookingEvent)
        assert change.booking_id == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", [
        "book_club:abc",
        "book_club:0",
        "table:-3",
        "cal_date:2025-13-01",
        "cal_month:next_2025-13",
        "slot:100",
        "slot:200:100",
        "slot:a:b",
        "rate_bk:1:x",
        "rate_bk:1:2:3",
        "back_to:",
        "select_lang:e1",
    ])
    async def test_malformed_payload_is_dropped(self, mapper, data):
        assert await map_callback(mapper, data) is None

    @pytest.mark.asyncio
    async def test_unknown_callback_is_dropped(self, mapper):
        assert await map_callback(mapper, "something_else") is None


class TestMissingIdentity:
    @pytest.mark.asyncio
    async def test_update_without_chat_is_dropped(self, mapper):
        update = Update(user_id=1, text="/start")
        assert await mapper.map(update, S.MAIN_MENU, RUSSIAN) is None

    @pytest.mark.asyncio
    async def test_empty_update(self, mapper):
        update = Update(chat_id=1, user_id=1)
        assert await mapper.map(update, S.MAIN_MENU, RUSSIAN) is None

    def test_slot_payload_uses_epoch_seconds(self):
        start = datetime(2025, 3, 10, 17, 0, tzinfo=timezone.utc)
        end = datetime(2025, 3, 10, 19, 0, tzinfo=timezone.utc)
        assert callbacks.choose_slot(start, end) == f"slot:{int(start.timestamp())}:{int(end.timestamp())}"
