"""Tests for the booking state machine."""

from datetime import date

import pytest

from booking_bot.conversation.draft import DraftBooking
from booking_bot.conversation.events import (
    BackPressedEvent,
    CancelActionEvent,
    ClubChosenEvent,
    ConfirmBookingEvent,
    DateChosenEvent,
    ErrorOccurredEvent,
    EventType,
    GuestNameEnteredEvent,
    HelpCommandEvent,
    MainMenuAction,
    MainMenuActionEvent,
    ManageBookingEvent,
    PeopleEnteredEvent,
    RateBookingEvent,
    StartCommandEvent,
    TableChosenEvent,
    UnknownInputEvent,
)
from booking_bot.conversation.state_machine import (
    ENTRY_HOOKS,
    TRANSITIONS,
    BookingStateMachine,
    EntryRedirectLoopError,
    Transition,
)
from booking_bot.conversation.states import TERMINAL_STATES, BookingState
from booking_bot.tools.tables import DEMO_TABLES
from booking_bot.tools.venues import DEMO_VENUES
from tests.conftest import BOOKING_DATE, CHAT_ID, evening_slot, make_session

S = BookingState
IDS = {"chat_id": CHAT_ID, "user_id": 500}

MIX_LOUNGE = DEMO_VENUES[0]
TABLE_42 = DEMO_TABLES[1]


def filled_draft(user, upto: BookingState) -> DraftBooking:
    """Draft holding every booking field before ``upto``."""
    draft = DraftBooking(user=user, language_code="ru")
    steps = [
        (S.CHOOSE_CLUB, lambda: draft.set_venue(MIX_LOUNGE)),
        (S.CHOOSE_DATE, lambda: draft.set_date(BOOKING_DATE)),
        (S.CHOOSE_TABLE, lambda: draft.set_table(TABLE_42)),
        (S.ENTER_PEOPLE, lambda: draft.set_guest_count(4, TABLE_42.seats)),
        (S.CHOOSE_SLOT, lambda: draft.set_slot(*evening_slot())),
        (S.ENTER_GUEST_NAME, lambda: draft.set_guest_name("Ivan")),
        (S.ENTER_GUEST_PHONE, lambda: draft.set_guest_phone("+79123456789")),
    ]
    for step, fill in steps:
        if step == upto:
            break
        fill()
    return draft


class TestTransitionTable:
    def test_every_flow_state_has_an_entry_hook(self):
        for t in TRANSITIONS:
            assert t.to_state in ENTRY_HOOKS, t.name

    def test_terminal_states_have_no_outgoing_transitions(self):
        assert not [t for t in TRANSITIONS if t.from_state in TERMINAL_STATES]

    def test_terminal_state_rejects_everything(self, machine):
        for state in TERMINAL_STATES:
            assert machine.get_valid_events(state) == []

    def test_valid_events_include_globals(self, machine):
        valid = machine.get_valid_events(S.CHOOSE_DATE)
        assert EventType.DATE_CHOSEN in valid
        assert EventType.CANCEL_ACTION in valid
        assert EventType.ERROR_OCCURRED in valid
        assert EventType.UNKNOWN_INPUT in valid


class TestStart:
    @pytest.mark.asyncio
    async def test_start_command_renders_main_menu(self, machine, bot, user):
        session = make_session(user, S.INITIAL)
        result = await machine.process_event(session, StartCommandEvent(**IDS))
        assert result.accepted
        assert session.state == S.MAIN_MENU
        assert bot.names() == ["send_welcome"]

    @pytest.mark.asyncio
    async def test_start_from_main_menu_begins_booking(self, machine, bot, user):
        session = make_session(user)
        await machine.process_event(session, StartCommandEvent(**IDS))
        assert session.state == S.CHOOSE_CLUB
        assert bot.names() == ["send_choose_club"]

    @pytest.mark.asyncio
    async def test_silent_start_does_not_render(self, machine, bot, user):
        session = make_session(user, S.INITIAL)
        result = await machine.start(session, HelpCommandEvent(**IDS))
        assert result.target == S.MAIN_MENU
        assert bot.calls == []

    @pytest.mark.asyncio
    async def test_silent_start_only_from_initial(self, machine, user):
        session = make_session(user, S.CHOOSE_CLUB)
        result = await machine.start(session, HelpCommandEvent(**IDS))
        assert not result.accepted
        assert session.state == S.CHOOSE_CLUB

    @pytest.mark.asyncio
    async def test_restart_from_booking_step(self, machine, bot, user):
        session = make_session(user, S.ENTER_PEOPLE, filled_draft(user, S.ENTER_PEOPLE))
        await machine.process_event(session, StartCommandEvent(**IDS))
        assert session.state == S.MAIN_MENU
        assert not session.draft.has_booking_data()
        assert bot.names() == ["send_welcome"]


class TestMainMenu:
    @pytest.mark.asyncio
    async def test_book_table_goes_to_choose_club(self, machine, user):
        session = make_session(user)
        event = MainMenuActionEvent(**IDS, action=MainMenuAction.BOOK_TABLE)
        result = await machine.process_event(session, event)
        assert result.target == S.CHOOSE_CLUB

    @pytest.mark.asyncio
    async def test_help_stays_in_menu(self, machine, bot, user):
        session = make_session(user)
        event = MainMenuActionEvent(**IDS, action=MainMenuAction.SHOW_HELP)
        result = await machine.process_event(session, event)
        assert result.accepted and not result.changed
        assert bot.names() == ["send_help"]

    @pytest.mark.asyncio
    async def test_open_app_reports_feature_in_development(self, machine, bot, user):
        session = make_session(user)
        event = MainMenuActionEvent(**IDS, action=MainMenuAction.OPEN_APP)
        await machine.process_event(session, event)
        assert session.state == S.MAIN_MENU
        assert len(bot.infos()) == 1

    @pytest.mark.asyncio
    async def test_quick_book_skips_club_choice(self, machine, bot, user):
        session = make_session(user)
        await machine.process_event(session, ClubChosenEvent(**IDS, club_id=7))
        assert session.state == S.CHOOSE_DATE
        assert session.draft.venue.id == 7
        assert bot.names() == ["send_calendar"]


class TestBookingSteps:
    @pytest.mark.asyncio
    async def test_inactive_club_is_rejected(self, machine, bot, user):
        session = make_session(user, S.CHOOSE_CLUB)
        result = await machine.process_event(session, ClubChosenEvent(**IDS, club_id=9))
        assert result.accepted
        assert session.state == S.CHOOSE_CLUB
        assert session.draft.venue is None
        assert bot.names() == ["send_info"]

    @pytest.mark.asyncio
    async def test_past_date_is_rejected(self, machine, user):
        session = make_session(user, S.CHOOSE_DATE, filled_draft(user, S.CHOOSE_DATE))
        await machine.process_event(session, DateChosenEvent(**IDS, date=date(2025, 2, 28)))
        assert session.state == S.CHOOSE_DATE
        assert session.draft.date is None

    @pytest.mark.asyncio
    async def test_date_beyond_horizon_is_rejected(self, machine, user):
        session = make_session(user, S.CHOOSE_DATE, filled_draft(user, S.CHOOSE_DATE))
        await machine.process_event(session, DateChosenEvent(**IDS, date=date(2026, 1, 1)))
        assert session.state == S.CHOOSE_DATE

    @pytest.mark.asyncio
    async def test_table_of_other_venue_is_rejected(self, machine, user):
        session = make_session(user, S.CHOOSE_TABLE, filled_draft(user, S.CHOOSE_TABLE))
        await machine.process_event(session, TableChosenEvent(**IDS, table_id=51))
        assert session.state == S.CHOOSE_TABLE
        assert session.draft.table is None

    @pytest.mark.asyncio
    async def test_zero_guests_keeps_people_step(self, machine, bot, user):
        session = make_session(user, S.ENTER_PEOPLE, filled_draft(user, S.ENTER_PEOPLE))
        result = await machine.process_event(session, PeopleEnteredEvent(**IDS, count=0, text="0"))
        assert result.accepted and not result.changed
        assert session.draft.guests is None
        assert bot.names() == ["send_info"]

    @pytest.mark.asyncio
    async def test_guest_limit_is_seats_plus_slack(self, machine, user):
        session = make_session(user, S.ENTER_PEOPLE, filled_draft(user, S.ENTER_PEOPLE))
        await machine.process_event(session, PeopleEnteredEvent(**IDS, count=7, text="7"))
        assert session.state == S.ENTER_PEOPLE
        await machine.process_event(session, PeopleEnteredEvent(**IDS, count=6, text="6"))
        assert session.state == S.CHOOSE_SLOT
        assert session.draft.guests == 6

    @pytest.mark.asyncio
    async def test_short_guest_name_is_rejected(self, machine, user):
        session = make_session(user, S.ENTER_GUEST_NAME, filled_draft(user, S.ENTER_GUEST_NAME))
        await machine.process_event(session, GuestNameEnteredEvent(**IDS, name="I"))
        assert session.state == S.ENTER_GUEST_NAME
        assert session.draft.guest_name is None

    @pytest.mark.asyncio
    async def test_confirm_creates_booking(self, machine, bot, deps, user):
        session = make_session(user, S.CONFIRM_BOOKING, filled_draft(user, S.CONFIRM_BOOKING))
        result = await machine.process_event(session, ConfirmBookingEvent(**IDS))
        assert result.target == S.BOOKING_FINISHED
        [booking] = deps.bookings.all()
        assert booking.table_id == 42
        assert booking.guests_count == 4
        assert booking.loyalty_points_earned == 40
        assert "send_booking_success" in bot.names()
        assert not session.draft.has_booking_data()

    @pytest.mark.asyncio
    async def test_confirm_with_taken_table_stays(self, machine, bot, deps, user):
        draft = filled_draft(user, S.CONFIRM_BOOKING)
        await deps.bookings.create(draft.to_booking_entity())
        session = make_session(user, S.CONFIRM_BOOKING, draft)

        result = await machine.process_event(session, ConfirmBookingEvent(**IDS))

        assert result.accepted and not result.changed
        assert len(deps.bookings.all()) == 1
        assert bot.names() == ["send_error"]

    @pytest.mark.asyncio
    async def test_confirm_with_incomplete_draft_returns_to_menu(self, machine, bot, deps, user):
        draft = filled_draft(user, S.ENTER_GUEST_PHONE)
        session = make_session(user, S.CONFIRM_BOOKING, draft)

        result = await machine.process_event(session, ConfirmBookingEvent(**IDS))

        assert result.target == S.MAIN_MENU
        assert deps.bookings.all() == []
        assert bot.names() == ["send_error"]


class TestBackNavigation:
    @pytest.mark.asyncio
    async def test_back_clears_current_step_onward(self, machine, bot, user):
        session = make_session(user, S.CHOOSE_SLOT, filled_draft(user, S.ENTER_GUEST_NAME))
        event = BackPressedEvent(**IDS, target_state=S.ENTER_PEOPLE.value)

        result = await machine.process_event(session, event)

        assert result.target == S.ENTER_PEOPLE
        assert session.draft.slot_start is None
        assert session.draft.guests == 4
        assert session.draft.table is not None
        assert bot.names() == ["ask_people_count"]

    @pytest.mark.asyncio
    async def test_stale_back_is_ignored(self, machine, bot, user):
        draft = filled_draft(user, S.ENTER_PEOPLE)
        session = make_session(user, S.CHOOSE_TABLE, draft)
        event = BackPressedEvent(**IDS, target_state=S.CHOOSE_CLUB.value)

        result = await machine.process_event(session, event)

        assert not result.accepted
        assert session.state == S.CHOOSE_TABLE
        assert session.draft.table is not None
        assert bot.calls == []

    @pytest.mark.asyncio
    async def test_back_from_venue_details_clears_venue(self, machine, user):
        session = make_session(user, S.VENUE_DETAILS)
        session.draft.venue_for_info = MIX_LOUNGE
        event = BackPressedEvent(**IDS, target_state=S.VENUE_LIST.value)
        await machine.process_event(session, event)
        assert session.state == S.VENUE_LIST
        assert session.draft.venue_for_info is None

    @pytest.mark.asyncio
    async def test_back_to_menu_clears_everything(self, machine, user):
        session = make_session(user, S.CHOOSE_CLUB)
        event = BackPressedEvent(**IDS, target_state=S.MAIN_MENU.value)
        await machine.process_event(session, event)
        assert session.state == S.MAIN_MENU


class TestEntryRedirects:
    @pytest.mark.asyncio
    async def test_missing_prerequisite_redirects_to_earlier_step(self, machine, bot, user):
        # Table is known, guest count is not: the slot prompt cannot render
        session = make_session(user, S.CHOOSE_TABLE, filled_draft(user, S.ENTER_PEOPLE))
        machine_with_jump = BookingStateMachine(
            machine.deps,
            transitions=[Transition(S.CHOOSE_TABLE, EventType.CONFIRM_BOOKING, S.CHOOSE_SLOT)],
        )
        result = await machine_with_jump.process_event(session, ConfirmBookingEvent(**IDS))
        assert result.target == S.ENTER_PEOPLE
        assert bot.names() == ["ask_people_count"]

    @pytest.mark.asyncio
    async def test_redirect_loop_raises_and_leaves_session(self, deps, user):
        async def ping(ctx):
            return S.CHOOSE_DATE

        async def pong(ctx):
            return S.CHOOSE_CLUB

        looping = BookingStateMachine(
            deps,
            transitions=[Transition(S.MAIN_MENU, EventType.START_COMMAND, S.CHOOSE_CLUB)],
            entry_hooks={S.CHOOSE_CLUB: ping, S.CHOOSE_DATE: pong},
        )
        session = make_session(user)
        with pytest.raises(EntryRedirectLoopError):
            await looping.process_event(session, StartCommandEvent(**IDS))
        assert session.state == S.MAIN_MENU
        assert session.history == []


class TestGlobalTransitions:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "state", [s for s in BookingState if s not in TERMINAL_STATES], ids=lambda s: s.value
    )
    async def test_cancel_from_any_active_state(self, machine, bot, user, state):
        session = make_session(user, state, filled_draft(user, S.CONFIRM_BOOKING))
        session.draft.booking_to_manage_id = 3
        result = await machine.process_event(session, CancelActionEvent(**IDS))
        assert result.target == S.ACTION_CANCELLED
        assert "send_action_cancelled" in bot.names()
        assert not session.draft.has_booking_data()
        assert session.draft.booking_to_manage_id is None

    @pytest.mark.asyncio
    async def test_terminal_state_ignores_cancel(self, machine, user):
        session = make_session(user, S.BOOKING_FINISHED)
        result = await machine.process_event(session, CancelActionEvent(**IDS))
        assert not result.accepted
        assert session.state == S.BOOKING_FINISHED

    @pytest.mark.asyncio
    async def test_error_event_reports_and_terminates(self, machine, bot, user):
        session = make_session(user, S.CHOOSE_DATE, filled_draft(user, S.CHOOSE_DATE))
        event = ErrorOccurredEvent(**IDS, error=RuntimeError("db down"))
        result = await machine.process_event(session, event)
        assert result.target == S.ERROR
        assert bot.names() == ["send_error"]

    @pytest.mark.asyncio
    async def test_unknown_input_shows_menu_once(self, machine, bot, user):
        session = make_session(user, S.CHOOSE_DATE, filled_draft(user, S.CHOOSE_DATE))
        result = await machine.process_event(session, UnknownInputEvent(**IDS, text="hello"))
        assert result.target == S.MAIN_MENU
        assert bot.names() == ["send_unknown_input"]
        assert not session.draft.has_booking_data()

    @pytest.mark.asyncio
    async def test_unknown_input_in_menu_reenters(self, machine, bot, user):
        session = make_session(user)
        session.draft.question = "left over"
        result = await machine.process_event(session, UnknownInputEvent(**IDS, text="hello"))
        assert result.accepted and not result.changed
        assert session.draft.question is None

    @pytest.mark.asyncio
    async def test_state_declared_event_wins_over_global(self, machine, user):
        session = make_session(user, S.ASK_QUESTION)
        result = await machine.process_event(session, HelpCommandEvent(**IDS))
        assert result.target == S.ASK_QUESTION


class TestAtomicity:
    @pytest.mark.asyncio
    async def test_failing_action_leaves_session_untouched(self, machine, deps, user, monkeypatch):
        async def boom(*args, **kwargs):
            raise RuntimeError("storage unavailable")

        monkeypatch.setattr(deps.tables, "find_by_id", boom)
        draft = filled_draft(user, S.CHOOSE_TABLE)
        session = make_session(user, S.CHOOSE_TABLE, draft)

        with pytest.raises(RuntimeError):
            await machine.process_event(session, TableChosenEvent(**IDS, table_id=42))

        assert session.state == S.CHOOSE_TABLE
        assert session.draft is draft
        assert session.history == []

    @pytest.mark.asyncio
    async def test_history_records_each_state_change(self, machine, user):
        session = make_session(user, S.INITIAL)
        await machine.process_event(session, StartCommandEvent(**IDS))
        await machine.process_event(session, ClubChosenEvent(**IDS, club_id=7))
        assert session.get_state_trace() == ["initial", "main_menu", "choose_date"]
        assert session.history[-1].event_type == EventType.CLUB_CHOSEN


class TestFeedback:
    @pytest.mark.asyncio
    async def test_rating_flow_awards_points(self, machine, bot, deps, user):
        await deps.users.get_or_create(user.telegram_id, user.user_name, "ru")
        created = await deps.bookings.create(filled_draft(user, S.CONFIRM_BOOKING).to_booking_entity())
        session = make_session(user, S.MANAGE_BOOKING)
        session.draft.booking_to_manage_id = created.id

        await machine.process_event(session, RateBookingEvent(**IDS, booking_id=created.id))
        assert session.state == S.ASK_FEEDBACK

        await machine.process_event(session, RateBookingEvent(**IDS, booking_id=created.id, rating=9))
        assert session.state == S.ASK_FEEDBACK

        result = await machine.process_event(
            session, RateBookingEvent(**IDS, booking_id=created.id, rating=5)
        )
        assert result.target == S.BOOKING_ACTION_FINISHED
        stored = await deps.bookings.find_by_id(created.id)
        assert stored.booking.feedback_rating == 5
        assert (await deps.users.find_by_id(user.id)).loyalty_points == 50
        assert "send_feedback_thanks" in bot.names()

    @pytest.mark.asyncio
    async def test_rating_for_another_booking_is_refused(self, machine, bot, deps, user):
        entity = filled_draft(user, S.CONFIRM_BOOKING).to_booking_entity()
        first = await deps.bookings.create(entity.model_copy(update={"table_id": 41}))
        second = await deps.bookings.create(entity)
        session = make_session(user, S.MANAGE_BOOKING)
        session.draft.booking_to_manage_id = second.id

        await machine.process_event(session, RateBookingEvent(**IDS, booking_id=second.id))
        result = await machine.process_event(
            session, RateBookingEvent(**IDS, booking_id=first.id, rating=1)
        )

        assert result.target == S.ASK_FEEDBACK
        assert (await deps.bookings.find_by_id(first.id)).booking.feedback_rating is None
        assert (await deps.bookings.find_by_id(second.id)).booking.feedback_rating is None
        assert len(bot.infos()) == 1
        assert "send_feedback_thanks" not in bot.names()

    @pytest.mark.asyncio
    async def test_foreign_booking_cannot_be_managed(self, machine, bot, deps, user):
        other = user.model_copy(update={"id": 2})
        created = await deps.bookings.create(filled_draft(other, S.CONFIRM_BOOKING).to_booking_entity())
        session = make_session(user, S.MY_BOOKINGS_LIST)

        await machine.process_event(session, ManageBookingEvent(**IDS, booking_id=created.id))
        assert session.state == S.MY_BOOKINGS_LIST
        assert len(bot.infos()) == 1
