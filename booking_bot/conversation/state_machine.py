"""
Data-driven state machine for the booking conversation.

Transitions are declared as plain data: (source state, event type) maps
to a target state, an optional guard over the event payload and an
optional async action. Cancel, error and unknown input are handled by
global transitions that apply in every non-terminal state when the state
itself declares nothing for the event.

Each event is processed against a working copy of the session draft.
Draft and state are committed together only after the action and the
entry hooks finish; an exception leaves the session exactly as it was.

Usage:
    machine = BookingStateMachine(deps)
    result = await machine.process_event(session, event)
    assert result.target == BookingState.CHOOSE_DATE
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from booking_bot.conversation import actions
from booking_bot.conversation.actions import TransitionContext
from booking_bot.conversation.events import BackPressedEvent, Event, EventType, RateBookingEvent
from booking_bot.conversation.states import TERMINAL_STATES, BookingState, is_terminal
from booking_bot.deps import BookingDeps
from booking_bot.logging_context import get_chat_logger

if TYPE_CHECKING:
    from booking_bot.conversation.session_registry import Session

logger = get_chat_logger(__name__)

Action = Callable[[TransitionContext], Awaitable[None]]
EntryHook = Callable[[TransitionContext], Awaitable[Optional[BookingState]]]
Guard = Callable[[Event], bool]

# Upper bound on entry-hook redirects within one event
MAX_ENTRY_REDIRECTS = len(BookingState)


@dataclass(frozen=True)
class Transition:
    """A single declared transition."""
    from_state: Optional[BookingState]
    event_type: EventType
    to_state: BookingState
    action: Optional[Action] = None
    guard: Optional[Guard] = None
    external: bool = False
    name: str = ""

    def accepts(self, event: Event) -> bool:
        return self.guard is None or self.guard(event)


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: BookingState
    entered_at: datetime
    event_type: Optional[EventType] = None


@dataclass(frozen=True)
class EngineResult:
    """Outcome of one processed event."""
    accepted: bool
    source: BookingState
    target: BookingState
    transition: Optional[str] = None

    @property
    def changed(self) -> bool:
        return self.source != self.target


def back_to(state: BookingState) -> Guard:
    """Guard accepting a back press only when it points at ``state``."""
    def guard(event: Event) -> bool:
        return isinstance(event, BackPressedEvent) and event.target_state == state.value
    return guard


def rating_absent(event: Event) -> bool:
    return isinstance(event, RateBookingEvent) and event.rating is None


def rating_present(event: Event) -> bool:
    return isinstance(event, RateBookingEvent) and event.rating is not None


S = BookingState
E = EventType


def _back(from_state: BookingState, to_state: BookingState) -> Transition:
    return Transition(
        from_state, E.BACK_PRESSED, to_state,
        action=actions.go_back, guard=back_to(to_state),
        name=f"back_{from_state.value}_to_{to_state.value}",
    )


def _restart(from_state: BookingState) -> list[Transition]:
    """Commands available from every conversation state but the menu."""
    return [
        Transition(from_state, E.START_COMMAND, S.MAIN_MENU, name=f"restart_from_{from_state.value}"),
        Transition(from_state, E.HELP_COMMAND, from_state, action=actions.show_help, name="help"),
    ]


FLOW_STATES: tuple[BookingState, ...] = (
    S.CHANGE_LANGUAGE,
    S.CHOOSE_CLUB, S.CHOOSE_DATE, S.CHOOSE_TABLE, S.ENTER_PEOPLE, S.CHOOSE_SLOT,
    S.ENTER_GUEST_NAME, S.ENTER_GUEST_PHONE, S.CONFIRM_BOOKING,
    S.VENUE_LIST, S.VENUE_DETAILS, S.MY_BOOKINGS_LIST, S.MANAGE_BOOKING,
    S.ASK_FEEDBACK, S.ASK_QUESTION,
)


TRANSITIONS: list[Transition] = [
    # --- Entry ---
    Transition(S.INITIAL, E.START_COMMAND, S.MAIN_MENU, name="init_to_main_menu"),

    # --- Main menu ---
    Transition(S.MAIN_MENU, E.START_COMMAND, S.CHOOSE_CLUB, name="menu_to_booking"),
    Transition(S.MAIN_MENU, E.MAIN_MENU_ACTION, S.MAIN_MENU,
               action=actions.route_main_menu, name="menu_action"),
    Transition(S.MAIN_MENU, E.HELP_COMMAND, S.MAIN_MENU, action=actions.show_help, name="help"),
    Transition(S.MAIN_MENU, E.CHANGE_LANGUAGE_COMMAND, S.CHANGE_LANGUAGE, name="menu_to_language"),
    Transition(S.MAIN_MENU, E.CLUB_CHOSEN, S.CHOOSE_DATE,
               action=actions.choose_club, name="menu_quick_book"),

    # --- Language ---
    Transition(S.CHANGE_LANGUAGE, E.LANGUAGE_SELECTED, S.MAIN_MENU,
               action=actions.select_language, name="language_selected"),
    _back(S.CHANGE_LANGUAGE, S.MAIN_MENU),

    # --- Booking flow ---
    Transition(S.CHOOSE_CLUB, E.CLUB_CHOSEN, S.CHOOSE_DATE, action=actions.choose_club, name="club_to_date"),
    _back(S.CHOOSE_CLUB, S.MAIN_MENU),

    Transition(S.CHOOSE_DATE, E.DATE_CHOSEN, S.CHOOSE_TABLE, action=actions.choose_date, name="date_to_table"),
    Transition(S.CHOOSE_DATE, E.CALENDAR_MONTH_CHANGE, S.CHOOSE_DATE,
               action=actions.change_calendar_month, name="calendar_month"),
    _back(S.CHOOSE_DATE, S.CHOOSE_CLUB),

    Transition(S.CHOOSE_TABLE, E.TABLE_CHOSEN, S.ENTER_PEOPLE, action=actions.choose_table, name="table_to_people"),
    _back(S.CHOOSE_TABLE, S.CHOOSE_DATE),

    Transition(S.ENTER_PEOPLE, E.PEOPLE_ENTERED, S.CHOOSE_SLOT, action=actions.enter_people, name="people_to_slot"),
    _back(S.ENTER_PEOPLE, S.CHOOSE_TABLE),

    Transition(S.CHOOSE_SLOT, E.SLOT_CHOSEN, S.ENTER_GUEST_NAME, action=actions.choose_slot, name="slot_to_name"),
    _back(S.CHOOSE_SLOT, S.ENTER_PEOPLE),

    Transition(S.ENTER_GUEST_NAME, E.GUEST_NAME_ENTERED, S.ENTER_GUEST_PHONE,
               action=actions.enter_guest_name, name="name_to_phone"),
    _back(S.ENTER_GUEST_NAME, S.CHOOSE_SLOT),

    Transition(S.ENTER_GUEST_PHONE, E.GUEST_PHONE_ENTERED, S.CONFIRM_BOOKING,
               action=actions.enter_guest_phone, name="phone_to_confirm"),
    _back(S.ENTER_GUEST_PHONE, S.ENTER_GUEST_NAME),

    Transition(S.CONFIRM_BOOKING, E.CONFIRM_BOOKING, S.BOOKING_FINISHED,
               action=actions.confirm_booking, name="confirm_to_finished"),
    _back(S.CONFIRM_BOOKING, S.ENTER_GUEST_PHONE),

    # --- Venue info ---
    Transition(S.VENUE_LIST, E.VENUE_CHOSEN_FOR_INFO, S.VENUE_DETAILS,
               action=actions.choose_venue_for_info, name="venue_list_to_details"),
    _back(S.VENUE_LIST, S.MAIN_MENU),

    Transition(S.VENUE_DETAILS, E.VENUE_POSTERS_REQUESTED, S.VENUE_DETAILS,
               action=actions.feature_in_development, name="venue_posters"),
    Transition(S.VENUE_DETAILS, E.VENUE_PHOTOS_REQUESTED, S.VENUE_DETAILS,
               action=actions.feature_in_development, name="venue_photos"),
    Transition(S.VENUE_DETAILS, E.CLUB_CHOSEN, S.CHOOSE_DATE,
               action=actions.choose_club, name="venue_details_book"),
    _back(S.VENUE_DETAILS, S.VENUE_LIST),

    # --- My bookings ---
    Transition(S.MY_BOOKINGS_LIST, E.MANAGE_BOOKING, S.MANAGE_BOOKING,
               action=actions.manage_booking, name="bookings_to_manage"),
    _back(S.MY_BOOKINGS_LIST, S.MAIN_MENU),

    Transition(S.MANAGE_BOOKING, E.CANCEL_BOOKING, S.BOOKING_ACTION_FINISHED,
               action=actions.cancel_booking, name="manage_cancel"),
    Transition(S.MANAGE_BOOKING, E.CHANGE_BOOKING, S.MANAGE_BOOKING,
               action=actions.change_booking, name="manage_change_info"),
    Transition(S.MANAGE_BOOKING, E.RATE_BOOKING, S.ASK_FEEDBACK,
               action=actions.open_feedback, guard=rating_absent, name="manage_to_feedback"),
    _back(S.MANAGE_BOOKING, S.MY_BOOKINGS_LIST),

    Transition(S.ASK_FEEDBACK, E.RATE_BOOKING, S.BOOKING_ACTION_FINISHED,
               action=actions.submit_feedback, guard=rating_present, name="feedback_submitted"),
    _back(S.ASK_FEEDBACK, S.MANAGE_BOOKING),

    # --- Questions ---
    Transition(S.ASK_QUESTION, E.QUESTION_ENTERED, S.QUESTION_SENT,
               action=actions.submit_question, name="question_sent"),
    _back(S.ASK_QUESTION, S.MAIN_MENU),
] + [t for state in FLOW_STATES for t in _restart(state)]


# Evaluated in order, only when the current state declares nothing for the event
GLOBAL_TRANSITIONS: list[Transition] = [
    Transition(None, E.CANCEL_ACTION, S.ACTION_CANCELLED,
               action=actions.cancel_action, name="global_cancel"),
    Transition(None, E.ERROR_OCCURRED, S.ERROR,
               action=actions.report_error, name="global_error"),
    Transition(None, E.UNKNOWN_INPUT, S.MAIN_MENU,
               action=actions.unknown_input, external=True, name="global_unknown_input"),
]


ENTRY_HOOKS: dict[BookingState, EntryHook] = {
    S.MAIN_MENU: actions.enter_main_menu,
    S.CHANGE_LANGUAGE: actions.enter_change_language,
    S.CHOOSE_CLUB: actions.enter_choose_club,
    S.CHOOSE_DATE: actions.enter_choose_date,
    S.CHOOSE_TABLE: actions.enter_choose_table,
    S.ENTER_PEOPLE: actions.enter_people_count,
    S.CHOOSE_SLOT: actions.enter_choose_slot,
    S.ENTER_GUEST_NAME: actions.enter_guest_name_prompt,
    S.ENTER_GUEST_PHONE: actions.enter_guest_phone_prompt,
    S.CONFIRM_BOOKING: actions.enter_confirm,
    S.VENUE_LIST: actions.enter_venue_list,
    S.VENUE_DETAILS: actions.enter_venue_details,
    S.MY_BOOKINGS_LIST: actions.enter_my_bookings,
    S.MANAGE_BOOKING: actions.enter_manage_booking,
    S.ASK_FEEDBACK: actions.enter_ask_feedback,
    S.ASK_QUESTION: actions.enter_ask_question,
    **{state: actions.enter_terminal for state in TERMINAL_STATES},
}


class EntryRedirectLoopError(RuntimeError):
    """Raised when entry hooks keep redirecting without settling."""


class BookingStateMachine:
    """
    Stateless engine deciding and executing transitions for a session.

    One instance serves every chat; all per-chat data lives on the
    ``Session`` passed in. Callers must serialize events per session.
    """

    def __init__(
        self,
        deps: BookingDeps,
        transitions: Optional[list[Transition]] = None,
        global_transitions: Optional[list[Transition]] = None,
        entry_hooks: Optional[dict[BookingState, EntryHook]] = None,
    ) -> None:
        self.deps = deps
        self._index: dict[tuple[BookingState, EventType], list[Transition]] = defaultdict(list)
        for t in TRANSITIONS if transitions is None else transitions:
            self._index[(t.from_state, t.event_type)].append(t)
        self._globals = GLOBAL_TRANSITIONS if global_transitions is None else global_transitions
        self._entry_hooks = ENTRY_HOOKS if entry_hooks is None else entry_hooks

    def find_transition(self, state: BookingState, event: Event) -> Optional[Transition]:
        """Return the transition that would fire, or None for a no-op."""
        if is_terminal(state):
            return None
        for t in self._index.get((state, event.event_type), ()):
            if t.accepts(event):
                return t
        for t in self._globals:
            if t.event_type == event.event_type and t.accepts(event):
                return t
        return None

    def get_valid_events(self, state: BookingState) -> list[EventType]:
        """Event types the state reacts to, globals included."""
        if is_terminal(state):
            return []
        own = [event_type for (s, event_type) in self._index if s == state]
        return own + [t.event_type for t in self._globals if t.event_type not in own]

    async def process_event(self, session: Session, event: Event) -> EngineResult:
        """
        Process one event for a session.

        Returns:
            EngineResult with ``accepted=False`` when the event is a no-op
            in the current state (state and draft untouched).

        Raises:
            Whatever an action or entry hook raised; the session is left
            unchanged in that case.
        """
        source = session.state
        transition = self.find_transition(source, event)
        if transition is None:
            logger.debug("Ignoring %s in %s", event.event_type.value, source.value)
            return EngineResult(accepted=False, source=source, target=source)

        ctx = TransitionContext(
            deps=self.deps,
            event=event,
            draft=session.draft.copy(),
            source=source,
            target=transition.to_state,
            chat_id=session.chat_id,
        )
        if transition.action is not None:
            await transition.action(ctx)

        if ctx.target != source or transition.external:
            await self._enter(ctx)

        self._commit(session, ctx, event)
        logger.debug(
            "State transition: %s -> %s (event: %s, transition: %s)",
            source.value, ctx.target.value, event.event_type.value, transition.name,
        )
        return EngineResult(
            accepted=True, source=source, target=ctx.target, transition=transition.name
        )

    async def start(self, session: Session, event: Event) -> EngineResult:
        """
        Leave the entry state for the main menu without rendering it.

        Used when a fresh session's first event is not the start command:
        the event itself is processed from the main menu right after.
        """
        source = session.state
        if source != BookingState.INITIAL:
            return EngineResult(accepted=False, source=source, target=source)
        ctx = TransitionContext(
            deps=self.deps,
            event=event,
            draft=session.draft.copy(),
            source=source,
            target=BookingState.MAIN_MENU,
            chat_id=session.chat_id,
            rendered=True,
        )
        await self._enter(ctx)
        self._commit(session, ctx, event)
        return EngineResult(accepted=True, source=source, target=ctx.target, transition="start")

    async def _enter(self, ctx: TransitionContext) -> None:
        for _ in range(MAX_ENTRY_REDIRECTS):
            hook = self._entry_hooks.get(ctx.target)
            if hook is None:
                return
            redirect = await hook(ctx)
            if redirect is None or redirect == ctx.target:
                return
            logger.info("Entry of %s redirected to %s", ctx.target.value, redirect.value)
            ctx.target = redirect
        raise EntryRedirectLoopError(f"Entry hooks did not settle, last target {ctx.target.value}")

    @staticmethod
    def _commit(session: Session, ctx: TransitionContext, event: Event) -> None:
        session.draft = ctx.draft
        if ctx.target != session.state:
            session.history.append(StateEntry(
                state=ctx.target,
                entered_at=datetime.now(timezone.utc),
                event_type=event.event_type,
            ))
        session.state = ctx.target
