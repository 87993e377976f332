"""
Side effects run by the booking state machine.

Two kinds of callables live here:

* Transition actions, run once per accepted transition. They validate the
  event payload, mutate the working draft and may override ``ctx.target``
  (a validation failure keeps the machine in its source state and sends
  one explanatory message).
* Entry hooks, run whenever a state becomes active. They render the
  state's prompt through the chat facade, and may return an earlier state
  when the draft lacks the data the prompt needs.

Every callable receives a ``TransitionContext`` and talks to the outside
world only through ``ctx.deps``.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from booking_bot.config import settings
from booking_bot.conversation.draft import DraftBooking
from booking_bot.conversation.events import (
    BackPressedEvent,
    Event,
    MainMenuAction,
)
from booking_bot.conversation.states import BOOKING_STEPS, BookingState, step_of
from booking_bot.deps import BookingDeps
from booking_bot.prompts.locale import LocalizedStrings, get_strings, is_supported, supported_languages
from booking_bot.schemas.entities import BookingStatus, Venue
from booking_bot.tools.availability import find_slot, generate_slots, venue_zone
from booking_bot.tools.bookings import BookingConflictError

logger = logging.getLogger(__name__)

MAIN_MENU_ROUTES: dict[MainMenuAction, BookingState] = {
    MainMenuAction.SHOW_VENUE_INFO: BookingState.VENUE_LIST,
    MainMenuAction.MY_BOOKINGS: BookingState.MY_BOOKINGS_LIST,
    MainMenuAction.BOOK_TABLE: BookingState.CHOOSE_CLUB,
    MainMenuAction.ASK_QUESTION: BookingState.ASK_QUESTION,
    MainMenuAction.CHANGE_LANGUAGE: BookingState.CHANGE_LANGUAGE,
}

# Secondary-flow field owned by each non-booking state, cleared on back
FLOW_STATE_FIELDS: dict[BookingState, str] = {
    BookingState.VENUE_DETAILS: "venue_for_info",
    BookingState.MANAGE_BOOKING: "booking_to_manage_id",
    BookingState.ASK_FEEDBACK: "booking_to_rate_id",
}


@dataclass
class TransitionContext:
    """Everything an action or entry hook may read or change."""

    deps: BookingDeps
    event: Event
    draft: DraftBooking
    source: BookingState
    target: BookingState
    chat_id: int
    rendered: bool = False

    @property
    def strings(self) -> LocalizedStrings:
        return get_strings(self.draft.language_code)

    @property
    def message_id(self) -> Optional[int]:
        return self.draft.message_id

    def stay(self) -> None:
        """Keep the machine in its source state without re-entering it."""
        self.target = self.source

    def today(self, venue: Optional[Venue] = None) -> date:
        """Current date in the venue's time zone."""
        zone = venue_zone(venue.timezone if venue else None)
        return self.deps.clock().astimezone(zone).date()

    async def active_venues(self) -> list[Venue]:
        return await self.deps.venues.list_active()

    async def info(self, text: str) -> None:
        await self.deps.bot.send_info(self.chat_id, self.strings, text, self.message_id)

    async def error(self, text: str) -> None:
        await self.deps.bot.send_error(
            self.chat_id, self.strings, text, await self.active_venues(), self.message_id
        )


def _user_id(ctx: TransitionContext) -> int:
    if ctx.draft.user is None:
        raise RuntimeError(f"No user bound to chat {ctx.chat_id}")
    return ctx.draft.user.id


def _calendar_bounds(ctx: TransitionContext) -> tuple[int, int]:
    """First and last selectable month, as year * 12 + month - 1."""
    today = ctx.today(ctx.draft.venue)
    first = today.year * 12 + today.month - 1
    return first, first + settings.booking.calendar_months_ahead


# ---------------------------------------------------------------------- #
# Main menu and language
# ---------------------------------------------------------------------- #

async def route_main_menu(ctx: TransitionContext) -> None:
    action = ctx.event.action
    if action in MAIN_MENU_ROUTES:
        ctx.target = MAIN_MENU_ROUTES[action]
        return
    ctx.stay()
    if action == MainMenuAction.SHOW_HELP:
        await show_help(ctx)
    else:
        await ctx.info(ctx.strings.feature_in_development)


async def show_help(ctx: TransitionContext) -> None:
    await ctx.deps.bot.send_help(
        ctx.chat_id, ctx.strings, await ctx.active_venues(), ctx.message_id
    )


async def select_language(ctx: TransitionContext) -> None:
    code = ctx.event.language_code.lower()
    if not is_supported(code):
        ctx.stay()
        await ctx.info(ctx.strings.unsupported_language)
        return
    ctx.draft.language_code = code
    if ctx.draft.user is not None:
        updated = await ctx.deps.users.update_language(ctx.draft.user.id, code)
        ctx.draft.user = updated or ctx.draft.user
    logger.info("Language changed to %s", code)


# ---------------------------------------------------------------------- #
# Booking flow
# ---------------------------------------------------------------------- #

async def choose_club(ctx: TransitionContext) -> None:
    venue = await ctx.deps.venues.find_by_id(ctx.event.club_id)
    if venue is None or not venue.is_active:
        logger.info("Club %d missing or inactive", ctx.event.club_id)
        ctx.stay()
        await ctx.info(ctx.strings.club_not_found)
        return
    ctx.draft.set_venue(venue)
    logger.info("Club '%s' chosen", venue.name)


async def change_calendar_month(ctx: TransitionContext) -> None:
    first, last = _calendar_bounds(ctx)
    requested = ctx.event.year * 12 + ctx.event.month - 1
    index = min(max(requested, first), last)
    year, month = divmod(index, 12)
    await ctx.deps.bot.send_calendar(
        ctx.chat_id, year, month + 1, ctx.strings, ctx.message_id, step_of(BookingState.CHOOSE_DATE)
    )


async def choose_date(ctx: TransitionContext) -> None:
    chosen = ctx.event.date
    today = ctx.today(ctx.draft.venue)
    if chosen < today:
        ctx.stay()
        await ctx.info(ctx.strings.date_in_past)
        return
    if (chosen - today).days > settings.booking.max_days_ahead:
        ctx.stay()
        await ctx.info(ctx.strings.date_too_far(settings.booking.max_days_ahead))
        return
    ctx.draft.set_date(chosen)
    logger.info("Date %s chosen", chosen.isoformat())


async def choose_table(ctx: TransitionContext) -> None:
    draft = ctx.draft
    table = await ctx.deps.tables.find_by_id(ctx.event.table_id)
    if table is None or not table.is_active or table.venue_id != draft.venue_id:
        ctx.stay()
        await ctx.info(ctx.strings.table_not_found)
        return
    if not await ctx.deps.bookings.is_table_available(table.id, draft.date):
        ctx.stay()
        await ctx.info(ctx.strings.table_already_taken)
        return
    draft.set_table(table)
    logger.info("Table #%d chosen", table.number)


async def enter_people(ctx: TransitionContext) -> None:
    seats = ctx.draft.table.seats if ctx.draft.table else None
    ok, reason = ctx.draft.set_guest_count(ctx.event.count, seats)
    if not ok:
        logger.debug("Rejected guest count %r: %s", ctx.event.text, reason)
        ctx.stay()
        await ctx.info(ctx.strings.invalid_people_count(
            settings.booking.min_guests, ctx.draft.max_guests(seats)
        ))


async def choose_slot(ctx: TransitionContext) -> None:
    draft = ctx.draft
    slot = find_slot(draft.date, ctx.event.start, ctx.event.end, draft.venue.timezone)
    if slot is None:
        ctx.stay()
        await ctx.info(ctx.strings.slot_not_available)
        return
    draft.set_slot(*slot)
    logger.info("Slot %s-%s chosen", f"{slot[0]:%H:%M}", f"{slot[1]:%H:%M}")


async def enter_guest_name(ctx: TransitionContext) -> None:
    ok, reason = ctx.draft.set_guest_name(ctx.event.name)
    if not ok:
        logger.debug("Rejected guest name: %s", reason)
        ctx.stay()
        await ctx.info(ctx.strings.invalid_guest_name)


async def enter_guest_phone(ctx: TransitionContext) -> None:
    ok, reason = ctx.draft.set_guest_phone(ctx.event.phone)
    if not ok:
        logger.debug("Rejected guest phone: %s", reason)
        ctx.stay()
        await ctx.info(ctx.strings.invalid_phone_format)


async def confirm_booking(ctx: TransitionContext) -> None:
    draft = ctx.draft
    booking = draft.to_booking_entity()
    if booking is None:
        logger.warning("Confirmation with incomplete draft, missing: %s", draft.missing_fields())
        ctx.target = BookingState.MAIN_MENU
        ctx.rendered = True
        await ctx.error(ctx.strings.not_all_data_collected)
        return

    if not await ctx.deps.bookings.is_table_available(booking.table_id, booking.booking_date):
        ctx.stay()
        await ctx.error(ctx.strings.table_already_taken)
        return
    try:
        created = await ctx.deps.bookings.create(booking)
    except BookingConflictError as exc:
        logger.info("Booking lost the race for the table: %s", exc)
        ctx.stay()
        await ctx.error(ctx.strings.table_already_taken)
        return

    points = created.loyalty_points_earned
    await ctx.deps.users.add_loyalty_points(created.user_id, points)
    logger.info("Booking #%d confirmed, %d points earned", created.id, points)
    await ctx.deps.bot.send_booking_success(
        ctx.chat_id, created, ctx.strings, await ctx.active_venues(), ctx.message_id
    )


# ---------------------------------------------------------------------- #
# Venue info
# ---------------------------------------------------------------------- #

async def choose_venue_for_info(ctx: TransitionContext) -> None:
    venue = await ctx.deps.venues.find_by_id(ctx.event.venue_id)
    if venue is None or not venue.is_active:
        ctx.stay()
        await ctx.info(ctx.strings.venue_not_found)
        return
    ctx.draft.venue_for_info = venue


async def feature_in_development(ctx: TransitionContext) -> None:
    await ctx.info(ctx.strings.feature_in_development)


# ---------------------------------------------------------------------- #
# My bookings and feedback
# ---------------------------------------------------------------------- #

async def manage_booking(ctx: TransitionContext) -> None:
    found = await ctx.deps.bookings.find_by_id(ctx.event.booking_id)
    if found is None or found.booking.user_id != _user_id(ctx):
        ctx.stay()
        await ctx.info(ctx.strings.booking_not_found)
        return
    ctx.draft.booking_to_manage_id = found.booking.id


async def cancel_booking(ctx: TransitionContext) -> None:
    user_id = _user_id(ctx)
    found = await ctx.deps.bookings.find_by_id(ctx.event.booking_id)
    if found is None or found.booking.user_id != user_id:
        await ctx.info(ctx.strings.booking_not_found)
        return
    if found.booking.status == BookingStatus.CANCELLED:
        await ctx.info(ctx.strings.booking_already_cancelled)
        return
    await ctx.deps.bookings.cancel(found.booking.id, user_id)
    logger.info("Booking #%d cancelled by user", found.booking.id)
    await ctx.deps.bot.send_booking_cancelled(
        ctx.chat_id, found, ctx.strings, await ctx.active_venues(), ctx.message_id
    )


async def change_booking(ctx: TransitionContext) -> None:
    await ctx.info(ctx.strings.change_booking_info)


async def open_feedback(ctx: TransitionContext) -> None:
    ctx.draft.booking_to_rate_id = ctx.event.booking_id


async def submit_feedback(ctx: TransitionContext) -> None:
    if ctx.event.booking_id != ctx.draft.booking_to_rate_id:
        logger.info("Rating for booking #%d while #%s is open, ignoring",
                    ctx.event.booking_id, ctx.draft.booking_to_rate_id)
        ctx.stay()
        await ctx.info(ctx.strings.booking_not_found)
        return
    rating = ctx.event.rating
    if not 1 <= rating <= 5:
        ctx.stay()
        await ctx.info(ctx.strings.invalid_rating)
        return
    user_id = _user_id(ctx)
    if not await ctx.deps.bookings.add_feedback(ctx.event.booking_id, user_id, rating):
        await ctx.info(ctx.strings.booking_not_found)
        return
    points = settings.booking.points_for_feedback
    await ctx.deps.users.add_loyalty_points(user_id, points)
    logger.info("Feedback for booking #%d: %d stars", ctx.event.booking_id, rating)
    await ctx.deps.bot.send_feedback_thanks(
        ctx.chat_id, rating, points, ctx.strings, await ctx.active_venues(), ctx.message_id
    )


# ---------------------------------------------------------------------- #
# Questions
# ---------------------------------------------------------------------- #

async def submit_question(ctx: TransitionContext) -> None:
    question = ctx.event.question.strip()
    if not question:
        ctx.stay()
        await ctx.info(ctx.strings.empty_question)
        return
    ctx.draft.question = question
    logger.info("Question received: %s", question)
    await ctx.deps.bot.send_question_received(
        ctx.chat_id, ctx.strings, await ctx.active_venues(), ctx.message_id
    )


# ---------------------------------------------------------------------- #
# Navigation and global handlers
# ---------------------------------------------------------------------- #

async def go_back(ctx: TransitionContext) -> None:
    """Drop the data owned by the source step and everything after it."""
    event: BackPressedEvent = ctx.event
    if ctx.source in BOOKING_STEPS:
        ctx.draft.clear_from_step(ctx.source)
    elif ctx.source in FLOW_STATE_FIELDS:
        setattr(ctx.draft, FLOW_STATE_FIELDS[ctx.source], None)
    logger.debug("Back from %s to %s", ctx.source.value, event.target_state)


async def cancel_action(ctx: TransitionContext) -> None:
    logger.info("Action cancelled by user from %s", ctx.source.value)
    await ctx.deps.bot.send_action_cancelled(
        ctx.chat_id, ctx.strings, await ctx.active_venues(), ctx.message_id
    )


async def report_error(ctx: TransitionContext) -> None:
    logger.error("Error state reached from %s: %r", ctx.source.value, ctx.event.error)
    try:
        venues = await ctx.active_venues()
    except Exception:
        logger.exception("Venue list unavailable, sending error without it")
        venues = []
    await ctx.deps.bot.send_error(
        ctx.chat_id, ctx.strings, ctx.event.user_message or ctx.strings.error_default,
        venues, ctx.message_id,
    )


async def unknown_input(ctx: TransitionContext) -> None:
    logger.info("Unknown input %r in %s", ctx.event.text, ctx.source.value)
    ctx.rendered = True
    await ctx.deps.bot.send_unknown_input(
        ctx.chat_id, ctx.strings, await ctx.active_venues(), ctx.message_id
    )


# ---------------------------------------------------------------------- #
# Entry hooks
# ---------------------------------------------------------------------- #

async def enter_main_menu(ctx: TransitionContext) -> Optional[BookingState]:
    ctx.draft.clear_booking_data()
    ctx.draft.clear_flow_data()
    if ctx.rendered:
        return None
    user_name = ctx.draft.user.user_name if ctx.draft.user else None
    await ctx.deps.bot.send_welcome(
        ctx.chat_id, user_name, ctx.strings, await ctx.active_venues(), ctx.message_id
    )
    return None


async def enter_change_language(ctx: TransitionContext) -> Optional[BookingState]:
    await ctx.deps.bot.send_language_selection(
        ctx.chat_id, ctx.strings, supported_languages(), ctx.message_id
    )
    return None


async def enter_choose_club(ctx: TransitionContext) -> Optional[BookingState]:
    await ctx.deps.bot.send_choose_club(
        ctx.chat_id, await ctx.active_venues(), ctx.strings, ctx.message_id,
        step_of(BookingState.CHOOSE_CLUB),
    )
    return None


async def enter_choose_date(ctx: TransitionContext) -> Optional[BookingState]:
    if ctx.draft.venue is None:
        return BookingState.CHOOSE_CLUB
    shown = ctx.draft.date or ctx.today(ctx.draft.venue)
    await ctx.deps.bot.send_calendar(
        ctx.chat_id, shown.year, shown.month, ctx.strings, ctx.message_id,
        step_of(BookingState.CHOOSE_DATE),
    )
    return None


async def enter_choose_table(ctx: TransitionContext) -> Optional[BookingState]:
    draft = ctx.draft
    if draft.date is None:
        return BookingState.CHOOSE_DATE
    tables = await ctx.deps.tables.list_available(draft.venue.id, draft.date)
    await ctx.deps.bot.send_choose_table(
        ctx.chat_id, tables, draft.venue, draft.date, ctx.strings, ctx.message_id,
        step_of(BookingState.CHOOSE_TABLE),
    )
    return None


async def enter_people_count(ctx: TransitionContext) -> Optional[BookingState]:
    if ctx.draft.table is None:
        return BookingState.CHOOSE_TABLE
    await ctx.deps.bot.ask_people_count(
        ctx.chat_id, ctx.strings, ctx.draft.max_guests(ctx.draft.table.seats), ctx.message_id,
        step_of(BookingState.ENTER_PEOPLE),
    )
    return None


async def enter_choose_slot(ctx: TransitionContext) -> Optional[BookingState]:
    draft = ctx.draft
    if draft.guests is None:
        return BookingState.ENTER_PEOPLE
    slots = generate_slots(draft.date, draft.venue.timezone)
    await ctx.deps.bot.send_choose_slot(
        ctx.chat_id, draft.venue, draft.table, slots, ctx.strings, ctx.message_id,
        step_of(BookingState.CHOOSE_SLOT),
    )
    return None


async def enter_guest_name_prompt(ctx: TransitionContext) -> Optional[BookingState]:
    if ctx.draft.slot_start is None:
        return BookingState.CHOOSE_SLOT
    await ctx.deps.bot.ask_guest_name(
        ctx.chat_id, ctx.strings, ctx.message_id, step_of(BookingState.ENTER_GUEST_NAME)
    )
    return None


async def enter_guest_phone_prompt(ctx: TransitionContext) -> Optional[BookingState]:
    if ctx.draft.guest_name is None:
        return BookingState.ENTER_GUEST_NAME
    await ctx.deps.bot.ask_guest_phone(
        ctx.chat_id, ctx.strings, ctx.message_id, step_of(BookingState.ENTER_GUEST_PHONE)
    )
    return None


async def enter_confirm(ctx: TransitionContext) -> Optional[BookingState]:
    draft = ctx.draft
    if draft.guest_phone is None:
        return BookingState.ENTER_GUEST_PHONE
    summary = ctx.strings.booking_details(
        draft.venue.name, draft.table.number, draft.guests, draft.date,
        draft.slot_start, draft.slot_end, draft.guest_name, draft.guest_phone,
    )
    await ctx.deps.bot.send_confirm(
        ctx.chat_id, summary, ctx.strings, ctx.message_id, step_of(BookingState.CONFIRM_BOOKING)
    )
    return None


async def enter_venue_list(ctx: TransitionContext) -> Optional[BookingState]:
    await ctx.deps.bot.send_venue_selection(
        ctx.chat_id, await ctx.active_venues(), ctx.strings, ctx.message_id
    )
    return None


async def enter_venue_details(ctx: TransitionContext) -> Optional[BookingState]:
    if ctx.draft.venue_for_info is None:
        return BookingState.VENUE_LIST
    await ctx.deps.bot.send_venue_details(
        ctx.chat_id, ctx.draft.venue_for_info, ctx.strings, ctx.message_id
    )
    return None


async def enter_my_bookings(ctx: TransitionContext) -> Optional[BookingState]:
    bookings = await ctx.deps.bookings.list_by_user(_user_id(ctx))
    await ctx.deps.bot.send_my_bookings(ctx.chat_id, bookings, ctx.strings, ctx.message_id)
    return None


async def enter_manage_booking(ctx: TransitionContext) -> Optional[BookingState]:
    booking_id = ctx.draft.booking_to_manage_id
    found = await ctx.deps.bookings.find_by_id(booking_id) if booking_id else None
    if found is None or found.booking.user_id != _user_id(ctx):
        ctx.draft.booking_to_manage_id = None
        await ctx.info(ctx.strings.booking_not_found)
        return BookingState.MY_BOOKINGS_LIST
    await ctx.deps.bot.send_manage_booking(ctx.chat_id, found, ctx.strings, ctx.message_id)
    return None


async def enter_ask_feedback(ctx: TransitionContext) -> Optional[BookingState]:
    booking_id = ctx.draft.booking_to_rate_id
    found = await ctx.deps.bookings.find_by_id(booking_id) if booking_id else None
    if found is None or found.booking.user_id != _user_id(ctx):
        ctx.draft.booking_to_rate_id = None
        await ctx.info(ctx.strings.booking_not_found)
        return BookingState.MY_BOOKINGS_LIST
    await ctx.deps.bot.ask_feedback(ctx.chat_id, found, ctx.strings, ctx.message_id)
    return None


async def enter_ask_question(ctx: TransitionContext) -> Optional[BookingState]:
    await ctx.deps.bot.send_ask_question(ctx.chat_id, ctx.strings, ctx.message_id)
    return None


async def enter_terminal(ctx: TransitionContext) -> Optional[BookingState]:
    logger.info("Final state %s reached", ctx.target.value)
    ctx.draft.clear_booking_data()
    ctx.draft.clear_flow_data()
    return None
