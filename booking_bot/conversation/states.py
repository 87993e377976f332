"""Conversation states of the booking bot."""

from enum import Enum
from typing import Optional


class BookingState(str, Enum):
    """All possible states of one chat's conversation."""
    INITIAL = "initial"
    MAIN_MENU = "main_menu"
    CHANGE_LANGUAGE = "change_language"

    # Booking flow, in workflow order
    CHOOSE_CLUB = "choose_club"
    CHOOSE_DATE = "choose_date"
    CHOOSE_TABLE = "choose_table"
    ENTER_PEOPLE = "enter_people"
    CHOOSE_SLOT = "choose_slot"
    ENTER_GUEST_NAME = "enter_guest_name"
    ENTER_GUEST_PHONE = "enter_guest_phone"
    CONFIRM_BOOKING = "confirm_booking"

    # Secondary flows
    VENUE_LIST = "venue_list"
    VENUE_DETAILS = "venue_details"
    MY_BOOKINGS_LIST = "my_bookings_list"
    MANAGE_BOOKING = "manage_booking"
    ASK_FEEDBACK = "ask_feedback"
    ASK_QUESTION = "ask_question"

    # Terminal
    BOOKING_FINISHED = "booking_finished"
    BOOKING_ACTION_FINISHED = "booking_action_finished"
    QUESTION_SENT = "question_sent"
    ACTION_CANCELLED = "action_cancelled"
    ERROR = "error"


ENTRY_STATE = BookingState.INITIAL

TERMINAL_STATES: frozenset[BookingState] = frozenset({
    BookingState.BOOKING_FINISHED,
    BookingState.BOOKING_ACTION_FINISHED,
    BookingState.QUESTION_SENT,
    BookingState.ACTION_CANCELLED,
    BookingState.ERROR,
})

BOOKING_STEPS: tuple[BookingState, ...] = (
    BookingState.CHOOSE_CLUB,
    BookingState.CHOOSE_DATE,
    BookingState.CHOOSE_TABLE,
    BookingState.ENTER_PEOPLE,
    BookingState.CHOOSE_SLOT,
    BookingState.ENTER_GUEST_NAME,
    BookingState.ENTER_GUEST_PHONE,
    BookingState.CONFIRM_BOOKING,
)

TOTAL_BOOKING_STEPS = len(BOOKING_STEPS)


def is_terminal(state: BookingState) -> bool:
    return state in TERMINAL_STATES


def step_of(state: BookingState) -> Optional[tuple[int, int]]:
    """1-based (step, total) for booking states, None for everything else."""
    if state not in BOOKING_STEPS:
        return None
    return BOOKING_STEPS.index(state) + 1, TOTAL_BOOKING_STEPS
