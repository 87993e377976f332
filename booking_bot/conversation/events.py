"""
Closed event vocabulary driving the booking state machine.

Every external input (command, menu label, button press, free text) is
normalized into exactly one of these immutable value objects by the
event mapper. Each event carries the chat/user identity, the message id
to edit in place, and its own payload.
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import ClassVar, Optional


class EventType(str, Enum):
    """Tag of each event class, used as the transition table key."""
    START_COMMAND = "start_command"
    HELP_COMMAND = "help_command"
    CHANGE_LANGUAGE_COMMAND = "change_language_command"
    MAIN_MENU_ACTION = "main_menu_action"
    LANGUAGE_SELECTED = "language_selected"
    CLUB_CHOSEN = "club_chosen"
    DATE_CHOSEN = "date_chosen"
    CALENDAR_MONTH_CHANGE = "calendar_month_change"
    TABLE_CHOSEN = "table_chosen"
    PEOPLE_ENTERED = "people_entered"
    SLOT_CHOSEN = "slot_chosen"
    GUEST_NAME_ENTERED = "guest_name_entered"
    GUEST_PHONE_ENTERED = "guest_phone_entered"
    CONFIRM_BOOKING = "confirm_booking"
    VENUE_CHOSEN_FOR_INFO = "venue_chosen_for_info"
    VENUE_POSTERS_REQUESTED = "venue_posters_requested"
    VENUE_PHOTOS_REQUESTED = "venue_photos_requested"
    MANAGE_BOOKING = "manage_booking"
    CANCEL_BOOKING = "cancel_booking"
    CHANGE_BOOKING = "change_booking"
    RATE_BOOKING = "rate_booking"
    QUESTION_ENTERED = "question_entered"
    BACK_PRESSED = "back_pressed"
    CANCEL_ACTION = "cancel_action"
    UNKNOWN_INPUT = "unknown_input"
    ERROR_OCCURRED = "error_occurred"


class MainMenuAction(str, Enum):
    SHOW_VENUE_INFO = "show_venue_info"
    MY_BOOKINGS = "my_bookings"
    BOOK_TABLE = "book_table"
    ASK_QUESTION = "ask_question"
    OPEN_APP = "open_app"
    SHOW_HELP = "show_help"
    CHANGE_LANGUAGE = "change_language"


@dataclass(frozen=True, kw_only=True)
class Event:
    """Base of all events."""
    event_type: ClassVar[EventType]

    chat_id: int
    user_id: int
    message_id: Optional[int] = None


# --- Commands and reply-keyboard labels ---

@dataclass(frozen=True, kw_only=True)
class StartCommandEvent(Event):
    event_type: ClassVar[EventType] = EventType.START_COMMAND
    user_name: Optional[str] = None
    language_code: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class HelpCommandEvent(Event):
    event_type: ClassVar[EventType] = EventType.HELP_COMMAND


@dataclass(frozen=True, kw_only=True)
class ChangeLanguageCommandEvent(Event):
    event_type: ClassVar[EventType] = EventType.CHANGE_LANGUAGE_COMMAND


@dataclass(frozen=True, kw_only=True)
class MainMenuActionEvent(Event):
    event_type: ClassVar[EventType] = EventType.MAIN_MENU_ACTION
    action: MainMenuAction


# --- Button presses ---

@dataclass(frozen=True, kw_only=True)
class LanguageSelectedEvent(Event):
    event_type: ClassVar[EventType] = EventType.LANGUAGE_SELECTED
    language_code: str


@dataclass(frozen=True, kw_only=True)
class ClubChosenEvent(Event):
    event_type: ClassVar[EventType] = EventType.CLUB_CHOSEN
    club_id: int


@dataclass(frozen=True, kw_only=True)
class DateChosenEvent(Event):
    event_type: ClassVar[EventType] = EventType.DATE_CHOSEN
    date: date


@dataclass(frozen=True, kw_only=True)
class CalendarMonthChangeEvent(Event):
    event_type: ClassVar[EventType] = EventType.CALENDAR_MONTH_CHANGE
    year: int
    month: int


@dataclass(frozen=True, kw_only=True)
class TableChosenEvent(Event):
    event_type: ClassVar[EventType] = EventType.TABLE_CHOSEN
    table_id: int


@dataclass(frozen=True, kw_only=True)
class SlotChosenEvent(Event):
    event_type: ClassVar[EventType] = EventType.SLOT_CHOSEN
    start: datetime
    end: datetime


@dataclass(frozen=True, kw_only=True)
class ConfirmBookingEvent(Event):
    event_type: ClassVar[EventType] = EventType.CONFIRM_BOOKING


@dataclass(frozen=True, kw_only=True)
class VenueChosenForInfoEvent(Event):
    event_type: ClassVar[EventType] = EventType.VENUE_CHOSEN_FOR_INFO
    venue_id: int


@dataclass(frozen=True, kw_only=True)
class VenuePostersRequestedEvent(Event):
    event_type: ClassVar[EventType] = EventType.VENUE_POSTERS_REQUESTED
    venue_id: int


@dataclass(frozen=True, kw_only=True)
class VenuePhotosRequestedEvent(Event):
    event_type: ClassVar[EventType] = EventType.VENUE_PHOTOS_REQUESTED
    venue_id: int


@dataclass(frozen=True, kw_only=True)
class ManageBookingEvent(Event):
    event_type: ClassVar[EventType] = EventType.MANAGE_BOOKING
    booking_id: int


@dataclass(frozen=True, kw_only=True)
class CancelBookingEvent(Event):
    event_type: ClassVar[EventType] = EventType.CANCEL_BOOKING
    booking_id: int


@dataclass(frozen=True, kw_only=True)
class ChangeBookingEvent(Event):
    event_type: ClassVar[EventType] = EventType.CHANGE_BOOKING
    booking_id: int


@dataclass(frozen=True, kw_only=True)
class RateBookingEvent(Event):
    """``rating`` is None when the user only opens the feedback prompt."""
    event_type: ClassVar[EventType] = EventType.RATE_BOOKING
    booking_id: int
    rating: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class BackPressedEvent(Event):
    """Carries the name of the state the rendered back button points to."""
    event_type: ClassVar[EventType] = EventType.BACK_PRESSED
    target_state: str


@dataclass(frozen=True, kw_only=True)
class CancelActionEvent(Event):
    event_type: ClassVar[EventType] = EventType.CANCEL_ACTION


# --- Free text expected by the current state ---

@dataclass(frozen=True, kw_only=True)
class PeopleEnteredEvent(Event):
    """``count`` is None when the text was not a number."""
    event_type: ClassVar[EventType] = EventType.PEOPLE_ENTERED
    count: Optional[int]
    text: str = ""


@dataclass(frozen=True, kw_only=True)
class GuestNameEnteredEvent(Event):
    event_type: ClassVar[EventType] = EventType.GUEST_NAME_ENTERED
    name: str


@dataclass(frozen=True, kw_only=True)
class GuestPhoneEnteredEvent(Event):
    event_type: ClassVar[EventType] = EventType.GUEST_PHONE_ENTERED
    phone: str


@dataclass(frozen=True, kw_only=True)
class QuestionEnteredEvent(Event):
    event_type: ClassVar[EventType] = EventType.QUESTION_ENTERED
    question: str


# --- System events ---

@dataclass(frozen=True, kw_only=True)
class UnknownInputEvent(Event):
    event_type: ClassVar[EventType] = EventType.UNKNOWN_INPUT
    text: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class ErrorOccurredEvent(Event):
    event_type: ClassVar[EventType] = EventType.ERROR_OCCURRED
    error: Optional[BaseException] = None
    user_message: Optional[str] = None
