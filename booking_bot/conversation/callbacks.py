"""
Button callback payload format.

Payloads are language-independent strings: a prefix followed by
colon-separated fields. Facades build them with the helpers below; the
event mapper is the only place that parses them.
"""

from datetime import date, datetime
from typing import Optional

SELECT_LANG = "select_lang:"
BOOK_CLUB = "book_club:"
CHOOSE_DATE = "cal_date:"
CALENDAR_MONTH = "cal_month:"  # prev_YYYY-MM or next_YYYY-MM
CHOOSE_TABLE = "table:"
CHOOSE_SLOT = "slot:"  # slot:<start epoch>:<end epoch>
CONFIRM_BOOKING = "confirm_booking"
CANCEL_ACTION = "cancel_action"
BACK_TO = "back_to:"

VENUE_INFO = "venue_info:"
VENUE_POSTERS = "venue_posters:"
VENUE_PHOTOS = "venue_photos:"

MANAGE_BOOKING = "manage_booking:"
DO_CANCEL_BOOKING = "do_cancel_bk:"
DO_CHANGE_BOOKING = "do_change_bk:"
RATE_BOOKING = "rate_bk:"  # rate_bk:<booking id>[:<rating>]

MAIN_MENU_VENUE_INFO = "main_menu_venue_info"
MAIN_MENU_MY_BOOKINGS = "main_menu_my_bookings"
MAIN_MENU_BOOK_TABLE = "main_menu_book_table"
MAIN_MENU_ASK_QUESTION = "main_menu_ask_question"
MAIN_MENU_OPEN_APP = "main_menu_open_app"
MAIN_MENU_HELP = "main_menu_help"
MAIN_MENU_CHANGE_LANG = "main_menu_change_lang"


def select_lang(code: str) -> str:
    return f"{SELECT_LANG}{code}"


def book_club(club_id: int) -> str:
    return f"{BOOK_CLUB}{club_id}"


def choose_date(value: date) -> str:
    return f"{CHOOSE_DATE}{value.isoformat()}"


def calendar_month(direction: str, year: int, month: int) -> str:
    return f"{CALENDAR_MONTH}{direction}_{year:04d}-{month:02d}"


def choose_table(table_id: int) -> str:
    return f"{CHOOSE_TABLE}{table_id}"


def choose_slot(start: datetime, end: datetime) -> str:
    return f"{CHOOSE_SLOT}{int(start.timestamp())}:{int(end.timestamp())}"


def back_to(state_name: str) -> str:
    return f"{BACK_TO}{state_name}"


def venue_info(venue_id: int) -> str:
    return f"{VENUE_INFO}{venue_id}"


def venue_posters(venue_id: int) -> str:
    return f"{VENUE_POSTERS}{venue_id}"


def venue_photos(venue_id: int) -> str:
    return f"{VENUE_PHOTOS}{venue_id}"


def manage_booking(booking_id: int) -> str:
    return f"{MANAGE_BOOKING}{booking_id}"


def cancel_booking(booking_id: int) -> str:
    return f"{DO_CANCEL_BOOKING}{booking_id}"


def change_booking(booking_id: int) -> str:
    return f"{DO_CHANGE_BOOKING}{booking_id}"


def rate_booking(booking_id: int, rating: Optional[int] = None) -> str:
    if rating is None:
        return f"{RATE_BOOKING}{booking_id}"
    return f"{RATE_BOOKING}{booking_id}:{rating}"
