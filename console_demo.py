"""
Offline console demo: runs booking conversations without a chat transport.

Drives the real session registry, state machine and event mapper through
a console chat facade and the in-memory repositories. No Telegram, no
database, no network calls.

Buttons are printed with their callback payloads; in interactive mode
type ``!<payload>`` to press one, anything else is sent as text.

Usage:
    python console_demo.py
    python console_demo.py --scenario booking
    python console_demo.py --scenario cancel
"""

import argparse
import asyncio
from datetime import date, timedelta
from typing import Optional

from booking_bot.config import settings
from booking_bot.conversation import callbacks
from booking_bot.conversation.session_registry import SessionRegistry
from booking_bot.deps import BookingDeps, Slot, Step
from booking_bot.prompts.locale import LocalizedStrings
from booking_bot.schemas.entities import Booking, BookingWithVenueName, TableInfo, Venue
from booking_bot.schemas.update_schema import Update
from booking_bot.tools.availability import generate_slots
from booking_bot.tools.bookings import InMemoryBookingsRepo
from booking_bot.tools.tables import InMemoryTablesRepo
from booking_bot.tools.users import InMemoryUsersRepo
from booking_bot.tools.venues import InMemoryVenuesRepo

BLUE = "\033[94m"
GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

DEMO_CHAT_ID = 1001
DEMO_USER_ID = 555


class ConsoleChatFacade:
    """Prints every prompt and its buttons to the terminal."""

    def _say(self, text: str, step: Step = None) -> None:
        tracker = f"{DIM}({step[0]}/{step[1]}){RESET} " if step else ""
        print(f"{GREEN}{BOLD}[bot]{RESET} {tracker}{GREEN}{text}{RESET}")

    def _buttons(self, buttons: list[tuple[str, str]]) -> None:
        for label, payload in buttons:
            print(f"{DIM}    [{label}] !{payload}{RESET}")

    def _menu(self, strings: LocalizedStrings, venues: list[Venue]) -> None:
        labels = [strings.menu_book_table_in_club(v.name) for v in venues]
        labels += list(strings.main_menu_labels().values())
        print(f"{DIM}    menu: {' | '.join(labels)}{RESET}")

    def _back(self, strings: LocalizedStrings, target: str) -> tuple[str, str]:
        return strings.button_back, callbacks.back_to(target)

    async def send_welcome(self, chat_id, user_name, strings, venues, message_id=None):
        self._say(strings.welcome_message(user_name))
        self._menu(strings, venues)

    async def send_language_selection(self, chat_id, strings, languages, message_id=None):
        self._say(strings.choose_language_prompt)
        self._buttons([(code, callbacks.select_lang(code)) for code in languages]
                      + [self._back(strings, "main_menu")])

    async def send_help(self, chat_id, strings, venues, message_id=None):
        self._say(strings.help_text)

    async def send_choose_club(self, chat_id, venues, strings, message_id=None, step=None):
        self._say(strings.choose_club_prompt, step)
        self._buttons([(v.name, callbacks.book_club(v.id)) for v in venues]
                      + [self._back(strings, "main_menu")])

    async def send_calendar(self, chat_id, year, month, strings, message_id=None, step=None):
        self._say(f"{strings.choose_date_prompt} {year:04d}-{month:02d}", step)
        first = date(year, month, 1)
        self._buttons([
            (first.isoformat(), callbacks.choose_date(first)),
            ("›", callbacks.calendar_month("next", year + month // 12, month % 12 + 1)),
            self._back(strings, "choose_club"),
        ])

    async def send_choose_table(self, chat_id, tables: list[TableInfo], venue, selected_date,
                                strings, message_id=None, step=None):
        if not tables:
            self._say(strings.no_available_tables, step)
        else:
            self._say(f"{strings.choose_table_prompt} ({venue.name}, {selected_date})", step)
        self._buttons([(strings.table_button(t.number, t.seats), callbacks.choose_table(t.id))
                       for t in tables] + [self._back(strings, "choose_date")])

    async def ask_people_count(self, chat_id, strings, max_guests, message_id=None, step=None):
        self._say(f"{strings.ask_people_count} (max {max_guests})", step)
        self._buttons([self._back(strings, "choose_table")])

    async def send_choose_slot(self, chat_id, venue, table, slots: list[Slot], strings,
                               message_id=None, step=None):
        self._say(strings.choose_slot_prompt, step)
        self._buttons([(f"{s:%H:%M}-{e:%H:%M}", callbacks.choose_slot(s, e)) for s, e in slots]
                      + [self._back(strings, "enter_people")])

    async def ask_guest_name(self, chat_id, strings, message_id=None, step=None):
        self._say(strings.ask_guest_name, step)

    async def ask_guest_phone(self, chat_id, strings, message_id=None, step=None):
        self._say(strings.ask_guest_phone, step)

    async def send_confirm(self, chat_id, summary, strings, message_id=None, step=None):
        self._say(f"{strings.confirm_booking_prompt}\n{summary}", step)
        self._buttons([
            (strings.button_confirm, callbacks.CONFIRM_BOOKING),
            (strings.button_cancel, callbacks.CANCEL_ACTION),
            self._back(strings, "enter_guest_phone"),
        ])

    async def send_booking_success(self, chat_id, booking: Booking, strings, venues, message_id=None):
        self._say(strings.booking_success(booking.id, booking.loyalty_points_earned))

    async def send_action_cancelled(self, chat_id, strings, venues, message_id=None):
        self._say(strings.action_cancelled)

    async def send_venue_selection(self, chat_id, venues, strings, message_id=None):
        self._say(strings.choose_venue_for_info)
        self._buttons([(v.name, callbacks.venue_info(v.id)) for v in venues]
                      + [self._back(strings, "main_menu")])

    async def send_venue_details(self, chat_id, venue: Venue, strings, message_id=None):
        self._say(f"{venue.name}\n{venue.description or ''}\n{venue.address}")
        self._buttons([
            (strings.menu_book_table_in_club(venue.name), callbacks.book_club(venue.id)),
            (strings.venue_button_posters, callbacks.venue_posters(venue.id)),
            (strings.venue_button_photos, callbacks.venue_photos(venue.id)),
            self._back(strings, "venue_list"),
        ])

    async def send_my_bookings(self, chat_id, bookings: list[BookingWithVenueName], strings,
                               message_id=None):
        if not bookings:
            self._say(strings.no_active_bookings)
        else:
            self._say(strings.my_bookings_header)
        self._buttons([(f"#{b.booking.id} {b.venue_name} {b.booking.booking_date}",
                        callbacks.manage_booking(b.booking.id)) for b in bookings]
                      + [self._back(strings, "main_menu")])

    async def send_manage_booking(self, chat_id, booking: BookingWithVenueName, strings,
                                  message_id=None):
        b = booking.booking
        self._say(f"#{b.id} {booking.venue_name} {b.date_start:%d.%m %H:%M}, {b.guests_count}")
        self._buttons([
            (strings.button_cancel, callbacks.cancel_booking(b.id)),
            ("✏️", callbacks.change_booking(b.id)),
            ("⭐", callbacks.rate_booking(b.id)),
            self._back(strings, "my_bookings_list"),
        ])

    async def send_booking_cancelled(self, chat_id, booking, strings, venues, message_id=None):
        self._say(strings.booking_cancellation(booking.booking.id, booking.venue_name))

    async def ask_feedback(self, chat_id, booking, strings, message_id=None):
        self._say(strings.feedback_prompt(booking.venue_name, booking.booking.id))
        self._buttons([(str(r), callbacks.rate_booking(booking.booking.id, r)) for r in range(1, 6)])

    async def send_feedback_thanks(self, chat_id, rating, points, strings, venues, message_id=None):
        self._say(strings.feedback_thanks(rating, points))

    async def send_ask_question(self, chat_id, strings, message_id=None):
        self._say(strings.ask_question_prompt)

    async def send_question_received(self, chat_id, strings, venues, message_id=None):
        self._say(strings.question_received)

    async def send_error(self, chat_id, strings, text, venues, message_id=None):
        print(f"{RED}{BOLD}[bot]{RESET} {RED}{text}{RESET}")

    async def send_info(self, chat_id, strings, text, message_id=None):
        print(f"{YELLOW}{BOLD}[bot]{RESET} {YELLOW}{text}{RESET}")

    async def send_unknown_input(self, chat_id, strings, venues, message_id=None):
        self._say(strings.unknown_command)
        self._menu(strings, venues)


def build_registry() -> SessionRegistry:
    venues = InMemoryVenuesRepo()
    bookings = InMemoryBookingsRepo(venues)
    deps = BookingDeps(
        bot=ConsoleChatFacade(),
        users=InMemoryUsersRepo(),
        venues=venues,
        tables=InMemoryTablesRepo(bookings),
        bookings=bookings,
    )
    return SessionRegistry(deps)


def build_scenarios() -> dict[str, list[str]]:
    """Scripted inputs; ``!`` marks a button press."""
    day = date.today() + timedelta(days=1)
    start, end = generate_slots(day, settings.booking.default_timezone)[1]
    booking = [
        "/start",
        "/start",
        f"!{callbacks.book_club(7)}",
        f"!{callbacks.choose_date(day)}",
        f"!{callbacks.choose_table(42)}",
        "0",
        "4",
        f"!{callbacks.choose_slot(start, end)}",
        "Ivan",
        "+7 912 345-67-89",
        f"!{callbacks.CONFIRM_BOOKING}",
    ]
    return {
        "booking": booking,
        "back": booking[:6] + [
            f"!{callbacks.back_to('choose_table')}",
            f"!{callbacks.back_to('choose_club')}",
            f"!{callbacks.choose_table(43)}",
            f"!{callbacks.CANCEL_ACTION}",
        ],
        "cancel": booking + [
            "Мои бронирования",
            f"!{callbacks.manage_booking(1)}",
            f"!{callbacks.change_booking(1)}",
            f"!{callbacks.cancel_booking(1)}",
        ],
        "info": [
            "Наши заведения (INFO)",
            f"!{callbacks.venue_info(7)}",
            f"!{callbacks.venue_posters(7)}",
            f"!{callbacks.venue_photos(7)}",
            f"!{callbacks.back_to('venue_list')}",
            f"!{callbacks.back_to('main_menu')}",
            "what is this?",
        ],
    }


def to_update(raw: str, message_id: int) -> Update:
    common = dict(
        chat_id=DEMO_CHAT_ID, user_id=DEMO_USER_ID, user_name="demo",
        language_code="ru", message_id=message_id,
    )
    if raw.startswith("!"):
        return Update(callback_data=raw[1:], **common)
    return Update(text=raw, **common)


async def send(registry: SessionRegistry, raw: str, message_id: int) -> None:
    print(f"\n{BLUE}[user]{RESET} {raw}")
    result = await registry.handle(to_update(raw, message_id))
    if result is None:
        print(f"{DIM}  >> dropped{RESET}")
    elif not result.accepted:
        print(f"{DIM}  >> ignored in {result.source.value}{RESET}")
    else:
        print(f"{DIM}  >> {result.source.value} -> {result.target.value}{RESET}")


async def run_scenario(name: str) -> None:
    steps = build_scenarios()[name]
    registry = build_registry()

    print()
    print(f"{BOLD}{'=' * 60}{RESET}")
    print(f"{BOLD}  CLUB BOOKING BOT - Scenario: {name}{RESET}")
    print(f"{BOLD}  Bot: {settings.bot_name}{RESET}")
    print(f"{BOLD}{'=' * 60}{RESET}")

    for message_id, raw in enumerate(steps, start=1):
        await send(registry, raw, message_id)

    print(f"\n{BOLD}{'=' * 60}{RESET}")
    print(f"{BOLD}  Scenario '{name}' complete.{RESET}")
    print(f"{DIM}  Bookings: {registry.deps.bookings.all()}{RESET}")
    print(f"{BOLD}{'=' * 60}{RESET}")


async def run_interactive() -> None:
    registry = build_registry()
    print(f"{BOLD}  CLUB BOOKING BOT - Console Demo ('quit' to exit){RESET}")
    message_id = 0
    while True:
        raw = input(f"\n{BLUE}[user] {RESET}").strip()
        if not raw:
            continue
        if raw.lower() in ("quit", "exit", "q"):
            print(f"\n{DIM}Session ended.{RESET}")
            return
        message_id += 1
        await send(registry, raw, message_id)


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Offline console demo")
    parser.add_argument(
        "--scenario",
        choices=sorted(build_scenarios()),
        default=None,
        help="Auto-play a pre-scripted scenario instead of interactive mode",
    )
    args = parser.parse_args(argv)
    if args.scenario:
        asyncio.run(run_scenario(args.scenario))
    else:
        asyncio.run(run_interactive())


if __name__ == "__main__":
    main()
