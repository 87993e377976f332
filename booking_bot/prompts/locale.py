"""Localized prompt strings for the booking bot.

Each supported language has one ``LocalizedStrings`` bundle. Parameterized
messages are stored as ``str.format`` templates and exposed through small
helper methods so callers never format them by hand.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from booking_bot.config import settings

COMMAND_START = "/start"
COMMAND_HELP = "/help"
COMMAND_LANG = "/lang"


@dataclass(frozen=True)
class LocalizedStrings:
    """Prompt and label bundle for one language."""

    language_code: str
    language_name: str

    # General
    welcome_named: str
    welcome_anonymous: str
    choose_action: str
    button_back: str
    button_confirm: str
    button_cancel: str
    action_cancelled: str
    error_default: str
    unknown_command: str
    feature_in_development: str
    step_tracker_template: str

    # Main menu labels
    menu_venue_info: str
    menu_my_bookings: str
    menu_book_table_template: str
    menu_ask_question: str
    menu_open_app: str
    menu_help: str
    menu_change_language: str

    choose_language_prompt: str
    unsupported_language: str
    language_changed: str

    # Booking flow
    choose_club_prompt: str
    club_not_found: str
    choose_date_prompt: str
    date_in_past: str
    date_too_far_template: str
    choose_table_prompt: str
    table_button_template: str
    table_not_found: str
    no_available_tables: str
    ask_people_count: str
    invalid_people_count_template: str
    choose_slot_prompt: str
    slot_not_available: str
    no_available_slots: str
    ask_guest_name: str
    invalid_guest_name: str
    ask_guest_phone: str
    invalid_phone_format: str
    confirm_booking_prompt: str
    booking_details_template: str
    table_already_taken: str
    booking_success_template: str
    not_all_data_collected: str

    # Venue info
    choose_venue_for_info: str
    venue_button_posters: str
    venue_button_photos: str
    venue_not_found: str

    # My bookings
    no_active_bookings: str
    my_bookings_header: str
    booking_not_found: str
    booking_already_cancelled: str
    booking_cancellation_template: str
    change_booking_info: str
    invalid_rating: str
    feedback_prompt_template: str
    feedback_thanks_template: str

    # Questions and help
    ask_question_prompt: str
    empty_question: str
    question_received: str
    help_text: str

    def welcome_message(self, user_name: Optional[str]) -> str:
        if user_name:
            return self.welcome_named.format(name=user_name)
        return self.welcome_anonymous

    def step_tracker(self, current: int, total: int) -> str:
        return self.step_tracker_template.format(current=current, total=total)

    def menu_book_table_in_club(self, club_name: str) -> str:
        return self.menu_book_table_template.format(club=club_name)

    def main_menu_labels(self) -> dict[str, str]:
        """Static reply-keyboard labels keyed by menu action value."""
        return {
            "show_venue_info": self.menu_venue_info,
            "my_bookings": self.menu_my_bookings,
            "ask_question": self.menu_ask_question,
            "open_app": self.menu_open_app,
            "show_help": self.menu_help,
            "change_language": self.menu_change_language,
        }

    def date_too_far(self, max_days: int) -> str:
        return self.date_too_far_template.format(days=max_days)

    def table_button(self, number: int, seats: int) -> str:
        return self.table_button_template.format(number=number, seats=seats)

    def invalid_people_count(self, min_guests: int, max_guests: int) -> str:
        return self.invalid_people_count_template.format(min=min_guests, max=max_guests)

    def booking_details(
        self,
        club_name: str,
        table_number: int,
        guests: int,
        booking_date: date,
        start: datetime,
        end: datetime,
        guest_name: str,
        guest_phone: str,
    ) -> str:
        return self.booking_details_template.format(
            club=club_name,
            table=table_number,
            guests=guests,
            date=booking_date.strftime("%d.%m.%Y"),
            slot=f"{start:%H:%M}-{end:%H:%M}",
            name=guest_name,
            phone=guest_phone,
        )

    def booking_success(self, booking_id: int, points: int) -> str:
        return self.booking_success_template.format(id=booking_id, points=points)

    def booking_cancellation(self, booking_id: int, club_name: str) -> str:
        return self.booking_cancellation_template.format(id=booking_id, club=club_name)

    def feedback_prompt(self, club_name: str, booking_id: int) -> str:
        return self.feedback_prompt_template.format(club=club_name, id=booking_id)

    def feedback_thanks(self, rating: int, points: int) -> str:
        return self.feedback_thanks_template.format(rating=rating, points=points)


RUSSIAN = LocalizedStrings(
    language_code="ru",
    language_name="Русский 🇷🇺",
    welcome_named="Рады Вас Видеть, @{name}!\nВыберите действие:",
    welcome_anonymous="Рады Вас Видеть!\nВыберите действие:",
    choose_action="Выберите действие:",
    button_back="⬅️ Назад",
    button_confirm="✅ Подтвердить",
    button_cancel="❌ Отменить",
    action_cancelled="Действие отменено.",
    error_default="⚠️ Произошла ошибка. Пожалуйста, попробуйте еще раз или начните заново с команды /start.",
    unknown_command="Не совсем понял вас. Пожалуйста, используйте кнопки меню или команду /start.",
    feature_in_development="🛠 Эта функция пока в разработке. Следите за обновлениями!",
    step_tracker_template="Шаг {current} из {total}",
    menu_venue_info="Наши заведения (INFO)",
    menu_my_bookings="Мои бронирования",
    menu_book_table_template="Бронь в {club}",
    menu_ask_question="Задать вопрос",
    menu_open_app="Открыть приложение",
    menu_help="❓ Помощь/FAQ",
    menu_change_language="Сменить язык",
    choose_language_prompt="Пожалуйста, выберите язык:",
    unsupported_language="Этот язык пока не поддерживается.",
    language_changed="Язык изменен.",
    choose_club_prompt="Выберите клуб для бронирования:",
    club_not_found="Клуб не найден или временно недоступен.",
    choose_date_prompt="🗓 Выберите дату:",
    date_in_past="Нельзя выбрать прошедшую дату.",
    date_too_far_template="Бронирование доступно не более чем на {days} дней вперед.",
    choose_table_prompt="Выберите стол:",
    table_button_template="Стол №{number} (до {seats} чел.)",
    table_not_found="Стол не найден или недоступен.",
    no_available_tables="К сожалению, в выбранном клубе нет доступных столов на выбранную дату.",
    ask_people_count="Сколько гостей придёт? (например, 5)",
    invalid_people_count_template="Количество гостей должно быть числом от {min} до {max}.",
    choose_slot_prompt="Выберите удобный временной слот:",
    slot_not_available="Этот слот недоступен. Выберите другой.",
    no_available_slots="К сожалению, для выбранного стола нет доступных слотов на эту дату.",
    ask_guest_name="На чье имя забронировать стол? (например, Иван)",
    invalid_guest_name="Имя должно содержать от 2 до 50 символов.",
    ask_guest_phone="Введите контактный номер телефона (например, +79123456789):",
    invalid_phone_format="Неверный формат номера телефона. Введите номер в формате +7XXXXXXXXXX или 8XXXXXXXXXX.",
    confirm_booking_prompt="Пожалуйста, подтвердите вашу бронь:",
    booking_details_template=(
        "Клуб: {club}\nСтол: №{table}\nКоличество гостей: {guests}\n"
        "Дата: {date}\nВремя: {slot}\nИмя: {name}\nТелефон: {phone}"
    ),
    table_already_taken="К сожалению, этот стол уже забронирован на выбранную дату.",
    booking_success_template="✅ Бронь #{id} успешно создана! Вам начислено {points} бонусных баллов. Спасибо!",
    not_all_data_collected="Не все данные для бронирования были собраны. Пожалуйста, начните заново.",
    choose_venue_for_info="Выберите заведение для просмотра информации:",
    venue_button_posters="Афиши",
    venue_button_photos="Фотоотчет",
    venue_not_found="Информация о заведении не найдена.",
    no_active_bookings="У вас нет активных бронирований.",
    my_bookings_header="Ваши активные бронирования:",
    booking_not_found="Бронь не найдена или у вас нет прав на это действие.",
    booking_already_cancelled="Эта бронь уже была отменена.",
    booking_cancellation_template="Ваша бронь #{id} в клубе '{club}' отменена.",
    change_booking_info=(
        "Для изменения бронирования отмените текущее и создайте новое, "
        "или свяжитесь с администрацией клуба."
    ),
    invalid_rating="Оценка должна быть от 1 до 5.",
    feedback_prompt_template="Оцените посещение клуба {club} (бронь #{id}) от 1 до 5 ⭐:",
    feedback_thanks_template="Спасибо за ваш отзыв ({rating} ⭐)! Вам начислено {points} баллов.",
    ask_question_prompt="Напишите ваш вопрос, и мы постараемся ответить как можно скорее:",
    empty_question="Вопрос не может быть пустым.",
    question_received="Спасибо! Ваш вопрос принят. Мы скоро с вами свяжемся.",
    help_text=(
        "Помощь по боту:\n"
        "- Используйте кнопки главного меню для навигации.\n"
        "- /start - начать новое бронирование.\n"
        "- /lang - сменить язык."
    ),
)

ENGLISH = LocalizedStrings(
    language_code="en",
    language_name="English 🇬🇧",
    welcome_named="Welcome, @{name}!\nPlease select an action:",
    welcome_anonymous="Welcome!\nPlease select an action:",
    choose_action="Please select an action:",
    button_back="⬅️ Back",
    button_confirm="✅ Confirm",
    button_cancel="❌ Cancel",
    action_cancelled="Action cancelled.",
    error_default="⚠️ An error occurred. Please try again or start over with the /start command.",
    unknown_command="I didn't quite understand that. Please use the menu buttons or the /start command.",
    feature_in_development="🛠 This feature is currently under development. Stay tuned for updates!",
    step_tracker_template="Step {current} of {total}",
    menu_venue_info="Our Venues (INFO)",
    menu_my_bookings="My Bookings",
    menu_book_table_template="Book in {club}",
    menu_ask_question="Ask a Question",
    menu_open_app="Open App",
    menu_help="❓ Help/FAQ",
    menu_change_language="Change Language",
    choose_language_prompt="Please select your language:",
    unsupported_language="This language is not supported yet.",
    language_changed="Language changed.",
    choose_club_prompt="Select a club to book:",
    club_not_found="Club not found or temporarily unavailable.",
    choose_date_prompt="🗓 Select a date:",
    date_in_past="You cannot pick a date in the past.",
    date_too_far_template="Bookings are open at most {days} days ahead.",
    choose_table_prompt="Select a table:",
    table_button_template="Table #{number} (up to {seats} ppl)",
    table_not_found="Table not found or unavailable.",
    no_available_tables="Unfortunately, there are no tables available at the selected club for the chosen date.",
    ask_people_count="How many guests will there be? (e.g., 5)",
    invalid_people_count_template="The number of guests must be between {min} and {max}.",
    choose_slot_prompt="Select a convenient time slot:",
    slot_not_available="This slot is not available. Please pick another one.",
    no_available_slots="Unfortunately, there are no available slots for the selected table on this date.",
    ask_guest_name="What name should the booking be under? (e.g., John)",
    invalid_guest_name="The name must be 2 to 50 characters long.",
    ask_guest_phone="Please enter your contact phone number (e.g., +12345678900):",
    invalid_phone_format="Invalid phone number format. Please enter a valid number.",
    confirm_booking_prompt="Please confirm your booking:",
    booking_details_template=(
        "Club: {club}\nTable: #{table}\nGuests: {guests}\n"
        "Date: {date}\nTime: {slot}\nName: {name}\nPhone: {phone}"
    ),
    table_already_taken="Unfortunately, this table is already booked for the selected date.",
    booking_success_template="✅ Booking #{id} successfully created! You've earned {points} loyalty points. Thank you!",
    not_all_data_collected="Not all booking data was collected. Please start over.",
    choose_venue_for_info="Select a venue to view information:",
    venue_button_posters="Posters",
    venue_button_photos="Photo Report",
    venue_not_found="Venue information not found.",
    no_active_bookings="You have no active bookings.",
    my_bookings_header="Your active bookings:",
    booking_not_found="Booking not found or you do not have permission for this action.",
    booking_already_cancelled="This booking has already been cancelled.",
    booking_cancellation_template="Your booking #{id} at '{club}' has been cancelled.",
    change_booking_info=(
        "To change a booking, cancel the current one and create a new one, "
        "or contact the club administration."
    ),
    invalid_rating="The rating must be between 1 and 5.",
    feedback_prompt_template="Please rate your visit to {club} (booking #{id}) from 1 to 5 ⭐:",
    feedback_thanks_template="Thank you for your feedback ({rating} ⭐)! You've earned {points} points.",
    ask_question_prompt="Write your question and we will answer as soon as possible:",
    empty_question="The question cannot be empty.",
    question_received="Thank you! Your question has been received. We will contact you soon.",
    help_text=(
        "Bot help:\n"
        "- Use the main menu buttons to navigate.\n"
        "- /start - start a new booking.\n"
        "- /lang - change the language."
    ),
)

BUNDLES: dict[str, LocalizedStrings] = {
    RUSSIAN.language_code: RUSSIAN,
    ENGLISH.language_code: ENGLISH,
}


def is_supported(language_code: Optional[str]) -> bool:
    return (
        language_code is not None
        and language_code.lower() in BUNDLES
        and language_code.lower() in settings.locale.supported_languages
    )


def get_strings(language_code: Optional[str]) -> LocalizedStrings:
    """Return the bundle for a language, falling back to the default one."""
    if is_supported(language_code):
        return BUNDLES[language_code.lower()]
    return BUNDLES[settings.locale.default_language]


def supported_languages() -> list[str]:
    return [code for code in settings.locale.supported_languages if code in BUNDLES]
