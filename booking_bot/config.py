"""
Centralized configuration with environment variable overrides.

Booking limits, loyalty points, slot layout, locale and session policy
are configurable here. Nothing is hardcoded in the state machine or
its actions.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from booking_bot.logging_context import ChatIdFilter

load_dotenv()

logger = logging.getLogger(__name__)


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_int_list(env_var: str, default: str) -> tuple[int, ...]:
    """Parse a comma-separated list of integers from an env var."""
    raw = os.getenv(env_var, default)
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except (ValueError, TypeError, AttributeError):
        raise ValueError(
            f"Invalid integer list for {env_var}: {raw!r}"
        ) from None


def _str_list(env_var: str, default: str) -> tuple[str, ...]:
    raw = os.getenv(env_var, default)
    return tuple(part.strip().lower() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class BookingConfig:
    """Booking flow limits and loyalty rules."""

    min_guests: int = _safe_int("MIN_GUESTS", "1")
    guest_slack: int = _safe_int("GUEST_SLACK", "2")
    max_guests_default: int = _safe_int("MAX_GUESTS_DEFAULT", "20")
    points_per_guest: int = _safe_int("POINTS_PER_GUEST", "10")
    points_for_feedback: int = _safe_int("POINTS_FOR_FEEDBACK", "50")
    slot_start_hours: tuple[int, ...] = _safe_int_list("SLOT_START_HOURS", "18,20,22")
    slot_duration_hours: int = _safe_int("SLOT_DURATION_HOURS", "2")
    max_days_ahead: int = _safe_int("MAX_DAYS_AHEAD", "90")
    calendar_months_ahead: int = _safe_int("CALENDAR_MONTHS_AHEAD", "3")
    default_timezone: str = os.getenv("DEFAULT_TIMEZONE", "Europe/Moscow")


@dataclass(frozen=True)
class LocaleConfig:
    """Language defaults for prompts."""

    default_language: str = os.getenv("DEFAULT_LANGUAGE", "ru").lower()
    supported_languages: tuple[str, ...] = _str_list("SUPPORTED_LANGUAGES", "ru,en")


@dataclass(frozen=True)
class SessionConfig:
    """Per-chat session lifecycle policy."""

    # 0 disables idle expiry
    idle_timeout_sec: int = _safe_int("SESSION_IDLE_TIMEOUT_SEC", "0")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    booking: BookingConfig = field(default_factory=BookingConfig)
    locale: LocaleConfig = field(default_factory=LocaleConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    bot_name: str = os.getenv("BOT_NAME", "club-booking-bot")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    booking = config.booking
    if booking.min_guests < 1:
        raise ValueError(f"MIN_GUESTS must be >= 1, got {booking.min_guests}")
    if booking.guest_slack < 0:
        raise ValueError(f"GUEST_SLACK must be >= 0, got {booking.guest_slack}")
    if booking.max_guests_default < booking.min_guests:
        raise ValueError(
            "MAX_GUESTS_DEFAULT must be >= MIN_GUESTS, "
            f"got {booking.max_guests_default} < {booking.min_guests}"
        )

    for name, value in [
        ("POINTS_PER_GUEST", booking.points_per_guest),
        ("POINTS_FOR_FEEDBACK", booking.points_for_feedback),
    ]:
        if value < 0:
            raise ValueError(f"{name} must be >= 0, got {value}")

    if not booking.slot_start_hours:
        raise ValueError("SLOT_START_HOURS must list at least one hour")
    for hour in booking.slot_start_hours:
        if not 0 <= hour <= 23:
            raise ValueError(f"SLOT_START_HOURS entries must be 0-23, got {hour}")
    if booking.slot_duration_hours < 1:
        raise ValueError(
            f"SLOT_DURATION_HOURS must be >= 1, got {booking.slot_duration_hours}"
        )
    if booking.max_days_ahead < 1:
        raise ValueError(f"MAX_DAYS_AHEAD must be >= 1, got {booking.max_days_ahead}")
    if booking.calendar_months_ahead < 0:
        raise ValueError(
            f"CALENDAR_MONTHS_AHEAD must be >= 0, got {booking.calendar_months_ahead}"
        )

    if not config.locale.supported_languages:
        raise ValueError("SUPPORTED_LANGUAGES must list at least one language")
    if config.locale.default_language not in config.locale.supported_languages:
        raise ValueError(
            f"DEFAULT_LANGUAGE {config.locale.default_language!r} "
            f"is not in SUPPORTED_LANGUAGES {config.locale.supported_languages}"
        )

    if config.session.idle_timeout_sec < 0:
        raise ValueError(
            f"SESSION_IDLE_TIMEOUT_SEC must be >= 0, got {config.session.idle_timeout_sec}"
        )


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] [chat %(chat_id)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, ChatIdFilter) for f in handler.filters):
            handler.addFilter(ChatIdFilter())
    logger.info("Configuration loaded for '%s'", config.bot_name)
    return config


# Singleton instance
settings = load_config()
