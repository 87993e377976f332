"""Chat ID logging context for tracing one conversation across modules.

Provides a chat_id-aware logger that attaches the chat identity to every
log record, so a single user's pass through the booking workflow can be
followed in interleaved logs from many concurrent chats.

Usage:
    from booking_bot.logging_context import get_chat_logger, set_chat_id

    set_chat_id(123456789)
    logger = get_chat_logger(__name__)
    logger.info("Processing update")  # → [chat 123456789] Processing update
"""

import logging
from contextvars import ContextVar
from typing import Optional, Union

NO_CHAT_ID = "-"

_chat_id: ContextVar[str] = ContextVar("chat_id", default=NO_CHAT_ID)


def set_chat_id(chat_id: Optional[Union[int, str]]) -> None:
    """Set the chat identity for the current async context."""
    _chat_id.set(NO_CHAT_ID if chat_id is None else str(chat_id))


def get_chat_id() -> str:
    """Retrieve the current chat identity."""
    return _chat_id.get()


class ChatIdFilter(logging.Filter):
    """Injects chat_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "chat_id"):
            record.chat_id = _chat_id.get()  # type: ignore[attr-defined]
        return True


def get_chat_logger(name: str) -> logging.Logger:
    """Return a logger with the ChatIdFilter attached.

    The filter adds ``chat_id`` to each record so formatters can
    include ``%(chat_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, ChatIdFilter) for f in logger.filters):
        logger.addFilter(ChatIdFilter())
    return logger
