"""
Chat-to-session registry driving the booking state machine.

Owns one ``Session`` per chat, creates it lazily on the first update,
serializes updates per chat with a lock, and discards the session once
it reaches a terminal state so the next interaction starts clean.
Different chats are processed concurrently.

Usage:
    registry = SessionRegistry(deps)
    await registry.handle(Update(chat_id=1, user_id=1, text="/start"))
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Optional

from booking_bot.config import settings
from booking_bot.conversation.draft import DraftBooking
from booking_bot.conversation.event_mapper import EventMapper
from booking_bot.conversation.events import (
    ErrorOccurredEvent,
    Event,
    StartCommandEvent,
    UnknownInputEvent,
)
from booking_bot.conversation.state_machine import (
    BookingStateMachine,
    EngineResult,
    StateEntry,
)
from booking_bot.conversation.states import ENTRY_STATE, BookingState, is_terminal
from booking_bot.deps import BookingDeps
from booking_bot.logging_context import get_chat_logger, set_chat_id
from booking_bot.prompts.locale import get_strings, is_supported
from booking_bot.schemas.update_schema import Update

logger = get_chat_logger(__name__)


@dataclass
class Session:
    """Live conversation of one chat."""
    chat_id: int
    user_id: int
    state: BookingState = ENTRY_STATE
    draft: DraftBooking = field(default_factory=DraftBooking)
    created_at: float = 0.0
    last_activity: float = 0.0
    history: list[StateEntry] = field(default_factory=list)

    def touch(self, now: float) -> None:
        self.last_activity = now

    def is_finished(self) -> bool:
        return is_terminal(self.state)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [ENTRY_STATE.value] + [entry.state.value for entry in self.history]


@dataclass
class _ChatLock:
    lock: asyncio.Lock
    holders: int = 0


class SessionRegistry:
    """Routes updates to per-chat sessions."""

    def __init__(
        self,
        deps: BookingDeps,
        machine: Optional[BookingStateMachine] = None,
        mapper: Optional[EventMapper] = None,
        idle_timeout_sec: Optional[int] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.deps = deps
        self.machine = machine or BookingStateMachine(deps)
        self.mapper = mapper or EventMapper(deps.venues)
        self.idle_timeout_sec = (
            settings.session.idle_timeout_sec if idle_timeout_sec is None else idle_timeout_sec
        )
        self._monotonic = monotonic
        self._sessions: dict[int, Session] = {}
        self._locks: dict[int, _ChatLock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get_session(self, chat_id: int) -> Optional[Session]:
        return self._sessions.get(chat_id)

    def active_sessions(self) -> list[Session]:
        return list(self._sessions.values())

    # ------------------------------------------------------------------ #
    # Update handling
    # ------------------------------------------------------------------ #

    async def handle(self, update: Update) -> Optional[EngineResult]:
        """
        Process one inbound update.

        Returns:
            The engine result, or None when the update was dropped
            (no chat id, no user id, or a button payload that maps to
            nothing).
        """
        if update.chat_id is None:
            logger.debug("Dropping update without chat id")
            return None
        set_chat_id(update.chat_id)
        if update.user_id is None:
            logger.warning("Dropping update without user id")
            return None

        async with self._chat_lock(update.chat_id):
            return await self._handle_locked(update)

    async def _handle_locked(self, update: Update) -> Optional[EngineResult]:
        chat_id = update.chat_id
        now = self._monotonic()
        self._expire_if_idle(chat_id, now)

        session = await self._get_or_create(update, now)
        session.touch(now)
        if update.message_id is not None:
            session.draft.message_id = update.message_id

        try:
            event = await self._map(session, update)
            if event is None:
                return None
            if session.state == BookingState.INITIAL and not isinstance(event, StartCommandEvent):
                await self.machine.start(session, event)
            logger.info("Processing %s in %s", event.event_type.value, session.state.value)
            result = await self.machine.process_event(session, event)
        except Exception as exc:
            logger.exception("Failed to process update in %s", session.state.value)
            result = await self._submit_error(session, exc)

        if session.is_finished():
            logger.info("Session finished in %s, removing", session.state.value)
            self._sessions.pop(chat_id, None)
        return result

    async def _map(self, session: Session, update: Update) -> Optional[Event]:
        strings = get_strings(session.draft.language_code)
        event = await self.mapper.map(update, session.state, strings)
        if event is not None:
            return event
        if update.text is not None and not update.is_command:
            return UnknownInputEvent(
                chat_id=update.chat_id,
                user_id=update.user_id,
                message_id=session.draft.message_id,
                text=update.text,
            )
        if update.is_command:
            logger.info("Unhandled command %r", update.text)
        else:
            logger.warning("Could not map update: %r", update.callback_data)
        return None

    async def _submit_error(self, session: Session, exc: Exception) -> EngineResult:
        error_event = ErrorOccurredEvent(
            chat_id=session.chat_id,
            user_id=session.user_id,
            message_id=session.draft.message_id,
            error=exc,
        )
        try:
            return await self.machine.process_event(session, error_event)
        except Exception:
            logger.exception("Error event could not be processed either, forcing error state")
        source = session.state
        session.draft.clear_booking_data()
        session.draft.clear_flow_data()
        if source != BookingState.ERROR:
            session.history.append(StateEntry(
                state=BookingState.ERROR,
                entered_at=datetime.now(timezone.utc),
                event_type=error_event.event_type,
            ))
        session.state = BookingState.ERROR
        return EngineResult(accepted=True, source=source, target=BookingState.ERROR,
                            transition="forced_error")

    # ------------------------------------------------------------------ #
    # Session lifecycle
    # ------------------------------------------------------------------ #

    async def _get_or_create(self, update: Update, now: float) -> Session:
        session = self._sessions.get(update.chat_id)
        if session is not None:
            return session

        user = await self.deps.users.get_or_create(
            update.user_id,
            update.user_name,
            update.language_code or settings.locale.default_language,
        )
        language = (
            user.language_code if is_supported(user.language_code)
            else settings.locale.default_language
        )
        session = Session(
            chat_id=update.chat_id,
            user_id=update.user_id,
            draft=DraftBooking(user=user, language_code=language),
            created_at=now,
            last_activity=now,
        )
        self._sessions[update.chat_id] = session
        logger.info("Session created for user %d (lang %s)", user.id, language)
        return session

    def _is_idle(self, session: Session, now: float) -> bool:
        return self.idle_timeout_sec > 0 and now - session.last_activity > self.idle_timeout_sec

    def _expire_if_idle(self, chat_id: int, now: float) -> None:
        session = self._sessions.get(chat_id)
        if session is not None and self._is_idle(session, now):
            logger.info("Session idle in %s, discarding", session.state.value)
            del self._sessions[chat_id]

    def expire_idle(self) -> int:
        """Discard every idle session not being processed. Returns the count."""
        now = self._monotonic()
        expired = [
            chat_id for chat_id, session in self._sessions.items()
            if chat_id not in self._locks and self._is_idle(session, now)
        ]
        for chat_id in expired:
            del self._sessions[chat_id]
        if expired:
            logger.info("Expired %d idle sessions", len(expired))
        return len(expired)

    @asynccontextmanager
    async def _chat_lock(self, chat_id: int) -> AsyncIterator[None]:
        entry = self._locks.get(chat_id)
        if entry is None:
            entry = self._locks[chat_id] = _ChatLock(lock=asyncio.Lock())
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                del self._locks[chat_id]
