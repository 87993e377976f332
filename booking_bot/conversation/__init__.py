from booking_bot.conversation.draft import DraftBooking, DraftSequenceError
from booking_bot.conversation.event_mapper import EventMapper
from booking_bot.conversation.session_registry import Session, SessionRegistry
from booking_bot.conversation.state_machine import (
    BookingStateMachine,
    EngineResult,
    Transition,
)
from booking_bot.conversation.states import BookingState

__all__ = [
    "BookingStateMachine",
    "BookingState",
    "EngineResult",
    "Transition",
    "DraftBooking",
    "DraftSequenceError",
    "EventMapper",
    "Session",
    "SessionRegistry",
]
