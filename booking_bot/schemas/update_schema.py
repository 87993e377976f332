"""Transport-agnostic inbound update, as handed over by the chat adapter."""

from typing import Optional

from pydantic import BaseModel, ConfigDict


class Update(BaseModel):
    """One inbound chat update: either a text message or a button press.

    ``message_id`` is the id of the user's message, or of the bot message
    carrying the pressed button (the one to edit in place).
    """
    model_config = ConfigDict(frozen=True)

    chat_id: Optional[int] = None
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    language_code: Optional[str] = None
    message_id: Optional[int] = None
    text: Optional[str] = None
    callback_data: Optional[str] = None

    @property
    def is_command(self) -> bool:
        return self.text is not None and self.text.startswith("/")
