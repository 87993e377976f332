"""
In-memory users repository.

In production, this would be the users table behind the bot's SQL
database; here it keeps records in a dict keyed by internal id.
"""

import logging
from typing import Optional

from booking_bot.config import settings
from booking_bot.schemas.entities import User

logger = logging.getLogger(__name__)


class InMemoryUsersRepo:
    """Users keyed by internal id, looked up by Telegram id."""

    def __init__(self, users: Optional[list[User]] = None) -> None:
        self._users: dict[int, User] = {}
        for user in users or []:
            self._users[user.id] = user
        self._next_id = max(self._users, default=0) + 1

    async def get_or_create(
        self, telegram_id: int, user_name: Optional[str], language_code: str
    ) -> User:
        for user in self._users.values():
            if user.telegram_id == telegram_id:
                return user

        user = User(
            id=self._next_id,
            telegram_id=telegram_id,
            user_name=user_name,
            language_code=language_code or settings.locale.default_language,
        )
        self._users[user.id] = user
        self._next_id += 1
        logger.info("User created: id=%d telegram_id=%d", user.id, telegram_id)
        return user

    async def find_by_id(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    async def update_language(self, user_id: int, language_code: str) -> Optional[User]:
        user = self._users.get(user_id)
        if user is None:
            return None
        updated = user.model_copy(update={"language_code": language_code})
        self._users[user_id] = updated
        logger.debug("User %d language set to %s", user_id, language_code)
        return updated

    async def add_loyalty_points(self, user_id: int, points: int) -> Optional[User]:
        user = self._users.get(user_id)
        if user is None:
            return None
        updated = user.model_copy(update={"loyalty_points": user.loyalty_points + points})
        self._users[user_id] = updated
        logger.debug("User %d earned %d points (total %d)", user_id, points, updated.loyalty_points)
        return updated
