from __future__ import annotations

import logging
from typing import Callable, Optional

from ..db.base import BaseDBManager
from ..exceptions import ConcurrentUpdateError, NotFoundError, ValidationError
from ..models.base import utcnow
from ..models.user import UserAccount


logger = logging.getLogger(__name__)

# Applied to a fresh copy of the user on every attempt. Returns True when
# the copy was changed and must be written back; may raise to abort.
UserMutation = Callable[[UserAccount], bool]


class UserService:
    """
    Account lookups plus the optimistic read-modify-write loop that every
    change to a user's packages or purchased tips goes through.
    """

    def __init__(self, db: BaseDBManager, max_write_retries: int = 5) -> None:
        self._db = db
        self._max_write_retries = max_write_retries

    async def create_user(self, email: str, display_name: Optional[str] = None) -> UserAccount:
        email = email.strip()
        if not email:
            raise ValidationError("email is required")
        if await self._db.get_user_by_email(email) is not None:
            raise ValidationError(f"user already exists: {email}", email=email)
        return await self._db.add_user(UserAccount(email=email, display_name=display_name))

    async def find_user_by_email(self, email: str) -> Optional[UserAccount]:
        return await self._db.get_user_by_email(email)

    async def get_user_by_email(self, email: str) -> UserAccount:
        user = await self._db.get_user_by_email(email)
        if user is None:
            raise NotFoundError("User", email)
        return user

    async def update_with_retry(self, email: str, mutate: UserMutation) -> UserAccount:
        """
        Re-read the user, apply `mutate` and write back conditionally on the
        version that was read. Lost races are retried from a fresh read, so
        `mutate` always validates against current state.
        """
        for attempt in range(1, self._max_write_retries + 1):
            user = await self.get_user_by_email(email)
            expected_version = user.version
            if not mutate(user):
                return user
            user.updated_at = utcnow()
            if await self._db.replace_user(user, expected_version):
                return user
            logger.info(
                "User write conflict, retrying",
                extra={"user_id": email, "attempt": attempt, "version": expected_version},
            )
        raise ConcurrentUpdateError(email, self._max_write_retries)
