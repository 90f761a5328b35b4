"""Signed-in user tracking for sync operations."""
import logging
from typing import Optional

from activevocab.exceptions import NotAuthenticatedError

logger = logging.getLogger(__name__)


class AuthService:
    """Holds the identity of the signed-in user."""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    def sign_in(self, user_id: str) -> None:
        if not user_id:
            raise ValueError("User id must not be empty")
        self._user_id = user_id
        logger.info(f"Signed in as {user_id}")

    def sign_out(self) -> None:
        if self._user_id is not None:
            logger.info(f"Signed out {self._user_id}")
        self._user_id = None

    async def get_current_user(self) -> Optional[str]:
        return self._user_id

    async def require_user(self) -> str:
        """Return the signed-in user id or raise NotAuthenticatedError."""
        user_id = await self.get_current_user()
        if user_id is None:
            raise NotAuthenticatedError()
        return user_id
