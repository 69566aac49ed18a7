import logging
from typing import Optional

import jwt

from ...domain.models import User
from ...domain.ports.persistence import UserRepository

logger = logging.getLogger(__name__)


class AuthService:
    """Resolves bearer tokens issued by the account service to stored users."""

    def __init__(self, users: UserRepository, secret_key: str, algorithm: str = "HS256") -> None:
        self._users = users
        self._secret_key = secret_key
        self._algorithm = algorithm

    def verify_token(self, token: str) -> Optional[str]:
        """Return the ``user_id`` claim of a valid token, or ``None``."""
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except jwt.PyJWTError as exc:
            logger.debug("Rejected token: %s", exc)
            return None
        user_id = payload.get("user_id")
        return str(user_id) if user_id else None

    def get_current_user(self, token: str) -> Optional[User]:
        user_id = self.verify_token(token)
        if not user_id:
            return None
        return self._users.get_user_by_id(user_id)
