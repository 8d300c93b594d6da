"""
User / refresh-token persistence used by the auth service.

RefreshTokenStore is the contract AuthService depends on; UserStore is the
SQLAlchemy implementation on top of DBStorage.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Protocol

from sqlalchemy import String, cast
from sqlalchemy.orm.exc import StaleDataError

from models.db_storage import DBStorage
from models.user import Role, User

logger = logging.getLogger(__name__)


class RefreshTokenStore(Protocol):
    def create(self, username: str, password_hash: str, role: Role) -> User: ...

    def find_by_id(self, user_id: str) -> Optional[User]: ...

    def find_by_username(self, username: str) -> Optional[User]: ...

    def find_by_refresh_token(self, token: str) -> Optional[User]: ...

    def update_refresh_tokens(self, user: User, tokens: List[str]) -> bool:
        """Replace the user's tokens unless the row changed since it was read."""
        ...


class UserStore:
    def __init__(self, storage: DBStorage):
        self.storage = storage

    def create(self, username: str, password_hash: str, role: Role = Role.CLIENT) -> User:
        user = User(username=username, password_hash=password_hash, role=role, refresh_tokens=[])
        user.save()
        return user

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self.storage.get(User, user_id)

    def find_by_username(self, username: str) -> Optional[User]:
        session = self.storage.get_session()
        return session.query(User).filter(User.username == username).first()

    def find_by_refresh_token(self, token: str) -> Optional[User]:
        if not token:
            return None
        # SQLite LIKE ignores ASCII case, so membership is re-checked exactly
        for user in self._token_candidates(token).all():
            if token in (user.refresh_tokens or []):
                return user
        return None

    def _token_candidates(self, token: str):
        """Users whose serialized token array contains ``"<token>"`` literally."""
        escaped = token.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f'%"{escaped}"%'
        session = self.storage.get_session()
        return session.query(User).filter(cast(User.refresh_tokens, String).like(pattern, escape="\\"))

    def update_refresh_tokens(self, user: User, tokens: List[str]) -> bool:
        user_id = user.id
        user.refresh_tokens = list(tokens)
        self.storage.new(user)
        try:
            self.storage.save()
        except StaleDataError:
            # DBStorage.save() rolled back; the instance is expired and reloads on access
            logger.info("Stale refresh token update for user %s", user_id)
            return False
        return True
