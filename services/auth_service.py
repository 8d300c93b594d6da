"""
Login / refresh / logout / register with rotating refresh tokens.

A refresh token is usable only while it is listed in its owner's
refresh_tokens. Every successful refresh replaces the presented token with a
new one, so a token seen again after rotation is owned by nobody and is
treated as stolen.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from models.user import Role, User
from services.errors import (
    ConcurrentUpdateError,
    InvalidCredentialsError,
    TokenExpiredError,
    TokenMissingError,
    TokenReuseError,
    UsernameMismatchError,
    UsernameTakenError,
)
from services.token_service import TokenService
from services.user_store import RefreshTokenStore
from utils.security import hash_password, verify_password

logger = logging.getLogger(__name__)

MAX_UPDATE_ATTEMPTS = 3


@dataclass(frozen=True)
class AuthUser:
    role: str
    user_id: str
    username: str


@dataclass(frozen=True)
class AuthResult:
    access_token: str
    refresh_token: str
    user: AuthUser


def _role_value(role) -> str:
    return getattr(role, "value", role)


class AuthService:
    def __init__(self, tokens: TokenService, users: RefreshTokenStore):
        self.tokens = tokens
        self.users = users

    def login(self, username: str, password: str, existing_refresh_token: Optional[str] = None) -> AuthResult:
        user = self.users.find_by_username(username)
        if user is None or not verify_password(password, user.password_hash):
            raise InvalidCredentialsError()

        auth_user = self._auth_user(user)
        access_token = self._sign_access(auth_user)
        refresh_token = self.tokens.sign_refresh_token(user.username)

        reuse_detected = False
        if existing_refresh_token:
            # Cookie token owned by nobody: it was rotated away or revoked, so
            # every other session of this account is dropped as well
            if self.users.find_by_refresh_token(existing_refresh_token) is None:
                logger.warning("Attempted refresh token reuse at login for user %s", user.username)
                reuse_detected = True

        def build(current: User) -> List[str]:
            if reuse_detected:
                base = []
            else:
                base = self.tokens.filter_refresh_tokens(current.refresh_tokens, existing_refresh_token)
            return base + [refresh_token]

        if self._save_tokens(user, build) is None:
            raise InvalidCredentialsError()

        return AuthResult(access_token=access_token, refresh_token=refresh_token, user=auth_user)

    def refresh(self, existing_refresh_token: Optional[str]) -> AuthResult:
        if not existing_refresh_token:
            raise TokenMissingError()

        user = self.users.find_by_refresh_token(existing_refresh_token)
        if user is None:
            self._revoke_all_for_reused(existing_refresh_token)
            raise TokenReuseError()

        try:
            claims = self.tokens.verify_refresh_token(existing_refresh_token)
        except TokenExpiredError:
            logger.info("Removing expired refresh token for user %s", user.username)
            try:
                self._save_tokens(user, lambda current: self._without(current, existing_refresh_token))
            except ConcurrentUpdateError:
                logger.warning("Could not remove expired refresh token for user %s", user.username)
            raise

        if claims.get("username") != user.username:
            raise UsernameMismatchError()

        auth_user = self._auth_user(user)
        access_token = self._sign_access(auth_user)
        refresh_token = self.tokens.sign_refresh_token(user.username)

        def rotate(current: User) -> Optional[List[str]]:
            if existing_refresh_token not in current.refresh_tokens:
                return None
            return self.tokens.filter_refresh_tokens(current.refresh_tokens, existing_refresh_token) + [
                refresh_token
            ]

        if self._save_tokens(user, rotate) is None:
            # a concurrent request consumed the same token first
            logger.warning("Refresh token for user %s was rotated concurrently", auth_user.username)
            raise TokenReuseError()

        return AuthResult(access_token=access_token, refresh_token=refresh_token, user=auth_user)

    def logout(self, existing_refresh_token: Optional[str]) -> bool:
        """Drop one session. False when the token belongs to no one."""
        if not existing_refresh_token:
            return False
        user = self.users.find_by_refresh_token(existing_refresh_token)
        if user is None:
            return False
        return self._save_tokens(user, lambda current: self._without(current, existing_refresh_token)) is not None

    def register(self, username: str, password: str) -> User:
        if self.users.find_by_username(username) is not None:
            raise UsernameTakenError()
        # role is never taken from the request
        return self.users.create(username=username, password_hash=hash_password(password), role=Role.CLIENT)

    def _revoke_all_for_reused(self, token: str) -> None:
        # Signature and expiry must check out before anything is wiped; a forged
        # or expired token propagates its verification error here
        claims = self.tokens.verify_refresh_token(token)
        username = claims.get("username")
        logger.warning("Attempted refresh token reuse at refresh for user %s", username)
        victim = self.users.find_by_username(username) if username else None
        if victim is not None:
            self._save_tokens(victim, lambda current: [])

    def _without(self, user: User, token: str) -> Optional[List[str]]:
        if token not in user.refresh_tokens:
            return None
        return self.tokens.filter_refresh_tokens(user.refresh_tokens, token)

    def _save_tokens(self, user: User, build: Callable[[User], Optional[List[str]]]) -> Optional[User]:
        """
        Write build(user) as the user's refresh tokens with optimistic retries.
        Returns None when build gives up (None) or the user disappeared.
        """
        user_id = user.id
        for _ in range(MAX_UPDATE_ATTEMPTS):
            tokens = build(user)
            if tokens is None:
                return None
            if self.users.update_refresh_tokens(user, tokens):
                return user
            logger.info("Concurrent refresh token update for user %s, retrying", user_id)
            user = self.users.find_by_id(user_id)
            if user is None:
                return None
        raise ConcurrentUpdateError()

    def _sign_access(self, auth_user: AuthUser) -> str:
        return self.tokens.sign_access_token(
            role=auth_user.role, user_id=auth_user.user_id, username=auth_user.username
        )

    @staticmethod
    def _auth_user(user: User) -> AuthUser:
        return AuthUser(role=_role_value(user.role), user_id=str(user.id), username=user.username)
