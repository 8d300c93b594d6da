"""
Access / refresh token signing and verification via PyJWT.

Access and refresh tokens use independent secrets and lifetimes; settings are
passed in at construction rather than read from the app at call time.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

import jwt

from services.errors import TokenExpiredError, TokenInvalidError
from utils.security import generate_jti


class TokenService:
    def __init__(
        self,
        access_secret: str,
        access_expires: timedelta,
        refresh_secret: str,
        refresh_expires: timedelta,
        algorithm: str = "HS256",
    ):
        if not access_secret or not refresh_secret:
            raise ValueError("access and refresh token secrets are required")
        if access_secret == refresh_secret:
            raise ValueError("access and refresh tokens must use different secrets")
        self.access_secret = access_secret
        self.access_expires = access_expires
        self.refresh_secret = refresh_secret
        self.refresh_expires = refresh_expires
        self.algorithm = algorithm

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "TokenService":
        return cls(
            access_secret=config["ACCESS_TOKEN_SECRET"],
            access_expires=config["ACCESS_TOKEN_EXPIRES"],
            refresh_secret=config["REFRESH_TOKEN_SECRET"],
            refresh_expires=config["REFRESH_TOKEN_EXPIRES"],
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
        )

    @staticmethod
    def filter_refresh_tokens(tokens: Iterable[str], to_remove: Optional[str] = None) -> List[str]:
        """Return a new list without ``to_remove``; a plain copy when it is None."""
        return [t for t in tokens if to_remove is None or t != to_remove]

    def sign_access_token(self, role: str, user_id: str, username: str) -> str:
        payload = {"role": role, "userId": user_id, "username": username}
        return self._encode(payload, self.access_secret, self.access_expires)

    def sign_refresh_token(self, username: str) -> str:
        # username is only a lookup key; authorization data stays in the access token
        return self._encode({"username": username}, self.refresh_secret, self.refresh_expires)

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        return self._decode(token, self.access_secret)

    def verify_refresh_token(self, token: str) -> Dict[str, Any]:
        """
        Decode and validate a refresh token.
        Raises TokenExpiredError when the signature is valid but exp has passed,
        TokenInvalidError for anything else (bad signature, malformed token).
        """
        return self._decode(token, self.refresh_secret)

    def _encode(self, claims: Dict[str, Any], secret: str, expires: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = dict(claims)
        payload.update(
            {
                "jti": generate_jti(),
                "iat": int(now.timestamp()),
                "exp": int((now + expires).timestamp()),
            }
        )
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def _decode(self, token: str, secret: str) -> Dict[str, Any]:
        try:
            return jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError()
        except jwt.InvalidTokenError as exc:
            raise TokenInvalidError(f"Invalid token: {exc}")
