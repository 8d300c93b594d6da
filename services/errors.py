"""
Authentication failures as a closed set of tagged outcomes.

Each AuthError subclass carries its AuthErrorCode and HTTP status so the
API layer maps them without inspecting messages.
"""
from __future__ import annotations

from enum import Enum


class AuthErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    TOKEN_MISSING = "TOKEN_MISSING"
    TOKEN_INVALID = "TOKEN_INVALID"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    TOKEN_REUSE_DETECTED = "TOKEN_REUSE_DETECTED"
    USERNAME_MISMATCH = "USERNAME_MISMATCH"
    USERNAME_TAKEN = "USERNAME_TAKEN"
    CONCURRENT_UPDATE = "CONCURRENT_UPDATE"


class AuthError(Exception):
    code = AuthErrorCode.UNAUTHORIZED
    status = 401
    message = "Unauthorized"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class InvalidCredentialsError(AuthError):
    # Same message for unknown username and wrong password
    code = AuthErrorCode.INVALID_CREDENTIALS
    message = "Username or password is incorrect"


class TokenMissingError(AuthError):
    code = AuthErrorCode.TOKEN_MISSING
    message = "Refresh token not found"


class TokenInvalidError(AuthError):
    code = AuthErrorCode.TOKEN_INVALID
    message = "Invalid token"


class TokenExpiredError(AuthError):
    code = AuthErrorCode.TOKEN_EXPIRED
    message = "Token expired"


class TokenReuseError(AuthError):
    code = AuthErrorCode.TOKEN_REUSE_DETECTED
    message = "Refresh token reuse detected"


class UsernameMismatchError(AuthError):
    code = AuthErrorCode.USERNAME_MISMATCH
    message = "Username incorrect"


class UsernameTakenError(AuthError):
    code = AuthErrorCode.USERNAME_TAKEN
    status = 409
    message = "Username already registered"


class ConcurrentUpdateError(AuthError):
    code = AuthErrorCode.CONCURRENT_UPDATE
    status = 409
    message = "Session was modified concurrently, retry the request"
