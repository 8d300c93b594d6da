"""
Credential helpers:
- Argon2 password hashing via argon2-cffi
- JTI generation for token identifiers
"""
from __future__ import annotations

import uuid

from argon2 import PasswordHasher
from argon2.exceptions import VerifyMismatchError

ph = PasswordHasher()


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against its stored Argon2 hash.

    A mismatch returns False; a corrupt hash raises argon2's InvalidHashError.
    """
    try:
        return ph.verify(password_hash, password)
    except VerifyMismatchError:
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())
