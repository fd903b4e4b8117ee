"""
Password hashing and bearer tokens.

New hashes use argon2; bcrypt hashes from seeded or migrated accounts still verify.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import argon2
import bcrypt
from jose import JWTError, jwt

from attendance_engine.core.config import settings

logger = logging.getLogger(__name__)

_hasher = argon2.PasswordHasher()

# bcrypt only looks at the first 72 bytes of the password
_BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against an argon2 or bcrypt hash; malformed hashes never match."""
    if hashed_password.startswith("$argon2"):
        try:
            return _hasher.verify(hashed_password, plain_password)
        except (argon2.exceptions.VerificationError, argon2.exceptions.InvalidHashError):
            return False
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8")[:_BCRYPT_MAX_BYTES], hashed_password.encode("utf-8"))
    except ValueError:
        logger.warning("Unrecognised password hash format")
        return False


def create_access_token(data: Dict[str, Any], expires_minutes: Optional[int] = None) -> str:
    """Signed JWT with `iat`/`exp` added to the given claims."""
    issued_at = datetime.now(timezone.utc)
    lifetime = timedelta(minutes=expires_minutes if expires_minutes is not None else settings.JWT_EXPIRE_MINUTES)
    claims = {**data, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify signature and expiry.

    Raises:
        ValueError: token is malformed, expired or signed with another key
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
