"""Password hashing and bearer tokens"""

from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
from jose import JWTError, jwt

from ambulance_billing.config import settings
from ambulance_billing.models.enums import UserRole
from ambulance_billing.utils.time import get_utc_now

ACCESS_TOKEN_TYPE = "access"

# bcrypt ignores input past 72 bytes
_BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    """UTF-8 encode and cut to bcrypt's limit without splitting a character."""
    encoded = password.encode("utf-8")[:_BCRYPT_MAX_BYTES]
    return encoded.decode("utf-8", errors="ignore").encode("utf-8")


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt()).decode("ascii")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a login attempt against the stored hash."""
    return bcrypt.checkpw(_password_bytes(plain_password), hashed_password.encode("ascii"))


def create_access_token(
    subject: str,
    role: UserRole,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """
    Issue a signed access token.

    Args:
        subject: User id, stored as ``sub``
        role: Role at issue time; the API reloads the user on every request
        expires_delta: Lifetime, ACCESS_TOKEN_EXPIRE_MINUTES by default

    Returns:
        Encoded JWT
    """
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims: Dict[str, Any] = {
        "sub": subject,
        "role": UserRole(role).value,
        "type": ACCESS_TOKEN_TYPE,
        "exp": get_utc_now() + lifetime,
    }
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Decoded claims, or None for a bad signature, malformed token or expiry."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
