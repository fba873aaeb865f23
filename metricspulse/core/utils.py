"""
Utility functions for the application.

- JWT token creation and decoding
- UTC normalisation of timestamps coming from the database or providers
"""

from datetime import datetime, timedelta, timezone
from typing import Any
import uuid

import jwt

from metricspulse.core.config import settings, utils_logger


def create_jwt_token(
    data: dict[str, Any] | None, expires_delta: timedelta | None = None
) -> str:
    """
    Create a JWT token with the given data and expiration time.

    Args:
        data: Claims to encode in the token. Cannot be None. Dashboard tokens
              carry the owning user's ID in ``sub``.
        expires_delta: Optional timedelta for token expiration.
                      If None, defaults to 15 minutes from now.
                      Can be negative for immediate expiration (testing only).

    Returns:
        str: Encoded JWT token string in the format: header.payload.signature

    Raises:
        ValueError: If data is None.

    Examples:
        >>> token = create_jwt_token({"sub": "0b6f..."})
        >>> print(len(token.split('.')))
        3
    """
    if data is None:
        utils_logger.error("Attempted to create JWT token with None data")
        raise ValueError("Data cannot be None")

    to_encode = data.copy()

    if expires_delta is None:
        expires_delta = timedelta(minutes=15)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta
    to_encode["exp"] = expire
    to_encode["iat"] = now
    to_encode["jti"] = str(uuid.uuid4())

    encoded_jwt = jwt.encode(
        to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM
    )

    utils_logger.info(
        f"JWT token created successfully with expiration: {expire.isoformat()}"
    )
    return encoded_jwt


def decode_jwt_token(token: str | None) -> dict[str, Any] | None:
    """
    Decode and validate a JWT token.

    Returns None for any invalid, expired, or tampered tokens.

    Args:
        token: The JWT token string to decode. Can be None or empty.

    Returns:
        dict[str, Any] | None: The decoded claims, or None if the token is
                                invalid, expired, or tampered.
    """
    if not token:
        utils_logger.warning(
            f"JWT token decoding attempted with invalid token: "
            f"{'None' if token is None else 'empty string'}"
        )
        return None

    try:
        payload = jwt.decode(
            token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        utils_logger.info("JWT token decoded and validated successfully")
        return payload
    except jwt.ExpiredSignatureError:
        utils_logger.warning("JWT token decoding failed: token has expired")
        return None
    except jwt.InvalidTokenError as e:
        utils_logger.warning(
            f"JWT token decoding failed: invalid token - {type(e).__name__}"
        )
        return None


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


__all__ = [
    "create_jwt_token",
    "decode_jwt_token",
    "ensure_utc",
]
