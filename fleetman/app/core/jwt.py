"""
JWT token utilities for authentication.

This module provides functions for encoding and decoding JWT tokens.
The signing secret and algorithm are passed in by the caller.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt


def create_access_token(
    data: Dict[str, Any],
    secret_key: str,
    algorithm: str,
    expires_delta: timedelta
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Data payload to encode in the token (should include: sub, user_id, role)
        secret_key: Signing secret
        algorithm: Signing algorithm (e.g. HS256)
        expires_delta: Lifetime of the token

    Returns:
        Encoded JWT token string

    Example payload:
        {
            "sub": "username",
            "user_id": 123,
            "role": "admin",
            "exp": 1234567890
        }
    """
    to_encode = data.copy()
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_access_token(token: str, secret_key: str, algorithm: str) -> Optional[Dict[str, Any]]:
    """
    Decode and validate a JWT access token.

    Signature and expiry are both checked.

    Returns:
        Decoded token payload if valid (includes: sub, user_id, role, exp), None otherwise
    """
    try:
        return jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError:
        return None
