"""
Field checks shared by request schemas and services.

Each check returns the normalized value or raises ValueError with a
message naming the field.
"""

import re
from typing import Optional

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 6
USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


def check_username(username: str) -> str:
    username = (username or "").strip()
    if len(username) < USERNAME_MIN_LENGTH:
        raise ValueError(f"Username must be at least {USERNAME_MIN_LENGTH} characters long")
    if len(username) > USERNAME_MAX_LENGTH:
        raise ValueError(f"Username must be at most {USERNAME_MAX_LENGTH} characters long")
    if not USERNAME_PATTERN.match(username):
        raise ValueError("Username can only contain letters, numbers, and underscores")
    return username


def check_password(password: str) -> str:
    if len(password or "") < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    return password


def check_text(value: Optional[str], field: str, max_length: int, required: bool = True) -> Optional[str]:
    """Strip ``value`` and enforce presence and maximum length."""
    value = value.strip() if value is not None else None
    if not value:
        if required:
            raise ValueError(f"{field} is required")
        return None
    if len(value) > max_length:
        raise ValueError(f"{field} must be at most {max_length} characters long")
    return value
