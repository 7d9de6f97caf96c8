"""
User roles enumeration.

Defines the role types for the fleet management system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Manages cars, drivers and users
        USER: Views the fleet and manages assignments (default role)
    """
    ADMIN = "admin"
    USER = "user"
