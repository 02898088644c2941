"""Role vocabulary and the pure authorization check.

There is no role hierarchy: every protected operation lists the roles it
accepts, and a caller is allowed only when its role is in that list.
"""

import enum
from collections.abc import Iterable
from typing import Optional


class Role(str, enum.Enum):
    CUSTOMER = "customer"
    SELLER = "seller"
    ARCHITECT = "architect"
    CONTENT_MODERATOR = "content_moderator"
    PLATFORM_ADMIN = "platform_admin"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


STAFF_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN})


def parse_role(value: Optional[str]) -> Optional[Role]:
    """Return the Role for a stored value, or None if it is not in the vocabulary."""
    if value is None:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


def authorize(caller_role: Optional[Role | str], required_roles: Iterable[Role]) -> bool:
    """True when ``caller_role`` is one of ``required_roles``."""
    role = caller_role if isinstance(caller_role, Role) else parse_role(caller_role)
    if role is None:
        return False
    return role in frozenset(required_roles)
