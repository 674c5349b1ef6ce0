"""User accounts: models and the cross-prefix repository.

Usage:
    from cmsum.users import UserRepository, UserChanges
"""

from cmsum.users.models import UserChanges, UserRecord
from cmsum.users.repository import (
    WORDPRESS_ROLES,
    UserRepository,
    derive_role,
    serialize_capabilities,
)

__all__ = [
    "UserRepository",
    "UserRecord",
    "UserChanges",
    "derive_role",
    "serialize_capabilities",
    "WORDPRESS_ROLES",
]
