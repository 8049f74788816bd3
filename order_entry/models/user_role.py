"""User roles as seen by the POS."""
import enum
from typing import Iterable, Optional, Union


class UserRole(str, enum.Enum):
    """Roles that can operate the order form."""
    ADMIN = 'admin'
    MANAGER = 'manager'
    CASHIER = 'cashier'


PRIVILEGED_ROLES = frozenset({UserRole.ADMIN.value})


def is_privileged(role: Optional[Union[UserRole, str]], privileged_roles: Iterable[str] = PRIVILEGED_ROLES) -> bool:
    """Privileged roles see global stock; everyone else is limited to their shop."""
    if role is None:
        return False
    value = role.value if isinstance(role, UserRole) else str(role)
    return value.lower() in {r.lower() for r in privileged_roles}
