from enum import Enum
from typing import Iterable


class Role(str, Enum):
    BORROWER = "borrower"
    MANAGER = "manager"
    ADMIN = "admin"
    SUSPENDED = "suspended"

    @classmethod
    def normalize(cls, value: "str | Role | None") -> "Role | None":
        """Case-insensitive lookup; unknown values return ``None``."""
        if value is None:
            return None
        if isinstance(value, Role):
            return value
        return cls._value2member_map_.get(str(value).strip().lower())


# Roles a user may pick for themselves at registration.
SELF_REGISTRATION_ROLES = frozenset({Role.BORROWER, Role.MANAGER})

# Roles listed by the admin user directory.
MANAGED_ROLES = (Role.BORROWER.value, Role.MANAGER.value)


def is_suspended(role: str | None) -> bool:
    return (role or "").strip().lower() == Role.SUSPENDED.value


def role_values(roles: Iterable["Role | str"]) -> set[str]:
    return {role.value if isinstance(role, Role) else str(role) for role in roles}
