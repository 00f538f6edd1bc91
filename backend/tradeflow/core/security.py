"""Principal resolution for requests authenticated upstream."""

from dataclasses import dataclass
from typing import Optional

BUYER = "buyer"
VENDOR = "vendor"
ADMIN = "admin"

ROLES = (BUYER, VENDOR, ADMIN)


@dataclass(frozen=True)
class Principal:
    """Authenticated actor supplied by the auth gateway."""

    id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN


def parse_principal(user_id: Optional[str], role: Optional[str]) -> Optional[Principal]:
    """
    Build a principal from gateway-provided identity values.

    Args:
        user_id: Authenticated user id
        role: One of buyer, vendor or admin

    Returns:
        Principal, or None if either value is missing or the role is unknown
    """
    if not user_id or not role:
        return None

    role = role.strip().lower()
    if role not in ROLES:
        return None

    return Principal(id=user_id.strip(), role=role)
