"""
Role hierarchy for staff principals.

Permissions are a ">=" comparison on rank, so every tier inherits what the
tiers below it may do:

    owner (3) > manager (2) > employee (1)

Buyers carry no role and never satisfy a staff requirement.
"""
from typing import Dict, Optional, Union
from storefront.db.models import StaffRole
from storefront.utils.exceptions import ForbiddenError

ROLE_RANK: Dict[StaffRole, int] = {
    StaffRole.employee: 1,
    StaffRole.manager: 2,
    StaffRole.owner: 3,
}


def role_rank(role: Optional[Union[str, StaffRole]]) -> int:
    """
    Return the rank for a role.
    Handles both string inputs ("manager") and Enum inputs (StaffRole.manager);
    anything unrecognised ranks 0.
    """
    if role is None:
        return 0
    try:
        return ROLE_RANK[StaffRole(role)]
    except ValueError:
        return 0


def has_minimum_role(role: Optional[Union[str, StaffRole]], min_role: StaffRole) -> bool:
    rank = role_rank(role)
    return rank > 0 and rank >= ROLE_RANK[StaffRole(min_role)]


def ensure_minimum_role(role: Optional[Union[str, StaffRole]], min_role: StaffRole) -> None:
    if not has_minimum_role(role, min_role):
        raise ForbiddenError()


def require_role(claims, min_role: StaffRole):
    """Gate an authenticated principal by minimum staff role."""
    ensure_minimum_role(getattr(claims, "role", None), min_role)
    return claims
