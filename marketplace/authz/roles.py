"""Shop role hierarchy: owner > admin > staff.

Only shop-scoped roles have a rank. Callers restrict themselves to
shop-scoped identities before comparing; anything else is a bug.
"""

from __future__ import annotations

from marketplace.models.identity import ShopRole

_RANKS: dict[ShopRole, int] = {
    ShopRole.STAFF: 1,
    ShopRole.ADMIN: 2,
    ShopRole.OWNER: 3,
}


def rank(role: ShopRole) -> int:
    if not isinstance(role, ShopRole):
        raise ValueError(f"rank is only defined for shop roles (got {role!r})")
    return _RANKS[role]


def at_least(actual: ShopRole, required: ShopRole) -> bool:
    return rank(actual) >= rank(required)


def roles_at_least(minimum: ShopRole) -> frozenset[ShopRole]:
    """All shop roles ranked at or above ``minimum``."""
    floor = rank(minimum)
    return frozenset(r for r, n in _RANKS.items() if n >= floor)
