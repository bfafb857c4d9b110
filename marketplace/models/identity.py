from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class GlobalRole(str, Enum):
    PLATFORM_ADMIN = "platform_admin"
    MODERATOR = "moderator"
    SHOP_OWNER = "shop_owner"
    SHOP_ADMIN = "shop_admin"
    SHOP_STAFF = "shop_staff"
    CUSTOMER = "customer"

    @property
    def is_shop_scoped(self) -> bool:
        return self in _SHOP_ROLE_FOR


class ShopRole(str, Enum):
    STAFF = "staff"
    ADMIN = "admin"
    OWNER = "owner"


_SHOP_ROLE_FOR: dict[GlobalRole, ShopRole] = {
    GlobalRole.SHOP_OWNER: ShopRole.OWNER,
    GlobalRole.SHOP_ADMIN: ShopRole.ADMIN,
    GlobalRole.SHOP_STAFF: ShopRole.STAFF,
}


@dataclass(frozen=True, slots=True)
class Identity:
    """Authenticated caller, built from a validated access token.

    Fields:
        id: the user's id (token subject)
        global_role: the single platform-wide role, primary axis of the
            permission matrix
        shop_id: the one shop the caller is affiliated with, if any
        shop_role: role within that shop (owner|admin|staff)

    Invariants are enforced at construction; a violation is a bug in the
    layer that built the identity, not an authorization outcome. A
    shop-scoped role without a shop is allowed here and denied later.
    """

    id: UUID
    global_role: GlobalRole
    shop_id: UUID | None = None
    shop_role: ShopRole | None = None

    def __post_init__(self) -> None:
        if (self.shop_id is None) != (self.shop_role is None):
            raise ValueError("shop_role must be set iff shop_id is set")
        if self.shop_id is not None and not self.global_role.is_shop_scoped:
            raise ValueError(
                f"role {self.global_role.value!r} cannot carry a shop affiliation"
            )
        if (
            self.shop_role is not None
            and _SHOP_ROLE_FOR[self.global_role] is not self.shop_role
        ):
            raise ValueError(
                f"shop_role {self.shop_role.value!r} does not match "
                f"role {self.global_role.value!r}"
            )

    @property
    def is_shop_scoped(self) -> bool:
        return self.global_role.is_shop_scoped

    @property
    def has_shop(self) -> bool:
        return self.shop_id is not None
