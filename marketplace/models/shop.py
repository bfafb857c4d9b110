from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar
from uuid import UUID, uuid4

from marketplace.models.identity import ShopRole
from marketplace.models.resource import ResourceType


class ShopStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"
    ACTIVE = "active"


@dataclass(frozen=True, slots=True)
class Shop:
    resource_type: ClassVar[ResourceType] = ResourceType.SHOP

    id: UUID
    owner_user_id: UUID
    name: str
    status: ShopStatus = ShopStatus.PENDING
    admins: tuple[UUID, ...] = ()  # immutable
    staff: tuple[UUID, ...] = ()
    documents_verified: bool = False

    @staticmethod
    def new(*, owner_user_id: UUID, name: str) -> Shop:
        return Shop(id=uuid4(), owner_user_id=owner_user_id, name=name)

    def roster_role(self, user_id: UUID) -> ShopRole | None:
        """Sub-role this shop's own record grants the user, if any."""
        if user_id == self.owner_user_id:
            return ShopRole.OWNER
        if user_id in self.admins:
            return ShopRole.ADMIN
        if user_id in self.staff:
            return ShopRole.STAFF
        return None
