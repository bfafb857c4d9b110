from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar
from uuid import UUID, uuid4

from marketplace.models.resource import ResourceType


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


@dataclass(frozen=True, slots=True)
class Order:
    """A customer's order against one shop.

    Two independent ownership axes: owner_user_id is the purchasing
    customer, shop_id is the selling tenant.
    """

    resource_type: ClassVar[ResourceType] = ResourceType.ORDER

    id: UUID
    owner_user_id: UUID
    shop_id: UUID
    status: OrderStatus
    tracking_reference: str | None = None

    @staticmethod
    def new(
        *,
        owner_user_id: UUID,
        shop_id: UUID,
        status: OrderStatus = OrderStatus.PENDING,
    ) -> Order:
        return Order(
            id=uuid4(),
            owner_user_id=owner_user_id,
            shop_id=shop_id,
            status=status,
        )
