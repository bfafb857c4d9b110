from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar
from uuid import UUID, uuid4

from marketplace.models.resource import ResourceType


class ProductStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    ACTIVE = "active"
    INACTIVE = "inactive"
    OUT_OF_STOCK = "out_of_stock"  # stock-driven, never requested directly
    REJECTED = "rejected"
    DISCONTINUED = "discontinued"


@dataclass(frozen=True, slots=True)
class Product:
    resource_type: ClassVar[ResourceType] = ResourceType.PRODUCT

    id: UUID
    shop_id: UUID
    name: str
    status: ProductStatus
    stock: int = 0
    is_featured: bool = False
    ocop_verified: bool = False

    @staticmethod
    def new(
        *,
        shop_id: UUID,
        name: str,
        status: ProductStatus = ProductStatus.PENDING_REVIEW,
        stock: int = 0,
    ) -> Product:
        return Product(
            id=uuid4(),
            shop_id=shop_id,
            name=name,
            status=status,
            stock=stock,
        )
