from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from marketplace.authz.transitions import derive_stock_status
from marketplace.models.product import Product, ProductStatus

# Boolean fields that moderation actions switch on.
PRODUCT_FLAGS = frozenset({"is_featured", "ocop_verified"})


class ProductRepo(Protocol):
    def get_by_id(self, product_id: UUID) -> Product | None: ...
    def add(self, product: Product) -> None: ...
    def update_name(self, product_id: UUID, name: str) -> Product | None: ...
    def delete(self, product_id: UUID) -> bool: ...
    def compare_and_set_status(
        self, product_id: UUID, expected: ProductStatus, new: ProductStatus
    ) -> Product | None: ...
    def set_flag(
        self, product_id: UUID, expected: ProductStatus, flag: str
    ) -> Product | None: ...
    def set_stock(self, product_id: UUID, stock: int) -> Product | None: ...
    def list_by_shop(self, shop_id: UUID) -> list[Product]: ...


class InMemoryProductRepo:
    """Dict-backed store. Every read-modify-write holds ``_lock``."""

    def __init__(self) -> None:
        self._by_id: dict[UUID, Product] = {}
        self._lock = threading.Lock()

    def get_by_id(self, product_id: UUID) -> Product | None:
        return self._by_id.get(product_id)

    def add(self, product: Product) -> None:
        with self._lock:
            if product.id in self._by_id:
                raise ValueError("product already exists")
            self._by_id[product.id] = product

    def update_name(self, product_id: UUID, name: str) -> Product | None:
        with self._lock:
            existing = self._by_id.get(product_id)
            if existing is None:
                return None
            updated = replace(existing, name=name)
            self._by_id[product_id] = updated
            return updated

    def delete(self, product_id: UUID) -> bool:
        with self._lock:
            return self._by_id.pop(product_id, None) is not None

    def compare_and_set_status(
        self, product_id: UUID, expected: ProductStatus, new: ProductStatus
    ) -> Product | None:
        """Apply ``new`` only if the stored status is still ``expected``.

        Returns the updated product, or None when the product is gone or
        another writer got there first.
        """
        with self._lock:
            existing = self._by_id.get(product_id)
            if existing is None or existing.status is not expected:
                return None
            updated = replace(existing, status=derive_stock_status(new, existing.stock))
            self._by_id[product_id] = updated
            return updated

    def set_flag(
        self, product_id: UUID, expected: ProductStatus, flag: str
    ) -> Product | None:
        """Turn ``flag`` on if the status is still ``expected``; None otherwise."""
        if flag not in PRODUCT_FLAGS:
            raise ValueError(f"unknown product flag {flag!r}")
        with self._lock:
            existing = self._by_id.get(product_id)
            if existing is None or existing.status is not expected:
                return None
            updated = replace(existing, **{flag: True})
            self._by_id[product_id] = updated
            return updated

    def set_stock(self, product_id: UUID, stock: int) -> Product | None:
        with self._lock:
            existing = self._by_id.get(product_id)
            if existing is None:
                return None
            updated = replace(
                existing, stock=stock, status=derive_stock_status(existing.status, stock)
            )
            self._by_id[product_id] = updated
            return updated

    def list_by_shop(self, shop_id: UUID) -> list[Product]:
        return [p for p in list(self._by_id.values()) if p.shop_id == shop_id]
