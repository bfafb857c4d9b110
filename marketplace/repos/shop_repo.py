from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from marketplace.models.identity import ShopRole
from marketplace.models.shop import Shop, ShopStatus


class ShopRepo(Protocol):
    def get_by_id(self, shop_id: UUID) -> Shop | None: ...
    def add(self, shop: Shop) -> None: ...
    def compare_and_set_status(
        self, shop_id: UUID, expected: ShopStatus, new: ShopStatus
    ) -> Shop | None: ...
    def update_name(self, shop_id: UUID, name: str) -> Shop | None: ...
    def mark_documents_verified(
        self, shop_id: UUID, expected: ShopStatus
    ) -> Shop | None: ...
    def add_staff(self, shop_id: UUID, user_id: UUID, role: ShopRole) -> Shop | None: ...
    def remove_staff(self, shop_id: UUID, user_id: UUID) -> Shop | None: ...


class InMemoryShopRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Shop] = {}
        self._lock = threading.Lock()

    def get_by_id(self, shop_id: UUID) -> Shop | None:
        return self._by_id.get(shop_id)

    def add(self, shop: Shop) -> None:
        with self._lock:
            if shop.id in self._by_id:
                raise ValueError("shop already exists")
            self._by_id[shop.id] = shop

    def compare_and_set_status(
        self, shop_id: UUID, expected: ShopStatus, new: ShopStatus
    ) -> Shop | None:
        with self._lock:
            existing = self._by_id.get(shop_id)
            if existing is None or existing.status is not expected:
                return None
            updated = replace(existing, status=new)
            self._by_id[shop_id] = updated
            return updated

    def update_name(self, shop_id: UUID, name: str) -> Shop | None:
        with self._lock:
            existing = self._by_id.get(shop_id)
            if existing is None:
                return None
            updated = replace(existing, name=name)
            self._by_id[shop_id] = updated
            return updated

    def add_staff(self, shop_id: UUID, user_id: UUID, role: ShopRole) -> Shop | None:
        """Put ``user_id`` on the admin or staff list (never owner)."""
        if role is ShopRole.OWNER:
            raise ValueError("a shop has exactly one owner")
        with self._lock:
            existing = self._by_id.get(shop_id)
            if existing is None:
                return None
            if existing.roster_role(user_id) is not None:
                raise ValueError("user is already on the shop roster")
            if role is ShopRole.ADMIN:
                updated = replace(existing, admins=(*existing.admins, user_id))
            else:
                updated = replace(existing, staff=(*existing.staff, user_id))
            self._by_id[shop_id] = updated
            return updated

    def remove_staff(self, shop_id: UUID, user_id: UUID) -> Shop | None:
        with self._lock:
            existing = self._by_id.get(shop_id)
            if existing is None:
                return None
            updated = replace(
                existing,
                admins=tuple(u for u in existing.admins if u != user_id),
                staff=tuple(u for u in existing.staff if u != user_id),
            )
            self._by_id[shop_id] = updated
            return updated

    def mark_documents_verified(
        self, shop_id: UUID, expected: ShopStatus
    ) -> Shop | None:
        """Set the flag if the status is still ``expected``; None otherwise."""
        with self._lock:
            existing = self._by_id.get(shop_id)
            if existing is None or existing.status is not expected:
                return None
            updated = replace(existing, documents_verified=True)
            self._by_id[shop_id] = updated
            return updated
