from __future__ import annotations

import threading
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from marketplace.models.order import Order, OrderStatus

# Targets that may carry a carrier tracking reference.
TRACKED_STATUSES = frozenset({OrderStatus.SHIPPED, OrderStatus.DELIVERED})


class OrderRepo(Protocol):
    def get_by_id(self, order_id: UUID) -> Order | None: ...
    def add(self, order: Order) -> None: ...
    def compare_and_set_status(
        self,
        order_id: UUID,
        expected: OrderStatus,
        new: OrderStatus,
        *,
        tracking_reference: str | None = None,
    ) -> Order | None: ...
    def list_all(self) -> list[Order]: ...
    def list_by_shop(self, shop_id: UUID) -> list[Order]: ...
    def list_by_owner(self, user_id: UUID) -> list[Order]: ...


class InMemoryOrderRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Order] = {}
        self._lock = threading.Lock()

    def get_by_id(self, order_id: UUID) -> Order | None:
        return self._by_id.get(order_id)

    def add(self, order: Order) -> None:
        with self._lock:
            if order.id in self._by_id:
                raise ValueError("order already exists")
            self._by_id[order.id] = order

    def compare_and_set_status(
        self,
        order_id: UUID,
        expected: OrderStatus,
        new: OrderStatus,
        *,
        tracking_reference: str | None = None,
    ) -> Order | None:
        """Write (id, expected) -> new atomically; None on a lost race.

        ``tracking_reference`` is kept only when moving to shipped or
        delivered and is ignored for every other target.
        """
        with self._lock:
            existing = self._by_id.get(order_id)
            if existing is None or existing.status is not expected:
                return None
            tracking = existing.tracking_reference
            if new in TRACKED_STATUSES and tracking_reference:
                tracking = tracking_reference
            updated = replace(existing, status=new, tracking_reference=tracking)
            self._by_id[order_id] = updated
            return updated

    def list_all(self) -> list[Order]:
        return list(self._by_id.values())

    def list_by_shop(self, shop_id: UUID) -> list[Order]:
        return [o for o in list(self._by_id.values()) if o.shop_id == shop_id]

    def list_by_owner(self, user_id: UUID) -> list[Order]:
        return [o for o in list(self._by_id.values()) if o.owner_user_id == user_id]
