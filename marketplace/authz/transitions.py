"""Lifecycle rules for orders, products and shops.

Each lifecycle is an explicit table, so the terminal-state and no-skip
rules can be checked by enumerating it.

These functions answer "is this change legal given the status read at
check time". Whether the change actually applied atomically is the
store's job: status writes go through compare_and_set_status.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from marketplace.authz.matrix import Action
from marketplace.authz.outcomes import (
    Allowed,
    Decision,
    Resource,
    invalid_transition,
    not_allowed_in_status,
)
from marketplace.models.order import OrderStatus
from marketplace.models.product import Product, ProductStatus
from marketplace.models.shop import Shop, ShopStatus

# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

OS = OrderStatus

ORDER_TRANSITIONS: Mapping[OrderStatus, frozenset[OrderStatus]] = MappingProxyType(
    {
        OS.PENDING: frozenset({OS.CONFIRMED, OS.CANCELLED, OS.REFUNDED}),
        OS.CONFIRMED: frozenset({OS.PROCESSING, OS.CANCELLED, OS.REFUNDED}),
        OS.PROCESSING: frozenset({OS.SHIPPED, OS.CANCELLED, OS.REFUNDED}),
        # once shipped, backing out goes through a refund
        OS.SHIPPED: frozenset({OS.DELIVERED, OS.REFUNDED}),
        OS.DELIVERED: frozenset(),
        OS.CANCELLED: frozenset(),
        OS.REFUNDED: frozenset(),
    }
)

TERMINAL_ORDER_STATUSES = frozenset(s for s, nxt in ORDER_TRANSITIONS.items() if not nxt)

TRACKING_REQUIRED: frozenset[tuple[OrderStatus, OrderStatus]] = frozenset(
    {(OS.SHIPPED, OS.DELIVERED)}
)

# Matrix action a caller needs to request each target status.
ORDER_STATUS_ACTIONS: Mapping[OrderStatus, Action] = MappingProxyType(
    {
        OS.PENDING: Action.UPDATE,
        OS.CONFIRMED: Action.UPDATE,
        OS.PROCESSING: Action.UPDATE,
        OS.SHIPPED: Action.FULFILL,
        OS.DELIVERED: Action.FULFILL,
        OS.CANCELLED: Action.CANCEL,
        OS.REFUNDED: Action.REFUND,
    }
)


def can_transition(
    current: OrderStatus, requested: OrderStatus, *, has_tracking: bool = False
) -> bool:
    if requested not in ORDER_TRANSITIONS[current]:
        return False
    if (current, requested) in TRACKING_REQUIRED and not has_tracking:
        return False
    return True


def check_order_transition(
    current: OrderStatus,
    requested: OrderStatus,
    *,
    has_tracking: bool = False,
    resource: Resource | None = None,
) -> Decision:
    if can_transition(current, requested, has_tracking=has_tracking):
        return Allowed(resource)
    if current in TERMINAL_ORDER_STATUSES:
        return invalid_transition(current, requested, f"order already {current.value}")
    if (current, requested) in TRACKING_REQUIRED:
        return invalid_transition(
            current, requested, "a tracking reference is required before delivery"
        )
    return invalid_transition(current, requested)


# ---------------------------------------------------------------------------
# Status-bound actions (products, shops)
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StatusRule:
    """Statuses an action may run in, and the status it moves to (if any)."""

    allowed_from: frozenset[Enum]
    target: Enum | None = None


P = ProductStatus

PRODUCT_ACTION_RULES: Mapping[Action, StatusRule] = MappingProxyType(
    {
        Action.SUBMIT: StatusRule(frozenset({P.DRAFT, P.REJECTED}), P.PENDING_REVIEW),
        Action.APPROVE: StatusRule(frozenset({P.PENDING_REVIEW}), P.ACTIVE),
        Action.REJECT: StatusRule(frozenset({P.PENDING_REVIEW}), P.REJECTED),
        Action.ACTIVATE: StatusRule(frozenset({P.INACTIVE}), P.ACTIVE),
        Action.DEACTIVATE: StatusRule(frozenset({P.ACTIVE, P.OUT_OF_STOCK}), P.INACTIVE),
        # discontinued is terminal: a new product has to be created instead
        Action.DISCONTINUE: StatusRule(
            frozenset(set(P) - {P.DISCONTINUED}), P.DISCONTINUED
        ),
        Action.FEATURE: StatusRule(frozenset({P.ACTIVE})),
        Action.VERIFY_OCOP: StatusRule(
            frozenset({P.PENDING_REVIEW, P.ACTIVE, P.INACTIVE, P.OUT_OF_STOCK})
        ),
        Action.UPDATE_STOCK: StatusRule(frozenset(set(P) - {P.DISCONTINUED})),
    }
)

# Actions that can be requested through the product status guard.
PRODUCT_STATUS_ACTIONS = frozenset(PRODUCT_ACTION_RULES)

PRODUCT_TRANSITIONS: frozenset[tuple[ProductStatus, ProductStatus]] = frozenset(
    (src, rule.target)  # type: ignore[misc]
    for rule in PRODUCT_ACTION_RULES.values()
    if rule.target is not None
    for src in rule.allowed_from
    if src is not rule.target
)


def action_allowed_in_status(status: ProductStatus, action: Action) -> bool:
    rule = PRODUCT_ACTION_RULES.get(action)
    if rule is None:
        return True
    return status in rule.allowed_from


def product_target_status(action: Action) -> ProductStatus | None:
    rule = PRODUCT_ACTION_RULES.get(action)
    return rule.target if rule is not None else None  # type: ignore[return-value]


def can_transition_product(current: ProductStatus, requested: ProductStatus) -> bool:
    """Manual status change check. out_of_stock is never a valid target."""
    return (current, requested) in PRODUCT_TRANSITIONS


def check_product_action(product: Product, action: Action) -> Decision:
    if action_allowed_in_status(product.status, action):
        return Allowed(product)
    return not_allowed_in_status(product.status, action)


def derive_stock_status(status: ProductStatus, stock: int) -> ProductStatus:
    """Automatic active <-> out_of_stock flip driven by stock level.

    Applied by the product store when stock changes. It bypasses the
    action rules because nobody requests it.
    """
    if status is P.ACTIVE and stock <= 0:
        return P.OUT_OF_STOCK
    if status is P.OUT_OF_STOCK and stock > 0:
        return P.ACTIVE
    return status


S = ShopStatus

SHOP_ACTION_RULES: Mapping[Action, StatusRule] = MappingProxyType(
    {
        Action.APPROVE: StatusRule(frozenset({S.PENDING}), S.APPROVED),
        Action.REJECT: StatusRule(frozenset({S.PENDING}), S.REJECTED),
        Action.SUSPEND: StatusRule(frozenset({S.APPROVED, S.ACTIVE}), S.SUSPENDED),
        Action.VERIFY_DOCUMENTS: StatusRule(frozenset({S.PENDING, S.APPROVED, S.ACTIVE})),
    }
)


def shop_target_status(action: Action) -> ShopStatus | None:
    rule = SHOP_ACTION_RULES.get(action)
    return rule.target if rule is not None else None  # type: ignore[return-value]


def check_shop_action(shop: Shop, action: Action) -> Decision:
    rule = SHOP_ACTION_RULES.get(action)
    if rule is None or shop.status in rule.allowed_from:
        return Allowed(shop)
    return not_allowed_in_status(shop.status, action)
