"""Authorization outcomes.

Every guard returns a value, never raises, for "not permitted". Allowed
is truthy and Denied is falsy, so call sites read naturally::

    decision = authz.can_view_order(identity, order_id)
    if not decision:
        ...
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from marketplace.models.order import Order
from marketplace.models.product import Product
from marketplace.models.shop import Shop

Resource = Product | Order | Shop


class DenialReason(str, Enum):
    RESOURCE_NOT_FOUND = "resource_not_found"
    INSUFFICIENT_ROLE = "insufficient_role"
    NO_SHOP_AFFILIATION = "no_shop_affiliation"
    NOT_OWNER = "not_owner"
    WRONG_SHOP = "wrong_shop"
    INVALID_TRANSITION = "invalid_transition"
    ACTION_NOT_ALLOWED_IN_STATUS = "action_not_allowed_in_status"


# Rendered externally as one generic "forbidden" shape.
_FORBIDDEN = frozenset(
    {
        DenialReason.INSUFFICIENT_ROLE,
        DenialReason.NO_SHOP_AFFILIATION,
        DenialReason.NOT_OWNER,
        DenialReason.WRONG_SHOP,
    }
)

# Business-state conflicts, rendered with the specific statuses.
_CONFLICT = frozenset(
    {DenialReason.INVALID_TRANSITION, DenialReason.ACTION_NOT_ALLOWED_IN_STATUS}
)


@dataclass(frozen=True, slots=True)
class Allowed:
    resource: Resource | None = None

    def __bool__(self) -> bool:
        return True


@dataclass(frozen=True, slots=True)
class Denied:
    reason: DenialReason
    detail: str = ""
    current_status: str | None = None
    requested: str | None = None

    def __bool__(self) -> bool:
        return False

    @property
    def is_forbidden(self) -> bool:
        return self.reason in _FORBIDDEN

    @property
    def is_conflict(self) -> bool:
        return self.reason in _CONFLICT

    @property
    def is_not_found(self) -> bool:
        return self.reason is DenialReason.RESOURCE_NOT_FOUND


Decision = Allowed | Denied


def invalid_transition(current: Enum, requested: Enum, detail: str = "") -> Denied:
    return Denied(
        reason=DenialReason.INVALID_TRANSITION,
        detail=detail or f"cannot change from {current.value} to {requested.value}",
        current_status=current.value,
        requested=requested.value,
    )


def not_allowed_in_status(status: Enum, action: Enum) -> Denied:
    return Denied(
        reason=DenialReason.ACTION_NOT_ALLOWED_IN_STATUS,
        detail=f"{action.value} is not allowed while {status.value}",
        current_status=status.value,
        requested=action.value,
    )
