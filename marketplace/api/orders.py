"""Order endpoints: view, list, and status changes."""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from marketplace.api.dependencies import authorizer, order_repo, require_identity
from marketplace.api.errors import (
    allowed_resource,
    raise_for_denial,
    status_changed_concurrently,
)
from marketplace.authz.matrix import Tenancy
from marketplace.models.identity import Identity
from marketplace.models.order import Order, OrderStatus
from marketplace.models.resource import ResourceType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/orders", tags=["orders"])


# --- Pydantic schemas ---


class OrderStatusIn(BaseModel):
    status: OrderStatus
    tracking_reference: str | None = Field(default=None, min_length=1, max_length=100)


class OrderOut(BaseModel):
    id: str
    owner_user_id: str
    shop_id: str
    status: str
    tracking_reference: str | None


def _out(order: Order) -> OrderOut:
    return OrderOut(
        id=str(order.id),
        owner_user_id=str(order.owner_user_id),
        shop_id=str(order.shop_id),
        status=order.status.value,
        tracking_reference=order.tracking_reference,
    )


# --- Endpoints ---


@router.get("", response_model=list[OrderOut])
def list_orders(
    identity: Annotated[Identity, Depends(require_identity)],
    shop_id: UUID | None = None,
) -> list[OrderOut]:
    """List the orders the caller may see.

    Shop roles see their own shop's orders (asking for another shop is a
    403), customers see their own purchases, platform roles see
    everything or one shop when ``shop_id`` is given.
    """
    raise_for_denial(authorizer.can_list_orders(identity, requested_shop_id=shop_id))

    scope = authorizer.matrix.scope_of(identity.global_role)
    if scope is Tenancy.SHOP and identity.shop_id is not None:
        orders = order_repo.list_by_shop(identity.shop_id)
    elif scope is Tenancy.USER:
        orders = order_repo.list_by_owner(identity.id)
        if shop_id is not None:
            orders = [o for o in orders if o.shop_id == shop_id]
    elif shop_id is not None:
        orders = order_repo.list_by_shop(shop_id)
    else:
        orders = order_repo.list_all()
    return [_out(o) for o in orders]


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: UUID,
    identity: Annotated[Identity, Depends(require_identity)],
) -> OrderOut:
    decision = authorizer.can_view_order(identity, order_id)
    return _out(allowed_resource(decision, Order))


@router.patch("/{order_id}/status", response_model=OrderOut)
def change_order_status(
    order_id: UUID,
    body: OrderStatusIn,
    identity: Annotated[Identity, Depends(require_identity)],
) -> OrderOut:
    """Move an order along its lifecycle.

    The guard checks role, tenancy and the transition table; the write is
    conditional on the status the guard saw.
    """
    decision = authorizer.can_change_order_status(
        identity,
        order_id,
        body.status,
        tracking_reference=body.tracking_reference,
    )
    order = allowed_resource(decision, Order)

    updated = order_repo.compare_and_set_status(
        order_id,
        order.status,
        body.status,
        tracking_reference=body.tracking_reference,
    )
    if updated is None:
        raise status_changed_concurrently(ResourceType.ORDER)

    logger.info(
        "Order %s %s -> %s by user=%s",
        order_id,
        order.status.value,
        updated.status.value,
        identity.id,
    )
    return _out(updated)
