"""Shop endpoints.

Two kinds of callers reach a shop record: its own people (owner, and
the roster they manage) and platform moderators. They go through
different guards, ``can_manage_own_shop`` and ``can_moderate_any_shop``,
and never share a route.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from marketplace.api.dependencies import authorizer, require_identity, shop_repo
from marketplace.api.errors import allowed_resource, status_changed_concurrently
from marketplace.authz.matrix import Action
from marketplace.authz.transitions import SHOP_ACTION_RULES, shop_target_status
from marketplace.models.identity import Identity, ShopRole
from marketplace.models.resource import ResourceType
from marketplace.models.shop import Shop

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/shops", tags=["shops"])


# --- Pydantic schemas ---


class ShopUpdateIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class AddStaffIn(BaseModel):
    user_id: UUID
    shop_role: ShopRole = ShopRole.STAFF


class ShopOut(BaseModel):
    id: str
    owner_user_id: str
    name: str
    status: str
    admins: list[str]
    staff: list[str]
    documents_verified: bool


def _out(shop: Shop) -> ShopOut:
    return ShopOut(
        id=str(shop.id),
        owner_user_id=str(shop.owner_user_id),
        name=shop.name,
        status=shop.status.value,
        admins=[str(u) for u in shop.admins],
        staff=[str(u) for u in shop.staff],
        documents_verified=shop.documents_verified,
    )


def _gone() -> HTTPException:
    return HTTPException(status_code=404, detail="Resource not found")


# --- Own-shop endpoints ---


@router.patch("/{shop_id}", response_model=ShopOut)
def update_shop(
    shop_id: UUID,
    body: ShopUpdateIn,
    identity: Annotated[Identity, Depends(require_identity)],
) -> ShopOut:
    """Rename the shop. Owner only."""
    decision = authorizer.can_manage_own_shop(identity, shop_id, Action.UPDATE)
    allowed_resource(decision, Shop)

    updated = shop_repo.update_name(shop_id, body.name)
    if updated is None:
        raise _gone()
    return _out(updated)


@router.post(
    "/{shop_id}/staff",
    response_model=ShopOut,
    status_code=status.HTTP_201_CREATED,
)
def add_staff(
    shop_id: UUID,
    body: AddStaffIn,
    identity: Annotated[Identity, Depends(require_identity)],
) -> ShopOut:
    """Put a user on the shop roster as admin or staff."""
    if body.shop_role is ShopRole.OWNER:
        raise HTTPException(status_code=422, detail="shop_role must be admin or staff")

    decision = authorizer.can_manage_own_shop(identity, shop_id, Action.MANAGE_STAFF)
    allowed_resource(decision, Shop)

    try:
        updated = shop_repo.add_staff(shop_id, body.user_id, body.shop_role)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from None
    if updated is None:
        raise _gone()

    logger.info(
        "User %s added to shop %s as %s by user=%s",
        body.user_id,
        shop_id,
        body.shop_role.value,
        identity.id,
    )
    return _out(updated)


@router.delete("/{shop_id}/staff/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_staff(
    shop_id: UUID,
    user_id: UUID,
    identity: Annotated[Identity, Depends(require_identity)],
) -> None:
    decision = authorizer.can_manage_own_shop(identity, shop_id, Action.MANAGE_STAFF)
    shop = allowed_resource(decision, Shop)

    listed = shop.roster_role(user_id)
    if listed is None:
        raise HTTPException(status_code=404, detail="user is not on the shop roster")
    if listed is ShopRole.OWNER:
        raise HTTPException(status_code=409, detail="the shop owner cannot be removed")

    if shop_repo.remove_staff(shop_id, user_id) is None:
        raise _gone()
    logger.info("User %s removed from shop %s by user=%s", user_id, shop_id, identity.id)


# --- Platform moderation ---


@router.post("/{shop_id}/moderation/{action}", response_model=ShopOut)
def moderate_shop(
    shop_id: UUID,
    action: Action,
    identity: Annotated[Identity, Depends(require_identity)],
) -> ShopOut:
    """approve, reject, suspend, verify_documents."""
    if action not in SHOP_ACTION_RULES:
        raise HTTPException(
            status_code=422, detail=f"{action.value!r} is not a moderation action"
        )

    decision = authorizer.can_moderate_any_shop(identity, shop_id, action)
    shop = allowed_resource(decision, Shop)

    target = shop_target_status(action)
    if target is None:
        updated = shop_repo.mark_documents_verified(shop_id, shop.status)
        if updated is None:
            raise status_changed_concurrently(ResourceType.SHOP)
        return _out(updated)

    moved = shop_repo.compare_and_set_status(shop_id, shop.status, target)
    if moved is None:
        raise status_changed_concurrently(ResourceType.SHOP)
    logger.info(
        "Shop %s %s -> %s by user=%s",
        shop_id,
        shop.status.value,
        moved.status.value,
        identity.id,
    )
    return _out(moved)
