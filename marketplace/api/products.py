"""Product endpoints.

Every handler asks the authorization facade first and only then touches
storage. Status changes and moderation flags are written only if the
status is still the one the guard checked, so a concurrent writer cannot
slip an unchecked change in between.
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from marketplace.api.dependencies import authorizer, product_repo, require_identity
from marketplace.api.errors import allowed_resource, status_changed_concurrently
from marketplace.authz.matrix import Action
from marketplace.authz.transitions import PRODUCT_STATUS_ACTIONS, product_target_status
from marketplace.models.identity import Identity
from marketplace.models.product import Product
from marketplace.models.resource import ResourceType

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/products", tags=["products"])

# Flag-only actions: no status change, one boolean flips on.
_FLAG_FOR_ACTION = {
    Action.FEATURE: "is_featured",
    Action.VERIFY_OCOP: "ocop_verified",
}


# --- Pydantic schemas ---


class ProductUpdateIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)


class StockIn(BaseModel):
    stock: int = Field(ge=0)


class ProductOut(BaseModel):
    id: str
    shop_id: str
    name: str
    status: str
    stock: int
    is_featured: bool
    ocop_verified: bool


def _out(product: Product) -> ProductOut:
    return ProductOut(
        id=str(product.id),
        shop_id=str(product.shop_id),
        name=product.name,
        status=product.status.value,
        stock=product.stock,
        is_featured=product.is_featured,
        ocop_verified=product.ocop_verified,
    )


def _gone() -> HTTPException:
    return HTTPException(status_code=404, detail="Resource not found")


# --- Endpoints ---


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(
    product_id: UUID,
    body: ProductUpdateIn,
    identity: Annotated[Identity, Depends(require_identity)],
) -> ProductOut:
    """Edit product details. Status and stock are not editable here."""
    decision = authorizer.can_modify_owned_resource(
        identity, ResourceType.PRODUCT, product_id, Action.UPDATE
    )
    allowed_resource(decision, Product)

    updated = product_repo.update_name(product_id, body.name)
    if updated is None:
        raise _gone()
    return _out(updated)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(
    product_id: UUID,
    identity: Annotated[Identity, Depends(require_identity)],
) -> None:
    decision = authorizer.can_modify_owned_resource(
        identity, ResourceType.PRODUCT, product_id, Action.DELETE
    )
    allowed_resource(decision, Product)

    if not product_repo.delete(product_id):
        raise _gone()
    logger.info("Product %s deleted by user=%s", product_id, identity.id)


@router.post("/{product_id}/actions/{action}", response_model=ProductOut)
def run_product_action(
    product_id: UUID,
    action: Action,
    identity: Annotated[Identity, Depends(require_identity)],
) -> ProductOut:
    """Lifecycle actions: submit, approve, reject, activate, deactivate,
    discontinue, feature, verify_ocop.
    """
    if action not in PRODUCT_STATUS_ACTIONS or action is Action.UPDATE_STOCK:
        raise HTTPException(
            status_code=422, detail=f"{action.value!r} is not a product lifecycle action"
        )

    decision = authorizer.can_change_product_status(identity, product_id, action)
    product = allowed_resource(decision, Product)

    target = product_target_status(action)
    if target is not None:
        updated = product_repo.compare_and_set_status(product_id, product.status, target)
        if updated is None:
            raise status_changed_concurrently(ResourceType.PRODUCT)
        logger.info(
            "Product %s %s -> %s by user=%s",
            product_id,
            product.status.value,
            updated.status.value,
            identity.id,
        )
        return _out(updated)

    flagged = product_repo.set_flag(product_id, product.status, _FLAG_FOR_ACTION[action])
    if flagged is None:
        raise status_changed_concurrently(ResourceType.PRODUCT)
    return _out(flagged)


@router.put("/{product_id}/stock", response_model=ProductOut)
def set_stock(
    product_id: UUID,
    body: StockIn,
    identity: Annotated[Identity, Depends(require_identity)],
) -> ProductOut:
    """Set the stock level. active and out_of_stock follow it automatically."""
    decision = authorizer.can_change_product_status(
        identity, product_id, Action.UPDATE_STOCK
    )
    allowed_resource(decision, Product)

    updated = product_repo.set_stock(product_id, body.stock)
    if updated is None:
        raise _gone()
    return _out(updated)
