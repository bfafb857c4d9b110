"""Tenancy checks: does the caller's shop or user id match the resource's?

Two independent questions live here:

* ``shop_affiliated`` looks only at the caller and the request. Is this a
  shop role at all, is it attached to a shop, is its sub-role allowed,
  and does any shop id named in the request match its own shop?
* ``check_tenancy`` looks at an already-fetched resource and applies the
  ownership axis that the caller's tenancy level is checked against.

A request that names a shop id must pass both. Checking only one of the
two lets "filter by shop B" slip through for a caller whose resource
happens to sit in shop A.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Set
from enum import Enum
from types import MappingProxyType
from uuid import UUID

from marketplace.authz.matrix import Tenancy
from marketplace.authz.outcomes import Allowed, Decision, Denied, DenialReason, Resource
from marketplace.models.identity import Identity, ShopRole
from marketplace.models.resource import ResourceType
from marketplace.models.shop import Shop

logger = logging.getLogger(__name__)


class OwnershipField(str, Enum):
    SHOP = "shop"
    OWNER_USER = "owner_user"


# Which axis each non-platform tenancy level is checked against.
# None marks a shared catalogue resource with no tenancy axis.
# A missing key is a programming error, so add a row with every new
# resource type rather than relying on a default.
OWNERSHIP_AXES: Mapping[tuple[Tenancy, ResourceType], OwnershipField | None] = (
    MappingProxyType(
        {
            (Tenancy.SHOP, ResourceType.PRODUCT): OwnershipField.SHOP,
            (Tenancy.SHOP, ResourceType.ORDER): OwnershipField.SHOP,
            (Tenancy.SHOP, ResourceType.SHOP): OwnershipField.SHOP,
            (Tenancy.USER, ResourceType.PRODUCT): None,
            (Tenancy.USER, ResourceType.ORDER): OwnershipField.OWNER_USER,
            (Tenancy.USER, ResourceType.SHOP): None,
        }
    )
)


def _owning_shop_id(resource: Resource) -> UUID | None:
    if isinstance(resource, Shop):
        return resource.id
    return resource.shop_id


def owns_resource(
    identity: Identity, resource: Resource, field: OwnershipField
) -> bool:
    if field is OwnershipField.SHOP:
        return identity.shop_id is not None and identity.shop_id == _owning_shop_id(
            resource
        )
    owner = getattr(resource, "owner_user_id", None)
    return owner is not None and owner == identity.id


def shop_affiliated(
    identity: Identity,
    allowed_shop_roles: Set[ShopRole],
    requested_shop_id: UUID | None = None,
) -> Decision:
    if not identity.is_shop_scoped:
        return Denied(DenialReason.INSUFFICIENT_ROLE, "not a shop role")

    if identity.shop_id is None or identity.shop_role is None:
        return Denied(
            DenialReason.NO_SHOP_AFFILIATION, "shop account has no shop assigned"
        )

    if identity.shop_role not in allowed_shop_roles:
        return Denied(
            DenialReason.INSUFFICIENT_ROLE,
            f"shop role {identity.shop_role.value} is not allowed",
        )

    if requested_shop_id is not None and requested_shop_id != identity.shop_id:
        logger.debug(
            "Requested shop=%s differs from caller shop=%s",
            requested_shop_id,
            identity.shop_id,
        )
        return Denied(DenialReason.WRONG_SHOP, "can only access your own shop")

    return Allowed()


def check_tenancy(identity: Identity, resource: Resource, scope: Tenancy) -> Decision:
    """Apply the ownership axis for ``scope`` to a fetched resource.

    Platform scope never reaches here; the facade's bypass handles it.
    """
    field = OWNERSHIP_AXES[(scope, resource.resource_type)]
    if field is None:
        return Allowed(resource)

    if field is OwnershipField.SHOP:
        if identity.shop_id is None:
            return Denied(
                DenialReason.NO_SHOP_AFFILIATION, "shop account has no shop assigned"
            )
        if not owns_resource(identity, resource, field):
            return Denied(
                DenialReason.WRONG_SHOP, "resource belongs to another shop"
            )
        return Allowed(resource)

    if not owns_resource(identity, resource, field):
        return Denied(DenialReason.NOT_OWNER, "resource belongs to another user")
    return Allowed(resource)
