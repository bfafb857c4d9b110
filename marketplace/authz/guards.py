"""Authorization facade: the guard predicates endpoints actually call.

One guard per authorization scenario, not per route. Every guard runs
the same steps in the same order and stops at the first failure:

  1. platform bypass   the role's matrix scope is "platform" AND the
                       matrix allows this action. Tenancy is skipped.
  2. role in matrix    INSUFFICIENT_ROLE otherwise
  3. eligible scope    some guards only make sense for one tenancy level
  4. request scope     shop roles: affiliation, sub-role, requested shop
  5. fetch             RESOURCE_NOT_FOUND
  6. tenancy           WRONG_SHOP / NOT_OWNER / NO_SHOP_AFFILIATION
  7. state             status-changing guards only

Steps 1-4 never touch storage, so a role that could not perform the
action anyway learns nothing about whether the resource exists.

Guards return a Decision and never raise for "not permitted". They do
raise ValueError when called with arguments no guard accepts, because
that is a bug in the caller.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Set
from types import MappingProxyType
from uuid import UUID

from marketplace.authz.matrix import Action, PermissionMatrix, Tenancy
from marketplace.authz.outcomes import (
    Allowed,
    Decision,
    Denied,
    DenialReason,
    Resource,
)
from marketplace.authz.ownership import check_tenancy, shop_affiliated
from marketplace.authz.roles import at_least, roles_at_least
from marketplace.authz.transitions import (
    ORDER_STATUS_ACTIONS,
    PRODUCT_STATUS_ACTIONS,
    SHOP_ACTION_RULES,
    check_order_transition,
    check_product_action,
    check_shop_action,
)
from marketplace.core.metrics import AUTHZ_DECISIONS
from marketplace.models.identity import Identity, ShopRole
from marketplace.models.order import Order, OrderStatus
from marketplace.models.product import Product
from marketplace.models.resource import ResourceType
from marketplace.models.shop import Shop
from marketplace.repos.order_repo import OrderRepo
from marketplace.repos.product_repo import ProductRepo
from marketplace.repos.shop_repo import ShopRepo

logger = logging.getLogger(__name__)

ALL_SHOP_ROLES = frozenset(ShopRole)

OWNED_RESOURCE_TYPES = frozenset(
    {ResourceType.PRODUCT, ResourceType.ORDER, ResourceType.SHOP}
)

# No tenant scope qualifies: only the platform bypass can reach the resource.
_NO_TENANT_SCOPE: frozenset[Tenancy] = frozenset()


class AuthorizationService:
    def __init__(
        self,
        matrix: PermissionMatrix,
        *,
        products: ProductRepo,
        orders: OrderRepo,
        shops: ShopRepo,
    ) -> None:
        self._matrix = matrix
        self._stores: Mapping[ResourceType, ProductRepo | OrderRepo | ShopRepo] = (
            MappingProxyType(
                {
                    ResourceType.PRODUCT: products,
                    ResourceType.ORDER: orders,
                    ResourceType.SHOP: shops,
                }
            )
        )

    @property
    def matrix(self) -> PermissionMatrix:
        return self._matrix

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    def can_modify_owned_resource(
        self,
        identity: Identity,
        resource_type: ResourceType,
        resource_id: UUID,
        action: Action,
        *,
        requested_shop_id: UUID | None = None,
    ) -> Decision:
        if resource_type not in OWNED_RESOURCE_TYPES:
            raise ValueError(f"no stored resources of type {resource_type.value!r}")
        decision = self._authorize(
            identity,
            resource_type,
            resource_id,
            action,
            requested_shop_id=requested_shop_id,
        )
        return self._record("can_modify_owned_resource", identity, decision)

    def can_view_order(
        self,
        identity: Identity,
        order_id: UUID,
        *,
        requested_shop_id: UUID | None = None,
    ) -> Decision:
        decision = self._authorize(
            identity,
            ResourceType.ORDER,
            order_id,
            Action.READ,
            requested_shop_id=requested_shop_id,
        )
        return self._record("can_view_order", identity, decision)

    def can_list_orders(
        self, identity: Identity, *, requested_shop_id: UUID | None = None
    ) -> Decision:
        """Bulk listing: no single resource, only the requested scope."""
        role = identity.global_role
        decision: Decision = Allowed()
        if not self._platform_bypass(identity, ResourceType.ORDER, Action.READ):
            if not self._matrix.is_allowed(role, ResourceType.ORDER, Action.READ):
                decision = _insufficient_role(identity, ResourceType.ORDER, Action.READ)
            elif self._matrix.scope_of(role) is Tenancy.SHOP:
                decision = shop_affiliated(identity, ALL_SHOP_ROLES, requested_shop_id)
        return self._record("can_list_orders", identity, decision)

    def can_change_order_status(
        self,
        identity: Identity,
        order_id: UUID,
        requested_status: OrderStatus,
        *,
        tracking_reference: str | None = None,
    ) -> Decision:
        action = ORDER_STATUS_ACTIONS[requested_status]
        decision = self._authorize(identity, ResourceType.ORDER, order_id, action)
        if isinstance(decision, Allowed) and isinstance(decision.resource, Order):
            order = decision.resource
            decision = check_order_transition(
                order.status,
                requested_status,
                has_tracking=bool(tracking_reference or order.tracking_reference),
                resource=order,
            )
        return self._record("can_change_order_status", identity, decision)

    def can_change_product_status(
        self, identity: Identity, product_id: UUID, action: Action
    ) -> Decision:
        if action not in PRODUCT_STATUS_ACTIONS:
            raise ValueError(f"{action.value!r} is not a status-bound product action")
        decision = self._authorize(identity, ResourceType.PRODUCT, product_id, action)
        if isinstance(decision, Allowed) and isinstance(decision.resource, Product):
            decision = check_product_action(decision.resource, action)
        return self._record("can_change_product_status", identity, decision)

    def can_manage_own_shop(
        self,
        identity: Identity,
        shop_id: UUID,
        action: Action = Action.UPDATE,
        *,
        minimum_role: ShopRole = ShopRole.OWNER,
    ) -> Decision:
        """Shop roles acting on their own shop record.

        On top of the usual checks the shop's own roster has to list the
        caller at ``minimum_role`` or above. A token claiming "owner" of
        the right shop is not enough if the shop says otherwise.
        """
        bypass = self._platform_bypass(identity, ResourceType.SHOP, action)
        decision = self._authorize(
            identity,
            ResourceType.SHOP,
            shop_id,
            action,
            requested_shop_id=shop_id,
            shop_roles=roles_at_least(minimum_role),
            eligible_scopes=frozenset({Tenancy.SHOP}),
        )
        if not bypass and isinstance(decision, Allowed):
            decision = _check_roster(identity, decision.resource, minimum_role)
        return self._record("can_manage_own_shop", identity, decision)

    def can_moderate_any_shop(
        self, identity: Identity, shop_id: UUID, action: Action = Action.APPROVE
    ) -> Decision:
        """Platform-level moderation of any shop. No tenant role qualifies."""
        decision = self._authorize(
            identity,
            ResourceType.SHOP,
            shop_id,
            action,
            eligible_scopes=_NO_TENANT_SCOPE,
        )
        if (
            isinstance(decision, Allowed)
            and isinstance(decision.resource, Shop)
            and action in SHOP_ACTION_RULES
        ):
            decision = check_shop_action(decision.resource, action)
        return self._record("can_moderate_any_shop", identity, decision)

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def _platform_bypass(
        self, identity: Identity, resource_type: ResourceType, action: Action
    ) -> bool:
        """The single bypass rule. Driven by the matrix, never by role name."""
        role = identity.global_role
        return self._matrix.scope_of(role) is Tenancy.PLATFORM and self._matrix.is_allowed(
            role, resource_type, action
        )

    def _authorize(
        self,
        identity: Identity,
        resource_type: ResourceType,
        resource_id: UUID,
        action: Action,
        *,
        requested_shop_id: UUID | None = None,
        shop_roles: Set[ShopRole] = ALL_SHOP_ROLES,
        eligible_scopes: Set[Tenancy] | None = None,
    ) -> Decision:
        role = identity.global_role
        scope = self._matrix.scope_of(role)
        bypass = self._platform_bypass(identity, resource_type, action)

        if not bypass:
            if scope is None or not self._matrix.is_allowed(role, resource_type, action):
                return _insufficient_role(identity, resource_type, action)
            if eligible_scopes is not None and scope not in eligible_scopes:
                return _insufficient_role(identity, resource_type, action)

            if scope is Tenancy.SHOP:
                affiliation = shop_affiliated(identity, shop_roles, requested_shop_id)
                if not affiliation:
                    return affiliation

        resource = self._fetch(resource_type, resource_id)
        if resource is None:
            return Denied(
                DenialReason.RESOURCE_NOT_FOUND, f"{resource_type.value} not found"
            )

        if bypass:
            return Allowed(resource)
        return check_tenancy(identity, resource, scope)

    def _fetch(self, resource_type: ResourceType, resource_id: UUID) -> Resource | None:
        return self._stores[resource_type].get_by_id(resource_id)

    def _record(self, guard: str, identity: Identity, decision: Decision) -> Decision:
        if isinstance(decision, Denied):
            AUTHZ_DECISIONS.labels(guard=guard, outcome=decision.reason.value).inc()
            logger.warning(
                "Access denied: guard=%s user=%s role=%s reason=%s (%s)",
                guard,
                identity.id,
                identity.global_role.value,
                decision.reason.value,
                decision.detail,
                extra={
                    "guard": guard,
                    "user_id": str(identity.id),
                    "role": identity.global_role.value,
                    "reason": decision.reason.value,
                },
            )
        else:
            AUTHZ_DECISIONS.labels(guard=guard, outcome="allowed").inc()
            logger.debug(
                "Access granted: guard=%s user=%s role=%s",
                guard,
                identity.id,
                identity.global_role.value,
            )
        return decision


def _insufficient_role(
    identity: Identity, resource_type: ResourceType, action: Action
) -> Denied:
    return Denied(
        DenialReason.INSUFFICIENT_ROLE,
        f"{identity.global_role.value} may not {action.value} {resource_type.value}",
    )


def _check_roster(
    identity: Identity, resource: Resource | None, minimum_role: ShopRole
) -> Decision:
    if not isinstance(resource, Shop):
        raise ValueError("roster check needs a shop")
    listed = resource.roster_role(identity.id)
    if listed is None:
        return Denied(DenialReason.NOT_OWNER, "caller is not on this shop's roster")
    if not at_least(listed, minimum_role):
        return Denied(
            DenialReason.INSUFFICIENT_ROLE,
            f"requires at least {minimum_role.value} on this shop",
        )
    return Allowed(resource)
