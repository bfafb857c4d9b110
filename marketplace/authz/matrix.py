"""Platform-wide permission matrix: role x resource type x action -> allow.

The table is loaded once at start-up and never mutated afterwards.
"Changing permissions" means shipping a new table. Lookups are total:
a role or resource type missing from the table allows nothing.

Each role's entry also declares its tenancy scope (platform, shop or
user). The facade reads the scope from here to decide whether a role
skips tenancy checks, so the platform bypass lives in the table and not
in scattered role comparisons.

platform_admin gets the broadest set per resource type but is listed
action by action like everyone else. Adding a new action to a resource
type therefore needs an explicit decision for every role, admin included.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from types import MappingProxyType

from pydantic import BaseModel, ValidationError

from marketplace.models.identity import GlobalRole
from marketplace.models.resource import ResourceType

logger = logging.getLogger(__name__)


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    # product lifecycle / moderation
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    DISCONTINUE = "discontinue"
    FEATURE = "feature"
    VERIFY_OCOP = "verify_ocop"
    UPLOAD_CERTIFICATE = "upload_certificate"
    UPDATE_STOCK = "update_stock"
    # orders
    CANCEL = "cancel"
    REFUND = "refund"
    FULFILL = "fulfill"
    # users
    BAN = "ban"
    ASSIGN_ROLE = "assign_role"
    INVITE_STAFF = "invite_staff"
    REMOVE_STAFF = "remove_staff"
    # shops
    SUSPEND = "suspend"
    VERIFY_DOCUMENTS = "verify_documents"
    MANAGE_STAFF = "manage_staff"
    VIEW_ANALYTICS = "view_analytics"
    # dashboard
    VIEW_ALL = "view_all"
    EXPORT = "export"
    ANALYTICS = "analytics"
    VIEW_MODERATION = "view_moderation"
    VIEW_SHOP = "view_shop"
    EXPORT_SHOP = "export_shop"
    VIEW_PROFILE = "view_profile"


class Tenancy(str, Enum):
    PLATFORM = "platform"
    SHOP = "shop"
    USER = "user"


A = Action

# Actions that exist for each resource type. A grant outside this set is
# rejected when a table is built.
RESOURCE_ACTIONS: Mapping[ResourceType, frozenset[Action]] = MappingProxyType(
    {
        ResourceType.PRODUCT: frozenset(
            {
                A.CREATE, A.READ, A.UPDATE, A.DELETE, A.SUBMIT, A.APPROVE,
                A.REJECT, A.ACTIVATE, A.DEACTIVATE, A.DISCONTINUE, A.FEATURE,
                A.VERIFY_OCOP, A.UPLOAD_CERTIFICATE, A.UPDATE_STOCK,
            }
        ),
        ResourceType.ORDER: frozenset(
            {A.CREATE, A.READ, A.UPDATE, A.DELETE, A.CANCEL, A.REFUND, A.FULFILL}
        ),
        ResourceType.SHOP: frozenset(
            {
                A.CREATE, A.READ, A.UPDATE, A.DELETE, A.APPROVE, A.REJECT,
                A.SUSPEND, A.VERIFY_DOCUMENTS, A.MANAGE_STAFF, A.VIEW_ANALYTICS,
            }
        ),
        ResourceType.USER: frozenset(
            {
                A.CREATE, A.READ, A.UPDATE, A.DELETE, A.BAN, A.ASSIGN_ROLE,
                A.INVITE_STAFF, A.REMOVE_STAFF,
            }
        ),
        ResourceType.CATEGORY: frozenset({A.CREATE, A.READ, A.UPDATE, A.DELETE}),
        ResourceType.DASHBOARD: frozenset(
            {
                A.VIEW_ALL, A.EXPORT, A.ANALYTICS, A.VIEW_MODERATION,
                A.VIEW_SHOP, A.EXPORT_SHOP, A.VIEW_PROFILE,
            }
        ),
    }
)


@dataclass(frozen=True, slots=True)
class RoleGrants:
    scope: Tenancy
    actions: Mapping[ResourceType, frozenset[Action]]


class PermissionMatrix:
    """Read-only role x resource x action table.

    Build one with ``PermissionMatrix.from_table`` (validated) or use
    ``DEFAULT_MATRIX``. Tests inject their own instance rather than
    mutating the shared one.
    """

    __slots__ = ("_roles",)

    def __init__(self, roles: Mapping[GlobalRole, RoleGrants]) -> None:
        self._roles: Mapping[GlobalRole, RoleGrants] = MappingProxyType(dict(roles))

    @classmethod
    def from_table(
        cls,
        table: Mapping[GlobalRole, tuple[Tenancy, Mapping[ResourceType, set[Action]]]],
    ) -> PermissionMatrix:
        roles: dict[GlobalRole, RoleGrants] = {}
        for role, (scope, grants) in table.items():
            frozen: dict[ResourceType, frozenset[Action]] = {}
            for resource_type, actions in grants.items():
                undefined = set(actions) - RESOURCE_ACTIONS[resource_type]
                if undefined:
                    names = sorted(a.value for a in undefined)
                    raise ValueError(
                        f"{role.value}: actions {names} are not defined "
                        f"for resource type {resource_type.value!r}"
                    )
                frozen[resource_type] = frozenset(actions)
            roles[role] = RoleGrants(scope=scope, actions=MappingProxyType(frozen))
        return cls(roles)

    def is_allowed(
        self, role: GlobalRole, resource_type: ResourceType, action: Action
    ) -> bool:
        return action in self.allowed_actions(role, resource_type)

    def allowed_actions(
        self, role: GlobalRole, resource_type: ResourceType
    ) -> frozenset[Action]:
        grants = self._roles.get(role)
        if grants is None:
            return frozenset()
        return grants.actions.get(resource_type, frozenset())

    def scope_of(self, role: GlobalRole) -> Tenancy | None:
        grants = self._roles.get(role)
        return grants.scope if grants is not None else None

    @property
    def roles(self) -> frozenset[GlobalRole]:
        return frozenset(self._roles)


# ---------------------------------------------------------------------------
# Built-in table
# ---------------------------------------------------------------------------

R = ResourceType

_DEFAULT_TABLE: dict[GlobalRole, tuple[Tenancy, dict[ResourceType, set[Action]]]] = {
    GlobalRole.PLATFORM_ADMIN: (
        Tenancy.PLATFORM,
        {
            R.PRODUCT: {
                A.CREATE, A.READ, A.UPDATE, A.DELETE, A.SUBMIT, A.APPROVE,
                A.REJECT, A.ACTIVATE, A.DEACTIVATE, A.DISCONTINUE, A.FEATURE,
                A.VERIFY_OCOP, A.UPLOAD_CERTIFICATE, A.UPDATE_STOCK,
            },
            R.ORDER: {
                A.CREATE, A.READ, A.UPDATE, A.DELETE, A.CANCEL, A.REFUND,
                A.FULFILL,
            },
            R.SHOP: {
                A.CREATE, A.READ, A.UPDATE, A.DELETE, A.APPROVE, A.REJECT,
                A.SUSPEND, A.VERIFY_DOCUMENTS, A.MANAGE_STAFF, A.VIEW_ANALYTICS,
            },
            R.USER: {
                A.CREATE, A.READ, A.UPDATE, A.DELETE, A.BAN, A.ASSIGN_ROLE,
                A.INVITE_STAFF, A.REMOVE_STAFF,
            },
            R.CATEGORY: {A.CREATE, A.READ, A.UPDATE, A.DELETE},
            R.DASHBOARD: {A.VIEW_ALL, A.EXPORT, A.ANALYTICS, A.VIEW_MODERATION},
        },
    ),
    GlobalRole.MODERATOR: (
        Tenancy.PLATFORM,
        {
            R.PRODUCT: {A.READ, A.APPROVE, A.REJECT, A.VERIFY_OCOP},
            R.ORDER: {A.READ},
            R.SHOP: {A.READ, A.APPROVE, A.REJECT, A.VERIFY_DOCUMENTS},
            R.USER: {A.READ},
            R.CATEGORY: {A.READ},
            R.DASHBOARD: {A.VIEW_MODERATION},
        },
    ),
    GlobalRole.SHOP_OWNER: (
        Tenancy.SHOP,
        {
            R.PRODUCT: {
                A.CREATE, A.READ, A.UPDATE, A.DELETE, A.SUBMIT, A.ACTIVATE,
                A.DEACTIVATE, A.DISCONTINUE, A.UPLOAD_CERTIFICATE, A.UPDATE_STOCK,
            },
            R.ORDER: {A.READ, A.UPDATE, A.CANCEL, A.FULFILL},
            R.SHOP: {A.READ, A.UPDATE, A.MANAGE_STAFF, A.VIEW_ANALYTICS},
            R.USER: {A.READ, A.INVITE_STAFF, A.REMOVE_STAFF},
            R.CATEGORY: {A.READ},
            R.DASHBOARD: {A.VIEW_SHOP, A.EXPORT_SHOP},
        },
    ),
    GlobalRole.SHOP_ADMIN: (
        Tenancy.SHOP,
        {
            R.PRODUCT: {
                A.CREATE, A.READ, A.UPDATE, A.DELETE, A.SUBMIT, A.ACTIVATE,
                A.DEACTIVATE, A.UPLOAD_CERTIFICATE, A.UPDATE_STOCK,
            },
            R.ORDER: {A.READ, A.UPDATE, A.FULFILL},
            R.SHOP: {A.READ},
            R.USER: {A.READ},
            R.CATEGORY: {A.READ},
            R.DASHBOARD: {A.VIEW_SHOP},
        },
    ),
    GlobalRole.SHOP_STAFF: (
        Tenancy.SHOP,
        {
            R.PRODUCT: {A.READ, A.UPDATE_STOCK},
            R.ORDER: {A.READ, A.UPDATE, A.FULFILL},
            R.SHOP: {A.READ},
            R.USER: {A.READ},
            R.CATEGORY: {A.READ},
            R.DASHBOARD: set(),
        },
    ),
    GlobalRole.CUSTOMER: (
        Tenancy.USER,
        {
            R.PRODUCT: {A.READ},
            R.ORDER: {A.CREATE, A.READ, A.CANCEL},
            R.SHOP: {A.READ},
            R.USER: {A.READ, A.UPDATE},
            R.CATEGORY: {A.READ},
            R.DASHBOARD: {A.VIEW_PROFILE},
        },
    ),
}

DEFAULT_MATRIX = PermissionMatrix.from_table(_DEFAULT_TABLE)


# ---------------------------------------------------------------------------
# Loading an alternate table from disk
# ---------------------------------------------------------------------------


class _RoleEntryIn(BaseModel):
    scope: Tenancy
    grants: dict[ResourceType, list[Action]]


class _MatrixFileIn(BaseModel):
    roles: dict[GlobalRole, _RoleEntryIn]


def load_matrix(path: Path | None) -> PermissionMatrix:
    """Boot-time load. ``None`` means the built-in table.

    File format::

        {"roles": {"customer": {"scope": "user",
                                "grants": {"order": ["read", "cancel"]}}}}

    Raises ValueError when the file names an unknown role, resource type
    or action, or grants an action its resource type does not define.
    """
    if path is None:
        logger.info("Using built-in permission matrix")
        return DEFAULT_MATRIX

    try:
        doc = _MatrixFileIn.model_validate(json.loads(path.read_text()))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise ValueError(f"invalid permission matrix file {path}: {e}") from e

    matrix = PermissionMatrix.from_table(
        {
            role: (entry.scope, {rt: set(acts) for rt, acts in entry.grants.items()})
            for role, entry in doc.roles.items()
        }
    )
    logger.info(
        "Loaded permission matrix from %s (%d roles)", path, len(matrix.roles)
    )
    return matrix
