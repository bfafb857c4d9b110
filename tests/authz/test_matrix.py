"""Permission matrix: the built-in table, lookups, and file loading."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from marketplace.authz.matrix import (
    DEFAULT_MATRIX,
    RESOURCE_ACTIONS,
    Action,
    PermissionMatrix,
    Tenancy,
    load_matrix,
)
from marketplace.models.identity import GlobalRole
from marketplace.models.resource import ResourceType


def test_every_role_has_an_entry() -> None:
    assert DEFAULT_MATRIX.roles == frozenset(GlobalRole)


def test_every_role_has_a_row_for_every_resource_type() -> None:
    table = DEFAULT_MATRIX._roles
    for role in GlobalRole:
        assert set(table[role].actions) == set(ResourceType), role


def test_granted_actions_are_defined_for_their_resource_type() -> None:
    for role in GlobalRole:
        for resource_type in ResourceType:
            granted = DEFAULT_MATRIX.allowed_actions(role, resource_type)
            assert granted <= RESOURCE_ACTIONS[resource_type], (role, resource_type)


@pytest.mark.parametrize(
    ("role", "scope"),
    [
        (GlobalRole.PLATFORM_ADMIN, Tenancy.PLATFORM),
        (GlobalRole.MODERATOR, Tenancy.PLATFORM),
        (GlobalRole.SHOP_OWNER, Tenancy.SHOP),
        (GlobalRole.SHOP_ADMIN, Tenancy.SHOP),
        (GlobalRole.SHOP_STAFF, Tenancy.SHOP),
        (GlobalRole.CUSTOMER, Tenancy.USER),
    ],
    ids=lambda v: v.value,
)
def test_scope_of(role: GlobalRole, scope: Tenancy) -> None:
    assert DEFAULT_MATRIX.scope_of(role) is scope


@pytest.mark.parametrize(
    ("role", "resource_type", "action", "expected"),
    [
        (GlobalRole.SHOP_OWNER, ResourceType.PRODUCT, Action.DISCONTINUE, True),
        (GlobalRole.SHOP_ADMIN, ResourceType.PRODUCT, Action.DISCONTINUE, False),
        (GlobalRole.SHOP_ADMIN, ResourceType.PRODUCT, Action.DEACTIVATE, True),
        (GlobalRole.SHOP_STAFF, ResourceType.PRODUCT, Action.UPDATE, False),
        (GlobalRole.SHOP_STAFF, ResourceType.PRODUCT, Action.UPDATE_STOCK, True),
        (GlobalRole.SHOP_OWNER, ResourceType.PRODUCT, Action.APPROVE, False),
        (GlobalRole.MODERATOR, ResourceType.PRODUCT, Action.APPROVE, True),
        (GlobalRole.MODERATOR, ResourceType.PRODUCT, Action.DELETE, False),
        (GlobalRole.CUSTOMER, ResourceType.ORDER, Action.CANCEL, True),
        (GlobalRole.CUSTOMER, ResourceType.ORDER, Action.REFUND, False),
        (GlobalRole.SHOP_OWNER, ResourceType.ORDER, Action.REFUND, False),
        (GlobalRole.PLATFORM_ADMIN, ResourceType.ORDER, Action.REFUND, True),
        (GlobalRole.SHOP_OWNER, ResourceType.SHOP, Action.MANAGE_STAFF, True),
        (GlobalRole.SHOP_ADMIN, ResourceType.SHOP, Action.UPDATE, False),
        (GlobalRole.SHOP_STAFF, ResourceType.DASHBOARD, Action.VIEW_SHOP, False),
    ],
    ids=lambda v: v.value if hasattr(v, "value") else str(v),
)
def test_is_allowed(
    role: GlobalRole, resource_type: ResourceType, action: Action, expected: bool
) -> None:
    assert DEFAULT_MATRIX.is_allowed(role, resource_type, action) is expected


def test_platform_admin_holds_every_defined_action_on_stored_resources() -> None:
    for resource_type in (ResourceType.PRODUCT, ResourceType.ORDER, ResourceType.SHOP):
        granted = DEFAULT_MATRIX.allowed_actions(GlobalRole.PLATFORM_ADMIN, resource_type)
        assert granted == RESOURCE_ACTIONS[resource_type]


def test_unknown_role_is_denied_not_an_error() -> None:
    matrix = PermissionMatrix.from_table(
        {GlobalRole.CUSTOMER: (Tenancy.USER, {ResourceType.PRODUCT: {Action.READ}})}
    )
    assert matrix.scope_of(GlobalRole.MODERATOR) is None
    assert matrix.allowed_actions(GlobalRole.MODERATOR, ResourceType.PRODUCT) == frozenset()
    assert not matrix.is_allowed(GlobalRole.MODERATOR, ResourceType.PRODUCT, Action.READ)


def test_missing_resource_row_means_no_actions() -> None:
    matrix = PermissionMatrix.from_table(
        {GlobalRole.CUSTOMER: (Tenancy.USER, {ResourceType.PRODUCT: {Action.READ}})}
    )
    assert matrix.allowed_actions(GlobalRole.CUSTOMER, ResourceType.ORDER) == frozenset()


def test_from_table_rejects_actions_undefined_for_the_resource() -> None:
    with pytest.raises(ValueError, match="not defined for resource type 'order'"):
        PermissionMatrix.from_table(
            {GlobalRole.CUSTOMER: (Tenancy.USER, {ResourceType.ORDER: {Action.BAN}})}
        )


def test_matrix_cannot_be_mutated_through_its_views() -> None:
    with pytest.raises(TypeError):
        DEFAULT_MATRIX._roles[GlobalRole.CUSTOMER] = None  # type: ignore[index]
    grants = DEFAULT_MATRIX._roles[GlobalRole.CUSTOMER]
    with pytest.raises(TypeError):
        grants.actions[ResourceType.ORDER] = frozenset(Action)  # type: ignore[index]
    with pytest.raises(AttributeError):
        grants.actions[ResourceType.ORDER].add(Action.REFUND)  # type: ignore[attr-defined]


def test_resource_actions_cannot_be_mutated() -> None:
    with pytest.raises(TypeError):
        RESOURCE_ACTIONS[ResourceType.ORDER] = frozenset()  # type: ignore[index]


# ---- load_matrix ----


def test_load_matrix_none_returns_built_in() -> None:
    assert load_matrix(None) is DEFAULT_MATRIX


def test_load_matrix_from_file(tmp_path: Path) -> None:
    path = tmp_path / "matrix.json"
    path.write_text(
        json.dumps(
            {
                "roles": {
                    "customer": {
                        "scope": "user",
                        "grants": {"order": ["read"], "product": ["read"]},
                    },
                    "moderator": {"scope": "platform", "grants": {"shop": ["approve"]}},
                }
            }
        )
    )
    matrix = load_matrix(path)
    assert matrix.roles == {GlobalRole.CUSTOMER, GlobalRole.MODERATOR}
    assert matrix.is_allowed(GlobalRole.CUSTOMER, ResourceType.ORDER, Action.READ)
    assert not matrix.is_allowed(GlobalRole.CUSTOMER, ResourceType.ORDER, Action.CANCEL)
    assert matrix.scope_of(GlobalRole.MODERATOR) is Tenancy.PLATFORM


@pytest.mark.parametrize(
    "doc",
    [
        {"roles": {"superuser": {"scope": "platform", "grants": {}}}},
        {"roles": {"customer": {"scope": "galaxy", "grants": {}}}},
        {"roles": {"customer": {"scope": "user", "grants": {"invoice": ["read"]}}}},
        {"roles": {"customer": {"scope": "user", "grants": {"order": ["teleport"]}}}},
        {"roles": {"customer": {"scope": "user", "grants": {"order": ["ban"]}}}},
    ],
    ids=[
        "unknown-role",
        "unknown-scope",
        "unknown-resource-type",
        "unknown-action",
        "action-undefined-for-type",
    ],
)
def test_load_matrix_rejects_bad_documents(tmp_path: Path, doc: dict) -> None:
    path = tmp_path / "matrix.json"
    path.write_text(json.dumps(doc))
    with pytest.raises(ValueError):
        load_matrix(path)


def test_load_matrix_rejects_malformed_json(tmp_path: Path) -> None:
    path = tmp_path / "matrix.json"
    path.write_text("{not json")
    with pytest.raises(ValueError, match="invalid permission matrix file"):
        load_matrix(path)


def test_load_matrix_rejects_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="invalid permission matrix file"):
        load_matrix(tmp_path / "absent.json")
