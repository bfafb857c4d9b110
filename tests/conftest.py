from __future__ import annotations

import sys
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from marketplace.api.dependencies import order_repo, product_repo, shop_repo
from marketplace.main import app
from marketplace.models.identity import GlobalRole, Identity, ShopRole
from marketplace.models.order import Order, OrderStatus
from marketplace.models.product import Product, ProductStatus
from marketplace.models.shop import Shop, ShopStatus
from marketplace.services import token_service

# Ensure repo root is on sys.path so `import marketplace` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

_SHOP_ROLE_FOR = {
    GlobalRole.SHOP_OWNER: ShopRole.OWNER,
    GlobalRole.SHOP_ADMIN: ShopRole.ADMIN,
    GlobalRole.SHOP_STAFF: ShopRole.STAFF,
}


@pytest.fixture(autouse=True)
def reset_stores() -> None:
    """Clear the in-memory product, order and shop stores between tests."""
    product_repo._by_id.clear()
    order_repo._by_id.clear()
    shop_repo._by_id.clear()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def mint_token(
    user_id: UUID | None = None,
    role: GlobalRole | str = GlobalRole.CUSTOMER,
    shop_id: UUID | None = None,
    shop_role: ShopRole | str | None = None,
) -> str:
    """Create a valid ES256 JWT for testing.

    Shop roles with a ``shop_id`` get the matching ``shop_role`` unless
    one is passed explicitly.
    """
    role_value = role.value if isinstance(role, GlobalRole) else role
    if shop_id is not None and shop_role is None and isinstance(role, GlobalRole):
        shop_role = _SHOP_ROLE_FOR.get(role)
    return token_service.create_access_token(
        sub=str(user_id or uuid4()),
        role=role_value,
        shop_id=str(shop_id) if shop_id is not None else None,
        shop_role=shop_role.value if isinstance(shop_role, ShopRole) else shop_role,
    )


def make_identity(
    role: GlobalRole,
    shop_id: UUID | None = None,
    user_id: UUID | None = None,
) -> Identity:
    """Identity for guard tests; shop roles get their matching sub-role."""
    return Identity(
        id=user_id or uuid4(),
        global_role=role,
        shop_id=shop_id,
        shop_role=_SHOP_ROLE_FOR.get(role) if shop_id is not None else None,
    )


def token_for(identity: Identity) -> str:
    return mint_token(
        user_id=identity.id,
        role=identity.global_role,
        shop_id=identity.shop_id,
        shop_role=identity.shop_role,
    )


# ---------------------------------------------------------------------------
# Store seeding helpers (the API's own singletons)
# ---------------------------------------------------------------------------


def create_test_shop(
    owner_user_id: UUID | None = None,
    status: ShopStatus = ShopStatus.ACTIVE,
    name: str = "Test Shop",
) -> Shop:
    shop = Shop(
        id=uuid4(),
        owner_user_id=owner_user_id or uuid4(),
        name=name,
        status=status,
    )
    shop_repo.add(shop)
    return shop


def create_test_product(
    shop_id: UUID,
    status: ProductStatus = ProductStatus.ACTIVE,
    stock: int = 10,
) -> Product:
    product = Product.new(shop_id=shop_id, name="Test Product", status=status, stock=stock)
    product_repo.add(product)
    return product


def create_test_order(
    shop_id: UUID,
    owner_user_id: UUID | None = None,
    status: OrderStatus = OrderStatus.PENDING,
) -> Order:
    order = Order.new(owner_user_id=owner_user_id or uuid4(), shop_id=shop_id, status=status)
    order_repo.add(order)
    return order
