"""Store-level compare-and-set on status, and the stock-driven flip."""

from __future__ import annotations

import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from uuid import uuid4

import pytest

from marketplace.models.identity import ShopRole
from marketplace.models.order import Order, OrderStatus
from marketplace.models.product import Product, ProductStatus
from marketplace.models.shop import Shop, ShopStatus
from marketplace.repos.order_repo import InMemoryOrderRepo
from marketplace.repos.product_repo import InMemoryProductRepo
from marketplace.repos.shop_repo import InMemoryShopRepo


def test_order_cas_applies_when_status_matches() -> None:
    repo = InMemoryOrderRepo()
    order = Order.new(owner_user_id=uuid4(), shop_id=uuid4())
    repo.add(order)

    updated = repo.compare_and_set_status(order.id, OrderStatus.PENDING, OrderStatus.CONFIRMED)
    assert updated is not None
    assert updated.status is OrderStatus.CONFIRMED
    assert repo.get_by_id(order.id) == updated


def test_order_cas_loses_the_race() -> None:
    repo = InMemoryOrderRepo()
    order = Order.new(owner_user_id=uuid4(), shop_id=uuid4())
    repo.add(order)
    # Two writers both checked against "pending"; only the first wins.
    first = repo.compare_and_set_status(order.id, OrderStatus.PENDING, OrderStatus.CANCELLED)
    second = repo.compare_and_set_status(order.id, OrderStatus.PENDING, OrderStatus.CONFIRMED)
    assert first is not None
    assert second is None
    assert repo.get_by_id(order.id).status is OrderStatus.CANCELLED  # type: ignore[union-attr]


def test_order_cas_missing_order() -> None:
    repo = InMemoryOrderRepo()
    assert repo.compare_and_set_status(uuid4(), OrderStatus.PENDING, OrderStatus.CONFIRMED) is None


def test_order_cas_keeps_existing_tracking_reference() -> None:
    repo = InMemoryOrderRepo()
    order = replace(
        Order.new(owner_user_id=uuid4(), shop_id=uuid4(), status=OrderStatus.PROCESSING),
        tracking_reference="VN1",
    )
    repo.add(order)
    shipped = repo.compare_and_set_status(order.id, OrderStatus.PROCESSING, OrderStatus.SHIPPED)
    assert shipped is not None and shipped.tracking_reference == "VN1"

    delivered = repo.compare_and_set_status(
        order.id, OrderStatus.SHIPPED, OrderStatus.DELIVERED, tracking_reference="VN2"
    )
    assert delivered is not None and delivered.tracking_reference == "VN2"


@pytest.mark.parametrize(
    "target",
    [OrderStatus.CANCELLED, OrderStatus.REFUNDED, OrderStatus.CONFIRMED],
    ids=lambda s: s.value,
)
def test_tracking_reference_ignored_outside_fulfilment(target: OrderStatus) -> None:
    repo = InMemoryOrderRepo()
    order = Order.new(owner_user_id=uuid4(), shop_id=uuid4())
    repo.add(order)
    updated = repo.compare_and_set_status(
        order.id, OrderStatus.PENDING, target, tracking_reference="VN3"
    )
    assert updated is not None
    assert updated.status is target
    assert updated.tracking_reference is None


def test_order_cas_has_one_winner_under_contention() -> None:
    repo = InMemoryOrderRepo()
    workers = 8
    previous = sys.getswitchinterval()
    sys.setswitchinterval(1e-6)
    try:
        for _ in range(50):
            order = Order.new(
                owner_user_id=uuid4(), shop_id=uuid4(), status=OrderStatus.CONFIRMED
            )
            repo.add(order)
            barrier = threading.Barrier(workers, timeout=5)

            def _advance(order_id=order.id, barrier=barrier):
                barrier.wait()
                return repo.compare_and_set_status(
                    order_id, OrderStatus.CONFIRMED, OrderStatus.PROCESSING
                )

            with ThreadPoolExecutor(max_workers=workers) as executor:
                futures = [executor.submit(_advance) for _ in range(workers)]
                results = [future.result() for future in futures]

            assert sum(r is not None for r in results) == 1
            assert repo.get_by_id(order.id).status is OrderStatus.PROCESSING  # type: ignore[union-attr]
    finally:
        sys.setswitchinterval(previous)


def test_order_listing() -> None:
    repo = InMemoryOrderRepo()
    shop_id, customer = uuid4(), uuid4()
    a = Order.new(owner_user_id=customer, shop_id=shop_id)
    b = Order.new(owner_user_id=uuid4(), shop_id=shop_id)
    c = Order.new(owner_user_id=customer, shop_id=uuid4())
    for o in (a, b, c):
        repo.add(o)
    assert {o.id for o in repo.list_by_shop(shop_id)} == {a.id, b.id}
    assert {o.id for o in repo.list_by_owner(customer)} == {a.id, c.id}
    assert len(repo.list_all()) == 3


def test_duplicate_add_is_rejected() -> None:
    repo = InMemoryOrderRepo()
    order = Order.new(owner_user_id=uuid4(), shop_id=uuid4())
    repo.add(order)
    with pytest.raises(ValueError, match="already exists"):
        repo.add(order)


# ---- products ----


def _product(status: ProductStatus, stock: int) -> Product:
    return Product.new(shop_id=uuid4(), name="Tea", status=status, stock=stock)


def test_product_cas_and_stock_flip() -> None:
    repo = InMemoryProductRepo()
    product = _product(ProductStatus.PENDING_REVIEW, stock=0)
    repo.add(product)

    # Approving a product with no stock lands it straight in out_of_stock.
    approved = repo.compare_and_set_status(
        product.id, ProductStatus.PENDING_REVIEW, ProductStatus.ACTIVE
    )
    assert approved is not None and approved.status is ProductStatus.OUT_OF_STOCK

    restocked = repo.set_stock(product.id, 4)
    assert restocked is not None and restocked.status is ProductStatus.ACTIVE

    sold_out = repo.set_stock(product.id, 0)
    assert sold_out is not None and sold_out.status is ProductStatus.OUT_OF_STOCK


def test_product_cas_stale_expected_status() -> None:
    repo = InMemoryProductRepo()
    product = _product(ProductStatus.ACTIVE, stock=3)
    repo.add(product)
    assert (
        repo.compare_and_set_status(product.id, ProductStatus.INACTIVE, ProductStatus.ACTIVE)
        is None
    )


def test_stock_never_revives_inactive_product() -> None:
    repo = InMemoryProductRepo()
    product = _product(ProductStatus.INACTIVE, stock=0)
    repo.add(product)
    updated = repo.set_stock(product.id, 10)
    assert updated is not None and updated.status is ProductStatus.INACTIVE


def test_product_rename_touches_only_the_name() -> None:
    repo = InMemoryProductRepo()
    product = _product(ProductStatus.ACTIVE, stock=2)
    repo.add(product)
    # Another writer features it after our snapshot was taken.
    repo.set_flag(product.id, ProductStatus.ACTIVE, "is_featured")

    renamed = repo.update_name(product.id, "Green tea")
    assert renamed is not None
    assert renamed.name == "Green tea"
    assert renamed.is_featured is True
    assert (renamed.status, renamed.stock) == (ProductStatus.ACTIVE, 2)


def test_flag_is_conditional_on_checked_status() -> None:
    repo = InMemoryProductRepo()
    product = _product(ProductStatus.ACTIVE, stock=2)
    repo.add(product)
    repo.compare_and_set_status(product.id, ProductStatus.ACTIVE, ProductStatus.DISCONTINUED)

    assert repo.set_flag(product.id, ProductStatus.ACTIVE, "is_featured") is None
    stored = repo.get_by_id(product.id)
    assert stored is not None
    assert stored.status is ProductStatus.DISCONTINUED
    assert stored.is_featured is False


def test_unknown_flag_is_rejected() -> None:
    repo = InMemoryProductRepo()
    product = _product(ProductStatus.ACTIVE, stock=2)
    repo.add(product)
    with pytest.raises(ValueError, match="unknown product flag"):
        repo.set_flag(product.id, ProductStatus.ACTIVE, "stock")


def test_product_delete() -> None:
    repo = InMemoryProductRepo()
    product = _product(ProductStatus.DRAFT, stock=0)
    repo.add(product)
    assert repo.delete(product.id)
    assert not repo.delete(product.id)
    assert repo.get_by_id(product.id) is None


# ---- shops ----


def test_shop_roster_changes() -> None:
    repo = InMemoryShopRepo()
    shop = Shop.new(owner_user_id=uuid4(), name="A")
    repo.add(shop)
    user = uuid4()

    added = repo.add_staff(shop.id, user, ShopRole.ADMIN)
    assert added is not None and added.roster_role(user) is ShopRole.ADMIN

    with pytest.raises(ValueError, match="already on the shop roster"):
        repo.add_staff(shop.id, user, ShopRole.STAFF)
    with pytest.raises(ValueError, match="exactly one owner"):
        repo.add_staff(shop.id, uuid4(), ShopRole.OWNER)

    removed = repo.remove_staff(shop.id, user)
    assert removed is not None and removed.roster_role(user) is None


def test_shop_cas() -> None:
    repo = InMemoryShopRepo()
    shop = Shop.new(owner_user_id=uuid4(), name="A")
    repo.add(shop)
    assert repo.compare_and_set_status(shop.id, ShopStatus.APPROVED, ShopStatus.SUSPENDED) is None
    approved = repo.compare_and_set_status(shop.id, ShopStatus.PENDING, ShopStatus.APPROVED)
    assert approved is not None and approved.status is ShopStatus.APPROVED


def test_documents_verified_only_in_checked_status() -> None:
    repo = InMemoryShopRepo()
    shop = Shop.new(owner_user_id=uuid4(), name="A")
    repo.add(shop)
    repo.compare_and_set_status(shop.id, ShopStatus.PENDING, ShopStatus.REJECTED)

    assert repo.mark_documents_verified(shop.id, ShopStatus.PENDING) is None
    assert repo.get_by_id(shop.id).documents_verified is False  # type: ignore[union-attr]

    verified = repo.mark_documents_verified(shop.id, ShopStatus.REJECTED)
    assert verified is not None and verified.documents_verified is True
