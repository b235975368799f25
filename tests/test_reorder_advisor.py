from decimal import Decimal

import pytest

from stockbook.core.errors import NotFoundError
from stockbook.services.reorder_service import (
    LOW_STOCK,
    OK,
    check_reorder_status,
    list_low_stock_products,
    needs_reorder,
    reorder_amount,
)
from stockbook.services.stock_service import sell_product

from factories import create_product, create_tenant


@pytest.mark.parametrize(
    ("quantity", "threshold", "expected"),
    [
        (Decimal("5"), Decimal("5"), True),
        (Decimal("4.5"), Decimal("5"), True),
        (Decimal("6"), Decimal("5"), False),
        (Decimal("-3"), Decimal("0"), True),
        (Decimal("0"), None, False),
    ],
)
def test_needs_reorder(quantity, threshold, expected):
    assert needs_reorder(quantity, threshold) is expected


def test_reorder_amount():
    assert reorder_amount(Decimal("4"), Decimal("30")) == Decimal("26")
    assert reorder_amount(Decimal("40"), Decimal("30")) == Decimal("0")
    assert reorder_amount(Decimal("-5"), Decimal("10")) == Decimal("15")
    assert reorder_amount(Decimal("4"), None) == Decimal("0")


def test_check_reorder_status(db):
    user, business = create_tenant(db, email="reorder-owner@example.com")
    low = create_product(db, business, user, name="Shampoo", quantity=2, reorder_threshold=5, optimal_quantity=20)
    healthy = create_product(db, business, user, name="Conditioner", quantity=9, reorder_threshold=5)
    unconfigured = create_product(db, business, user, name="Towels", quantity=0)

    low_status = check_reorder_status(db, low.id)
    assert low_status.needs_reorder is True
    assert low_status.reorder_amount == Decimal("18")
    assert low_status.status == LOW_STOCK

    healthy_status = check_reorder_status(db, healthy.id, business_id=business.id)
    assert healthy_status.needs_reorder is False
    assert healthy_status.reorder_amount == Decimal("0")
    assert healthy_status.status == OK

    assert check_reorder_status(db, unconfigured.id).status == OK


def test_check_reorder_status_unknown_or_foreign_product(db):
    user, business = create_tenant(db, email="reorder-missing@example.com")
    _, other_business = create_tenant(db, email="reorder-other@example.com")
    product = create_product(db, business, user, quantity=1, reorder_threshold=1)

    with pytest.raises(NotFoundError):
        check_reorder_status(db, "missing")
    with pytest.raises(NotFoundError):
        check_reorder_status(db, product.id, business_id=other_business.id)


def test_list_low_stock_products_filters_in_database(db):
    user, business = create_tenant(db, email="lowstock-owner@example.com")
    other_user, other_business = create_tenant(db, email="lowstock-other@example.com")

    at_threshold = create_product(db, business, user, name="Gel", quantity=5, reorder_threshold=5, optimal_quantity=12)
    below = create_product(db, business, user, name="Wax", quantity=1, reorder_threshold=3)
    create_product(db, business, user, name="Spray", quantity=8, reorder_threshold=3)
    create_product(db, business, user, name="Combs", quantity=0)
    create_product(db, business, user, name="Retired", quantity=0, reorder_threshold=2, is_active=False)
    create_product(db, other_business, other_user, name="Foreign", quantity=0, reorder_threshold=10)

    items = list_low_stock_products(db, business.id)

    assert [item.product_id for item in items] == [below.id, at_threshold.id]
    assert all(item.needs_reorder for item in items)
    assert all(item.status == LOW_STOCK for item in items)
    assert items[1].reorder_amount == Decimal("7")
    assert items[0].reorder_amount == Decimal("0")

    assert len(list_low_stock_products(db, business.id, limit=1)) == 1


def test_low_stock_listing_follows_ledger(db):
    user, business = create_tenant(db, email="lowstock-ledger@example.com")
    product = create_product(db, business, user, quantity=10, reorder_threshold=5)

    assert list_low_stock_products(db, business.id) == []

    sell_product(db, product.id, business.id, user.id, 6)

    items = list_low_stock_products(db, business.id)
    assert [item.product_id for item in items] == [product.id]
    assert items[0].quantity == Decimal("4")
