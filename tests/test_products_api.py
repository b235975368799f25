from decimal import Decimal

import pytest
from sqlalchemy import select

from stockbook.core.errors import InsufficientStockError
from stockbook.core.security import create_access_token
from stockbook.models.audit_log import AuditLog
from stockbook.models.business import Business
from stockbook.models.product import Product
from stockbook.models.stock_movement import StockMovement
from stockbook.models.user import User
from stockbook.services.stock_service import sell_product

from factories import add_member, create_product, create_tenant


def _auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def _seed_owner(session_local, email: str = "api-owner@example.com"):
    db = session_local()
    try:
        user, business = create_tenant(db, email=email)
        return user.id, business.id
    finally:
        db.close()


def _create_product(client, user_id: str, **overrides) -> dict:
    payload = {
        "name": "Argan Hair Oil 100ml",
        "sku": "ARG-100",
        "reorder_threshold": 5,
        "optimal_quantity": 30,
    }
    payload.update(overrides)
    res = client.post("/products", json=payload, headers=_auth_headers(user_id))
    assert res.status_code == 200, res.text
    return res.json()


def test_requests_without_token_are_rejected(test_context):
    client, _ = test_context

    res = client.get("/products/low-stock")

    assert res.status_code == 401
    assert res.json()["error"]["code"] == "unauthorized"


def test_create_product_books_initial_quantity_as_purchase(test_context):
    client, session_local = test_context
    user_id, business_id = _seed_owner(session_local)

    body = _create_product(client, user_id, initial_quantity=12)
    assert body["quantity"] == 12.0
    assert body["is_active"] is True

    db = session_local()
    try:
        movement = db.execute(
            select(StockMovement).where(StockMovement.product_id == body["id"])
        ).scalar_one()
        assert movement.type.value == "PURCHASE"
        assert movement.previous_quantity == Decimal("0")
        assert movement.new_quantity == Decimal("12")
        actions = set(
            db.execute(select(AuditLog.action).where(AuditLog.business_id == business_id)).scalars()
        )
    finally:
        db.close()
    assert actions == {"PRODUCT_CREATED", "STOCK_PURCHASE"}


def test_create_product_rejects_duplicate_name(test_context):
    client, session_local = test_context
    user_id, _ = _seed_owner(session_local)
    _create_product(client, user_id)

    res = client.post("/products", json={"name": "argan hair oil 100ml"}, headers=_auth_headers(user_id))

    assert res.status_code == 409


def test_add_stock_and_adjust_stock_flow(test_context):
    client, session_local = test_context
    user_id, _ = _seed_owner(session_local)
    product = _create_product(client, user_id)

    add_res = client.post(
        f"/products/{product['id']}/add-stock",
        json={"quantity": 10, "notes": "Supplier delivery"},
        headers=_auth_headers(user_id),
    )
    assert add_res.status_code == 201, add_res.text
    add_body = add_res.json()
    assert add_body["stock_movement"]["type"] == "PURCHASE"
    assert add_body["stock_movement"]["notes"] == "Supplier delivery"
    assert add_body["product"] == {
        "id": product["id"],
        "name": "Argan Hair Oil 100ml",
        "previous_quantity": 0.0,
        "new_quantity": 10.0,
    }

    adjust_res = client.post(
        f"/products/{product['id']}/adjust-stock",
        json={"quantity": -7, "reason": "count correction"},
        headers=_auth_headers(user_id),
    )
    assert adjust_res.status_code == 200, adjust_res.text
    adjust_body = adjust_res.json()
    assert adjust_body["stock_movement"]["type"] == "ADJUSTMENT"
    assert adjust_body["stock_movement"]["quantity"] == 7.0
    assert adjust_body["product"]["new_quantity"] == 3.0

    status_res = client.get(f"/products/{product['id']}/reorder-status", headers=_auth_headers(user_id))
    assert status_res.status_code == 200, status_res.text
    assert status_res.json() == {
        "product_id": product["id"],
        "name": "Argan Hair Oil 100ml",
        "sku": "ARG-100",
        "unit_of_measure": "PIECE",
        "quantity": 3.0,
        "reorder_threshold": 5.0,
        "optimal_quantity": 30.0,
        "needs_reorder": True,
        "reorder_amount": 27.0,
        "status": "LOW_STOCK",
    }

    history_res = client.get(f"/products/{product['id']}/stock", headers=_auth_headers(user_id))
    assert history_res.status_code == 200, history_res.text
    history = history_res.json()
    assert history["pagination"]["total"] == 2
    assert {item["type"] for item in history["items"]} == {"PURCHASE", "ADJUSTMENT"}

    filtered = client.get(
        f"/products/{product['id']}/stock",
        params={"type": "ADJUSTMENT"},
        headers=_auth_headers(user_id),
    )
    assert filtered.status_code == 200, filtered.text
    assert [item["type"] for item in filtered.json()["items"]] == ["ADJUSTMENT"]


def test_invalid_quantities_are_rejected_by_schema(test_context):
    client, session_local = test_context
    user_id, _ = _seed_owner(session_local)
    product = _create_product(client, user_id)

    add_res = client.post(
        f"/products/{product['id']}/add-stock",
        json={"quantity": 0},
        headers=_auth_headers(user_id),
    )
    assert add_res.status_code == 422
    assert add_res.json()["error"]["code"] == "validation_error"

    adjust_res = client.post(
        f"/products/{product['id']}/adjust-stock",
        json={"quantity": 0, "reason": "noop"},
        headers=_auth_headers(user_id),
    )
    assert adjust_res.status_code == 422


def test_stock_errors_map_to_error_envelope(test_context):
    client, session_local = test_context
    user_id, _ = _seed_owner(session_local)
    intruder_id, _ = _seed_owner(session_local, email="api-intruder@example.com")
    product = _create_product(client, user_id)

    missing = client.post(
        "/products/does-not-exist/add-stock",
        json={"quantity": 1},
        headers=_auth_headers(user_id),
    )
    assert missing.status_code == 404
    assert missing.json()["error"]["message"] == "Product not found"

    foreign = client.post(
        f"/products/{product['id']}/add-stock",
        json={"quantity": 1},
        headers=_auth_headers(intruder_id),
    )
    assert foreign.status_code == 403
    assert foreign.json()["error"]["message"] == "Product does not belong to this business"

    db = session_local()
    try:
        stored = db.execute(select(Product.quantity).where(Product.id == product["id"])).scalar_one()
        movements = db.execute(
            select(StockMovement.id).where(StockMovement.product_id == product["id"])
        ).all()
    finally:
        db.close()
    assert stored == Decimal("0")
    assert movements == []


def test_insufficient_stock_error_carries_quantities(test_context):
    client, session_local = test_context
    user_id, business_id = _seed_owner(session_local)

    db = session_local()
    try:
        product = create_product(db, db.get(Business, business_id), db.get(User, user_id), quantity=7)
        product_id = product.id
        with pytest.raises(InsufficientStockError) as exc_info:
            sell_product(db, product_id, business_id, user_id, 8)
    finally:
        db.close()

    assert str(exc_info.value) == "Insufficient stock. Available: 7, Required: 8"
    details = exc_info.value.details()
    assert details[0]["available"] == 7.0
    assert details[0]["required"] == 8.0

    reorder_res = client.get(f"/products/{product_id}/reorder-status", headers=_auth_headers(user_id))
    assert reorder_res.json()["quantity"] == 7.0


def test_staff_can_read_but_not_move_stock(test_context):
    client, session_local = test_context
    owner_id, business_id = _seed_owner(session_local)
    product = _create_product(client, owner_id)

    db = session_local()
    try:
        staff = add_member(db, db.get(Business, business_id), email="api-staff@example.com", role="staff")
        staff_id = staff.id
    finally:
        db.close()

    blocked = client.post(
        f"/products/{product['id']}/add-stock",
        json={"quantity": 5},
        headers=_auth_headers(staff_id),
    )
    assert blocked.status_code == 403
    assert blocked.json()["error"]["message"] == "Insufficient role for this action"

    readable = client.get(f"/products/{product['id']}", headers=_auth_headers(staff_id))
    assert readable.status_code == 200, readable.text
    assert readable.json()["quantity"] == 0.0


def test_reorder_settings_and_low_stock_listing(test_context):
    client, session_local = test_context
    user_id, _ = _seed_owner(session_local)
    low = _create_product(client, user_id, name="Shampoo", sku="SH-1", initial_quantity=2)
    healthy = _create_product(client, user_id, name="Conditioner", sku="CO-1", initial_quantity=40)
    retired = _create_product(client, user_id, name="Old Gel", sku="GEL-0")

    missing_fields = client.patch(
        f"/products/{healthy['id']}/reorder",
        json={},
        headers=_auth_headers(user_id),
    )
    assert missing_fields.status_code == 422

    raise_threshold = client.patch(
        f"/products/{healthy['id']}/reorder",
        json={"reorder_threshold": 45},
        headers=_auth_headers(user_id),
    )
    assert raise_threshold.status_code == 200, raise_threshold.text
    assert raise_threshold.json()["reorder_threshold"] == 45.0
    assert raise_threshold.json()["optimal_quantity"] == 30.0

    deactivate = client.post(f"/products/{retired['id']}/deactivate", headers=_auth_headers(user_id))
    assert deactivate.status_code == 200, deactivate.text
    assert deactivate.json()["is_active"] is False

    low_res = client.get("/products/low-stock", headers=_auth_headers(user_id))
    assert low_res.status_code == 200, low_res.text
    body = low_res.json()
    assert body["count"] == 2
    assert [item["product_id"] for item in body["items"]] == [low["id"], healthy["id"]]
    assert body["items"][0]["reorder_amount"] == 28.0
    assert all(item["status"] == "LOW_STOCK" for item in body["items"])

    limited = client.get("/products/low-stock", params={"limit": 1}, headers=_auth_headers(user_id))
    assert limited.json()["count"] == 1


def test_stock_history_rejects_inverted_date_range(test_context):
    client, session_local = test_context
    user_id, _ = _seed_owner(session_local)
    product = _create_product(client, user_id)

    res = client.get(
        f"/products/{product['id']}/stock",
        params={"start_date": "2026-10-16T00:00:00", "end_date": "2026-10-01T00:00:00"},
        headers=_auth_headers(user_id),
    )

    assert res.status_code == 400
    assert res.json()["error"]["message"] == "end_date cannot be before start_date"


def test_out_of_range_quantities_are_rejected_before_any_write(test_context):
    client, session_local = test_context
    user_id, business_id = _seed_owner(session_local)
    product = _create_product(client, user_id)

    add_res = client.post(
        f"/products/{product['id']}/add-stock",
        json={"quantity": 1e40},
        headers=_auth_headers(user_id),
    )
    assert add_res.status_code == 422, add_res.text
    assert add_res.json()["error"]["code"] == "validation_error"

    adjust_res = client.post(
        f"/products/{product['id']}/adjust-stock",
        json={"quantity": -1e40, "reason": "recount"},
        headers=_auth_headers(user_id),
    )
    assert adjust_res.status_code == 422, adjust_res.text

    create_res = client.post(
        "/products",
        json={"name": "Bulk Towels", "initial_quantity": 1e40},
        headers=_auth_headers(user_id),
    )
    assert create_res.status_code == 422, create_res.text

    db = session_local()
    try:
        names = set(db.execute(select(Product.name).where(Product.business_id == business_id)).scalars())
        movements = db.execute(select(StockMovement.id).where(StockMovement.business_id == business_id)).all()
    finally:
        db.close()
    assert names == {"Argan Hair Oil 100ml"}
    assert movements == []


def test_low_stock_listing_returns_every_match_by_default(test_context):
    client, session_local = test_context
    user_id, business_id = _seed_owner(session_local)

    db = session_local()
    try:
        business = db.get(Business, business_id)
        user = db.get(User, user_id)
        for index in range(25):
            create_product(db, business, user, name=f"Shade {index:02d}", quantity=1, reorder_threshold=3)
    finally:
        db.close()

    res = client.get("/products/low-stock", headers=_auth_headers(user_id))
    assert res.status_code == 200, res.text
    body = res.json()
    assert body["count"] == 25
    assert len(body["items"]) == 25
    assert [item["name"] for item in body["items"]] == [f"Shade {index:02d}" for index in range(25)]

    limited = client.get("/products/low-stock", params={"limit": 5}, headers=_auth_headers(user_id))
    assert limited.json()["count"] == 5
