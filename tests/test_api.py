from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from retail_ledger.config import get_settings

HEADERS = {"X-Store-Id": "S001", "X-User-Id": "clerk", "X-Permissions": "inventory.in,inventory.adjust"}


def _bootstrap(client: TestClient) -> None:
    response = client.post(
        "/api/v1/stores",
        json={"store_id": "S001", "name": "Main Store", "vat_enabled": True, "vat_rate": 700},
        headers=HEADERS,
    )
    assert response.status_code == 201, response.text
    response = client.post(
        "/api/v1/catalog/products",
        json={"product_id": "P001", "sku": "WATER-500", "name": "Bottled Water", "base_unit_id": "piece"},
        headers=HEADERS,
    )
    assert response.status_code == 201, response.text


def test_health(client: TestClient) -> None:
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_inventory_purchase_flow(client: TestClient) -> None:
    _bootstrap(client)

    # conversion for cartons of 24
    response = client.post(
        "/api/v1/catalog/products/P001/units",
        json={"unit_id": "carton", "multiplier_to_base": 24},
        headers=HEADERS,
    )
    assert response.status_code == 201, response.text

    # opening stock in cartons
    response = client.post(
        "/api/v1/inventory/movements",
        json={"product_id": "P001", "movement_type": "IN", "unit_id": "carton", "qty": 2},
        headers=HEADERS,
    )
    assert response.status_code == 201, response.text
    result = response.json()
    assert result["movement"]["qty_base"] == 48
    assert result["balance"]["on_hand"] == 48
    assert result["balance"]["available"] == 48

    # shrinkage
    response = client.post(
        "/api/v1/inventory/movements",
        json={
            "product_id": "P001",
            "movement_type": "ADJUST",
            "adjust_mode": "DECREASE",
            "unit_id": "piece",
            "qty": 8,
            "note": "broken bottles",
        },
        headers=HEADERS,
    )
    assert response.status_code == 201, response.text
    assert response.json()["balance"]["on_hand"] == 40

    # purchase order for 50, 30 arrive
    response = client.post(
        "/api/v1/purchase-orders",
        json={
            "supplier_name": "Vientiane Water Co",
            "purchase_currency": "THB",
            "exchange_rate": "650",
            "items": [{"product_id": "P001", "qty_ordered": 50, "unit_cost_purchase": 5}],
        },
        headers=HEADERS,
    )
    assert response.status_code == 201, response.text
    order = response.json()
    assert order["status"] == "ORDERED"
    assert order["po_number"].startswith("PO-")
    assert order["items"][0]["unit_cost_base"] == 3250
    assert order["total_cost_base"] == 162500
    assert Decimal(str(order["exchange_rate"])) == Decimal("650")

    response = client.patch(
        f"/api/v1/purchase-orders/{order['id']}/status",
        json={"status": "RECEIVED", "received_items": [{"item_id": order["items"][0]["id"], "qty_received": 30}]},
        headers=HEADERS,
    )
    assert response.status_code == 200, response.text
    assert response.json()["items"][0]["qty_received"] == 30

    response = client.get("/api/v1/inventory/balances/P001", headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["on_hand"] == 70

    response = client.get("/api/v1/inventory/movements", params={"product_id": "P001"}, headers=HEADERS)
    assert response.status_code == 200
    movements = response.json()
    assert [m["movement_type"] for m in movements] == ["IN", "ADJUST", "IN"]
    assert movements[0]["ref_type"] == "PURCHASE"

    # received orders cannot be cancelled
    response = client.patch(
        f"/api/v1/purchase-orders/{order['id']}/status", json={"status": "CANCELLED"}, headers=HEADERS
    )
    assert response.status_code == 409
    assert response.json()["kind"] == "invalid_transition"

    response = client.get("/api/v1/purchase-orders", params={"status": "RECEIVED"}, headers=HEADERS)
    assert [po["id"] for po in response.json()] == [order["id"]]


def test_decrease_below_zero_returns_400(client: TestClient) -> None:
    _bootstrap(client)

    response = client.post(
        "/api/v1/inventory/movements",
        json={"product_id": "P001", "movement_type": "ADJUST", "adjust_mode": "DECREASE", "unit_id": "piece", "qty": 1},
        headers=HEADERS,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "InsufficientStock"
    assert body["on_hand"] == 0
    assert body["retryable"] is False


def test_schema_errors_name_the_field(client: TestClient) -> None:
    _bootstrap(client)

    response = client.post(
        "/api/v1/inventory/movements",
        json={"product_id": "P001", "movement_type": "ADJUST", "unit_id": "piece", "qty": 0},
        headers=HEADERS,
    )

    assert response.status_code == 422
    locations = [error["loc"] for error in response.json()["detail"]]
    assert ["body", "qty"] in locations


def test_unknown_product_returns_404(client: TestClient) -> None:
    _bootstrap(client)

    response = client.get("/api/v1/inventory/balances/NOPE", headers=HEADERS)

    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


def test_generated_barcodes(client: TestClient) -> None:
    _bootstrap(client)

    response = client.post("/api/v1/catalog/barcodes", headers=HEADERS)
    assert response.status_code == 201
    assert response.json()["barcode"] == "2000000000015"

    response = client.post(
        "/api/v1/catalog/products",
        json={
            "product_id": "P002",
            "sku": "ICE-1KG",
            "name": "Ice",
            "base_unit_id": "bag",
            "generate_barcode": True,
        },
        headers=HEADERS,
    )
    assert response.status_code == 201, response.text
    assert response.json()["barcode"] == "2000000000022"


def test_order_totals_use_store_vat(client: TestClient) -> None:
    _bootstrap(client)

    response = client.post(
        "/api/v1/orders/totals", json={"subtotal": 10000, "shipping_fee_charged": 500}, headers=HEADERS
    )
    assert response.status_code == 200
    assert response.json()["vat_amount"] == 700
    assert response.json()["total"] == 11200

    response = client.patch("/api/v1/stores/S001", json={"vat_mode": "INCLUSIVE"}, headers=HEADERS)
    assert response.status_code == 200

    response = client.post(
        "/api/v1/orders/totals", json={"subtotal": 10000, "shipping_fee_charged": 500}, headers=HEADERS
    )
    assert response.json()["net_before_vat"] == 9346
    assert response.json()["total"] == 10500


def test_missing_context_headers_are_rejected(client: TestClient) -> None:
    response = client.get("/api/v1/catalog/products")

    assert response.status_code == 422


@pytest.fixture
def enforce_permissions():
    settings = get_settings()
    original = settings.enforce_permissions
    settings.enforce_permissions = True
    yield
    settings.enforce_permissions = original


def test_adjust_needs_the_adjust_permission(client: TestClient, enforce_permissions) -> None:
    manager = {**HEADERS, "X-Permissions": "products.create,settings.update"}
    response = client.post("/api/v1/stores", json={"store_id": "S001", "name": "Main Store"}, headers=manager)
    assert response.status_code == 201
    response = client.post(
        "/api/v1/catalog/products",
        json={"product_id": "P001", "sku": "WATER-500", "name": "Bottled Water", "base_unit_id": "piece"},
        headers=manager,
    )
    assert response.status_code == 201, response.text

    clerk = {**HEADERS, "X-Permissions": "inventory.in"}
    response = client.post(
        "/api/v1/inventory/movements",
        json={"product_id": "P001", "movement_type": "IN", "unit_id": "piece", "qty": 5},
        headers=clerk,
    )
    assert response.status_code == 201

    response = client.post(
        "/api/v1/inventory/movements",
        json={"product_id": "P001", "movement_type": "ADJUST", "adjust_mode": "INCREASE", "unit_id": "piece", "qty": 1},
        headers=clerk,
    )
    assert response.status_code == 403


@pytest.mark.parametrize("body", ['{"subtotal": NaN}', '{"subtotal": Infinity}', '{"subtotal": 1e28}'])
def test_order_totals_reject_amounts_out_of_range(client: TestClient, body: str) -> None:
    _bootstrap(client)

    response = client.post(
        "/api/v1/orders/totals",
        content=body,
        headers={**HEADERS, "Content-Type": "application/json"},
    )

    assert response.status_code == 422
    assert response.json()["detail"][0]["loc"] == ["body", "subtotal"]


def test_store_settings_are_scoped_to_the_caller(client: TestClient) -> None:
    _bootstrap(client)
    other = {**HEADERS, "X-Store-Id": "S002"}

    response = client.patch("/api/v1/stores/S001", json={"vat_rate": 0}, headers=other)
    assert response.status_code == 403

    response = client.patch("/api/v1/stores/S001", json={"vat_rate": 0})
    assert response.status_code == 422

    assert client.get("/api/v1/stores/S001").json()["vat_rate"] == 700


def test_store_settings_need_the_settings_permission(client: TestClient, enforce_permissions) -> None:
    owner = {**HEADERS, "X-Permissions": "settings.update"}
    response = client.post("/api/v1/stores", json={"store_id": "S001", "name": "Main Store"}, headers=owner)
    assert response.status_code == 201

    response = client.patch("/api/v1/stores/S001", json={"vat_enabled": True}, headers=HEADERS)
    assert response.status_code == 403

    response = client.patch("/api/v1/stores/S001", json={"vat_enabled": True}, headers=owner)
    assert response.status_code == 200
    assert response.json()["vat_enabled"] is True


def test_open_purchase_order_can_be_edited(client: TestClient) -> None:
    _bootstrap(client)
    response = client.post(
        "/api/v1/purchase-orders",
        json={
            "purchase_currency": "LAK",
            "items": [{"product_id": "P001", "qty_ordered": 10, "unit_cost_purchase": 100}],
        },
        headers=HEADERS,
    )
    order = response.json()

    response = client.patch(
        f"/api/v1/purchase-orders/{order['id']}",
        json={
            "supplier_name": "New Supplier",
            "items": [{"product_id": "P001", "qty_ordered": 12, "unit_cost_purchase": 90}],
        },
        headers=HEADERS,
    )
    assert response.status_code == 200, response.text
    edited = response.json()
    assert edited["supplier_name"] == "New Supplier"
    assert edited["version"] == 2
    assert [(item["qty_ordered"], item["unit_cost_base"]) for item in edited["items"]] == [(12, 90)]

    client.patch(f"/api/v1/purchase-orders/{order['id']}/status", json={"status": "RECEIVED"}, headers=HEADERS)
    response = client.patch(f"/api/v1/purchase-orders/{order['id']}", json={"note": "late"}, headers=HEADERS)
    assert response.status_code == 409
    assert response.json()["kind"] == "invalid_transition"

    response = client.get("/api/v1/catalog/products/P001", headers=HEADERS)
    assert response.json()["cost_base"] == 90
