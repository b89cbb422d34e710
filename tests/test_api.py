from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

API = "/api/v1"


def _create_product(client: TestClient, **fields) -> dict:
    payload = {"name": "Whey Isolate", "sku": "WI-01", "sale_price": 60.0, "cost_price": 38.0, **fields}
    response = client.post(f"{API}/products", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client: TestClient) -> None:
    response = client.get(f"{API}/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_stock_and_sale_flow(client: TestClient) -> None:
    product = _create_product(client, initial_stock=10, max_stock=20)

    # manual inflow using the Spanish label
    response = client.post(
        f"{API}/inventory/movements",
        json={"product_id": product["id"], "kind": "ingreso", "quantity": 5, "note": "Supplier"},
    )
    assert response.status_code == 201, response.text
    assert response.json()["kind"] == "inflow"

    response = client.get(f"{API}/inventory/balances/{product['id']}")
    assert response.json() == {"product_id": product["id"], "current_stock": 15}

    response = client.post(
        f"{API}/sales",
        json={"product_id": product["id"], "quantity": 15, "sale_price": 900.0, "created_by": 1},
    )
    assert response.status_code == 201, response.text
    sale = response.json()
    assert sale["quantity"] == 15
    assert sale["channel"] == "Tienda"

    response = client.get(f"{API}/inventory/balances")
    assert response.json() == [{"product_id": product["id"], "current_stock": 0}]

    response = client.get(f"{API}/sales/{sale['id']}")
    assert response.status_code == 200
    assert response.json()["sale_price"] == 900.0

    response = client.get(f"{API}/inventory/movements", params={"product_id": product["id"]})
    movements = response.json()
    assert [movement["kind"] for movement in movements] == ["outflow", "inflow", "inflow"]
    assert movements[0]["sale_id"] == sale["id"]

    response = client.post(f"{API}/inventory/products/{product['id']}/restock")
    assert response.status_code == 200
    assert response.json()["added"] == 20
    assert response.json()["current_stock"] == 20


def test_insufficient_stock_maps_to_conflict(client: TestClient) -> None:
    product = _create_product(client, initial_stock=2)

    response = client.post(f"{API}/sales", json={"product_id": product["id"], "quantity": 3, "sale_price": 10.0})

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert body["available"] == 2
    assert body["requested"] == 3
    assert client.get(f"{API}/sales").json() == []


def test_invalid_kind_is_rejected(client: TestClient) -> None:
    product = _create_product(client)

    response = client.post(
        f"{API}/inventory/movements", json={"product_id": product["id"], "kind": "transfer", "quantity": 1}
    )

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["field"] == "kind"
    assert "Unknown MovementKind" in body["detail"]


def test_zero_quantity_sale_uses_validation_error_body(client: TestClient) -> None:
    product = _create_product(client, initial_stock=5)

    response = client.post(f"{API}/sales", json={"product_id": product["id"], "quantity": 0, "sale_price": 10.0})

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert response.json()["field"] == "quantity"
    assert client.get(f"{API}/sales").json() == []


def test_offset_sale_date_is_returned_in_utc(client: TestClient) -> None:
    product = _create_product(client, initial_stock=5)

    response = client.post(
        f"{API}/sales",
        json={
            "product_id": product["id"],
            "quantity": 1,
            "sale_price": 60.0,
            "sale_date": "2024-05-01T22:00:00-05:00",
        },
    )

    assert response.status_code == 201, response.text
    assert response.json()["sale_date"].startswith("2024-05-02T03:00:00")
    totals = client.get(f"{API}/reports/sales/totals", params={"start": "2024-05-02", "end": "2024-05-02"})
    assert totals.json()["total_units"] == 1


def test_blank_skus_do_not_collide(client: TestClient) -> None:
    first = _create_product(client, name="Shaker", sku="")
    second = _create_product(client, name="Towel", sku="")

    assert first["sku"] is None
    assert second["sku"] is None
    assert len(client.get(f"{API}/products").json()) == 2


def test_movement_for_unknown_product_is_not_found(client: TestClient) -> None:
    response = client.post(f"{API}/inventory/movements", json={"product_id": 99, "kind": "inflow", "quantity": 1})

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


def test_product_crud_and_delete_rules(client: TestClient) -> None:
    fresh = _create_product(client, sku="FRESH")
    stocked = _create_product(client, sku="STOCKED", initial_stock=1)

    response = client.post(f"{API}/products", json={"name": "Copy", "sku": "FRESH"})
    assert response.status_code == 400
    assert response.json()["code"] == "DUPLICATE"

    response = client.put(f"{API}/products/{fresh['id']}", json={"flavor": "Vanilla", "expiry_date": "2027-01-31"})
    assert response.status_code == 200
    assert response.json()["flavor"] == "Vanilla"
    assert response.json()["expiry_date"] == "2027-01-31"

    response = client.delete(f"{API}/products/{stocked['id']}")
    assert response.status_code == 400
    assert response.json()["code"] == "PRODUCT_IN_USE"

    assert client.delete(f"{API}/products/{fresh['id']}").status_code == 204
    assert client.get(f"{API}/products/{fresh['id']}").status_code == 404
    assert [item["sku"] for item in client.get(f"{API}/products").json()] == ["STOCKED"]


def test_users_and_login(client: TestClient) -> None:
    response = client.post(f"{API}/auth/login", json={"username": "admin", "password": "admin"})
    assert response.status_code == 200
    assert response.json()["role"] == "Administrador"
    assert "password_hash" not in response.json()

    response = client.post(f"{API}/users", json={"username": "vendedor1", "password": "clave123"})
    assert response.status_code == 201
    user_id = response.json()["id"]

    response = client.put(f"{API}/users/{user_id}", json={"fullname": "Luis"})
    assert response.json()["fullname"] == "Luis"

    response = client.post(f"{API}/auth/login", json={"username": "vendedor1", "password": "bad"})
    assert response.status_code == 401
    assert response.json()["code"] == "AUTHENTICATION_FAILED"

    assert client.delete(f"{API}/users/{user_id}").status_code == 204
    assert client.get(f"{API}/users/{user_id}").status_code == 404
    assert len(client.get(f"{API}/users").json()) == 1


def test_cash_and_reports(client: TestClient) -> None:
    product = _create_product(client, initial_stock=5, category="Proteinas")
    client.post(f"{API}/sales", json={"product_id": product["id"], "quantity": 2, "sale_price": 120.0})
    response = client.post(f"{API}/cash/movements", json={"movement_type": "egreso", "amount": 20.0})
    assert response.status_code == 201
    assert response.json()["movement_type"] == "expense"

    assert client.get(f"{API}/cash/summary").json() == {
        "total_income": 120.0,
        "total_expense": 20.0,
        "balance": 100.0,
    }
    assert client.get(f"{API}/reports/sales/totals").json() == {"total_units": 2, "total_revenue": 120.0}
    assert client.get(f"{API}/reports/sales/by-product", params={"order_by": "qty"}).json()[0]["total_qty"] == 2
    assert client.get(f"{API}/reports/sales/by-product", params={"order_by": "price"}).status_code == 422
    assert len(client.get(f"{API}/reports/sales/trend").json()) == 1
    assert client.get(f"{API}/reports/inventory").json()[0]["current_stock"] == 3
    assert client.get(f"{API}/reports/profitability").json()[0]["gross_profit"] == 44.0
    assert client.get(f"{API}/reports/financial").json()["balance"] == 100.0

    response = client.post(f"{API}/reports/export")
    assert response.status_code == 200
    assert len(response.json()["paths"]) == 6


def test_storage_failure_maps_to_service_unavailable(client: TestClient, monkeypatch) -> None:
    product = _create_product(client, initial_stock=5)

    def broken_append(*args, **kwargs):
        raise OperationalError("INSERT", {}, Exception("database is locked"))

    monkeypatch.setattr("vitasport_admin.settlement.append_movement", broken_append)
    response = client.post(f"{API}/sales", json={"product_id": product["id"], "quantity": 1, "sale_price": 60.0})

    assert response.status_code == 503
    assert response.json()["code"] == "STORAGE_ERROR"
    assert response.json()["detail"] == "database is locked"
    assert client.get(f"{API}/inventory/balances/{product['id']}").json()["current_stock"] == 5


def test_registry_storage_failure_maps_to_service_unavailable(client: TestClient, monkeypatch) -> None:
    def locked_commit(self) -> None:
        raise OperationalError("UPDATE users", {}, Exception("database is locked"))

    monkeypatch.setattr(Session, "commit", locked_commit)
    response = client.put(f"{API}/users/1", json={"fullname": "Renamed"})
    monkeypatch.undo()

    assert response.status_code == 503
    assert response.json() == {"code": "STORAGE_ERROR", "detail": "database is locked"}
    assert client.get(f"{API}/users/1").json()["fullname"] != "Renamed"
