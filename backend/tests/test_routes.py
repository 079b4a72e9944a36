"""
HTTP surface tests: authentication gates, permission gates and the main
cashier/admin flows through the API.
"""

import io

import pytest
from openpyxl import Workbook

from retailpos.models import Product, Sale
from retailpos.services import pos_service

from conftest import ADMIN_PASSWORD, CASHIER_PASSWORD

PROTECTED = [
    ("get", "/api/pos/products"),
    ("post", "/api/pos/sales"),
    ("get", "/api/sales"),
    ("get", "/api/products"),
    ("get", "/api/categories"),
    ("get", "/api/units"),
    ("get", "/api/customers"),
    ("get", "/api/suppliers"),
    ("get", "/api/purchases"),
    ("get", "/api/stock/overview"),
    ("get", "/api/roles"),
    ("get", "/api/users"),
    ("get", "/api/settings"),
    ("get", "/api/dashboard/stats"),
    ("get", "/api/reports/summary"),
    ("get", "/api/admin/activity"),
    ("post", "/api/admin/reset"),
    ("get", "/api/admin/backup"),
    ("post", "/api/admin/restore"),
]


def _cart(product, qty=2, **extra):
    cart = {
        "items": [{
            "product_id": product.id,
            "name": product.name,
            "quantity": qty,
            "unit_price": str(product.selling_price),
            "stock": str(product.stock),
        }],
    }
    cart.update(extra)
    return {"cart": cart}


class TestAuthenticationGate:
    @pytest.mark.parametrize("method,url", PROTECTED)
    def test_requires_session(self, client, admin_user, method, url):
        response = getattr(client, method)(url)

        assert response.status_code == 401
        assert "error" in response.get_json()


class TestPermissionGate:
    @pytest.mark.parametrize("method,url", [
        ("get", "/api/settings"),
        ("get", "/api/users"),
        ("get", "/api/roles"),
        ("get", "/api/reports/summary?start_date=2026-01-01&end_date=2026-01-31"),
        ("get", "/api/purchases"),
        ("post", "/api/admin/reset"),
        ("post", "/api/products"),
    ])
    def test_cashier_is_denied(self, cashier_client, method, url):
        response = getattr(cashier_client, method)(url, json={})

        assert response.status_code == 403
        assert response.get_json() == {"error": "Permission denied"}

    def test_cashier_cannot_void(self, cashier_client, db_session, admin_user, product):
        sale_id = pos_service.process_sale(
            {"items": [{"product_id": product.id, "quantity": 1, "unit_price": "1000"}]}, admin_user.id
        )["id"]

        response = cashier_client.post(f"/api/sales/{sale_id}/void")

        assert response.status_code == 403
        assert db_session.get(Sale, sale_id).status == "COMPLETED"

    def test_cashier_discount_needs_permission(self, cashier_client, db_session, product):
        response = cashier_client.post("/api/pos/sales", json=_cart(product, discount_value="100"))

        assert response.status_code == 403
        assert db_session.query(Sale).count() == 0

    def test_cashier_can_sell_without_discount(self, cashier_client, db_session, product):
        response = cashier_client.post("/api/pos/sales", json=_cart(product))

        assert response.status_code == 201
        assert response.get_json()["sale"]["cashier_name"] == "Counter Cashier"


class TestCheckoutFlow:
    def test_quote_applies_default_tax(self, admin_client, product):
        response = admin_client.post("/api/pos/cart/quote", json=_cart(product)["cart"])

        assert response.status_code == 200
        totals = response.get_json()
        assert totals["tax"] == "100.00"
        assert totals["total"] == "2100.00"

    def test_cart_checkout_recomputes_totals(self, admin_client, db_session, product):
        response = admin_client.post("/api/pos/sales", json=_cart(product, cash_received="3000"))

        assert response.status_code == 201
        sale = response.get_json()["sale"]
        assert sale["total"] == "2100.00"
        assert sale["change"] == "900.00"
        assert db_session.get(Product, product.id).stock == 8

    def test_out_of_stock_returns_details(self, admin_client, product):
        response = admin_client.post("/api/pos/sales", json={
            "items": [{"product_id": product.id, "quantity": 50, "unit_price": "1000"}],
        })

        assert response.status_code == 400
        assert response.get_json()["details"]["product_id"] == product.id

    def test_non_object_body_rejected(self, admin_client):
        response = admin_client.post("/api/pos/sales", json=[1, 2])

        assert response.status_code == 400

    def test_refund_then_history(self, admin_client, product):
        sale = admin_client.post("/api/pos/sales", json=_cart(product)).get_json()["sale"]
        line_id = sale["items"][0]["id"]

        response = admin_client.post(f"/api/sales/{sale['id']}/refund",
                                     json={"item_ids": [line_id], "reason": "Damaged"})

        assert response.status_code == 201
        assert response.get_json()["return"]["return_number"] == "RET-000001"
        detail = admin_client.get(f"/api/sales/{sale['id']}").get_json()["sale"]
        assert detail["status"] == "RETURNED"
        assert len(detail["returns"]) == 1

    def test_void_twice_is_400(self, admin_client, product):
        sale = admin_client.post("/api/pos/sales", json=_cart(product)).get_json()["sale"]

        assert admin_client.post(f"/api/sales/{sale['id']}/void").status_code == 200
        assert admin_client.post(f"/api/sales/{sale['id']}/void").status_code == 400

    def test_unknown_sale_is_404(self, admin_client):
        assert admin_client.get("/api/sales/9999").status_code == 404


class TestAdminFlows:
    def test_reset_requires_password(self, admin_client, product):
        admin_client.post("/api/pos/sales", json=_cart(product))

        assert admin_client.post("/api/admin/reset", json={"password": "wrong-pass"}).status_code == 400
        response = admin_client.post("/api/admin/reset", json={"password": ADMIN_PASSWORD})

        assert response.status_code == 200
        assert response.get_json()["deleted"]["sales"] == 1

    def test_activity_log_filter(self, admin_client):
        admin_client.post("/api/auth/login", json={"username": "admin", "password": "bad-pass"})
        admin_client.post("/api/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})

        entries = admin_client.get("/api/admin/activity?type=LOGIN_FAILED").get_json()["activity"]

        assert len(entries) == 1

    def test_export_download(self, admin_client, product):
        response = admin_client.get("/api/products/export")

        assert response.status_code == 200
        assert response.mimetype == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        assert "attachment" in response.headers["Content-Disposition"]

    def test_import_upload(self, admin_client, db_session):
        wb = Workbook()
        ws = wb.active
        ws.append(["Barcode*", "Name*", "Category*", "Cost Price*", "Sell Price*", "Stock*", "Description"])
        ws.append(["990001", "Candle", "Home", 300, 500, 6, None])
        buf = io.BytesIO()
        wb.save(buf)
        buf.seek(0)

        response = admin_client.post("/api/products/import", data={"file": (buf, "products.xlsx")},
                                     content_type="multipart/form-data")

        assert response.status_code == 200
        assert response.get_json()["imported"] == 1
        assert db_session.query(Product).filter_by(barcode="990001").count() == 1

    def test_import_rejects_other_file_types(self, admin_client):
        response = admin_client.post("/api/products/import", data={"file": (io.BytesIO(b"a,b"), "products.csv")},
                                     content_type="multipart/form-data")

        assert response.status_code == 400

    def test_role_update_reaches_cashier_immediately(self, admin_client, client, cashier_user, login):
        roles = admin_client.get("/api/roles").get_json()["roles"]
        cashier_role = next(r for r in roles if r["name"] == "Cashier")
        response = admin_client.put(f"/api/roles/{cashier_role['id']}",
                                    json={"permissions": {"pos": {"access": True}, "settings": {"view": True}}})
        assert response.status_code == 200

        login("cashier", CASHIER_PASSWORD)

        assert client.get("/api/settings").status_code == 200
        assert client.get("/api/pos/products").status_code == 200
        assert client.get("/api/sales").status_code == 403

    def test_malformed_role_matrix_is_400(self, admin_client):
        response = admin_client.post("/api/roles", json={"name": "Bad", "permissions": {"pos": {"fly": True}}})

        assert response.status_code == 400
