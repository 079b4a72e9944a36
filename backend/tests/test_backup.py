"""
Backup and restore tests: document shape, full restore, password gate, API and CLI.
"""

import io
import json
from decimal import Decimal

import pytest

from retailpos.models import ActivityLog, Customer, Product, Sale, User
from retailpos.services import backup_service, customer_service, maintenance_service, pos_service, purchase_service
from retailpos.services.auth_service import create_user
from retailpos.validation import ValidationError

from conftest import ADMIN_PASSWORD


@pytest.fixture
def busy_store(db_session, admin_user, product, customer, supplier):
    pos_service.process_sale({
        "items": [{"product_id": product.id, "quantity": 2, "unit_price": "1000"}],
        "payment_method": "CREDIT",
        "customer_id": customer.id,
    }, admin_user.id)
    customer_service.repay_debt(customer.id, "500", admin_user.id)
    purchase_service.create_purchase({
        "supplier_id": supplier.id,
        "items": [{"product_id": product.id, "quantity": "4", "unit_price": "600"}],
    }, admin_user.id)
    return product


class TestGenerateBackup:
    def test_document_is_plain_json_without_password_hashes(self, db_session, admin_user, busy_store):
        backup = backup_service.generate_backup()

        assert backup["version"] == "1"
        assert backup["created_at"].endswith("Z")
        assert len(backup["tables"]["sales"]) == 2
        assert all("password_hash" not in row for row in backup["tables"]["users"])
        product_row = next(r for r in backup["tables"]["products"] if r["id"] == busy_store.id)
        assert Decimal(product_row["stock"]) == Decimal("12")
        json.dumps(backup)


class TestRestoreBackup:
    def test_restore_brings_back_wiped_history(self, db_session, admin_user, busy_store, customer):
        backup = backup_service.generate_backup()
        maintenance_service.reset_transactions(admin_user.id, ADMIN_PASSWORD)

        restored = backup_service.restore_backup(admin_user.id, ADMIN_PASSWORD, backup)

        assert restored["sales"] == 2
        assert restored["purchases"] == 1
        assert db_session.query(Sale).count() == 2
        credit_sale = db_session.query(Sale).filter_by(payment_method="CREDIT").one()
        assert credit_sale.amount_paid == Decimal("500")
        assert db_session.get(Customer, customer.id).credit_balance == Decimal("1500")
        assert db_session.get(Product, busy_store.id).stock == Decimal("12")

    def test_restore_drops_rows_added_after_backup(self, db_session, admin_user, busy_store, make_product):
        backup = backup_service.generate_backup()
        make_product(name="Late Arrival", barcode="555")

        backup_service.restore_backup(admin_user.id, ADMIN_PASSWORD, backup)

        assert db_session.query(Product).filter_by(barcode="555").count() == 0

    def test_users_are_kept_and_unknown_actors_cleared(self, db_session, admin_user, busy_store):
        backup = backup_service.generate_backup()
        for row in backup["tables"]["sales"]:
            row["user_id"] = 9999
        late = create_user(username="latecomer", password="late-pass1", full_name="Late Comer",
                           role_id=admin_user.role_id)
        db_session.commit()

        backup_service.restore_backup(admin_user.id, ADMIN_PASSWORD, backup)

        assert db_session.get(User, late.id) is not None
        assert {s.user_id for s in db_session.query(Sale).all()} == {None}

    def test_restore_is_logged(self, db_session, admin_user, busy_store):
        backup = backup_service.generate_backup()

        backup_service.restore_backup(admin_user.id, ADMIN_PASSWORD, backup)

        assert db_session.query(ActivityLog).filter_by(activity_type="RESTORE").count() == 1

    @pytest.mark.parametrize("password", ["wrong-pass", "", None])
    def test_wrong_password_changes_nothing(self, db_session, admin_user, busy_store, password):
        backup = backup_service.generate_backup()
        backup["tables"]["sales"] = []

        with pytest.raises(ValidationError, match="Incorrect Password"):
            backup_service.restore_backup(admin_user.id, password, backup)
        assert db_session.query(Sale).count() == 2

    @pytest.mark.parametrize("mangle", [
        lambda b: None,
        lambda b: {"version": "1"},
        lambda b: dict(b, version="99"),
        lambda b: dict(b, tables={k: v for k, v in b["tables"].items() if k != "products"}),
        lambda b: dict(b, tables=dict(b["tables"], products=[{"id": 1, "stock": "lots"}])),
    ])
    def test_malformed_backup_changes_nothing(self, db_session, admin_user, busy_store, mangle):
        payload = mangle(backup_service.generate_backup())

        with pytest.raises(ValidationError):
            backup_service.restore_backup(admin_user.id, ADMIN_PASSWORD, payload)
        assert db_session.query(Sale).count() == 2


class TestBackupRoutes:
    def test_download_is_an_attachment(self, admin_client, busy_store):
        response = admin_client.get("/api/admin/backup")

        assert response.status_code == 200
        assert "attachment" in response.headers["Content-Disposition"]
        assert len(response.get_json()["tables"]["sales"]) == 2

    def test_restore_from_json_body(self, admin_client, db_session, admin_user, busy_store):
        backup = admin_client.get("/api/admin/backup").get_json()
        maintenance_service.reset_transactions(admin_user.id, ADMIN_PASSWORD)

        response = admin_client.post("/api/admin/restore", json={"password": ADMIN_PASSWORD, "backup": backup})

        assert response.status_code == 200
        assert response.get_json()["restored"]["sales"] == 2

    def test_restore_from_uploaded_file(self, admin_client, db_session, busy_store):
        backup = admin_client.get("/api/admin/backup").get_data()

        response = admin_client.post("/api/admin/restore",
                                     data={"file": (io.BytesIO(backup), "backup.json"), "password": ADMIN_PASSWORD},
                                     content_type="multipart/form-data")

        assert response.status_code == 200

    def test_restore_wrong_password_is_400(self, admin_client, busy_store):
        backup = admin_client.get("/api/admin/backup").get_json()

        response = admin_client.post("/api/admin/restore", json={"password": "wrong-pass", "backup": backup})

        assert response.status_code == 400

    def test_in_memory_database_has_no_file(self, admin_client):
        assert admin_client.get("/api/admin/backup/db").status_code == 400

    @pytest.mark.parametrize("method,url", [
        ("get", "/api/admin/backup"),
        ("get", "/api/admin/backup/db"),
        ("post", "/api/admin/restore"),
    ])
    def test_cashier_is_denied(self, cashier_client, method, url):
        assert getattr(cashier_client, method)(url, json={}).status_code == 403


class TestBackupCommands:
    def test_backup_then_restore(self, app, db_session, admin_user, busy_store, tmp_path):
        target = tmp_path / "backup.json"
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "backup", "--output", str(target)])
        assert result.exit_code == 0, result.output
        assert json.loads(target.read_text())["version"] == "1"

        maintenance_service.reset_transactions(admin_user.id, ADMIN_PASSWORD)
        result = runner.invoke(args=["system", "restore", "--input", str(target), "--username", "admin",
                                     "--password", ADMIN_PASSWORD, "--yes"])

        assert result.exit_code == 0, result.output
        assert "PASS Database restored from backup." in result.output
        assert db_session.query(Sale).count() == 2

    def test_restore_with_wrong_password_fails(self, app, admin_user, tmp_path):
        target = tmp_path / "backup.json"
        runner = app.test_cli_runner()
        runner.invoke(args=["system", "backup", "--output", str(target)])

        result = runner.invoke(args=["system", "restore", "--input", str(target), "--username", "admin",
                                     "--password", "wrong-pass", "--yes"])

        assert result.exit_code == 1
        assert "Incorrect Password" in result.output
