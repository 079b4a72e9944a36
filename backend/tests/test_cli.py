"""
CLI command tests through Flask's click runner.
"""

from decimal import Decimal

from retailpos.models import Product, User

from conftest import ADMIN_PASSWORD


class TestSystemCommands:
    def test_init_then_refuses_second_run(self, app, db_session):
        runner = app.test_cli_runner()

        result = runner.invoke(args=["system", "init", "--username", "owner", "--password", "owner-pass",
                                     "--store-name", "Corner Shop"])
        assert result.exit_code == 0, result.output
        assert "PASS Administrator created: owner" in result.output

        again = runner.invoke(args=["system", "init", "--username", "other", "--password", "other-pass",
                                    "--store-name", "Corner Shop"])
        assert again.exit_code == 1
        assert "FAIL" in again.output

    def test_status(self, app, admin_user):
        result = app.test_cli_runner().invoke(args=["system", "status"])

        assert "Initialized: yes" in result.output

    def test_wipe_with_wrong_password_fails(self, app, admin_user):
        result = app.test_cli_runner().invoke(
            args=["system", "wipe", "--username", "admin", "--password", "wrong-pass", "--yes"]
        )

        assert result.exit_code == 1
        assert "Incorrect Password" in result.output

    def test_wipe(self, app, admin_user):
        result = app.test_cli_runner().invoke(
            args=["system", "wipe", "--username", "admin", "--password", ADMIN_PASSWORD, "--yes"]
        )

        assert result.exit_code == 0, result.output
        assert "PASS Transactional data wiped." in result.output


class TestUserAndRoleCommands:
    def test_create_user_with_role(self, app, db_session, admin_user):
        result = app.test_cli_runner().invoke(args=[
            "users", "create", "--username", "jane", "--full-name", "Jane Doe",
            "--password", "jane-pass", "--role", "cashier",
        ])

        assert result.exit_code == 0, result.output
        assert db_session.query(User).filter_by(username="jane").one().role.name == "Cashier"

    def test_unknown_role_fails(self, app, admin_user):
        result = app.test_cli_runner().invoke(args=[
            "users", "create", "--username", "jane", "--full-name", "Jane Doe",
            "--password", "jane-pass", "--role", "Manager",
        ])

        assert result.exit_code == 1

    def test_roles_list(self, app, admin_user):
        result = app.test_cli_runner().invoke(args=["roles", "list"])

        assert "Super Admin (system)" in result.output
        assert "Cashier (system)" in result.output


class TestStockReconcile:
    def test_in_sync(self, app, product):
        result = app.test_cli_runner().invoke(args=["stock", "reconcile"])

        assert result.exit_code == 0
        assert "PASS" in result.output

    def test_drift_is_reported(self, app, db_session, product):
        db_session.get(Product, product.id).stock = Decimal("7")
        db_session.commit()

        result = app.test_cli_runner().invoke(args=["stock", "reconcile"])

        assert result.exit_code == 1
        assert "WARN Green Tea" in result.output
