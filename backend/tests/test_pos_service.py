"""
Checkout tests: stock decrement, ledger rows, customer statistics, credit
debt and all-or-nothing failure.
"""

from decimal import Decimal

import pytest

from retailpos.models import Customer, Product, Sale, SaleItem, StockMovement
from retailpos.services import pos_service
from retailpos.services.pos_service import SaleError
from retailpos.validation import ValidationError


def _sale_payload(*lines, **extra):
    payload = {
        "items": [
            {"product_id": product.id, "quantity": qty, "unit_price": str(product.selling_price)}
            for product, qty in lines
        ],
        "payment_method": "CASH",
    }
    payload.update(extra)
    return payload


class TestProcessSale:
    def test_sale_decrements_stock_and_writes_ledger(self, db_session, admin_user, product):
        receipt = pos_service.process_sale(_sale_payload((product, 3)), admin_user.id)

        db_session.refresh(product)
        assert product.stock == Decimal("7")
        assert receipt["sale_number"] == "INV-000001"
        assert receipt["total"] == "3000.00"
        assert receipt["cashier_name"] == "Administrator"

        movements = db_session.query(StockMovement).filter_by(product_id=product.id, movement_type="SALE").all()
        assert len(movements) == 1
        assert movements[0].quantity == Decimal("-3")

    def test_sale_numbers_are_sequential(self, db_session, admin_user, product):
        first = pos_service.process_sale(_sale_payload((product, 1)), admin_user.id)
        second = pos_service.process_sale(_sale_payload((product, 1)), admin_user.id)

        assert first["sale_number"] == "INV-000001"
        assert second["sale_number"] == "INV-000002"

    def test_lost_invoice_number_race_is_retried(self, db_session, admin_user, product, monkeypatch):
        pos_service.process_sale(_sale_payload((product, 1)), admin_user.id)
        fresh = pos_service.next_invoice_no
        calls = []

        def stale_then_fresh():
            calls.append(1)
            return 1 if len(calls) == 1 else fresh()

        monkeypatch.setattr(pos_service, "next_invoice_no", stale_then_fresh)
        receipt = pos_service.process_sale(_sale_payload((product, 2)), admin_user.id)

        assert len(calls) == 2
        assert receipt["sale_number"] == "INV-000002"
        assert db_session.get(Product, product.id).stock == Decimal("7")
        assert db_session.query(StockMovement).filter_by(movement_type="SALE").count() == 2

    def test_discount_and_tax_totals(self, db_session, admin_user, product):
        payload = _sale_payload((product, 3), subtotal="3000", discount="500", tax="125", total="2625",
                                cash_received="3000")
        receipt = pos_service.process_sale(payload, admin_user.id)

        assert receipt["total"] == "2625.00"
        assert receipt["change"] == "375.00"

    def test_total_mismatch_is_rejected(self, db_session, admin_user, product):
        with pytest.raises(ValidationError):
            pos_service.process_sale(_sale_payload((product, 1), total="5"), admin_user.id)

    def test_empty_cart_is_rejected(self, db_session, admin_user):
        with pytest.raises(ValidationError):
            pos_service.process_sale({"items": []}, admin_user.id)

    def test_insufficient_stock_leaves_no_trace(self, db_session, admin_user, make_product):
        plenty = make_product(name="Plenty", stock="50")
        scarce = make_product(name="Scarce", stock="2")

        with pytest.raises(SaleError) as exc:
            pos_service.process_sale(_sale_payload((plenty, 5), (scarce, 3)), admin_user.id)

        assert exc.value.details["product_id"] == scarce.id
        assert db_session.query(Sale).count() == 0
        assert db_session.query(SaleItem).count() == 0
        assert db_session.query(StockMovement).filter_by(movement_type="SALE").count() == 0
        assert db_session.get(Product, plenty.id).stock == Decimal("50")
        assert db_session.get(Product, scarce.id).stock == Decimal("2")

    def test_selling_last_units_then_one_more_fails(self, db_session, admin_user, make_product):
        item = make_product(name="Last Five", stock="5")

        pos_service.process_sale(_sale_payload((item, 5)), admin_user.id)
        with pytest.raises(SaleError):
            pos_service.process_sale(_sale_payload((item, 1)), admin_user.id)

        assert db_session.get(Product, item.id).stock == Decimal("0")
        assert db_session.query(Sale).count() == 1

    def test_repeated_product_lines_see_each_other(self, db_session, admin_user, make_product):
        item = make_product(name="Twice", stock="4")

        with pytest.raises(SaleError):
            pos_service.process_sale(_sale_payload((item, 3), (item, 2)), admin_user.id)

        assert db_session.get(Product, item.id).stock == Decimal("4")

    def test_unknown_product_fails(self, db_session, admin_user):
        payload = {"items": [{"product_id": 9999, "quantity": 1, "unit_price": "10"}]}
        with pytest.raises(SaleError):
            pos_service.process_sale(payload, admin_user.id)


class TestCustomerEffects:
    def test_named_customer_statistics(self, db_session, admin_user, product, customer):
        pos_service.process_sale(_sale_payload((product, 2), customer_id=customer.id), admin_user.id)

        db_session.refresh(customer)
        assert customer.total_spent == Decimal("2000")
        assert customer.visit_count == 1
        assert customer.credit_balance == Decimal("0")

    def test_credit_sale_adds_debt_and_is_unpaid(self, db_session, admin_user, product, customer):
        receipt = pos_service.process_sale(
            _sale_payload((product, 1), customer_id=customer.id, payment_method="CREDIT"),
            admin_user.id,
        )

        db_session.refresh(customer)
        assert receipt["payment_status"] == "UNPAID"
        assert customer.credit_balance == Decimal("1000")

    def test_walk_in_never_accumulates(self, db_session, admin_user, product, walk_in):
        pos_service.process_sale(_sale_payload((product, 1), customer_id=walk_in.id), admin_user.id)

        walk_in = db_session.get(Customer, walk_in.id)
        assert walk_in.total_spent == Decimal("0")
        assert walk_in.visit_count == 0

    def test_unknown_customer_fails_without_side_effects(self, db_session, admin_user, product):
        with pytest.raises(SaleError):
            pos_service.process_sale(_sale_payload((product, 1), customer_id=4242), admin_user.id)

        assert db_session.get(Product, product.id).stock == Decimal("10")


class TestRegisterCatalog:
    def test_pos_products_include_zero_stock_and_skip_archived(self, db_session, make_product):
        make_product(name="Empty Shelf", stock="0")
        archived = make_product(name="Old Line", stock="3")
        archived.lifecycle_state = "ARCHIVED"
        db_session.commit()

        names = [p.name for p in pos_service.get_pos_products()]

        assert "Empty Shelf" in names
        assert "Old Line" not in names

    def test_pos_products_search_by_barcode(self, db_session, make_product):
        make_product(name="Scanned", barcode="8850001")
        make_product(name="Other")

        assert [p.name for p in pos_service.get_pos_products(query="8850001")] == ["Scanned"]
