"""
Sales history tests: voids, partial and full refunds, metadata edits.
"""

from decimal import Decimal

import pytest

from retailpos.models import Customer, Product, Sale, StockMovement
from retailpos.services import customer_service, pos_service, sales_service
from retailpos.services.sales_service import SaleStateError
from retailpos.validation import ValidationError


def _sell(user, *lines, **extra):
    payload = {
        "items": [
            {"product_id": p.id, "quantity": qty, "unit_price": str(p.selling_price)} for p, qty in lines
        ],
    }
    payload.update(extra)
    receipt = pos_service.process_sale(payload, user.id)
    return receipt["id"]


class TestVoidSale:
    def test_void_restores_stock_and_customer(self, db_session, admin_user, product, customer):
        sale_id = _sell(admin_user, (product, 4), customer_id=customer.id)

        sale = sales_service.void_sale(sale_id, admin_user.id)

        assert sale.status == "VOID"
        assert sale.voided_at is not None
        assert db_session.get(Product, product.id).stock == Decimal("10")
        customer = db_session.get(Customer, customer.id)
        assert customer.total_spent == Decimal("0")
        assert customer.visit_count == 0
        ledger = db_session.query(StockMovement).filter_by(reference_type="Sale", movement_type="RETURN").all()
        assert [m.quantity for m in ledger] == [Decimal("4")]

    def test_void_credit_sale_removes_debt(self, db_session, admin_user, product, customer):
        sale_id = _sell(admin_user, (product, 2), customer_id=customer.id, payment_method="CREDIT")

        sales_service.void_sale(sale_id, admin_user.id)

        assert db_session.get(Customer, customer.id).credit_balance == Decimal("0")

    def test_void_partly_repaid_credit_sale_clears_remaining_debt(self, db_session, admin_user, product, customer):
        sale_id = _sell(admin_user, (product, 1), customer_id=customer.id, payment_method="CREDIT")
        customer_service.repay_debt(customer.id, "400", admin_user.id)

        sales_service.void_sale(sale_id, admin_user.id)

        assert db_session.get(Customer, customer.id).credit_balance == Decimal("0")

    def test_void_keeps_debt_of_other_sales(self, db_session, admin_user, product, customer):
        kept = _sell(admin_user, (product, 1), customer_id=customer.id, payment_method="CREDIT")
        voided = _sell(admin_user, (product, 2), customer_id=customer.id, payment_method="CREDIT")
        customer_service.repay_debt(customer.id, "1500", admin_user.id)

        sales_service.void_sale(voided, admin_user.id)

        assert db_session.get(Sale, kept).payment_status == "PAID"
        assert db_session.get(Customer, customer.id).credit_balance == Decimal("0")

    def test_void_twice_fails(self, db_session, admin_user, product):
        sale_id = _sell(admin_user, (product, 1))
        sales_service.void_sale(sale_id, admin_user.id)

        with pytest.raises(SaleStateError):
            sales_service.void_sale(sale_id, admin_user.id)

    def test_void_skips_refunded_lines(self, db_session, admin_user, make_product, customer):
        tea = make_product(name="Tea", stock="10")
        cake = make_product(name="Cake", selling_price="2500", stock="10")
        sale_id = _sell(admin_user, (tea, 2), (cake, 1), customer_id=customer.id)
        sale = db_session.get(Sale, sale_id)
        cake_line = next(i for i in sale.items if i.product_id == cake.id)
        sales_service.process_refund(sale_id, [cake_line.id], "Damaged", None, admin_user.id)

        sales_service.void_sale(sale_id, admin_user.id)

        assert db_session.get(Product, tea.id).stock == Decimal("10")
        assert db_session.get(Product, cake.id).stock == Decimal("10")
        assert db_session.get(Customer, customer.id).total_spent == Decimal("0")


class TestRefund:
    def test_partial_refund_keeps_sale_completed(self, db_session, admin_user, make_product, customer):
        tea = make_product(name="Tea", stock="10")
        cake = make_product(name="Cake", selling_price="2500", stock="10")
        sale_id = _sell(admin_user, (tea, 2), (cake, 1), customer_id=customer.id)
        sale = db_session.get(Sale, sale_id)
        tea_line = next(i for i in sale.items if i.product_id == tea.id)

        result = sales_service.process_refund(sale_id, [tea_line.id], "Wrong item", "swap", admin_user.id)

        assert result.return_number == "RET-000001"
        assert result.total == Decimal("2000")
        assert db_session.get(Sale, sale_id).status == "COMPLETED"
        assert db_session.get(Product, tea.id).stock == Decimal("10")
        customer = db_session.get(Customer, customer.id)
        assert customer.total_spent == Decimal("2500")
        assert customer.visit_count == 1

    def test_full_refund_marks_sale_returned(self, db_session, admin_user, product):
        sale_id = _sell(admin_user, (product, 2))
        line_ids = [i.id for i in db_session.get(Sale, sale_id).items]

        sales_service.process_refund(sale_id, line_ids, "Customer changed mind", None, admin_user.id)

        assert db_session.get(Sale, sale_id).status == "RETURNED"
        with pytest.raises(SaleStateError):
            sales_service.void_sale(sale_id, admin_user.id)

    def test_refunding_same_line_twice_fails(self, db_session, admin_user, make_product):
        tea = make_product(name="Tea", stock="10")
        cake = make_product(name="Cake", stock="10")
        sale_id = _sell(admin_user, (tea, 1), (cake, 1))
        tea_line = next(i for i in db_session.get(Sale, sale_id).items if i.product_id == tea.id)
        sales_service.process_refund(sale_id, [tea_line.id], "Damaged", None, admin_user.id)

        with pytest.raises(SaleStateError) as exc:
            sales_service.process_refund(sale_id, [tea_line.id], "Damaged", None, admin_user.id)
        assert exc.value.details["item_ids"] == [tea_line.id]

    def test_refund_requires_reason_and_items(self, db_session, admin_user, product):
        sale_id = _sell(admin_user, (product, 1))

        with pytest.raises(ValidationError):
            sales_service.process_refund(sale_id, [], "Damaged", None, admin_user.id)
        with pytest.raises(ValidationError):
            sales_service.process_refund(sale_id, [1], "  ", None, admin_user.id)

    def test_refund_of_voided_sale_fails(self, db_session, admin_user, product):
        sale_id = _sell(admin_user, (product, 1))
        line_id = db_session.get(Sale, sale_id).items[0].id
        sales_service.void_sale(sale_id, admin_user.id)

        with pytest.raises(SaleStateError):
            sales_service.process_refund(sale_id, [line_id], "Damaged", None, admin_user.id)


class TestMetadataEdit:
    def test_changing_customer_moves_statistics(self, db_session, admin_user, product, customer):
        other = Customer(name="Su Su", phone="0933333333")
        db_session.add(other)
        db_session.commit()
        sale_id = _sell(admin_user, (product, 1), customer_id=customer.id)

        sales_service.update_sale_metadata(sale_id, {"customer_id": other.id, "notes": " gift "}, admin_user.id)

        assert db_session.get(Customer, customer.id).total_spent == Decimal("0")
        assert db_session.get(Customer, other.id).total_spent == Decimal("1000")
        assert db_session.get(Customer, other.id).visit_count == 1
        assert db_session.get(Sale, sale_id).notes == "gift"

    def test_credit_sales_keep_method_and_customer(self, db_session, admin_user, product, customer):
        sale_id = _sell(admin_user, (product, 1), customer_id=customer.id, payment_method="CREDIT")

        with pytest.raises(SaleStateError):
            sales_service.update_sale_metadata(sale_id, {"payment_method": "CASH"}, admin_user.id)
        with pytest.raises(SaleStateError):
            sales_service.update_sale_metadata(sale_id, {"customer_id": None}, admin_user.id)

    def test_switching_between_paid_methods(self, db_session, admin_user, product):
        sale_id = _sell(admin_user, (product, 1))

        sale = sales_service.update_sale_metadata(sale_id, {"payment_method": "card"}, admin_user.id)

        assert sale.payment_method == "CARD"


class TestListSales:
    def test_filters_and_search(self, db_session, admin_user, product, customer):
        _sell(admin_user, (product, 1), customer_id=customer.id)
        _sell(admin_user, (product, 1), payment_method="CARD")

        assert sales_service.list_sales()["total"] == 2
        assert sales_service.list_sales(payment_method="CARD")["total"] == 1
        assert sales_service.list_sales(payment_method="all")["total"] == 2
        assert sales_service.list_sales(query="Aung")["total"] == 1
        assert sales_service.list_sales(query="INV-000002")["sales"][0]["payment_method"] == "CARD"

    def test_newest_first(self, db_session, admin_user, product):
        _sell(admin_user, (product, 1))
        _sell(admin_user, (product, 1))

        numbers = [s["sale_number"] for s in sales_service.list_sales()["sales"]]
        assert numbers == ["INV-000002", "INV-000001"]
