"""
Customer tests: registry rules and FIFO debt repayment.
"""

from decimal import Decimal

import pytest

from retailpos.models import Customer, CustomerPayment, Sale
from retailpos.services import customer_service, pos_service
from retailpos.validation import ConflictError, ValidationError


def _credit_sale(user, product, customer, qty):
    payload = {
        "items": [{"product_id": product.id, "quantity": qty, "unit_price": str(product.selling_price)}],
        "payment_method": "CREDIT",
        "customer_id": customer.id,
    }
    return pos_service.process_sale(payload, user.id)["id"]


class TestCustomerRegistry:
    def test_create_sets_balance_from_opening(self, db_session, admin_user):
        customer = customer_service.create_customer({"name": "Ko Ko", "phone": "0944", "opening_balance": "1500"})

        assert customer.credit_balance == Decimal("1500.00")
        assert customer.opening_balance == Decimal("1500.00")

    def test_duplicate_phone_rejected(self, db_session, customer):
        with pytest.raises(ConflictError):
            customer_service.create_customer({"name": "Twin", "phone": customer.phone})

    def test_name_required(self, db_session, admin_user):
        with pytest.raises(ValidationError):
            customer_service.create_customer({"name": "  "})

    def test_walk_in_cannot_be_deleted(self, db_session, walk_in):
        with pytest.raises(ConflictError):
            customer_service.delete_customer(walk_in.id)

    def test_customer_with_sales_cannot_be_deleted(self, db_session, admin_user, product, customer):
        _credit_sale(admin_user, product, customer, 1)

        with pytest.raises(ConflictError):
            customer_service.delete_customer(customer.id)

    def test_unused_customer_is_deleted(self, db_session, customer):
        customer_id = customer.id
        customer_service.delete_customer(customer_id)

        assert db_session.get(Customer, customer_id) is None

    def test_list_orders_by_total_spent(self, db_session, admin_user, product, customer):
        other = customer_service.create_customer({"name": "Big Spender", "phone": "0955"})
        _credit_sale(admin_user, product, other, 3)
        _credit_sale(admin_user, product, customer, 1)

        names = [c["name"] for c in customer_service.list_customers()["customers"]]

        assert names.index("Big Spender") < names.index("Aung Aung")
        listed = customer_service.list_customers(query="Big")["customers"][0]
        assert listed["last_visit"] is not None

    def test_details_include_recent_sales(self, db_session, admin_user, product, customer):
        _credit_sale(admin_user, product, customer, 1)

        details = customer_service.get_customer_details(customer.id)

        assert len(details["sales"]) == 1
        assert details["sales"][0]["payment_status"] == "UNPAID"


class TestRepayDebt:
    def test_full_repayment_settles_oldest_first(self, db_session, admin_user, product, customer):
        first = _credit_sale(admin_user, product, customer, 1)
        second = _credit_sale(admin_user, product, customer, 2)

        result = customer_service.repay_debt(customer.id, "1000", admin_user.id)

        assert result["settled_count"] == 1
        assert db_session.get(Sale, first).payment_status == "PAID"
        assert db_session.get(Sale, second).payment_status == "UNPAID"
        assert db_session.get(Customer, customer.id).credit_balance == Decimal("2000")

    def test_partial_coverage_marks_partial(self, db_session, admin_user, product, customer):
        first = _credit_sale(admin_user, product, customer, 1)
        second = _credit_sale(admin_user, product, customer, 2)

        result = customer_service.repay_debt(customer.id, "1500", admin_user.id)

        assert result["settled_count"] == 2
        assert db_session.get(Sale, first).payment_status == "PAID"
        assert db_session.get(Sale, second).payment_status == "PARTIAL"
        assert db_session.get(Customer, customer.id).credit_balance == Decimal("1500")

    def test_later_repayment_finishes_partial_sale(self, db_session, admin_user, product, customer):
        sale_id = _credit_sale(admin_user, product, customer, 1)
        customer_service.repay_debt(customer.id, "400", admin_user.id)
        assert db_session.get(Sale, sale_id).amount_paid == Decimal("400")

        customer_service.repay_debt(customer.id, "600", admin_user.id)

        sale = db_session.get(Sale, sale_id)
        assert sale.payment_status == "PAID"
        assert sale.amount_paid == Decimal("1000")
        assert db_session.get(Customer, customer.id).credit_balance == Decimal("0")

    def test_repayment_records_collection_and_payment(self, db_session, admin_user, product, customer):
        _credit_sale(admin_user, product, customer, 1)

        result = customer_service.repay_debt(customer.id, 1000, admin_user.id)

        collection = db_session.get(Sale, result["sale"]["id"])
        assert collection.sale_type == "DEBT_COLLECTION"
        assert collection.sale_number == "INV-000002"
        assert collection.total == Decimal("1000")
        assert collection.items == []
        assert db_session.query(CustomerPayment).filter_by(customer_id=customer.id).count() == 1

    def test_amount_over_debt_rejected(self, db_session, admin_user, product, customer):
        _credit_sale(admin_user, product, customer, 1)

        with pytest.raises(ValidationError):
            customer_service.repay_debt(customer.id, "1000.01", admin_user.id)
        assert db_session.get(Customer, customer.id).credit_balance == Decimal("1000")

    @pytest.mark.parametrize("amount", [0, "-5", None, "abc"])
    def test_non_positive_amount_rejected(self, db_session, admin_user, customer, amount):
        with pytest.raises(ValidationError):
            customer_service.repay_debt(customer.id, amount, admin_user.id)
