"""
Product spreadsheet tests: template layout, export content and bulk import.
"""

import io
from decimal import Decimal

import pytest
from openpyxl import Workbook, load_workbook

from retailpos.models import PriceHistory, Product, StockMovement
from retailpos.services import product_excel_service as excel
from retailpos.validation import ValidationError

HEADERS = ["Barcode*", "Name*", "Category*", "Cost Price*", "Sell Price*", "Stock*", "Description"]


def _upload(*rows, headers=HEADERS):
    wb = Workbook()
    ws = wb.active
    ws.append(headers)
    for row in rows:
        ws.append(list(row))
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf


def _import(*rows, user_id=None):
    return excel.bulk_import_products(excel.read_product_rows(_upload(*rows)), user_id)


class TestTemplateAndExport:
    def test_template_marks_required_columns(self):
        ws = load_workbook(io.BytesIO(excel.build_template_workbook())).active

        assert [cell.value for cell in ws[1]] == HEADERS
        assert ws.max_row == 1
        assert ws["A1"].font.bold
        assert ws["A1"].font.color.rgb == "FFFF0000"
        assert ws["G1"].font.color is None

    def test_export_lists_active_products(self, db_session, make_product):
        make_product(name="Green Tea", barcode="8850001", purchase_price="600", selling_price="1000", stock="10")
        archived = make_product(name="Old Line")
        archived.lifecycle_state = "ARCHIVED"
        db_session.commit()

        ws = load_workbook(io.BytesIO(excel.export_products_workbook())).active

        assert ws.max_row == 2
        assert [cell.value for cell in ws[2]][:6] == ["8850001", "Green Tea", "Beverages", 600, 1000, 10]


class TestReadRows:
    def test_blank_rows_skipped_and_asterisks_stripped(self):
        rows = excel.read_product_rows(_upload(
            ("111", "Soap", "Home", 100, 150, 3, None),
            (None, None, None, None, None, None, None),
        ))

        assert len(rows) == 1
        assert rows[0]["Barcode"] == "111"
        assert rows[0]["Cost Price"] == 100
        assert "Stock*" not in rows[0]

    def test_unreadable_file_rejected(self):
        with pytest.raises(ValidationError):
            excel.read_product_rows(io.BytesIO(b"not a workbook"))


class TestBulkImport:
    def test_creates_product_category_and_import_movement(self, db_session, admin_user):
        result = _import(("8850001", "Soap", "Home Care", 100, 150, 8, "Lavender"), user_id=admin_user.id)

        assert result == {"imported": 1, "updated": 0}
        product = db_session.query(Product).filter_by(barcode="8850001").one()
        assert product.stock == Decimal("8")
        assert product.category.name == "Home Care"
        movement = db_session.query(StockMovement).filter_by(product_id=product.id).one()
        assert movement.movement_type == "IMPORT"
        assert movement.quantity == Decimal("8")

    def test_numeric_barcode_cells_are_read_as_text(self, db_session, admin_user):
        _import((8850002, "Shampoo", "Home Care", 100, 150, 1, None))

        assert db_session.query(Product).filter_by(barcode="8850002").count() == 1

    def test_updates_existing_by_barcode(self, db_session, admin_user, product):
        result = _import((product.barcode, "Green Tea 500ml", "beverages", 650, 1000, 12, None),
                         user_id=admin_user.id)

        assert result == {"imported": 0, "updated": 1}
        product = db_session.get(Product, product.id)
        assert product.name == "Green Tea 500ml"
        assert product.stock == Decimal("12")
        assert product.purchase_price == Decimal("650")
        assert product.category.name == "Beverages"
        history = db_session.query(PriceHistory).filter_by(product_id=product.id).all()
        assert [(h.price_type, h.reason) for h in history] == [("COST", "Bulk Import")]
        delta = db_session.query(StockMovement).filter_by(product_id=product.id, movement_type="IMPORT").one()
        assert delta.quantity == Decimal("2")

    def test_archived_product_is_reactivated(self, db_session, admin_user, product):
        product.lifecycle_state = "ARCHIVED"
        db_session.commit()

        _import((product.barcode, "Green Tea", "Beverages", 600, 1000, 10, None))

        assert db_session.get(Product, product.id).is_active

    def test_duplicate_barcode_in_file_aborts(self, db_session, admin_user):
        with pytest.raises(ValidationError, match="duplicate barcode"):
            _import(
                ("777", "First", "Home", 1, 2, 1, None),
                ("777", "Second", "Home", 1, 2, 1, None),
            )
        assert db_session.query(Product).count() == 0

    def test_missing_required_field_aborts(self, db_session, admin_user):
        with pytest.raises(ValidationError, match="Row 3: Name is required"):
            _import(
                ("100", "Valid", "Home", 1, 2, 1, None),
                ("101", None, "Home", 1, 2, 1, None),
            )
        assert db_session.query(Product).count() == 0

    def test_bad_price_aborts(self, db_session, admin_user):
        with pytest.raises(ValidationError, match="Row 2"):
            _import(("100", "Valid", "Home", "cheap", 2, 1, None))

    def test_empty_file_rejected(self, db_session, admin_user):
        with pytest.raises(ValidationError):
            _import()
