# Overview: Product catalog spreadsheet template, export and all-or-nothing bulk import (openpyxl).

"""
Spreadsheet import/export for products.

The template and the export share one column layout; required columns are
marked with an asterisk in the header and a red header font. Import reads the
first sheet back into dicts keyed by the header text without the asterisk.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from decimal import Decimal

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from sqlalchemy import func

from ..extensions import db
from ..models import Category, LifecycleState, Product
from ..money import ZERO, round2
from ..validation import ValidationError, parse_amount
from .catalog_service import DEFAULT_MIN_STOCK, DEFAULT_UNIT, record_price_change
from .concurrency import atomic, lock_for_update, run_with_retry
from .stock_service import apply_movement

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
SHEET_TITLE = "Products"


@dataclass(frozen=True)
class Column:
    header: str
    key: str
    required: bool
    width: int

    @property
    def label(self) -> str:
        return f"{self.header}*" if self.required else self.header


PRODUCT_COLUMNS = (
    Column("Barcode", "barcode", True, 20),
    Column("Name", "name", True, 30),
    Column("Category", "category", True, 20),
    Column("Cost Price", "cost_price", True, 15),
    Column("Sell Price", "sell_price", True, 15),
    Column("Stock", "stock", True, 12),
    Column("Description", "description", False, 40),
)

HEADER_FILL = PatternFill(fill_type="solid", fgColor="FFDCE6F1")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center")
THIN = Side(style="thin")
CELL_BORDER = Border(top=THIN, left=THIN, bottom=THIN, right=THIN)


def _new_sheet():
    wb = Workbook()
    ws = wb.active
    ws.title = SHEET_TITLE
    ws.append([col.label for col in PRODUCT_COLUMNS])
    for index, col in enumerate(PRODUCT_COLUMNS, start=1):
        cell = ws.cell(row=1, column=index)
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        cell.border = CELL_BORDER
        cell.font = Font(bold=True, color="FFFF0000" if col.required else None)
        ws.column_dimensions[get_column_letter(index)].width = col.width
    ws.row_dimensions[1].height = 20
    ws.freeze_panes = "A2"
    return wb, ws


def _fit_widths(ws) -> None:
    for index, col in enumerate(PRODUCT_COLUMNS, start=1):
        letter = get_column_letter(index)
        longest = max(
            (len(str(cell.value)) for cell in ws[letter] if cell.value is not None),
            default=0,
        )
        ws.column_dimensions[letter].width = max(longest + 2, col.width)


def _to_bytes(wb) -> bytes:
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def build_template_workbook() -> bytes:
    """Empty workbook with the styled header row only."""
    wb, _ = _new_sheet()
    return _to_bytes(wb)


def export_products_workbook() -> bytes:
    wb, ws = _new_sheet()
    products = db.session.query(Product).filter(Product.active()).order_by(Product.name.asc()).all()
    for product in products:
        ws.append([
            product.barcode or "",
            product.name,
            product.category.name if product.category else "",
            float(product.purchase_price),
            float(product.selling_price),
            float(product.stock),
            product.description or "",
        ])
        for cell in ws[ws.max_row]:
            cell.border = CELL_BORDER
    _fit_widths(ws)
    return _to_bytes(wb)


def read_product_rows(stream) -> list[dict]:
    """
    Parse an uploaded workbook into dicts keyed by header text.

    Header asterisks are stripped and fully blank rows are skipped.
    """
    try:
        wb = load_workbook(stream, read_only=True, data_only=True)
    except Exception:
        raise ValidationError("Could not read the uploaded file as an Excel workbook")

    ws = wb.worksheets[0]
    values = list(ws.iter_rows(values_only=True))
    wb.close()
    if not values:
        return []

    headers = [str(h).strip().rstrip("*").strip() if h is not None else "" for h in values[0]]
    rows = []
    for raw in values[1:]:
        if all(v is None or (isinstance(v, str) and not v.strip()) for v in raw):
            continue
        rows.append({headers[i]: raw[i] for i in range(min(len(headers), len(raw))) if headers[i]})
    return rows


def _cell_text(row: dict, header: str) -> str:
    value = row.get(header)
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # Numeric barcodes come back from Excel as floats
        value = int(value)
    return str(value).strip()


def _parse_row(row: dict, line: int) -> dict:
    parsed = {}
    for col in PRODUCT_COLUMNS:
        if col.required and not _cell_text(row, col.header):
            raise ValidationError(f"Row {line}: {col.header} is required")
    try:
        parsed["cost_price"] = round2(parse_amount(row.get("Cost Price"), "Cost Price", required=True))
        parsed["sell_price"] = round2(parse_amount(row.get("Sell Price"), "Sell Price", required=True))
        parsed["stock"] = parse_amount(row.get("Stock"), "Stock", required=True)
    except ValidationError as e:
        raise ValidationError(f"Row {line}: {e}")
    parsed["barcode"] = _cell_text(row, "Barcode")
    parsed["name"] = _cell_text(row, "Name")
    parsed["category"] = _cell_text(row, "Category")
    parsed["description"] = _cell_text(row, "Description") or None
    return parsed


def _category_for(name: str) -> Category:
    category = db.session.query(Category).filter(func.lower(Category.name) == name.lower()).first()
    if category is None:
        category = Category(name=name)
        db.session.add(category)
        db.session.flush()
    elif not category.is_active:
        category.lifecycle_state = LifecycleState.ACTIVE
    return category


def bulk_import_products(rows: list[dict], user_id: int | None) -> dict:
    """
    Upsert products by barcode in one transaction.

    Any invalid row aborts the whole import. Stock differences are written as
    IMPORT movements; price changes go to price history.
    """
    if not rows:
        raise ValidationError("The file contains no product rows")
    parsed = [_parse_row(row, line) for line, row in enumerate(rows, start=2)]

    seen = set()
    for line, item in enumerate(parsed, start=2):
        if item["barcode"] in seen:
            raise ValidationError(f"Row {line}: duplicate barcode {item['barcode']}")
        seen.add(item["barcode"])

    def _op():
        imported = 0
        updated = 0
        with atomic():
            for item in parsed:
                category = _category_for(item["category"])
                product = lock_for_update(db.session.query(Product).filter_by(barcode=item["barcode"])).first()

                if product is None:
                    product = Product(
                        name=item["name"],
                        barcode=item["barcode"],
                        category_id=category.id,
                        purchase_price=item["cost_price"],
                        selling_price=item["sell_price"],
                        stock=ZERO,
                        min_stock_level=DEFAULT_MIN_STOCK,
                        unit=DEFAULT_UNIT,
                        description=item["description"],
                    )
                    db.session.add(product)
                    db.session.flush()
                    imported += 1
                else:
                    record_price_change(product, "COST", product.purchase_price, item["cost_price"],
                                        user_id, "Bulk Import")
                    record_price_change(product, "SELLING", product.selling_price, item["sell_price"],
                                        user_id, "Bulk Import")
                    product.name = item["name"]
                    product.category_id = category.id
                    product.purchase_price = item["cost_price"]
                    product.selling_price = item["sell_price"]
                    product.description = item["description"]
                    product.lifecycle_state = LifecycleState.ACTIVE
                    updated += 1

                delta = Decimal(item["stock"]) - (product.stock or ZERO)
                if delta != 0:
                    apply_movement(product, delta, "IMPORT", user_id, reference_type="Product",
                                   reference_id=product.id, notes="Bulk import")
                db.session.flush()
        return {"imported": imported, "updated": updated}

    return run_with_retry(_op)
