# Overview: Date-range financial reports and dead stock.

from __future__ import annotations

from collections import defaultdict
from datetime import date

from ..extensions import db
from ..models import Product, Sale, SaleItem
from ..money import HUNDRED, ZERO, round2
from ..time_utils import date_range_window
from ..validation import ValidationError

TOP_PRODUCTS_LIMIT = 5


def _window(start_date: date | None, end_date: date | None):
    if start_date is None or end_date is None:
        raise ValidationError("start_date and end_date are required")
    if end_date < start_date:
        raise ValidationError("end_date cannot be before start_date")
    return date_range_window(start_date, end_date)


def _sales_in_range(start, end) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter(Sale.status != "VOID", Sale.created_at >= start, Sale.created_at < end)
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )


def get_report_data(start_date: date | None, end_date: date | None) -> dict:
    """
    Financial summary for an inclusive date range.

    Cost is valued at each product's current purchase price. Voided sales are
    excluded; debt collections count as revenue.
    """
    start, end = _window(start_date, end_date)
    sales = _sales_in_range(start, end)

    revenue = ZERO
    cost = ZERO
    by_day = defaultdict(lambda: {"sales": ZERO, "profit": ZERO})
    by_product = {}
    by_method = defaultdict(lambda: {"amount": ZERO, "count": 0})

    for sale in sales:
        sale_cost = ZERO
        for item in sale.items:
            sale_cost += item.product.purchase_price * item.quantity
            entry = by_product.setdefault(
                item.product_id, {"product_name": item.product.name, "quantity": ZERO, "revenue": ZERO}
            )
            entry["quantity"] += item.quantity
            entry["revenue"] += item.total

        revenue += sale.total
        cost += sale_cost

        day = by_day[sale.created_at.date()]
        day["sales"] += sale.total
        day["profit"] += sale.total - sale_cost

        method = by_method[sale.payment_method or "CASH"]
        method["amount"] += sale.total
        method["count"] += 1

    net_profit = revenue - cost
    margin = net_profit / revenue * HUNDRED if revenue > 0 else ZERO

    top_products = sorted(by_product.items(), key=lambda kv: kv[1]["quantity"], reverse=True)
    payment_split = sorted(by_method.items(), key=lambda kv: kv[1]["amount"], reverse=True)

    return {
        "financial_summary": {
            "total_revenue": round2(revenue),
            "total_cost": round2(cost),
            "net_profit": round2(net_profit),
            "profit_margin": round2(margin),
        },
        "sales_chart_data": [
            {"date": day.isoformat(), "sales": round2(v["sales"]), "profit": round2(v["profit"])}
            for day, v in sorted(by_day.items())
        ],
        "top_selling_products": [
            {
                "product_id": product_id,
                "product_name": v["product_name"],
                "quantity_sold": round2(v["quantity"]),
                "revenue": round2(v["revenue"]),
            }
            for product_id, v in top_products[:TOP_PRODUCTS_LIMIT]
        ],
        "payment_method_split": [
            {
                "method": method,
                "amount": round2(v["amount"]),
                "count": v["count"],
                "percentage": round2(v["amount"] / revenue * HUNDRED) if revenue > 0 else ZERO,
            }
            for method, v in payment_split
        ],
    }


def get_dead_stock(start_date: date | None, end_date: date | None) -> list[dict]:
    """Active products that did not sell at all in the range, most capital tied up first."""
    start, end = _window(start_date, end_date)
    sold_ids = {
        row[0]
        for row in (
            db.session.query(SaleItem.product_id)
            .join(Sale, SaleItem.sale_id == Sale.id)
            .filter(Sale.status != "VOID", Sale.created_at >= start, Sale.created_at < end)
            .distinct()
            .all()
        )
    }
    products = db.session.query(Product).filter(Product.active()).all()
    dead = [
        {
            "id": p.id,
            "name": p.name,
            "stock": p.stock,
            "value": round2(p.stock * p.purchase_price),
        }
        for p in products
        if p.id not in sold_ids
    ]
    dead.sort(key=lambda d: d["value"], reverse=True)
    return dead
