# Overview: Read-only dashboard rollups of completed sales (daily/weekly/monthly/hourly windows, growth).

"""
Dashboard aggregation.

Every figure counts COMPLETED sales only; VOID, HOLD and RETURNED sales are
excluded everywhere. Windows are half-open [start, end) in server time,
weeks start on Monday. Money values are rounded to 2 decimals on the way out.

Each function takes an optional `now` so the windows can be pinned in tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Product, Sale, SaleItem
from ..money import HUNDRED, ZERO, round2
from ..time_utils import day_window, month_window, to_utc_z, utcnow, week_window

TREND_DAYS = 30
RECENT_SALES_LIMIT = 5


def growth_percentage(current, previous) -> Decimal:
    """
    Period-over-period growth in percent.

    With no previous activity the result is 100 when there is current
    activity and 0 otherwise, so the value is always finite.
    """
    current = Decimal(current)
    previous = Decimal(previous)
    if previous > 0:
        return round2((current - previous) / previous * HUNDRED)
    return Decimal("100.00") if current > 0 else Decimal("0.00")


def _completed():
    return Sale.status == "COMPLETED"


def sales_total(start: datetime, end: datetime) -> Decimal:
    total = (
        db.session.query(func.coalesce(func.sum(Sale.total), 0))
        .filter(_completed(), Sale.created_at >= start, Sale.created_at < end)
        .scalar()
    )
    return round2(total)


def _period(current: tuple, previous: tuple) -> dict:
    current_total = sales_total(*current)
    previous_total = sales_total(*previous)
    return {
        "current": current_total,
        "previous": previous_total,
        "growth": growth_percentage(current_total, previous_total),
    }


def daily_sales_series(now: datetime | None = None, days: int = TREND_DAYS) -> list[dict]:
    """Gap-free daily totals for the trailing `days` days, today included, oldest first."""
    now = now or utcnow()
    first_day = now.date() - timedelta(days=days - 1)
    buckets = {first_day + timedelta(days=offset): ZERO for offset in range(days)}

    start = day_window(first_day)[0]
    end = day_window(now.date())[1]
    rows = (
        db.session.query(Sale.total, Sale.created_at)
        .filter(_completed(), Sale.created_at >= start, Sale.created_at < end)
        .all()
    )
    for total, created_at in rows:
        day = created_at.date()
        if day in buckets:
            buckets[day] += total

    return [
        {"date": day.isoformat(), "label": day.strftime("%d/%m"), "amount": round2(amount)}
        for day, amount in sorted(buckets.items())
    ]


def get_dashboard_analytics(now: datetime | None = None) -> dict:
    now = now or utcnow()
    today = now.date()

    daily = _period(day_window(today), day_window(today - timedelta(days=1)))
    weekly = _period(week_window(today), week_window(today - timedelta(days=7)))
    this_month = month_window(today)
    monthly = _period(this_month, month_window(this_month[0].date() - timedelta(days=1)))

    return {
        "today_sales": daily["current"],
        "yesterday_sales": daily["previous"],
        "daily_growth": daily["growth"],
        "this_week_sales": weekly["current"],
        "last_week_sales": weekly["previous"],
        "weekly_growth": weekly["growth"],
        "this_month_sales": monthly["current"],
        "last_month_sales": monthly["previous"],
        "monthly_growth": monthly["growth"],
        "daily_sales_data": daily_sales_series(now),
    }


def get_dashboard_stats(now: datetime | None = None) -> dict:
    now = now or utcnow()
    start, end = day_window(now.date())

    total, count = (
        db.session.query(func.coalesce(func.sum(Sale.total), 0), func.count(Sale.id))
        .filter(_completed(), Sale.created_at >= start, Sale.created_at < end)
        .one()
    )

    profit = ZERO
    lines = (
        db.session.query(SaleItem.quantity, SaleItem.unit_price, Product.purchase_price)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .join(Product, SaleItem.product_id == Product.id)
        .filter(_completed(), Sale.created_at >= start, Sale.created_at < end)
        .all()
    )
    for quantity, unit_price, purchase_price in lines:
        profit += (unit_price - purchase_price) * quantity

    return {
        "today_sales": round2(total),
        "today_transactions": count,
        "today_profit": round2(profit),
        "total_products": db.session.query(Product).filter(Product.active()).count(),
        "total_customers": db.session.query(Customer).filter(Customer.active()).count(),
        "low_stock_items": (
            db.session.query(Product)
            .filter(Product.active(), Product.stock <= Product.min_stock_level)
            .count()
        ),
    }


def get_hourly_sales(now: datetime | None = None) -> list[dict]:
    now = now or utcnow()
    start, end = day_window(now.date())
    buckets = {hour: ZERO for hour in range(24)}
    rows = (
        db.session.query(Sale.total, Sale.created_at)
        .filter(_completed(), Sale.created_at >= start, Sale.created_at < end)
        .all()
    )
    for total, created_at in rows:
        buckets[created_at.hour] += total
    return [{"hour": f"{hour:02d}:00", "amount": round2(amount)} for hour, amount in buckets.items()]


def get_payment_method_distribution(now: datetime | None = None) -> list[dict]:
    now = now or utcnow()
    start, end = day_window(now.date())
    rows = (
        db.session.query(Sale.payment_method, func.sum(Sale.total))
        .filter(_completed(), Sale.created_at >= start, Sale.created_at < end)
        .group_by(Sale.payment_method)
        .all()
    )
    data = [{"name": method or "CASH", "value": round2(value)} for method, value in rows]
    data.sort(key=lambda d: d["value"], reverse=True)
    return data


def get_recent_sales(limit: int = RECENT_SALES_LIMIT) -> list[dict]:
    sales = (
        db.session.query(Sale)
        .filter(_completed())
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": s.id,
            "sale_number": s.sale_number,
            "total": round2(s.total),
            "payment_method": s.payment_method,
            "created_at": to_utc_z(s.created_at),
            "cashier_name": (s.user.full_name or s.user.username) if s.user else None,
            "customer_name": s.customer.name if s.customer else None,
        }
        for s in sales
    ]


def get_low_stock_products() -> list[dict]:
    products = (
        db.session.query(Product)
        .filter(Product.active(), Product.stock <= Product.min_stock_level)
        .order_by(Product.stock.asc(), Product.name.asc())
        .all()
    )
    return [
        {
            "id": p.id,
            "name": p.name,
            "stock": p.stock,
            "min_stock_level": p.min_stock_level,
            "unit": p.unit,
        }
        for p in products
    ]
