# Overview: Read-only dashboard and period reports derived from a store snapshot.

"""
Reporting

Everything here is a pure function of a Snapshot and "today"; nothing
touches the backend. Export formatting (CSV/PDF/XLSX) is not done here;
the JSON structure returned by build_report is the export payload.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from .records import Snapshot, TRANSFER_STATUS_COMPLETED
from ..time_utils import today as _today


REPORT_PERIODS = ("daily", "weekly", "monthly", "yearly")
ALL_CATEGORIES = "all"
RECENT_LIMIT = 5


class ReportError(ValueError):
    """Invalid report parameters."""


def _months_back(day: date, months: int) -> date:
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    # Clamp to the last valid day (e.g. Mar 31 -> Feb 28)
    for candidate in range(day.day, 27, -1):
        try:
            return date(year, month, candidate)
        except ValueError:
            continue
    return date(year, month, min(day.day, 28))


def period_start(period: str, today: date | None = None) -> date:
    today = today or _today()
    if period == "daily":
        return today
    if period == "weekly":
        return today - timedelta(days=7)
    if period == "monthly":
        return _months_back(today, 1)
    if period == "yearly":
        return _months_back(today, 12)
    raise ReportError(f"period must be one of: {', '.join(REPORT_PERIODS)}")


def low_stock(products) -> list:
    return [p for p in products if p.quantity <= p.stock_alert]


def categories(snapshot: Snapshot) -> list[str]:
    return sorted({p.category for p in snapshot.products if p.category})


def dashboard_summary(snapshot: Snapshot, today: date | None = None) -> dict:
    today = today or _today()
    low = low_stock(snapshot.products)
    receipts = sorted(snapshot.stock_receipts, key=lambda r: (r.date or date.min, r.created_at or datetime.min), reverse=True)
    transfers = sorted(snapshot.stock_transfers, key=lambda t: (t.date or date.min, t.created_at or datetime.min), reverse=True)

    return {
        "totalProducts": len(snapshot.products),
        "lowStockCount": len(low),
        "lowStockProducts": [p.to_dict() for p in low],
        "totalSuppliers": len(snapshot.suppliers),
        "todayReceipts": sum(1 for r in snapshot.stock_receipts if r.date == today),
        "todayTransfers": sum(1 for t in snapshot.stock_transfers if t.date == today),
        "pendingTransfers": sum(1 for t in snapshot.stock_transfers if t.status == "pending"),
        "recentReceipts": [r.to_dict() for r in receipts[:RECENT_LIMIT]],
        "recentTransfers": [t.to_dict() for t in transfers[:RECENT_LIMIT]],
    }


def build_report(
    snapshot: Snapshot,
    period: str,
    category: str = ALL_CATEGORIES,
    today: date | None = None,
) -> dict:
    """
    Period report: ledger rows dated on/after the period start, optionally
    narrowed to one product category.
    """
    today = today or _today()
    start = period_start(period, today)

    products = list(snapshot.products)
    if category and category != ALL_CATEGORIES:
        products = [p for p in products if p.category == category]
        product_ids = {p.id for p in products}
        in_category = lambda row: row.product_id in product_ids  # noqa: E731
    else:
        in_category = lambda row: True  # noqa: E731

    receipts = [r for r in snapshot.stock_receipts if r.date and r.date >= start and in_category(r)]
    transfers = [t for t in snapshot.stock_transfers if t.date and t.date >= start and in_category(t)]
    low = low_stock(products)

    summary = {
        "totalProducts": len(products),
        "totalReceived": sum(r.quantity for r in receipts),
        "totalTransferred": sum(t.quantity for t in transfers if t.status == TRANSFER_STATUS_COMPLETED),
        "lowStockItems": len(low),
        "activeSuppliers": len({r.supplier_name for r in receipts}),
    }

    return {
        "period": period,
        "category": category or ALL_CATEGORIES,
        "startDate": start.isoformat(),
        "generatedDate": today.isoformat(),
        "summary": summary,
        "receipts": [r.to_dict() for r in receipts],
        "transfers": [t.to_dict() for t in transfers],
        "lowStockProducts": [p.to_dict() for p in low],
    }
