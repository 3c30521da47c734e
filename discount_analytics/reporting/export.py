"""
CSV export of the three reports with fixed column headers.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, List, Sequence

import polars as pl

from discount_analytics.reporting.aggregation import DiscountSummary
from discount_analytics.reporting.current_discounts import CurrentDiscountRow
from discount_analytics.reporting.rows import HistoryRow

CURRENT_DISCOUNT_HEADERS = [
    "ID", "Name", "Type", "SKU", "Regular Price", "Sale Price", "Discount Amount",
    "Discount %", "Sale Start", "Sale End", "Status", "Stock Status",
]

HISTORY_HEADERS = [
    "Order ID", "Order Date", "Product ID", "Product Name", "Quantity", "Regular Price",
    "Sale Price", "Discount Amount", "Discount %", "Line Total",
]

SUMMARY_HEADERS = ["Metric", "Value"]


@dataclass
class CsvExport:
    filename: str
    content: str


def export_filename(report_type: str) -> str:
    return f"{report_type}-{datetime.now(timezone.utc):%Y-%m-%d}.csv"


def to_csv(headers: Sequence[str], rows: Sequence[Sequence[Any]]) -> str:
    """CSV text with the header line followed by rows"""
    columns = {header: [row[i] for row in rows] for i, header in enumerate(headers)}
    return pl.DataFrame(columns, schema={h: pl.Utf8 for h in headers}).write_csv()


def _text(value: Any) -> Any:
    return None if value is None else str(value)


def current_discounts_csv(rows: Sequence[CurrentDiscountRow]) -> str:
    return to_csv(CURRENT_DISCOUNT_HEADERS, [
        [
            _text(row.id), row.name, row.type, row.sku, _text(row.regular_price),
            _text(row.sale_price), _text(row.discount_amount), _text(row.discount_pct),
            row.sale_start, row.sale_end, row.sale_status, row.stock_status,
        ]
        for row in rows
    ])


def history_csv(rows: Sequence[HistoryRow]) -> str:
    return to_csv(HISTORY_HEADERS, [
        [
            _text(row.order_id), row.order_date, _text(row.product_id), row.product_name,
            _text(row.quantity), _text(row.regular_price), _text(row.sale_price),
            _text(row.discount_amount), _text(row.discount_pct), _text(row.line_total),
        ]
        for row in rows
    ])


def summary_csv(summary: DiscountSummary) -> str:
    rows: List[List[Any]] = [
        ["Total Discount", _text(summary.total_discount)],
        ["Total Revenue", _text(summary.total_revenue)],
        ["Discount % of Revenue", _text(summary.discount_pct_of_revenue)],
        ["Discounted Units", _text(summary.discounted_units)],
        ["Orders Count", _text(summary.orders_count)],
        [None, None],
        ["Top Discounted Products", None],
        ["Product Name", "Total Discount"],
    ]
    for product in summary.top_discounted_products:
        rows.append([product["product_name"], _text(product["total_discount"])])
    return to_csv(SUMMARY_HEADERS, rows)
