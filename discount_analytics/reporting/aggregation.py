"""
Discount Aggregation

Groups history rows by product, category or day and builds the summary
report. Computation runs on polars DataFrames; groups keep the order in
which their first row appears.

avg_discount_pct is the plain mean of line percentages, not weighted by
revenue or units.
"""

from dataclasses import asdict, dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

import polars as pl
import structlog

from discount_analytics.commerce.interfaces import CategoryRecord
from discount_analytics.reporting.filters import GroupBy
from discount_analytics.reporting.rows import HistoryRow

logger = structlog.get_logger(__name__)

HISTORY_SCHEMA = {
    "order_id": pl.Int64,
    "order_date": pl.Utf8,
    "product_id": pl.Int64,
    "product_name": pl.Utf8,
    "quantity": pl.Float64,
    "sale_price": pl.Float64,
    "discount_amount": pl.Float64,
    "discount_pct": pl.Float64,
    "line_total": pl.Float64,
}

ROUNDED_COLUMNS = ["total_discount", "total_revenue", "avg_discount_pct"]


def history_frame(rows: Sequence[HistoryRow]) -> pl.DataFrame:
    """Columns of the history rows needed for aggregation"""
    return pl.DataFrame(
        {name: [getattr(row, name) for row in rows] for name in HISTORY_SCHEMA},
        schema=HISTORY_SCHEMA,
    )


def _category_frame(
    rows: Sequence[HistoryRow],
    categories: Mapping[int, Sequence[CategoryRecord]],
) -> pl.DataFrame:
    # One row per (history row, category); a product in two categories
    # counts in full in both
    fanned = []
    for row in rows:
        for category in categories.get(row.product_id, ()):
            fanned.append({
                "category_id": category.id,
                "category_name": category.name,
                "quantity": row.quantity,
                "discount_amount": row.discount_amount,
                "discount_pct": row.discount_pct,
                "line_total": row.line_total,
            })
    
    return pl.DataFrame(
        fanned,
        schema={
            "category_id": pl.Int64,
            "category_name": pl.Utf8,
            "quantity": pl.Float64,
            "discount_amount": pl.Float64,
            "discount_pct": pl.Float64,
            "line_total": pl.Float64,
        },
    )


def _group_metrics() -> List[pl.Expr]:
    return [
        pl.col("quantity").sum().alias("units_sold"),
        (pl.col("discount_amount") * pl.col("quantity")).sum().alias("total_discount"),
        pl.col("line_total").sum().alias("total_revenue"),
        pl.col("discount_pct").mean().alias("avg_discount_pct"),
    ]


def group_history(
    rows: Sequence[HistoryRow],
    group_by: GroupBy,
    categories: Optional[Mapping[int, Sequence[CategoryRecord]]] = None,
) -> List[dict]:
    """
    Aggregate history rows into one row per group.
    
    Args:
        rows: History rows in report order
        group_by: PRODUCT, CATEGORY or DATE; NONE returns the rows as dicts
        categories: Product id to categories, required for CATEGORY
    
    Returns:
        Group dicts with units_sold, total_discount, total_revenue and
        avg_discount_pct (2 decimal places)
    """
    if group_by == GroupBy.NONE:
        return [row.to_dict() for row in rows]
    if not rows:
        return []
    
    if group_by == GroupBy.PRODUCT:
        grouped = history_frame(rows).group_by("product_id", maintain_order=True).agg(
            [pl.col("product_name").first()] + _group_metrics()
        )
    elif group_by == GroupBy.CATEGORY:
        grouped = _category_frame(rows, categories or {}).group_by(
            "category_id", maintain_order=True
        ).agg(
            [pl.col("category_name").first()] + _group_metrics()
        )
    else:
        grouped = (
            history_frame(rows)
            .with_columns(pl.col("order_date").str.slice(0, 10).alias("date"))
            .group_by("date", maintain_order=True)
            .agg(_group_metrics())
        )
    
    grouped = grouped.with_columns([pl.col(c).round(2) for c in ROUNDED_COLUMNS])
    logger.debug("History grouped", group_by=group_by.value, rows=len(rows), groups=grouped.height)
    return grouped.to_dicts()


@dataclass
class DiscountSummary:
    """Period totals and the most discounted products"""
    total_discount: float = 0.0
    total_revenue: float = 0.0
    discount_pct_of_revenue: float = 0.0
    discounted_units: float = 0.0
    orders_count: int = 0
    top_discounted_products: List[Dict] = field(default_factory=list)
    
    def to_dict(self) -> dict:
        return asdict(self)


def summarize(rows: Sequence[HistoryRow], top_n: int = 10) -> DiscountSummary:
    """
    Summary totals over history rows.
    
    Revenue is the sum of net line amounts (realized unit price times
    quantity); top products are ranked by total discount with ties kept in
    first-appearance order.
    """
    if not rows:
        return DiscountSummary()
    
    df = history_frame(rows).with_columns([
        (pl.col("discount_amount") * pl.col("quantity")).alias("line_discount"),
        (pl.col("sale_price") * pl.col("quantity")).alias("net_line_amount"),
    ])
    
    totals = df.select([
        pl.col("line_discount").sum().alias("total_discount"),
        pl.col("net_line_amount").sum().alias("total_revenue"),
        pl.col("quantity").sum().alias("discounted_units"),
        pl.col("order_id").n_unique().alias("orders_count"),
    ]).row(0, named=True)
    
    total_discount = totals["total_discount"]
    total_revenue = totals["total_revenue"]
    pct_of_revenue = total_discount / total_revenue * 100 if total_revenue > 0 else 0.0
    
    top_products = (
        df.group_by("product_id", maintain_order=True)
        .agg([
            pl.col("product_name").first(),
            pl.col("line_discount").sum().alias("total_discount"),
            pl.col("quantity").sum().alias("units_sold"),
        ])
        .sort("total_discount", descending=True, maintain_order=True)
        .head(top_n)
        .with_columns(pl.col("total_discount").round(2))
    )
    
    return DiscountSummary(
        total_discount=round(total_discount, 2),
        total_revenue=round(total_revenue, 2),
        discount_pct_of_revenue=round(pct_of_revenue, 2),
        discounted_units=totals["discounted_units"],
        orders_count=totals["orders_count"],
        top_discounted_products=top_products.to_dicts(),
    )
