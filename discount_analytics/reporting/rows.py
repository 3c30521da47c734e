"""
History report rows, one per discounted line item.
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Optional

from discount_analytics.facts.fact import SourcedFact
from discount_analytics.pricing import round_amount

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def as_float(value: Optional[Decimal]) -> float:
    return float(value) if value is not None else 0.0


@dataclass
class HistoryRow:
    """Flat history row with the ERP price decomposition"""
    order_id: int
    order_date: str
    item_id: int
    product_id: int
    variation_id: int
    product_name: str
    quantity: float
    regular_price: float
    sale_price: float
    discount_amount: float
    discount_pct: float
    was_on_sale: str
    line_total: float
    currency: str
    gross_unit_price: float
    line_discount: float
    net_unit_price: float
    net_line_amount: float
    
    def to_dict(self) -> dict:
        return asdict(self)


def history_row(sourced: SourcedFact, product_name: str) -> HistoryRow:
    fact = sourced.fact
    order_date = sourced.order.created_at if sourced.order is not None else fact.created_at
    regular = as_float(fact.regular_price)
    realized = as_float(round_amount(fact.realized_unit_price))
    discount = as_float(fact.discount_amount)
    quantity = as_float(fact.quantity)
    
    return HistoryRow(
        order_id=fact.order_id,
        order_date=order_date.strftime(DATE_FORMAT) if order_date else "",
        item_id=fact.order_item_id,
        product_id=fact.product_id,
        variation_id=fact.variation_id,
        product_name=product_name,
        quantity=quantity,
        regular_price=regular,
        sale_price=realized,
        discount_amount=discount,
        discount_pct=as_float(fact.discount_percentage),
        was_on_sale=fact.was_on_sale.value,
        line_total=as_float(sourced.line_total),
        currency=fact.currency,
        gross_unit_price=regular,
        line_discount=discount,
        net_unit_price=realized,
        net_line_amount=realized * quantity,
    )
