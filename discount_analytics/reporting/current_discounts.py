"""
Current Discounts

Snapshot of catalog items that have a sale price below their regular price,
with the sale window classified against the current time. Computed per
request, never cached.
"""

from dataclasses import asdict, dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, List, Optional

from discount_analytics.commerce.interfaces import ProductRecord
from discount_analytics.exceptions import InvalidReportError
from discount_analytics.reporting.filters import SortOrder
from discount_analytics.reporting.rows import DATE_FORMAT

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")


class SaleStatus(str, Enum):
    ACTIVE = "active"
    SCHEDULED = "scheduled"
    EXPIRED = "expired"


SALE_STATUS_FILTERS = {"all"} | {s.value for s in SaleStatus}


@dataclass
class CurrentDiscountRow:
    id: int
    parent_id: int
    name: str
    type: str
    sku: Optional[str]
    regular_price: float
    sale_price: float
    discount_amount: float
    discount_pct: float
    sale_start: Optional[str]
    sale_end: Optional[str]
    sale_status: str
    stock_status: str
    stock_quantity: Optional[int]
    
    def to_dict(self) -> dict:
        return asdict(self)


SORTABLE_FIELDS = set(CurrentDiscountRow.__dataclass_fields__)
TEXT_FIELDS = {"name", "type", "sku", "sale_start", "sale_end", "sale_status", "stock_status"}


def sale_status(sale_from: Optional[datetime], sale_to: Optional[datetime], now: datetime) -> SaleStatus:
    """Where now falls relative to the sale window"""
    if sale_from is not None and sale_from > now:
        return SaleStatus.SCHEDULED
    if sale_to is not None and sale_to < now:
        return SaleStatus.EXPIRED
    return SaleStatus.ACTIVE


def discount_snapshot(
    product: ProductRecord,
    now: datetime,
    discount_min: float = 0,
    discount_max: float = 100,
    status_filter: str = "all",
) -> Optional[CurrentDiscountRow]:
    """
    Row for a discounted product, or None when it is not discounted or
    falls outside the filters.
    """
    regular = product.regular_price or ZERO
    sale = product.sale_price or ZERO
    if sale <= ZERO or regular <= ZERO or sale >= regular:
        return None
    
    amount = regular - sale
    pct = amount / regular * HUNDRED
    if pct < Decimal(str(discount_min)) or pct > Decimal(str(discount_max)):
        return None
    
    status = sale_status(product.sale_from, product.sale_to, now)
    if status_filter != "all" and status.value != status_filter:
        return None
    
    return CurrentDiscountRow(
        id=product.id,
        parent_id=product.parent_id if product.type == "variation" else 0,
        name=product.name,
        type=product.type,
        sku=product.sku,
        regular_price=float(regular),
        sale_price=float(sale),
        discount_amount=float(amount.quantize(CENTS, rounding=ROUND_HALF_UP)),
        discount_pct=float(pct.quantize(CENTS, rounding=ROUND_HALF_UP)),
        sale_start=product.sale_from.strftime(DATE_FORMAT) if product.sale_from else None,
        sale_end=product.sale_to.strftime(DATE_FORMAT) if product.sale_to else None,
        sale_status=status.value,
        stock_status=product.stock_status,
        stock_quantity=product.stock_quantity,
    )


def current_discounts(
    products: Iterable[ProductRecord],
    now: datetime,
    discount_min: float = 0,
    discount_max: float = 100,
    status_filter: str = "all",
) -> List[CurrentDiscountRow]:
    status_filter = (status_filter or "all").lower()
    if status_filter not in SALE_STATUS_FILTERS:
        raise InvalidReportError(f"Invalid sale_status: {status_filter!r}")
    
    rows = []
    for product in products:
        row = discount_snapshot(product, now, discount_min, discount_max, status_filter)
        if row is not None:
            rows.append(row)
    return rows


def sort_current_discounts(
    rows: List[CurrentDiscountRow],
    orderby: str = "discount_pct",
    order: SortOrder = SortOrder.DESC,
) -> List[CurrentDiscountRow]:
    """Stable sort on one row field; unknown fields keep the input order"""
    if orderby not in SORTABLE_FIELDS:
        return list(rows)
    
    def key(row: CurrentDiscountRow):
        value = getattr(row, orderby)
        if value is None:
            return "" if orderby in TEXT_FIELDS else 0
        return value
    
    return sorted(rows, key=key, reverse=order == SortOrder.DESC)
