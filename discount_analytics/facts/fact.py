"""
Discount Fact

The canonical per-line-item discount record shared by the fact store, the
legacy metadata reader and the migration tool.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Optional

from discount_analytics.commerce.interfaces import LineItemRecord, OrderRecord
from discount_analytics.database.models import DiscountFactRecord, SaleFlag
from discount_analytics.pricing import PriceDecomposition, to_decimal

# Per-item metadata keys (legacy representation and external exposure)
META_REGULAR_PRICE = "_da_regular_price"
META_SALE_PRICE = "_da_sale_price"
META_DISCOUNT_AMOUNT = "_da_discount_amount"
META_DISCOUNT_PCT = "_da_discount_pct"
META_WAS_ON_SALE = "_da_was_on_sale"

# Order-level capture marker
META_CAPTURED = "_da_captured"
CAPTURED_VALUE = "yes"


@dataclass
class DiscountFact:
    """One discount computation for one order line item"""
    order_id: int
    order_item_id: int
    product_id: int
    variation_id: int
    regular_price: Optional[Decimal]
    realized_unit_price: Decimal
    discount_amount: Decimal
    discount_percentage: Decimal
    quantity: Decimal
    currency: str
    was_on_sale: SaleFlag
    created_at: datetime
    refund_id: int = 0
    refunded_at: Optional[datetime] = None
    id: Optional[int] = field(default=None, compare=False)
    
    @property
    def is_active(self) -> bool:
        return self.refund_id == 0
    
    @property
    def line_discount(self) -> Decimal:
        """Total discount on the line"""
        return self.discount_amount * self.quantity
    
    @classmethod
    def from_decomposition(
        cls,
        decomposition: PriceDecomposition,
        *,
        order_id: int,
        order_item_id: int,
        product_id: int,
        variation_id: int,
        quantity: Decimal,
        currency: str,
        created_at: datetime,
    ) -> "DiscountFact":
        return cls(
            order_id=order_id,
            order_item_id=order_item_id,
            product_id=product_id,
            variation_id=variation_id or 0,
            regular_price=decomposition.regular_price,
            realized_unit_price=decomposition.realized_unit_price,
            discount_amount=decomposition.discount_amount,
            discount_percentage=decomposition.discount_percentage,
            quantity=quantity,
            currency=currency,
            was_on_sale=decomposition.was_on_sale,
            created_at=created_at,
        )
    
    @classmethod
    def from_record(cls, record: DiscountFactRecord) -> "DiscountFact":
        return cls(
            id=record.id,
            order_id=record.order_id,
            order_item_id=record.order_item_id,
            product_id=record.product_id,
            variation_id=record.variation_id,
            regular_price=record.regular_price,
            realized_unit_price=record.sale_price,
            discount_amount=record.discount_amount,
            discount_percentage=record.discount_percentage,
            quantity=record.quantity,
            currency=record.currency,
            was_on_sale=SaleFlag(record.was_on_sale),
            created_at=record.created_at,
            refund_id=record.refund_id,
            refunded_at=record.refunded_at,
        )
    
    def to_record(self) -> DiscountFactRecord:
        return DiscountFactRecord(
            order_id=self.order_id,
            order_item_id=self.order_item_id,
            product_id=self.product_id,
            variation_id=self.variation_id,
            regular_price=self.regular_price,
            sale_price=self.realized_unit_price,
            discount_amount=self.discount_amount,
            discount_percentage=self.discount_percentage,
            quantity=self.quantity,
            currency=self.currency,
            was_on_sale=self.was_on_sale.value,
            created_at=self.created_at,
            refund_id=self.refund_id,
            refunded_at=self.refunded_at,
        )


def decomposition_to_meta(decomposition: PriceDecomposition) -> Dict[str, str]:
    """The five per-item metadata values for a decomposition"""
    regular = decomposition.regular_price
    return {
        META_REGULAR_PRICE: "" if regular is None else str(regular),
        META_SALE_PRICE: str(decomposition.realized_unit_price),
        META_DISCOUNT_AMOUNT: str(decomposition.discount_amount),
        META_DISCOUNT_PCT: str(decomposition.discount_percentage),
        META_WAS_ON_SALE: decomposition.was_on_sale.value,
    }


def decomposition_from_meta(meta: Dict[str, str]) -> Optional[PriceDecomposition]:
    """
    Reassemble a decomposition from per-item metadata.
    
    Returns None when the item was never captured.
    """
    flag = meta.get(META_WAS_ON_SALE, "")
    if not flag:
        return None
    
    return PriceDecomposition(
        regular_price=to_decimal(meta.get(META_REGULAR_PRICE)),
        realized_unit_price=to_decimal(meta.get(META_SALE_PRICE)) or Decimal("0"),
        discount_amount=to_decimal(meta.get(META_DISCOUNT_AMOUNT)) or Decimal("0"),
        discount_percentage=to_decimal(meta.get(META_DISCOUNT_PCT)) or Decimal("0"),
        was_on_sale=SaleFlag(flag),
    )


@dataclass
class SourcedFact:
    """A fact together with the order and line item it was derived from"""
    fact: DiscountFact
    order: Optional[OrderRecord] = None
    item: Optional[LineItemRecord] = None
    
    @property
    def line_total(self) -> Decimal:
        """Amount paid for the line after coupons"""
        if self.item is not None:
            return self.item.line_total
        return self.fact.realized_unit_price * self.fact.quantity
