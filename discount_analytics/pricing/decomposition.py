"""
Price Decomposition

Decides whether a line item was sold at a discount and splits its price into
regular price, realized unit price, per-unit discount and discount percentage.

This is the only place discount detection happens. Live capture calls
decompose_price() with line data; the legacy migration calls
decompose_unit_price() with the stored unit price. Both share the same
thresholds and rounding.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

from discount_analytics.database.models import SaleFlag
from discount_analytics.exceptions import InvalidQuantityError

ZERO = Decimal("0")
HUNDRED = Decimal("100")

AMOUNT_PLACES = Decimal("0.0001")
PERCENT_PLACES = Decimal("0.01")


@dataclass(frozen=True)
class PriceDecomposition:
    """Canonical price breakdown for one line item"""
    regular_price: Optional[Decimal]
    realized_unit_price: Decimal
    discount_amount: Decimal
    discount_percentage: Decimal
    was_on_sale: SaleFlag
    
    @property
    def is_discounted(self) -> bool:
        return self.was_on_sale == SaleFlag.YES


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Coerce a stored or host-supplied price to Decimal.
    
    None and empty strings mean "absent" and return None. Floats go through
    str() so 19.99 stays 19.99.
    
    Raises:
        ValueError: If the value is not numeric
    """
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = str(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a numeric price: {value!r}") from e


def round_amount(value: Decimal) -> Decimal:
    return value.quantize(AMOUNT_PLACES, rounding=ROUND_HALF_UP)


def round_percent(value: Decimal) -> Decimal:
    return value.quantize(PERCENT_PLACES, rounding=ROUND_HALF_UP)


def decompose_unit_price(regular_price: Any, unit_price: Any) -> PriceDecomposition:
    """
    Decompose a realized unit price against the regular price.
    
    Args:
        regular_price: Catalog regular price; None, "" or <= 0 means unknown
        unit_price: Price actually paid per unit, kept at full precision;
            storage rounds it to 4 places

    Returns:
        PriceDecomposition with was_on_sale yes, no or unknown
    """
    regular = to_decimal(regular_price)
    # Negative line amounts count as zero
    realized = max(to_decimal(unit_price) or ZERO, ZERO)
    
    if regular is None or regular <= ZERO:
        return PriceDecomposition(
            regular_price=regular,
            realized_unit_price=realized,
            discount_amount=ZERO,
            discount_percentage=ZERO,
            was_on_sale=SaleFlag.UNKNOWN,
        )
    
    if realized < regular:
        discount_amount = round_amount(regular - realized)
        discount_percentage = round_percent(discount_amount / regular * HUNDRED)
        return PriceDecomposition(
            regular_price=regular,
            realized_unit_price=realized,
            discount_amount=discount_amount,
            discount_percentage=min(discount_percentage, HUNDRED),
            was_on_sale=SaleFlag.YES,
        )
    
    # Sold at or above regular price
    return PriceDecomposition(
        regular_price=regular,
        realized_unit_price=realized,
        discount_amount=ZERO,
        discount_percentage=ZERO,
        was_on_sale=SaleFlag.NO,
    )


def decompose_price(regular_price: Any, line_subtotal: Any, quantity: Any) -> PriceDecomposition:
    """
    Decompose a line item's pre-coupon subtotal into per-unit discount facts.
    
    Args:
        regular_price: Catalog regular price at capture time (may be absent)
        line_subtotal: Line amount before coupons
        quantity: Units on the line, must be positive
    
    Raises:
        InvalidQuantityError: If quantity is zero or negative
    """
    qty = to_decimal(quantity)
    if qty is None or qty <= ZERO:
        raise InvalidQuantityError(quantity)
    
    subtotal = to_decimal(line_subtotal) or ZERO
    return decompose_unit_price(regular_price, subtotal / qty)
