"""
Unit Tests - Price Decomposition
"""
from decimal import Decimal

import pytest

from discount_analytics.database.models import SaleFlag
from discount_analytics.exceptions import InvalidQuantityError
from discount_analytics.facts import (
    META_REGULAR_PRICE,
    META_WAS_ON_SALE,
    decomposition_from_meta,
    decomposition_to_meta,
)
from discount_analytics.pricing import decompose_price, decompose_unit_price, to_decimal


class TestDecomposePrice:
    """Tests for decompose_price"""
    
    def test_discounted_line(self):
        result = decompose_price("100", "160", 2)
        
        assert result.was_on_sale == SaleFlag.YES
        assert result.realized_unit_price == Decimal("80")
        assert result.discount_amount == Decimal("20.0000")
        assert result.discount_percentage == Decimal("20.00")
        assert result.is_discounted
    
    def test_full_price_line(self):
        result = decompose_price("50", "50", 1)
        
        assert result.was_on_sale == SaleFlag.NO
        assert result.discount_amount == 0
        assert result.discount_percentage == 0
    
    def test_price_above_regular_is_not_a_negative_discount(self):
        result = decompose_price("40", "90", 2)
        
        assert result.was_on_sale == SaleFlag.NO
        assert result.discount_amount == 0
        assert result.discount_percentage == 0
        assert result.realized_unit_price == Decimal("45")
    
    @pytest.mark.parametrize("regular", [None, "", "0", "-5"])
    def test_missing_regular_price_is_unknown(self, regular):
        result = decompose_price(regular, "30", 3)
        
        assert result.was_on_sale == SaleFlag.UNKNOWN
        assert result.discount_amount == 0
        assert result.discount_percentage == 0
        assert result.realized_unit_price == Decimal("10")
    
    @pytest.mark.parametrize("quantity", [0, -1, "0", None])
    def test_non_positive_quantity_rejected(self, quantity):
        with pytest.raises(InvalidQuantityError) as exc_info:
            decompose_price("10", "10", quantity)
        
        assert isinstance(exc_info.value, ValueError)
    
    def test_repeating_unit_price_rounding(self):
        # 20 / 3 = 6.666...
        result = decompose_price("10", "20", 3)
        
        assert result.discount_amount == Decimal("3.3333")
        assert result.discount_percentage == Decimal("33.33")
    
    def test_rounding_is_half_up(self):
        result = decompose_unit_price("1", "0.99995")
        
        assert result.discount_amount == Decimal("0.0001")
        assert result.discount_percentage == Decimal("0.01")
    
    def test_percentage_within_bounds(self):
        result = decompose_price("25", "0", 1)
        
        assert result.was_on_sale == SaleFlag.YES
        assert result.discount_amount == Decimal("25.0000")
        assert result.discount_percentage == Decimal("100.00")
    
    def test_negative_subtotal_discount_capped_at_regular_price(self):
        result = decompose_price("50", "-20", 1)
        
        assert result.was_on_sale == SaleFlag.YES
        assert result.realized_unit_price == 0
        assert result.discount_amount == Decimal("50.0000")
        assert result.discount_percentage == Decimal("100.00")


class TestToDecimal:
    """Tests for price coercion"""
    
    def test_float_keeps_its_printed_value(self):
        assert to_decimal(19.99) == Decimal("19.99")
    
    def test_blank_is_absent(self):
        assert to_decimal("  ") is None
        assert to_decimal(None) is None
    
    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            to_decimal("twelve")


class TestItemMetadata:
    """Tests for the per-item metadata representation"""
    
    def test_unknown_regular_price_stored_as_empty_string(self):
        meta = decomposition_to_meta(decompose_price(None, "12", 1))
        
        assert meta[META_REGULAR_PRICE] == ""
        assert meta[META_WAS_ON_SALE] == "unknown"
    
    def test_reassembles_stored_values(self):
        original = decompose_price("10", "20", 3)
        restored = decomposition_from_meta(decomposition_to_meta(original))
        
        assert restored == original
    
    def test_uncaptured_item_has_no_decomposition(self):
        assert decomposition_from_meta({}) is None
        assert decomposition_from_meta({"_other": "x"}) is None
