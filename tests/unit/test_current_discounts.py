"""
Unit Tests - Current Discounts
"""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from discount_analytics.commerce import ProductRecord
from discount_analytics.exceptions import InvalidReportError
from discount_analytics.reporting import SortOrder, current_discounts, sort_current_discounts

NOW = datetime(2024, 6, 1, 12, 0)


def product(id=1, regular="100", sale="80", **kwargs) -> ProductRecord:
    return ProductRecord(
        id=id,
        name=kwargs.pop("name", f"Product {id}"),
        regular_price=Decimal(regular) if regular is not None else None,
        sale_price=Decimal(sale) if sale is not None else None,
        **kwargs,
    )


class TestCurrentDiscounts:
    """Tests for the current discounts snapshot"""
    
    def test_active_sale(self):
        rows = current_discounts(
            [product(sale_from=NOW - timedelta(days=1), sale_to=NOW + timedelta(days=1))],
            NOW,
        )
        
        assert len(rows) == 1
        row = rows[0]
        assert row.discount_amount == 20.00
        assert row.discount_pct == 20.00
        assert row.sale_status == "active"
        assert row.sale_start == "2024-05-31 12:00:00"
    
    def test_equal_prices_excluded(self):
        assert current_discounts([product(regular="50", sale="50")], NOW) == []
    
    @pytest.mark.parametrize("regular,sale", [("50", None), ("50", "0"), ("0", "10"), (None, "10"), ("20", "30")])
    def test_not_discounted_excluded(self, regular, sale):
        assert current_discounts([product(regular=regular, sale=sale)], NOW) == []
    
    def test_sale_window_status(self):
        rows = current_discounts(
            [
                product(id=1, sale_from=NOW + timedelta(days=2)),
                product(id=2, sale_to=NOW - timedelta(days=2)),
                product(id=3),
            ],
            NOW,
        )
        
        assert {r.id: r.sale_status for r in rows} == {1: "scheduled", 2: "expired", 3: "active"}
    
    def test_status_filter(self):
        rows = current_discounts(
            [product(id=1, sale_from=NOW + timedelta(days=2)), product(id=2)],
            NOW,
            status_filter="scheduled",
        )
        
        assert [r.id for r in rows] == [1]
    
    def test_unknown_status_filter_rejected(self):
        with pytest.raises(InvalidReportError):
            current_discounts([product()], NOW, status_filter="soon")
    
    def test_discount_range_filter(self):
        rows = current_discounts(
            [product(id=1, sale="90"), product(id=2, sale="50"), product(id=3, sale="70")],
            NOW,
            discount_min=15,
            discount_max=40,
        )
        
        assert [r.id for r in rows] == [3]
    
    def test_variation_reports_parent(self):
        rows = current_discounts([product(id=9, type="variation", parent_id=4)], NOW)
        
        assert rows[0].parent_id == 4
        assert rows[0].type == "variation"
    
    def test_amounts_rounded_to_cents(self):
        row = current_discounts([product(regular="3", sale="2")], NOW)[0]
        
        assert row.discount_amount == 1.0
        assert row.discount_pct == 33.33


class TestSortCurrentDiscounts:
    """Tests for current discount ordering"""
    
    @pytest.fixture
    def rows(self):
        return current_discounts(
            [
                product(id=1, sale="90", name="Beta"),
                product(id=2, sale="50", name="Alpha"),
                product(id=3, sale="70", name="Gamma"),
            ],
            NOW,
        )
    
    def test_default_descending_discount(self, rows):
        assert [r.id for r in sort_current_discounts(rows)] == [2, 3, 1]
    
    def test_ascending_by_name(self, rows):
        result = sort_current_discounts(rows, "name", SortOrder.ASC)
        
        assert [r.name for r in result] == ["Alpha", "Beta", "Gamma"]
    
    def test_unknown_field_keeps_order(self, rows):
        assert [r.id for r in sort_current_discounts(rows, "popularity")] == [1, 2, 3]
    
    def test_missing_values_sort_first_ascending(self):
        rows = current_discounts([product(id=1, sku="B-1"), product(id=2, sku=None)], NOW)
        
        assert [r.id for r in sort_current_discounts(rows, "sku", SortOrder.ASC)] == [2, 1]
