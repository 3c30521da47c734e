"""
Integration Tests - Discount Capture
"""
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from discount_analytics.database.models import SaleFlag
from discount_analytics.facts import CAPTURED_VALUE, META_CAPTURED, META_WAS_ON_SALE

pytestmark = pytest.mark.integration


class RecordingObserver:
    def __init__(self):
        self.events = []
    
    async def order_captured(self, order, facts):
        self.events.append(("order", order.id, len(facts)))
    
    async def item_captured(self, order, item, decomposition):
        self.events.append(("item", item.id, decomposition.was_on_sale.value))


class FailingObserver:
    async def order_captured(self, order, facts):
        raise RuntimeError("observer down")
    
    async def item_captured(self, order, item, decomposition):
        raise RuntimeError("observer down")


@pytest.fixture
async def mixed_order(seeder):
    """Order with a discounted line, a full price line and a deleted product"""
    on_sale = await seeder.product("Sneaker", "100", "80")
    full_price = await seeder.product("Sock", "5")
    order_id = await seeder.order([
        {"product_id": on_sale, "quantity": 2, "subtotal": "160", "total": "150"},
        {"product_id": full_price, "quantity": 3, "subtotal": "15"},
        {"product_id": 9999, "quantity": 1, "subtotal": "12", "name": "Retired hat"},
    ])
    return order_id


class TestCapture:
    
    async def test_captures_every_line(self, provisioned_context, mixed_order):
        ctx = provisioned_context
        order = await ctx.commerce.get_order(mixed_order)
        
        result = await ctx.orchestrator.on_order_reached_fulfilling_state(order)
        
        assert result.captured
        flags = [f.was_on_sale for f in result.facts]
        assert flags == [SaleFlag.YES, SaleFlag.NO, SaleFlag.UNKNOWN]
        
        stored = await ctx.store.get_by_order(mixed_order)
        assert len(stored) == 3
        discounted = stored[0]
        assert discounted.regular_price == Decimal("100")
        assert discounted.realized_unit_price == Decimal("80")
        assert discounted.discount_amount == Decimal("20")
        assert discounted.discount_percentage == Decimal("20")
        assert discounted.created_at == order.created_at
        assert stored[2].regular_price is None
        
        assert await ctx.meta.get_order_meta(mixed_order, META_CAPTURED) == CAPTURED_VALUE
        item_meta = await ctx.meta.get_item_meta(order.items()[0].id)
        assert item_meta[META_WAS_ON_SALE] == "yes"
    
    async def test_capture_is_idempotent(self, provisioned_context, mixed_order):
        ctx = provisioned_context
        order = await ctx.commerce.get_order(mixed_order)
        
        await ctx.orchestrator.on_order_reached_fulfilling_state(order)
        second = await ctx.orchestrator.on_order_reached_fulfilling_state(order)
        
        assert not second.captured
        assert second.facts == []
        assert len(await ctx.store.get_by_order(mixed_order)) == 3
    
    async def test_zero_quantity_line_skipped(self, provisioned_context, seeder):
        ctx = provisioned_context
        product = await seeder.product("Mug", "10", "8")
        order_id = await seeder.order([
            {"product_id": product, "quantity": 0, "subtotal": "0"},
            {"product_id": product, "quantity": 1, "subtotal": "8"},
        ])
        order = await ctx.commerce.get_order(order_id)
        
        result = await ctx.orchestrator.on_order_reached_fulfilling_state(order)
        
        assert result.skipped_item_ids == [order.items()[0].id]
        assert len(result.facts) == 1
        assert result.facts[0].was_on_sale == SaleFlag.YES
    
    async def test_variation_price_used(self, provisioned_context, seeder):
        ctx = provisioned_context
        parent = await seeder.product("Shirt", None, type="variable")
        variation = await seeder.product("Shirt - L", "40", "30", type="variation", parent_id=parent)
        order_id = await seeder.order([
            {"product_id": parent, "variation_id": variation, "quantity": 1, "subtotal": "30"},
        ])
        
        result = await ctx.orchestrator.capture_order_id(order_id)
        
        fact = result.facts[0]
        assert fact.product_id == parent
        assert fact.variation_id == variation
        assert fact.discount_amount == Decimal("10")
        assert fact.discount_percentage == Decimal("25")
    
    async def test_unknown_order_id_is_ignored(self, provisioned_context):
        assert await provisioned_context.orchestrator.capture_order_id(424242) is None
    
    async def test_capture_without_store_still_writes_metadata(self, context, mixed_order):
        order = await context.commerce.get_order(mixed_order)
        
        result = await context.orchestrator.on_order_reached_fulfilling_state(order)
        
        assert result.captured
        assert all(f.id is None for f in result.facts)
        legacy = await context.legacy.get_by_item(order.items()[0].id)
        assert legacy.was_on_sale == SaleFlag.YES
        assert legacy.discount_amount == Decimal("20.0000")


class TestLifecycle:
    
    @pytest.mark.parametrize("new_status,captured", [
        ("processing", True),
        ("completed", True),
        ("wc-completed", True),
        ("on-hold", False),
        ("cancelled", False),
    ])
    async def test_status_change(self, provisioned_context, mixed_order, new_status, captured):
        ctx = provisioned_context
        order = await ctx.commerce.get_order(mixed_order)
        
        result = await ctx.orchestrator.on_order_status_changed(order, "pending", new_status)
        
        assert (result is not None and result.captured) is captured
    
    async def test_created_pending_order_waits(self, provisioned_context, seeder):
        ctx = provisioned_context
        product = await seeder.product("Lamp", "60", "45")
        order_id = await seeder.order(
            [{"product_id": product, "quantity": 1, "subtotal": "45"}],
            status="pending",
        )
        order = await ctx.commerce.get_order(order_id)
        
        assert await ctx.orchestrator.on_order_created(order) is None
        assert await ctx.store.get_by_order(order_id) == []


class TestObservers:
    
    async def test_order_notification_precedes_items(self, provisioned_context, mixed_order):
        ctx = provisioned_context
        observer = RecordingObserver()
        ctx.orchestrator.add_observer(observer)
        order = await ctx.commerce.get_order(mixed_order)
        
        await ctx.orchestrator.on_order_reached_fulfilling_state(order)
        
        assert observer.events[0] == ("order", mixed_order, 3)
        assert [e[2] for e in observer.events[1:]] == ["yes", "no", "unknown"]
    
    async def test_observer_failure_does_not_fail_capture(self, provisioned_context, mixed_order):
        ctx = provisioned_context
        ctx.orchestrator.add_observer(FailingObserver())
        recorder = RecordingObserver()
        ctx.orchestrator.add_observer(recorder)
        order = await ctx.commerce.get_order(mixed_order)
        
        result = await ctx.orchestrator.on_order_reached_fulfilling_state(order)
        
        assert result.captured
        assert len(recorder.events) == 4


class TestStorageFailures:
    
    async def test_catalog_error_leaves_order_retryable(self, provisioned_context, seeder, monkeypatch):
        ctx = provisioned_context
        boots = await seeder.product("Boots", "120", "90")
        scarf = await seeder.product("Scarf", "30", "24")
        order_id = await seeder.order([
            {"product_id": boots, "quantity": 1, "subtotal": "90"},
            {"product_id": scarf, "quantity": 1, "subtotal": "24"},
        ])
        order = await ctx.commerce.get_order(order_id)
        scarf_item = order.items()[1].id
        
        real_get_product = ctx.commerce.get_product
        outages = {scarf: 1}
        
        async def flaky_get_product(product_id):
            if outages.get(product_id):
                outages[product_id] -= 1
                raise OperationalError("SELECT products", {}, Exception("connection reset"))
            return await real_get_product(product_id)
        
        monkeypatch.setattr(ctx.commerce, "get_product", flaky_get_product)
        recorder = RecordingObserver()
        ctx.orchestrator.add_observer(recorder)
        
        first = await ctx.orchestrator.on_order_reached_fulfilling_state(order)
        
        assert not first.captured
        assert first.failed_item_id == scarf_item
        assert not first.already_captured
        assert recorder.events == []
        assert await ctx.meta.get_order_meta(order_id, META_CAPTURED) is None
        
        retry = await ctx.orchestrator.on_order_reached_fulfilling_state(order)
        
        assert retry.captured
        assert len(retry.facts) == 2
        stored = await ctx.store.get_by_order(order_id)
        assert [f.product_id for f in stored] == [boots, scarf]
        assert await ctx.meta.get_order_meta(order_id, META_CAPTURED) == CAPTURED_VALUE
    
    async def test_rejected_insert_leaves_order_retryable(self, provisioned_context, mixed_order, monkeypatch):
        ctx = provisioned_context
        order = await ctx.commerce.get_order(mixed_order)
        
        real_insert = ctx.store.insert
        rejections = [None]
        
        async def rejecting_insert(fact):
            if rejections:
                return rejections.pop()
            return await real_insert(fact)
        
        monkeypatch.setattr(ctx.store, "insert", rejecting_insert)
        
        first = await ctx.orchestrator.on_order_reached_fulfilling_state(order)
        
        assert not first.captured
        assert first.failed_item_id == order.items()[0].id
        assert first.facts == []
        assert await ctx.store.get_by_order(mixed_order) == []
        
        retry = await ctx.orchestrator.on_order_reached_fulfilling_state(order)
        
        assert retry.captured
        assert len(await ctx.store.get_by_order(mixed_order)) == 3
        again = await ctx.orchestrator.on_order_reached_fulfilling_state(order)
        assert again.already_captured


class TestRefundChannel:
    
    async def test_record_refund(self, provisioned_context, mixed_order):
        ctx = provisioned_context
        order = await ctx.commerce.get_order(mixed_order)
        await ctx.orchestrator.on_order_reached_fulfilling_state(order)
        item_ids = [item.id for item in order.items()]
        
        changed = await ctx.orchestrator.record_refund(12, item_ids[:2], datetime(2024, 3, 20))
        again = await ctx.orchestrator.record_refund(13, item_ids[:2])
        
        assert changed == 2
        assert again == 0
        remaining = await ctx.store.get_by_order(mixed_order)
        assert [f.order_item_id for f in remaining] == [item_ids[2]]
