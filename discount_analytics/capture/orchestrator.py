"""
Discount Capture Orchestrator

Turns order lifecycle events into discount facts, once per order.

For every line item of an order entering a fulfilling status the realized
price is decomposed against the catalog regular price, written to the item
metadata and inserted into the fact store. The order is then marked as
captured; the marker makes repeated or out-of-order lifecycle events no-ops.
A storage failure leaves the order unmarked so a later event retries it,
reusing any facts the failed attempt already stored.

Observers are notified after capture, order-level first and then once per
item. An observer failure is logged and never undoes a capture.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Protocol, Sequence

import structlog
from prometheus_client import Counter
from sqlalchemy.exc import SQLAlchemyError

from discount_analytics.commerce.interfaces import (
    CatalogGateway,
    LineItem,
    MetaStore,
    Order,
    OrderGateway,
)
from discount_analytics.exceptions import CaptureStorageError, InvalidQuantityError
from discount_analytics.facts.fact import (
    CAPTURED_VALUE,
    META_CAPTURED,
    DiscountFact,
    decomposition_to_meta,
)
from discount_analytics.facts.store import DiscountFactStore
from discount_analytics.pricing import PriceDecomposition, decompose_price

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

FACTS_CAPTURED = Counter(
    "discount_facts_captured_total",
    "Line items captured as discount facts",
    ["was_on_sale"],
)

ITEMS_SKIPPED = Counter(
    "discount_capture_items_skipped_total",
    "Line items skipped during capture",
    ["reason"],
)

CAPTURE_FAILURES = Counter(
    "discount_capture_failures_total",
    "Orders left uncaptured after a storage failure",
)

REFUNDS_RECORDED = Counter(
    "discount_refunds_recorded_total",
    "Discount facts superseded by refunds",
)


# =============================================================================
# OBSERVERS
# =============================================================================

class CaptureObserver(Protocol):
    """Receives capture notifications"""
    
    async def order_captured(self, order: Order, facts: Sequence[DiscountFact]) -> None:
        ...
    
    async def item_captured(
        self,
        order: Order,
        item: LineItem,
        decomposition: PriceDecomposition,
    ) -> None:
        ...


@dataclass
class CaptureResult:
    """What a capture attempt did"""
    order_id: int
    captured: bool
    facts: List[DiscountFact] = field(default_factory=list)
    skipped_item_ids: List[int] = field(default_factory=list)
    failed_item_id: Optional[int] = None
    
    @property
    def failed(self) -> bool:
        return self.failed_item_id is not None
    
    @property
    def already_captured(self) -> bool:
        return not self.captured and not self.failed
    

def normalize_status(status: Optional[str]) -> str:
    """Lowercase status without the host's "wc-" prefix"""
    status = (status or "").strip().lower()
    if status.startswith("wc-"):
        status = status[3:]
    return status


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class CaptureOrchestrator:
    """
    Subscribes to order lifecycle events and captures discount facts.
    
    Example:
        orchestrator = CaptureOrchestrator(store, meta, gateway, gateway)
        orchestrator.add_observer(my_observer)
        result = await orchestrator.on_order_status_changed(order, "pending", "processing")
    """
    
    def __init__(
        self,
        store: DiscountFactStore,
        meta: MetaStore,
        orders: OrderGateway,
        catalog: CatalogGateway,
        fulfilling_statuses: Iterable[str] = ("processing", "completed"),
        default_currency: str = "USD",
    ):
        self._store = store
        self._meta = meta
        self._orders = orders
        self._catalog = catalog
        self.fulfilling_statuses = {normalize_status(s) for s in fulfilling_statuses}
        self.default_currency = default_currency
        self._observers: List[CaptureObserver] = []
    
    def add_observer(self, observer: CaptureObserver) -> None:
        self._observers.append(observer)
    
    def remove_observer(self, observer: CaptureObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)
    
    def is_fulfilling(self, status: Optional[str]) -> bool:
        return normalize_status(status) in self.fulfilling_statuses
    
    # -------------------------------------------------------------------------
    # Lifecycle entry points
    # -------------------------------------------------------------------------
    
    async def on_order_status_changed(
        self,
        order: Order,
        old_status: Optional[str],
        new_status: str,
    ) -> Optional[CaptureResult]:
        """Capture when the order moves into a fulfilling status"""
        if not self.is_fulfilling(new_status):
            logger.debug(
                "Status change ignored",
                order_id=order.id,
                old_status=old_status,
                new_status=new_status,
            )
            return None
        return await self.on_order_reached_fulfilling_state(order)
    
    async def on_order_created(self, order: Order) -> Optional[CaptureResult]:
        """Capture orders that are created already fulfilling"""
        if not self.is_fulfilling(order.status):
            return None
        return await self.on_order_reached_fulfilling_state(order)
    
    async def capture_order_id(self, order_id: int) -> Optional[CaptureResult]:
        """Resolve an order by id and capture it; unknown ids are ignored"""
        order = await self._orders.get_order(order_id)
        if order is None:
            logger.info("Capture requested for unknown order", order_id=order_id)
            return None
        return await self.on_order_reached_fulfilling_state(order)
    
    async def on_order_reached_fulfilling_state(self, order: Order) -> CaptureResult:
        """
        Capture every line item of the order exactly once.
        
        A storage failure stops the order before the captured marker is
        written, so the next lifecycle event or backfill runs it again.
        
        Returns:
            CaptureResult; captured is False when the order was already marked
            or when an item could not be stored (failed_item_id is set)
        """
        marker = await self._meta.get_order_meta(order.id, META_CAPTURED)
        if marker == CAPTURED_VALUE:
            logger.debug("Order already captured", order_id=order.id)
            return CaptureResult(order_id=order.id, captured=False)
        
        result = CaptureResult(order_id=order.id, captured=True)
        captured_items = []
        
        for item in order.items():
            try:
                decomposition = await self._capture_item(order, item, result)
            except InvalidQuantityError:
                logger.info("Skipping line item without quantity", order_id=order.id, order_item_id=item.id)
                ITEMS_SKIPPED.labels(reason="quantity").inc()
                result.skipped_item_ids.append(item.id)
                continue
            except (SQLAlchemyError, CaptureStorageError) as e:
                logger.error(
                    "Line item capture failed, order left uncaptured",
                    order_id=order.id,
                    order_item_id=item.id,
                    error=str(e),
                )
                CAPTURE_FAILURES.inc()
                result.captured = False
                result.failed_item_id = item.id
                return result
            captured_items.append((item, decomposition))
        
        await self._meta.update_order_meta(order.id, META_CAPTURED, CAPTURED_VALUE)
        
        logger.info(
            "Order discounts captured",
            order_id=order.id,
            items=len(captured_items),
            skipped=len(result.skipped_item_ids),
            discounted=sum(1 for _, d in captured_items if d.is_discounted),
        )
        
        await self._notify(order, result.facts, captured_items)
        return result
    
    async def _capture_item(self, order: Order, item: LineItem, result: CaptureResult) -> PriceDecomposition:
        product = await self._catalog.get_product(item.variation_id or item.product_id)
        
        if product is None:
            # Deleted product: record the line without a regular price
            logger.info(
                "Product not found, capturing from line data",
                order_id=order.id,
                product_id=item.product_id,
                variation_id=item.variation_id,
            )
            decomposition = decompose_price(None, item.line_subtotal, item.quantity)
        else:
            decomposition = decompose_price(product.regular_price, item.line_subtotal, item.quantity)
        
        await self._meta.update_item_meta(item.id, decomposition_to_meta(decomposition))
        
        # Stored by an earlier attempt that failed on a later item
        fact = await self._store.get_by_item(item.id)
        if fact is not None:
            result.facts.append(fact)
            return decomposition
        
        fact = DiscountFact.from_decomposition(
            decomposition,
            order_id=order.id,
            order_item_id=item.id,
            product_id=item.product_id,
            variation_id=item.variation_id,
            quantity=item.quantity,
            currency=order.currency or self.default_currency,
            created_at=order.created_at,
        )
        if await self._store.insert(fact) is None and await self._store.is_provisioned():
            raise CaptureStorageError(order.id, item.id)
        result.facts.append(fact)
        FACTS_CAPTURED.labels(was_on_sale=decomposition.was_on_sale.value).inc()
        return decomposition
    
    async def _notify(
        self,
        order: Order,
        facts: Sequence[DiscountFact],
        captured_items: Sequence[tuple],
    ) -> None:
        for observer in list(self._observers):
            try:
                await observer.order_captured(order, facts)
            except Exception as e:
                logger.error("Order capture observer failed", order_id=order.id, error=str(e))
        
        for item, decomposition in captured_items:
            for observer in list(self._observers):
                try:
                    await observer.item_captured(order, item, decomposition)
                except Exception as e:
                    logger.error(
                        "Item capture observer failed",
                        order_id=order.id,
                        order_item_id=item.id,
                        error=str(e),
                    )
    
    # -------------------------------------------------------------------------
    # Refunds
    # -------------------------------------------------------------------------
    
    async def record_refund(
        self,
        refund_id: int,
        order_item_ids: Iterable[int],
        refunded_at: Optional[datetime] = None,
    ) -> int:
        """
        Supersede the facts of refunded line items.
        
        Returns:
            Number of items whose active fact changed
        """
        changed = 0
        for order_item_id in order_item_ids:
            if await self._store.mark_refunded(order_item_id, refund_id, refunded_at):
                changed += 1
        
        if changed:
            REFUNDS_RECORDED.inc(changed)
        logger.info("Refund recorded", refund_id=refund_id, items_changed=changed)
        return changed
