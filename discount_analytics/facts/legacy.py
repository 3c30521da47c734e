"""
Legacy Metadata Reader

Rebuilds discount facts from the per-item metadata written at capture time.
Read paths use it only while the fact store is not provisioned. The legacy
representation has no timestamp of its own, so facts inherit the order's
created_at and date filters apply to the order.
"""

from datetime import datetime
from typing import Iterable, List, Optional

import structlog

from discount_analytics.commerce.interfaces import (
    LineItemRecord,
    MetaStore,
    OrderGateway,
    OrderRecord,
)
from discount_analytics.database.models import SaleFlag
from discount_analytics.facts.fact import DiscountFact, SourcedFact, decomposition_from_meta
from discount_analytics.pricing import PriceDecomposition

logger = structlog.get_logger(__name__)


def legacy_fact(order: OrderRecord, item: LineItemRecord, decomposition: PriceDecomposition) -> DiscountFact:
    """Fact for a line item whose discount data lives in metadata"""
    return DiscountFact.from_decomposition(
        decomposition,
        order_id=order.id,
        order_item_id=item.id,
        product_id=item.product_id,
        variation_id=item.variation_id,
        quantity=item.quantity,
        currency=order.currency,
        created_at=order.created_at,
    )


class LegacyFactReader:
    """Read-only fact source over order and order item metadata"""
    
    def __init__(
        self,
        meta: MetaStore,
        orders: OrderGateway,
        fulfilling_statuses: Iterable[str] = ("processing", "completed"),
    ):
        self._meta = meta
        self._orders = orders
        self._statuses = list(fulfilling_statuses)
    
    async def _decomposition(self, order_item_id: int) -> Optional[PriceDecomposition]:
        meta = await self._meta.get_item_meta(order_item_id)
        try:
            return decomposition_from_meta(meta)
        except ValueError as e:
            logger.warning("Unreadable discount metadata", order_item_id=order_item_id, error=str(e))
            return None
    
    async def history(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        product_id: Optional[int] = None,
    ) -> List[SourcedFact]:
        """
        Discounted line items of fulfilled orders, newest order first.
        
        Only items flagged was_on_sale = yes are returned.
        """
        orders = await self._orders.list_orders(self._statuses, date_from, date_to)
        results: List[SourcedFact] = []
        
        for order in orders:
            for item in order.items():
                if product_id and item.product_id != product_id:
                    continue
                
                decomposition = await self._decomposition(item.id)
                if decomposition is None or decomposition.was_on_sale != SaleFlag.YES:
                    continue
                
                results.append(SourcedFact(
                    fact=legacy_fact(order, item, decomposition),
                    order=order,
                    item=item,
                ))
        
        logger.debug("Legacy history read", orders=len(orders), facts=len(results))
        return results
    
    async def get_by_item(self, order_item_id: int) -> Optional[DiscountFact]:
        """Fact reassembled from one item's metadata, any sale flag"""
        order_id = await self._orders.get_order_id_for_item(order_item_id)
        if order_id is None:
            return None
        
        order = await self._orders.get_order(order_id)
        if order is None:
            return None
        
        item = order.get_item(order_item_id)
        if item is None:
            return None
        
        decomposition = await self._decomposition(order_item_id)
        if decomposition is None:
            return None
        
        return legacy_fact(order, item, decomposition)
