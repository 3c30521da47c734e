"""
Legacy Metadata Migration

Copies discount facts that only exist as per-item metadata into the fact
store. One pass over every item flagged was_on_sale = yes; a bad record is
counted and skipped, never fatal, and re-running the pass is safe.
"""

from dataclasses import dataclass, field
from typing import List

import structlog
from prometheus_client import Counter
from sqlalchemy.exc import SQLAlchemyError

from discount_analytics.commerce.interfaces import MetaStore, OrderGateway
from discount_analytics.database.models import SaleFlag
from discount_analytics.exceptions import StoreUnavailableError
from discount_analytics.facts.fact import (
    META_WAS_ON_SALE,
    DiscountFact,
    decomposition_from_meta,
)
from discount_analytics.facts.store import DiscountFactStore
from discount_analytics.pricing import decompose_unit_price

logger = structlog.get_logger(__name__)


# =============================================================================
# METRICS
# =============================================================================

MIGRATION_RECORDS = Counter(
    "discount_migration_records_total",
    "Legacy metadata records processed by the migration",
    ["outcome"],
)


@dataclass
class MigrationSummary:
    """Outcome of one migration pass"""
    success: bool
    migrated: int = 0
    skipped: int = 0
    errors: int = 0
    message: str = ""
    error_details: List[str] = field(default_factory=list)
    
    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "migrated": self.migrated,
            "skipped": self.skipped,
            "errors": self.errors,
            "message": self.message,
        }


class LegacyFactMigrator:
    """Moves metadata-only discount facts into the fact store"""
    
    def __init__(self, store: DiscountFactStore, meta: MetaStore, orders: OrderGateway):
        self._store = store
        self._meta = meta
        self._orders = orders
    
    async def run(self) -> MigrationSummary:
        """
        Migrate every legacy item flagged as discounted.
        
        Returns:
            MigrationSummary; success is False only when the store is missing
        """
        if not await self._store.is_provisioned():
            logger.warning("Migration aborted, fact store not provisioned")
            return MigrationSummary(success=False, message="Discount fact table does not exist.")
        
        item_ids = await self._meta.find_items_with_meta(META_WAS_ON_SALE, SaleFlag.YES.value)
        summary = MigrationSummary(success=True)
        
        if not item_ids:
            summary.message = "No discount data found to migrate."
            return summary
        
        logger.info("Migration started", candidates=len(item_ids))
        
        for order_item_id in item_ids:
            try:
                outcome = await self._migrate_item(order_item_id)
            except (SQLAlchemyError, StoreUnavailableError, ValueError) as e:
                logger.error("Migration record failed", order_item_id=order_item_id, error=str(e))
                summary.error_details.append(f"item {order_item_id}: {e}")
                outcome = "error"
            
            if outcome == "migrated":
                summary.migrated += 1
            elif outcome == "skipped":
                summary.skipped += 1
            else:
                summary.errors += 1
            MIGRATION_RECORDS.labels(outcome=outcome).inc()
        
        summary.message = (
            f"Migration complete: {summary.migrated} migrated, "
            f"{summary.skipped} skipped, {summary.errors} errors."
        )
        logger.info(
            "Migration finished",
            migrated=summary.migrated,
            skipped=summary.skipped,
            errors=summary.errors,
        )
        return summary
    
    async def _migrate_item(self, order_item_id: int) -> str:
        # Refunded facts count as migrated too
        if await self._store.has_fact(order_item_id):
            return "skipped"
        
        order_id = await self._orders.get_order_id_for_item(order_item_id)
        if order_id is None:
            logger.warning("Legacy item has no order", order_item_id=order_item_id)
            return "error"
        
        order = await self._orders.get_order(order_id)
        if order is None:
            logger.warning("Legacy item order missing", order_item_id=order_item_id, order_id=order_id)
            return "error"
        
        item = order.get_item(order_item_id)
        if item is None:
            logger.warning("Legacy item missing from order", order_item_id=order_item_id, order_id=order_id)
            return "error"
        
        legacy = decomposition_from_meta(await self._meta.get_item_meta(order_item_id))
        if legacy is None or legacy.was_on_sale != SaleFlag.YES:
            return "skipped"
        
        decomposition = decompose_unit_price(legacy.regular_price, legacy.realized_unit_price)
        fact = DiscountFact.from_decomposition(
            decomposition,
            order_id=order.id,
            order_item_id=item.id,
            product_id=item.product_id,
            variation_id=item.variation_id,
            quantity=item.quantity,
            currency=order.currency,
            created_at=order.created_at,
        )
        
        if await self._store.insert(fact) is None:
            return "error"
        return "migrated"
