"""
Discount Report Service

Builds the current-discounts, history and summary reports and their CSV
exports.

History and summary read from the fact store when it is provisioned and
from the legacy item metadata otherwise; the choice is made once per
report. Every report scans, filters and sorts in full before paginating.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

import structlog

from discount_analytics.commerce.interfaces import CatalogGateway, OrderGateway, ProductRecord
from discount_analytics.config.settings import DiscountSettings
from discount_analytics.exceptions import InvalidReportError, StoreUnavailableError
from discount_analytics.facts.fact import SourcedFact
from discount_analytics.facts.legacy import LegacyFactReader
from discount_analytics.facts.store import DiscountFactStore
from discount_analytics.reporting.aggregation import DiscountSummary, group_history, summarize
from discount_analytics.reporting.current_discounts import (
    CurrentDiscountRow,
    current_discounts,
    sort_current_discounts,
)
from discount_analytics.reporting.export import (
    CsvExport,
    current_discounts_csv,
    export_filename,
    history_csv,
    summary_csv,
)
from discount_analytics.reporting.filters import (
    DateRange,
    GroupBy,
    ReportPage,
    SortOrder,
    clamp_per_page,
    paginate,
)
from discount_analytics.reporting.rows import HistoryRow, history_row

logger = structlog.get_logger(__name__)


class HistorySource(str, Enum):
    """Where history facts are read from"""
    FACT_STORE = "fact_store"
    LEGACY_META = "legacy_meta"


class ExportType(str, Enum):
    CURRENT_DISCOUNTS = "current-discounts"
    DISCOUNT_HISTORY = "discount-history"
    DISCOUNT_SUMMARY = "discount-summary"


class DiscountReportService:
    """
    Report queries over the fact store or its legacy fallback.
    
    Example:
        service = DiscountReportService(store, legacy, gateway, gateway, settings.discounts)
        page = await service.discount_history(group_by="product")
    """
    
    def __init__(
        self,
        store: DiscountFactStore,
        legacy: LegacyFactReader,
        orders: OrderGateway,
        catalog: CatalogGateway,
        settings: Optional[DiscountSettings] = None,
    ):
        self._store = store
        self._legacy = legacy
        self._orders = orders
        self._catalog = catalog
        self.settings = settings or DiscountSettings()
    
    async def history_source(self) -> HistorySource:
        if await self._store.is_provisioned():
            return HistorySource.FACT_STORE
        return HistorySource.LEGACY_META
    
    # -------------------------------------------------------------------------
    # Current discounts
    # -------------------------------------------------------------------------
    
    async def current_discount_rows(
        self,
        category: int = 0,
        product_type: str = "",
        discount_min: float = 0,
        discount_max: float = 100,
        sale_status: str = "all",
        orderby: str = "discount_pct",
        order: str = "DESC",
    ) -> List[CurrentDiscountRow]:
        """Catalog items currently priced below regular price, sorted"""
        sort_order = SortOrder.parse(order)
        products = await self._catalog.list_products(
            category_id=category or None,
            product_type=product_type or None,
        )
        
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        rows = current_discounts(products, now, discount_min, discount_max, sale_status)
        return sort_current_discounts(rows, orderby, sort_order)
    
    async def current_discounts(
        self,
        page: int = 1,
        per_page: Optional[int] = None,
        **filters,
    ) -> ReportPage:
        rows = await self.current_discount_rows(**filters)
        return paginate([row.to_dict() for row in rows], page, self._per_page(per_page))
    
    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------
    
    async def history_rows(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        product_id: int = 0,
        category: int = 0,
    ) -> Tuple[HistorySource, List[HistoryRow]]:
        """Discounted line items matching the filters, newest first"""
        dates = DateRange.parse(date_from, date_to)
        source = await self.history_source()
        
        sourced: List[SourcedFact] = []
        if source == HistorySource.FACT_STORE:
            try:
                sourced = await self._store_facts(dates, product_id)
            except StoreUnavailableError:
                logger.warning("Fact store disappeared, reading legacy metadata")
                self._store.reset_cache()
                source = HistorySource.LEGACY_META
        
        if source == HistorySource.LEGACY_META:
            sourced = await self._legacy.history(dates.start, dates.end, product_id or None)
        
        if category:
            categories = await self._catalog.get_categories_for(s.fact.product_id for s in sourced)
            sourced = [
                s for s in sourced
                if any(c.id == category for c in categories.get(s.fact.product_id, ()))
            ]
        
        names = await self._product_names(sourced)
        rows = [history_row(s, names[s.fact.product_id]) for s in sourced]
        logger.debug("History rows built", source=source.value, rows=len(rows))
        return source, rows
    
    async def _store_facts(self, dates: DateRange, product_id: int) -> List[SourcedFact]:
        facts = await self._store.query_active(dates.start, dates.end, product_id or None)
        
        orders = {}
        sourced = []
        for fact in facts:
            if fact.order_id not in orders:
                orders[fact.order_id] = await self._orders.get_order(fact.order_id)
            order = orders[fact.order_id]
            if order is None:
                continue
            sourced.append(SourcedFact(fact=fact, order=order, item=order.get_item(fact.order_item_id)))
        return sourced
    
    async def _product_names(self, sourced: List[SourcedFact]) -> Dict[int, str]:
        products: Dict[int, Optional[ProductRecord]] = {}
        names: Dict[int, str] = {}
        for s in sourced:
            product_id = s.fact.product_id
            if product_id in names:
                continue
            if product_id not in products:
                products[product_id] = await self._catalog.get_product(product_id)
            product = products[product_id]
            if product is not None:
                names[product_id] = product.name
            elif s.item is not None and s.item.name:
                names[product_id] = s.item.name
            else:
                names[product_id] = f"Product #{product_id}"
        return names
    
    async def discount_history(
        self,
        page: int = 1,
        per_page: Optional[int] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        product_id: int = 0,
        category: int = 0,
        group_by: Optional[str] = "",
    ) -> ReportPage:
        """History rows, or group rows when group_by is set"""
        grouping = GroupBy.parse(group_by)
        _, rows = await self.history_rows(date_from, date_to, product_id, category)
        
        categories = None
        if grouping == GroupBy.CATEGORY:
            categories = await self._catalog.get_categories_for(row.product_id for row in rows)
        items = group_history(rows, grouping, categories)
        return paginate(items, page, self._per_page(per_page))
    
    # -------------------------------------------------------------------------
    # Summary
    # -------------------------------------------------------------------------
    
    async def discount_summary(
        self,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
    ) -> DiscountSummary:
        _, rows = await self.history_rows(date_from, date_to)
        return summarize(rows, self.settings.top_products_limit)
    
    # -------------------------------------------------------------------------
    # Export
    # -------------------------------------------------------------------------
    
    async def export_csv(self, export_type: str, **filters) -> CsvExport:
        """
        Whole report as CSV.
        
        Raises:
            InvalidReportError: For an unknown export type
        """
        try:
            kind = ExportType(export_type)
        except ValueError:
            raise InvalidReportError("Invalid export type.") from None
        
        for param in ("page", "per_page"):
            filters.pop(param, None)
        
        if kind == ExportType.CURRENT_DISCOUNTS:
            content = current_discounts_csv(await self.current_discount_rows(**filters))
        elif kind == ExportType.DISCOUNT_HISTORY:
            # Exports are always ungrouped line rows
            filters.pop("group_by", None)
            _, rows = await self.history_rows(**filters)
            content = history_csv(rows)
        else:
            summary = await self.discount_summary(
                date_from=filters.get("date_from"),
                date_to=filters.get("date_to"),
            )
            content = summary_csv(summary)
        
        logger.info("Report exported", export_type=kind.value)
        return CsvExport(filename=export_filename(kind.value), content=content)
    
    def _per_page(self, per_page: Optional[int]) -> int:
        return clamp_per_page(per_page, self.settings.default_per_page, self.settings.max_per_page)
