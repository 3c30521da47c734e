"""
Application Context

Wires the discount components around one session factory. The API keeps a
single context on app.state; the admin script and maintenance flow build
their own.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from discount_analytics.capture import CaptureOrchestrator
from discount_analytics.commerce import SqlCommerceGateway, SqlMetaStore
from discount_analytics.config import Settings, get_settings
from discount_analytics.facts import DiscountFactStore, LegacyFactMigrator, LegacyFactReader
from discount_analytics.reporting import DiscountReportService


@dataclass
class AppContext:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    store: DiscountFactStore
    commerce: SqlCommerceGateway
    meta: SqlMetaStore
    legacy: LegacyFactReader
    orchestrator: CaptureOrchestrator
    reports: DiscountReportService
    migrator: LegacyFactMigrator
    
    @classmethod
    def build(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings = None,
    ) -> "AppContext":
        settings = settings or get_settings()
        discounts = settings.discounts
        
        store = DiscountFactStore(session_factory, schema_version=discounts.schema_version)
        commerce = SqlCommerceGateway(session_factory)
        meta = SqlMetaStore(session_factory)
        legacy = LegacyFactReader(meta, commerce, discounts.fulfilling_statuses)
        
        return cls(
            settings=settings,
            session_factory=session_factory,
            store=store,
            commerce=commerce,
            meta=meta,
            legacy=legacy,
            orchestrator=CaptureOrchestrator(
                store,
                meta,
                commerce,
                commerce,
                fulfilling_statuses=discounts.fulfilling_statuses,
                default_currency=discounts.default_currency,
            ),
            reports=DiscountReportService(store, legacy, commerce, commerce, discounts),
            migrator=LegacyFactMigrator(store, meta, commerce),
        )
