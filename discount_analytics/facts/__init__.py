"""
Discount Facts Module
"""
from .fact import (
    CAPTURED_VALUE,
    META_CAPTURED,
    META_DISCOUNT_AMOUNT,
    META_DISCOUNT_PCT,
    META_REGULAR_PRICE,
    META_SALE_PRICE,
    META_WAS_ON_SALE,
    DiscountFact,
    SourcedFact,
    decomposition_from_meta,
    decomposition_to_meta,
)
from .legacy import LegacyFactReader
from .migration import LegacyFactMigrator, MigrationSummary
from .store import DiscountFactStore

__all__ = [
    "CAPTURED_VALUE",
    "META_CAPTURED",
    "META_DISCOUNT_AMOUNT",
    "META_DISCOUNT_PCT",
    "META_REGULAR_PRICE",
    "META_SALE_PRICE",
    "META_WAS_ON_SALE",
    "DiscountFact",
    "SourcedFact",
    "decomposition_from_meta",
    "decomposition_to_meta",
    "LegacyFactReader",
    "LegacyFactMigrator",
    "MigrationSummary",
    "DiscountFactStore",
]
