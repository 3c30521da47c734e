"""
Host Commerce Module
"""
from .gateway import SqlCommerceGateway
from .interfaces import (
    CatalogGateway,
    CategoryRecord,
    LineItem,
    LineItemRecord,
    MetaStore,
    Order,
    OrderGateway,
    OrderRecord,
    ProductRecord,
)
from .meta import SqlMetaStore

__all__ = [
    "SqlCommerceGateway",
    "SqlMetaStore",
    "CatalogGateway",
    "CategoryRecord",
    "LineItem",
    "LineItemRecord",
    "MetaStore",
    "Order",
    "OrderGateway",
    "OrderRecord",
    "ProductRecord",
]
