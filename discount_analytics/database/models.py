"""
Database Models

Two groups of tables live here:

Host Commerce Tables (read through discount_analytics.commerce):
- Product / Category / ProductCategory: catalog with sale windows
- Order / OrderItem: order history with line subtotals and totals
- OrderItemMeta / OrderMeta: key-value metadata on items and orders

Discount Tables (owned by discount_analytics.facts):
- DiscountFactRecord: one discount fact per order line item
- SchemaVersion: provisioning version marker
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models"""
    pass


# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntPK = BigInteger().with_variant(Integer, "sqlite")

Money = Numeric(19, 4)


# =============================================================================
# ENUMERATIONS
# =============================================================================

class OrderStatus(str, Enum):
    """Order status enumeration"""
    PENDING = "pending"
    ON_HOLD = "on-hold"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    FAILED = "failed"


class ProductType(str, Enum):
    """Catalog product types"""
    SIMPLE = "simple"
    VARIABLE = "variable"
    VARIATION = "variation"
    EXTERNAL = "external"
    GROUPED = "grouped"


class SaleFlag(str, Enum):
    """Whether a line item was sold below its regular price"""
    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"


# =============================================================================
# HOST COMMERCE TABLES
# =============================================================================

class Category(Base):
    """Product category"""
    __tablename__ = "categories"
    
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    slug: Mapped[Optional[str]] = mapped_column(String(200))


class Product(Base):
    """
    Catalog Product
    
    Variations point at their variable parent through parent_id and
    carry their own prices and sale window.
    """
    __tablename__ = "products"
    
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    parent_id: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(100))
    type: Mapped[str] = mapped_column(String(20), default=ProductType.SIMPLE.value, nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="publish", nullable=False)
    
    # Pricing
    regular_price: Mapped[Optional[Decimal]] = mapped_column(Money)
    sale_price: Mapped[Optional[Decimal]] = mapped_column(Money)
    sale_from: Mapped[Optional[datetime]] = mapped_column(DateTime)
    sale_to: Mapped[Optional[datetime]] = mapped_column(DateTime)
    
    # Inventory
    stock_status: Mapped[str] = mapped_column(String(20), default="instock", nullable=False)
    stock_quantity: Mapped[Optional[int]] = mapped_column(Integer)
    
    __table_args__ = (
        Index("ix_products_parent", "parent_id"),
        Index("ix_products_type_status", "type", "status"),
    )


class ProductCategory(Base):
    """Product to category assignment"""
    __tablename__ = "product_categories"
    
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("products.id", ondelete="CASCADE"), primary_key=True
    )
    category_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("categories.id", ondelete="CASCADE"), primary_key=True
    )


class Order(Base):
    """Customer order"""
    __tablename__ = "orders"
    
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.PENDING.value, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), default="USD", nullable=False)
    total: Mapped[Decimal] = mapped_column(Money, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    
    items: Mapped[List["OrderItem"]] = relationship(
        back_populates="order", order_by="OrderItem.id", lazy="selectin"
    )
    
    __table_args__ = (
        Index("ix_orders_status", "status"),
        Index("ix_orders_created_at", "created_at"),
    )


class OrderItem(Base):
    """
    Order line item
    
    subtotal is the line amount before coupons, total after coupons.
    """
    __tablename__ = "order_items"
    
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    item_type: Mapped[str] = mapped_column(String(20), default="line_item", nullable=False)
    name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    product_id: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    variation_id: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    subtotal: Mapped[Decimal] = mapped_column(Money, default=0)
    total: Mapped[Decimal] = mapped_column(Money, default=0)
    
    order: Mapped["Order"] = relationship(back_populates="items")
    
    __table_args__ = (
        Index("ix_order_items_order", "order_id"),
    )


class OrderItemMeta(Base):
    """Key-value metadata attached to an order line item"""
    __tablename__ = "order_item_meta"
    
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    order_item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    meta_key: Mapped[str] = mapped_column(String(255), nullable=False)
    meta_value: Mapped[Optional[str]] = mapped_column(Text)
    
    __table_args__ = (
        UniqueConstraint("order_item_id", "meta_key", name="uq_order_item_meta_key"),
        Index("ix_order_item_meta_key_value", "meta_key", "meta_value"),
    )


class OrderMeta(Base):
    """Key-value metadata attached to an order"""
    __tablename__ = "order_meta"
    
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    meta_key: Mapped[str] = mapped_column(String(255), nullable=False)
    meta_value: Mapped[Optional[str]] = mapped_column(Text)
    
    __table_args__ = (
        UniqueConstraint("order_id", "meta_key", name="uq_order_meta_key"),
    )


# =============================================================================
# DISCOUNT TABLES
# =============================================================================

class DiscountFactRecord(Base):
    """
    Discount Fact Table
    
    Grain: one row per order line item per capture. Rows are immutable except
    for refund_id/refunded_at; refund_id = 0 marks the active row. Readers take
    the most recent active row per item (highest id).
    """
    __tablename__ = "discount_facts"
    
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    order_item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    product_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    variation_id: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    
    # Price decomposition
    regular_price: Mapped[Optional[Decimal]] = mapped_column(Money)
    sale_price: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)
    discount_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    quantity: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
    was_on_sale: Mapped[str] = mapped_column(String(10), default=SaleFlag.NO.value, nullable=False)
    
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    
    # Refund supersession
    refund_id: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    refunded_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    
    __table_args__ = (
        Index("ix_discount_facts_order", "order_id"),
        Index("ix_discount_facts_item", "order_item_id"),
        Index("ix_discount_facts_product", "product_id"),
        Index("ix_discount_facts_created_at", "created_at"),
        Index("ix_discount_facts_refund", "refund_id"),
    )


class SchemaVersion(Base):
    """Provisioned schema version per component"""
    __tablename__ = "discount_schema_versions"
    
    component: Mapped[str] = mapped_column(String(100), primary_key=True)
    version: Mapped[str] = mapped_column(String(20), nullable=False)
    applied_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


COMMERCE_TABLES = [
    Category.__table__,
    Product.__table__,
    ProductCategory.__table__,
    Order.__table__,
    OrderItem.__table__,
    OrderItemMeta.__table__,
    OrderMeta.__table__,
]

DISCOUNT_TABLES = [
    DiscountFactRecord.__table__,
    SchemaVersion.__table__,
]
