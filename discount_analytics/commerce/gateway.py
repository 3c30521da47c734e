"""
SQL Commerce Gateway

Async SQLAlchemy implementation of the order and catalog capability
interfaces over the host commerce tables.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from discount_analytics.commerce.interfaces import (
    CategoryRecord,
    LineItemRecord,
    OrderRecord,
    ProductRecord,
)
from discount_analytics.database.models import (
    Category,
    Order,
    OrderItem,
    Product,
    ProductCategory,
    ProductType,
)

logger = structlog.get_logger(__name__)

CATALOG_TYPES = [t.value for t in ProductType]


def _product_record(product: Product) -> ProductRecord:
    return ProductRecord(
        id=product.id,
        name=product.name,
        type=product.type,
        parent_id=product.parent_id or 0,
        sku=product.sku,
        status=product.status,
        regular_price=product.regular_price,
        sale_price=product.sale_price,
        sale_from=product.sale_from,
        sale_to=product.sale_to,
        stock_status=product.stock_status,
        stock_quantity=product.stock_quantity,
    )


def _order_record(order: Order) -> OrderRecord:
    return OrderRecord(
        id=order.id,
        status=order.status,
        currency=order.currency,
        created_at=order.created_at,
        total=order.total if order.total is not None else Decimal("0"),
        line_items=[
            LineItemRecord(
                id=item.id,
                product_id=item.product_id,
                variation_id=item.variation_id or 0,
                name=item.name,
                quantity=item.quantity,
                line_subtotal=item.subtotal,
                line_total=item.total,
            )
            for item in order.items
            if item.item_type == "line_item"
        ],
    )


class SqlCommerceGateway:
    """
    Order and catalog reads against the host commerce tables.
    
    Example:
        gateway = SqlCommerceGateway(session_factory)
        order = await gateway.get_order(42)
    """
    
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
    
    # -------------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------------
    
    async def get_order(self, order_id: int) -> Optional[OrderRecord]:
        async with self._session_factory() as session:
            order = await session.get(Order, order_id)
            if order is None:
                return None
            return _order_record(order)
    
    async def get_order_id_for_item(self, order_item_id: int) -> Optional[int]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderItem.order_id).where(OrderItem.id == order_item_id)
            )
            return result.scalar_one_or_none()
    
    async def list_orders(
        self,
        statuses: Iterable[str],
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> List[OrderRecord]:
        """Orders in the given statuses, newest first"""
        conditions = [Order.status.in_(list(statuses))]
        if created_from is not None:
            conditions.append(Order.created_at >= created_from)
        if created_to is not None:
            conditions.append(Order.created_at <= created_to)
        
        async with self._session_factory() as session:
            result = await session.execute(
                select(Order)
                .where(and_(*conditions))
                .order_by(Order.created_at.desc(), Order.id.desc())
            )
            orders = [_order_record(order) for order in result.scalars().all()]
        
        logger.debug("Orders listed", count=len(orders))
        return orders
    
    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------
    
    async def get_product(self, product_id: int) -> Optional[ProductRecord]:
        if not product_id:
            return None
        async with self._session_factory() as session:
            product = await session.get(Product, product_id)
            return _product_record(product) if product is not None else None
    
    async def list_products(
        self,
        category_id: Optional[int] = None,
        product_type: Optional[str] = None,
    ) -> List[ProductRecord]:
        """
        Published products and variations.
        
        Variations match a category through their parent product.
        """
        query = select(Product).where(
            and_(Product.status == "publish", Product.type.in_(CATALOG_TYPES))
        )
        
        if product_type:
            query = query.where(Product.type == product_type)
        
        if category_id:
            in_category = select(ProductCategory.product_id).where(
                ProductCategory.category_id == category_id
            )
            query = query.where(
                or_(
                    Product.id.in_(in_category),
                    and_(Product.parent_id != 0, Product.parent_id.in_(in_category)),
                )
            )
        
        async with self._session_factory() as session:
            result = await session.execute(query.order_by(Product.id))
            return [_product_record(p) for p in result.scalars().all()]
    
    async def get_categories_for(self, product_ids: Iterable[int]) -> Dict[int, List[CategoryRecord]]:
        """Categories per product id, in category id order"""
        ids = sorted({pid for pid in product_ids if pid})
        categories: Dict[int, List[CategoryRecord]] = defaultdict(list)
        if not ids:
            return {}
        
        async with self._session_factory() as session:
            result = await session.execute(
                select(ProductCategory.product_id, Category.id, Category.name)
                .join(Category, Category.id == ProductCategory.category_id)
                .where(ProductCategory.product_id.in_(ids))
                .order_by(ProductCategory.product_id, Category.id)
            )
            for row in result.all():
                categories[row.product_id].append(CategoryRecord(id=row.id, name=row.name))
        
        return dict(categories)
