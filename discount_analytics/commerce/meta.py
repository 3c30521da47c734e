"""
Order and Order Item Metadata

Key-value metadata rows on orders and line items. Updates replace the value
of an existing key, so writing the same key twice keeps a single row.
"""

from typing import Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from discount_analytics.database.models import OrderItemMeta, OrderMeta


class SqlMetaStore:
    """MetaStore over the order_item_meta and order_meta tables"""
    
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory
    
    async def get_item_meta(self, order_item_id: int) -> Dict[str, str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderItemMeta.meta_key, OrderItemMeta.meta_value)
                .where(OrderItemMeta.order_item_id == order_item_id)
            )
            return {row.meta_key: row.meta_value or "" for row in result.all()}
    
    async def update_item_meta(self, order_item_id: int, values: Mapping[str, str]) -> None:
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                select(OrderItemMeta).where(
                    OrderItemMeta.order_item_id == order_item_id,
                    OrderItemMeta.meta_key.in_(list(values)),
                )
            )
            existing = {row.meta_key: row for row in result.scalars().all()}
            
            for key, value in values.items():
                if key in existing:
                    existing[key].meta_value = value
                else:
                    session.add(OrderItemMeta(order_item_id=order_item_id, meta_key=key, meta_value=value))
    
    async def find_items_with_meta(self, meta_key: str, meta_value: str) -> List[int]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderItemMeta.order_item_id)
                .where(OrderItemMeta.meta_key == meta_key, OrderItemMeta.meta_value == meta_value)
                .order_by(OrderItemMeta.order_item_id)
            )
            return list(result.scalars().all())
    
    async def get_order_meta(self, order_id: int, meta_key: str) -> Optional[str]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderMeta.meta_value)
                .where(OrderMeta.order_id == order_id, OrderMeta.meta_key == meta_key)
            )
            return result.scalar_one_or_none()
    
    async def update_order_meta(self, order_id: int, meta_key: str, meta_value: str) -> None:
        async with self._session_factory() as session, session.begin():
            result = await session.execute(
                select(OrderMeta).where(OrderMeta.order_id == order_id, OrderMeta.meta_key == meta_key)
            )
            row = result.scalar_one_or_none()
            if row is None:
                session.add(OrderMeta(order_id=order_id, meta_key=meta_key, meta_value=meta_value))
            else:
                row.meta_value = meta_value
