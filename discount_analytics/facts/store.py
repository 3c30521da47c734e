"""
Discount Fact Store

Durable storage of one discount fact per order line item, with refund
supersession and a cheap provisioning probe that read paths use to choose
between this store and the legacy metadata reader.

Write failures never raise to callers: insert() returns None and
mark_refunded() returns False when the table is missing or the database
rejects the statement. Single-item reads return None or [] on database
errors; has_fact() and query_active() raise StoreUnavailableError so the
migration counts the item and reports fall back to the legacy reader.
"""

from datetime import datetime, timezone
from typing import List, Optional

import structlog
from sqlalchemy import and_, func, inspect, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from discount_analytics.database.models import (
    Base,
    DISCOUNT_TABLES,
    DiscountFactRecord,
    SaleFlag,
    SchemaVersion,
)
from discount_analytics.exceptions import StoreUnavailableError
from discount_analytics.facts.fact import DiscountFact

logger = structlog.get_logger(__name__)

SCHEMA_COMPONENT = "discount_facts"


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DiscountFactStore:
    """
    Discount fact repository.
    
    Example:
        store = DiscountFactStore(session_factory, schema_version="1.1.0")
        await store.provision()
        fact_id = await store.insert(fact)
        await store.mark_refunded(fact.order_item_id, refund_id=9)
    """
    
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        schema_version: str = "1.1.0",
    ):
        self._session_factory = session_factory
        self.target_version = schema_version
        self._provisioned = False
    
    # -------------------------------------------------------------------------
    # Provisioning
    # -------------------------------------------------------------------------
    
    async def is_provisioned(self) -> bool:
        """
        Whether the fact table exists.
        
        A positive answer is cached for the life of the store; a negative one
        is re-checked on every call so provisioning is picked up without a
        restart.
        """
        if self._provisioned:
            return True
        
        try:
            async with self._session_factory() as session:
                conn = await session.connection()
                exists = await conn.run_sync(
                    lambda sync_conn: inspect(sync_conn).has_table(DiscountFactRecord.__tablename__)
                )
        except SQLAlchemyError as e:
            logger.warning("Fact store probe failed", error=str(e))
            return False
        
        self._provisioned = bool(exists)
        return self._provisioned
    
    def reset_cache(self) -> None:
        self._provisioned = False
    
    async def require_provisioned(self) -> None:
        if not await self.is_provisioned():
            raise StoreUnavailableError("Discount fact table is not provisioned")
    
    async def provision(self) -> bool:
        """
        Create the discount tables if missing and record the schema version.
        
        Safe to run repeatedly; never drops or rewrites existing data.
        
        Returns:
            True if the fact table exists afterwards
        """
        try:
            async with self._session_factory() as session:
                conn = await session.connection()
                await conn.run_sync(
                    lambda sync_conn: Base.metadata.create_all(
                        sync_conn, tables=DISCOUNT_TABLES, checkfirst=True
                    )
                )
                
                marker = await session.get(SchemaVersion, SCHEMA_COMPONENT)
                if marker is None:
                    session.add(SchemaVersion(
                        component=SCHEMA_COMPONENT,
                        version=self.target_version,
                        applied_at=utcnow(),
                    ))
                elif marker.version != self.target_version:
                    logger.info(
                        "Upgrading fact store schema version",
                        previous=marker.version,
                        current=self.target_version,
                    )
                    marker.version = self.target_version
                    marker.applied_at = utcnow()
                
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Fact store provisioning failed", error=str(e))
            return False
        
        self.reset_cache()
        provisioned = await self.is_provisioned()
        logger.info("Fact store provisioned", version=self.target_version, success=provisioned)
        return provisioned
    
    async def deprovision(self) -> bool:
        """Drop the discount tables (uninstall only)"""
        try:
            async with self._session_factory() as session:
                conn = await session.connection()
                await conn.run_sync(
                    lambda sync_conn: Base.metadata.drop_all(
                        sync_conn, tables=DISCOUNT_TABLES, checkfirst=True
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Fact store removal failed", error=str(e))
            return False
        
        self.reset_cache()
        logger.warning("Fact store dropped")
        return True
    
    async def schema_version(self) -> Optional[str]:
        """Recorded schema version, or None when never provisioned"""
        if not await self.is_provisioned():
            return None
        try:
            async with self._session_factory() as session:
                marker = await session.get(SchemaVersion, SCHEMA_COMPONENT)
        except SQLAlchemyError as e:
            logger.warning("Schema version unreadable", error=str(e))
            return None
        return marker.version if marker else None
    
    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------
    
    async def insert(self, fact: DiscountFact) -> Optional[int]:
        """
        Persist a fact.
        
        Returns:
            The new row id, or None if the store is unavailable
        """
        if not await self.is_provisioned():
            logger.warning(
                "Fact store unavailable, fact not inserted",
                order_id=fact.order_id,
                order_item_id=fact.order_item_id,
            )
            return None
        
        record = fact.to_record()
        try:
            async with self._session_factory() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(
                "Fact insert failed",
                order_id=fact.order_id,
                order_item_id=fact.order_item_id,
                error=str(e),
            )
            return None
        
        fact.id = record.id
        return record.id
    
    async def mark_refunded(
        self,
        order_item_id: int,
        refund_id: int,
        refunded_at: Optional[datetime] = None,
    ) -> bool:
        """
        Supersede the active facts of an item with a refund.
        
        Only rows with refund_id = 0 are touched, so repeating the call is a
        no-op.
        
        Returns:
            True if at least one row changed
        """
        if refund_id <= 0:
            logger.warning("Ignoring refund without id", order_item_id=order_item_id)
            return False
        if not await self.is_provisioned():
            return False
        
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    update(DiscountFactRecord)
                    .where(
                        and_(
                            DiscountFactRecord.order_item_id == order_item_id,
                            DiscountFactRecord.refund_id == 0,
                        )
                    )
                    .values(refund_id=refund_id, refunded_at=refunded_at or utcnow())
                    .execution_options(synchronize_session=False)
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error("Refund update failed", order_item_id=order_item_id, error=str(e))
            return False
        
        changed = result.rowcount or 0
        logger.info(
            "Facts marked refunded",
            order_item_id=order_item_id,
            refund_id=refund_id,
            rows=changed,
        )
        return changed > 0
    
    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------
    
    async def get_by_item(self, order_item_id: int) -> Optional[DiscountFact]:
        """Most recent active fact for a line item, None if absent or unreadable"""
        if not await self.is_provisioned():
            return None
        
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(DiscountFactRecord)
                    .where(
                        and_(
                            DiscountFactRecord.order_item_id == order_item_id,
                            DiscountFactRecord.refund_id == 0,
                        )
                    )
                    .order_by(DiscountFactRecord.id.desc())
                    .limit(1)
                )
                record = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Fact lookup failed", order_item_id=order_item_id, error=str(e))
            return None
        
        return DiscountFact.from_record(record) if record else None
    
    async def has_fact(self, order_item_id: int) -> bool:
        """
        Whether any fact, active or refunded, exists for a line item.
        
        Raises:
            StoreUnavailableError: If the table cannot be read
        """
        if not await self.is_provisioned():
            return False
        
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(DiscountFactRecord.id)
                    .where(DiscountFactRecord.order_item_id == order_item_id)
                    .limit(1)
                )
                return result.scalar_one_or_none() is not None
        except SQLAlchemyError as e:
            logger.error("Fact lookup failed", order_item_id=order_item_id, error=str(e))
            raise StoreUnavailableError(str(e)) from e
    
    async def get_by_order(self, order_id: int) -> List[DiscountFact]:
        """Active facts of an order in insertion order"""
        if not await self.is_provisioned():
            return []
        
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(DiscountFactRecord)
                    .where(
                        and_(
                            DiscountFactRecord.order_id == order_id,
                            DiscountFactRecord.refund_id == 0,
                        )
                    )
                    .order_by(DiscountFactRecord.id)
                )
                records = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Order facts lookup failed", order_id=order_id, error=str(e))
            return []
        
        return [DiscountFact.from_record(r) for r in records]
    
    async def query_active(
        self,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        product_id: Optional[int] = None,
        on_sale_only: bool = True,
    ) -> List[DiscountFact]:
        """
        Bulk fetch for reporting, newest order first, then line item order.
        
        Duplicate captures of one item collapse to its most recent row.
        
        Raises:
            StoreUnavailableError: If the fact table is missing or unreadable
        """
        await self.require_provisioned()
        
        latest_per_item = (
            select(func.max(DiscountFactRecord.id))
            .where(DiscountFactRecord.refund_id == 0)
            .group_by(DiscountFactRecord.order_item_id)
        )
        conditions = [
            DiscountFactRecord.refund_id == 0,
            DiscountFactRecord.id.in_(latest_per_item),
        ]
        if on_sale_only:
            conditions.append(DiscountFactRecord.was_on_sale == SaleFlag.YES.value)
        if date_from is not None:
            conditions.append(DiscountFactRecord.created_at >= date_from)
        if date_to is not None:
            conditions.append(DiscountFactRecord.created_at <= date_to)
        if product_id:
            conditions.append(DiscountFactRecord.product_id == product_id)
        
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(DiscountFactRecord)
                    .where(and_(*conditions))
                    .order_by(
                        DiscountFactRecord.created_at.desc(),
                        DiscountFactRecord.order_id.desc(),
                        DiscountFactRecord.order_item_id,
                    )
                )
                records = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("Fact query failed", error=str(e))
            raise StoreUnavailableError(str(e)) from e
        
        facts = [DiscountFact.from_record(r) for r in records]
        logger.debug("Active facts fetched", count=len(facts), on_sale_only=on_sale_only)
        return facts
