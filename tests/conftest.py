"""
Test Suite Configuration
"""
from datetime import datetime
from decimal import Decimal
from typing import AsyncGenerator, Iterable, List, Optional

import jwt
import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from discount_analytics.config import Settings, get_settings
from discount_analytics.context import AppContext
from discount_analytics.database import COMMERCE_TABLES, Base, build_session_factory
from discount_analytics.database.models import (
    Category,
    Order,
    OrderItem,
    Product,
    ProductCategory,
)


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Application settings as the code under test sees them"""
    return get_settings()


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory database holding only the host commerce tables"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=COMMERCE_TABLES)
    
    yield engine
    
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return build_session_factory(test_engine)


@pytest.fixture
def context(session_factory, test_settings) -> AppContext:
    """Context whose fact store is not provisioned yet"""
    return AppContext.build(session_factory, test_settings)


@pytest.fixture
async def provisioned_context(context) -> AppContext:
    assert await context.store.provision()
    return context


class CommerceSeeder:
    """Writes host catalog and order rows"""
    
    def __init__(self, session_factory):
        self._session_factory = session_factory
    
    async def category(self, name: str) -> int:
        async with self._session_factory() as session:
            category = Category(name=name, slug=name.lower().replace(" ", "-"))
            session.add(category)
            await session.commit()
            return category.id
    
    async def product(
        self,
        name: str,
        regular_price: Optional[str] = None,
        sale_price: Optional[str] = None,
        *,
        type: str = "simple",
        parent_id: int = 0,
        sku: Optional[str] = None,
        status: str = "publish",
        sale_from: Optional[datetime] = None,
        sale_to: Optional[datetime] = None,
        stock_quantity: Optional[int] = None,
        categories: Iterable[int] = (),
    ) -> int:
        async with self._session_factory() as session:
            product = Product(
                name=name,
                type=type,
                parent_id=parent_id,
                sku=sku,
                status=status,
                regular_price=Decimal(regular_price) if regular_price is not None else None,
                sale_price=Decimal(sale_price) if sale_price is not None else None,
                sale_from=sale_from,
                sale_to=sale_to,
                stock_status="instock",
                stock_quantity=stock_quantity,
            )
            session.add(product)
            await session.flush()
            for category_id in categories:
                session.add(ProductCategory(product_id=product.id, category_id=category_id))
            await session.commit()
            return product.id
    
    async def order(
        self,
        items: List[dict],
        *,
        status: str = "processing",
        currency: str = "USD",
        created_at: datetime = datetime(2024, 3, 15, 10, 30),
    ) -> int:
        """
        items: dicts with product_id, quantity, subtotal and optionally
        variation_id, total and name
        """
        async with self._session_factory() as session:
            order = Order(status=status, currency=currency, created_at=created_at, total=Decimal("0"))
            session.add(order)
            await session.flush()
            
            total = Decimal("0")
            for line in items:
                line_total = Decimal(str(line.get("total", line["subtotal"])))
                total += line_total
                session.add(OrderItem(
                    order_id=order.id,
                    name=line.get("name", f"Item {line['product_id']}"),
                    product_id=line["product_id"],
                    variation_id=line.get("variation_id", 0),
                    quantity=Decimal(str(line["quantity"])),
                    subtotal=Decimal(str(line["subtotal"])),
                    total=line_total,
                ))
            order.total = total
            await session.commit()
            return order.id


@pytest.fixture
def seeder(session_factory) -> CommerceSeeder:
    return CommerceSeeder(session_factory)


@pytest.fixture
def make_token(test_settings):
    """Build a signed bearer token with the given scopes"""
    def _make(scopes: Iterable[str] = (), secret: Optional[str] = None, sub: str = "shop-manager") -> str:
        security = test_settings.security
        return jwt.encode(
            {"sub": sub, "scopes": list(scopes)},
            secret or security.jwt_secret_key.get_secret_value(),
            algorithm=security.jwt_algorithm,
        )
    return _make
