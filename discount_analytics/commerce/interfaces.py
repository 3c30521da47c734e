"""
Host Commerce Capability Interfaces

The discount core never touches host tables directly. Order lifecycle,
catalog and metadata access go through these narrow protocols, which the
SQL gateway implements and which host integrations may implement themselves.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Sequence


class LineItem(Protocol):
    """Order line item as seen by the discount core"""
    id: int
    product_id: int
    variation_id: int
    name: str
    quantity: Decimal
    line_subtotal: Decimal
    line_total: Decimal


class Order(Protocol):
    """Order as seen by the discount core"""
    id: int
    status: str
    currency: str
    created_at: datetime
    total: Decimal
    
    def items(self) -> Sequence[LineItem]:
        ...


@dataclass(frozen=True)
class CategoryRecord:
    """Product category"""
    id: int
    name: str


@dataclass
class ProductRecord:
    """Catalog product snapshot"""
    id: int
    name: str
    type: str = "simple"
    parent_id: int = 0
    sku: Optional[str] = None
    status: str = "publish"
    regular_price: Optional[Decimal] = None
    sale_price: Optional[Decimal] = None
    sale_from: Optional[datetime] = None
    sale_to: Optional[datetime] = None
    stock_status: str = "instock"
    stock_quantity: Optional[int] = None


@dataclass
class LineItemRecord:
    """Concrete LineItem"""
    id: int
    product_id: int
    variation_id: int = 0
    name: str = ""
    quantity: Decimal = Decimal("0")
    line_subtotal: Decimal = Decimal("0")
    line_total: Decimal = Decimal("0")


@dataclass
class OrderRecord:
    """Concrete Order"""
    id: int
    status: str
    currency: str
    created_at: datetime
    total: Decimal = Decimal("0")
    line_items: List[LineItemRecord] = field(default_factory=list)
    
    def items(self) -> List[LineItemRecord]:
        return list(self.line_items)
    
    def get_item(self, item_id: int) -> Optional[LineItemRecord]:
        for item in self.line_items:
            if item.id == item_id:
                return item
        return None


class OrderGateway(Protocol):
    """Read access to the host order store"""
    
    async def get_order(self, order_id: int) -> Optional[OrderRecord]:
        ...
    
    async def get_order_id_for_item(self, order_item_id: int) -> Optional[int]:
        ...
    
    async def list_orders(
        self,
        statuses: Iterable[str],
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
    ) -> List[OrderRecord]:
        ...


class CatalogGateway(Protocol):
    """Read access to the host product catalog"""
    
    async def get_product(self, product_id: int) -> Optional[ProductRecord]:
        ...
    
    async def list_products(
        self,
        category_id: Optional[int] = None,
        product_type: Optional[str] = None,
    ) -> List[ProductRecord]:
        ...
    
    async def get_categories_for(self, product_ids: Iterable[int]) -> Dict[int, List[CategoryRecord]]:
        ...


class MetaStore(Protocol):
    """Key-value metadata on orders and order items"""
    
    async def get_item_meta(self, order_item_id: int) -> Dict[str, str]:
        ...
    
    async def update_item_meta(self, order_item_id: int, values: Mapping[str, str]) -> None:
        ...
    
    async def find_items_with_meta(self, meta_key: str, meta_value: str) -> List[int]:
        ...
    
    async def get_order_meta(self, order_id: int, meta_key: str) -> Optional[str]:
        ...
    
    async def update_order_meta(self, order_id: int, meta_key: str, meta_value: str) -> None:
        ...
