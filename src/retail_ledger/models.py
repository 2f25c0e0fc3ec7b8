from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Currency(str, Enum):
    LAK = "LAK"
    THB = "THB"
    USD = "USD"


class VatMode(str, Enum):
    INCLUSIVE = "INCLUSIVE"
    EXCLUSIVE = "EXCLUSIVE"


class MovementType(str, Enum):
    IN = "IN"
    ADJUST = "ADJUST"
    RETURN = "RETURN"


class AdjustMode(str, Enum):
    INCREASE = "INCREASE"
    DECREASE = "DECREASE"


class RefType(str, Enum):
    MANUAL = "MANUAL"
    RETURN = "RETURN"
    PURCHASE = "PURCHASE"


class PurchaseOrderStatus(str, Enum):
    ORDERED = "ORDERED"
    SHIPPED = "SHIPPED"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"


class Store(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    store_id: str = Field(index=True, unique=True)
    name: str
    currency: Currency = Field(default=Currency.LAK)
    vat_enabled: bool = Field(default=False)
    vat_rate: int = Field(default=700, description="Basis points, 10000 = 100%")
    vat_mode: VatMode = Field(default=VatMode.EXCLUSIVE)
    low_stock_threshold: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)


class Product(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("store_id", "product_id"),
        UniqueConstraint("store_id", "barcode"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    store_id: str = Field(foreign_key="store.store_id", index=True)
    product_id: str = Field(index=True)
    sku: str = Field(index=True)
    name: str
    base_unit_id: str
    barcode: Optional[str] = Field(default=None, index=True)
    active: bool = Field(default=True)
    cost_base: int = Field(default=0, description="Weighted average unit cost, store currency")
    low_stock_threshold: Optional[int] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow)


class ProductUnit(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("store_id", "product_id", "unit_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    store_id: str = Field(index=True)
    product_id: str = Field(index=True)
    unit_id: str
    multiplier_to_base: int


class StockBalance(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("store_id", "product_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    store_id: str = Field(foreign_key="store.store_id", index=True)
    product_id: str = Field(index=True)
    on_hand: int = Field(default=0)
    reserved: int = Field(default=0)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def available(self) -> int:
        return self.on_hand - self.reserved


class StockMovement(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    store_id: str = Field(foreign_key="store.store_id", index=True)
    product_id: str = Field(index=True)
    unit_id: str
    movement_type: MovementType = Field(index=True)
    qty: int
    qty_base: int
    qty_delta: int
    adjust_mode: Optional[AdjustMode] = Field(default=None)
    ref_type: RefType = Field(default=RefType.MANUAL, index=True)
    ref_id: Optional[str] = Field(default=None, index=True)
    note: Optional[str] = Field(default=None, max_length=240)
    created_by: str
    created_at: datetime = Field(default_factory=utcnow, index=True)


class PurchaseOrder(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("store_id", "po_number"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    store_id: str = Field(foreign_key="store.store_id", index=True)
    po_number: str = Field(index=True)
    supplier_name: Optional[str] = Field(default=None, max_length=100)
    supplier_contact: Optional[str] = Field(default=None, max_length=100)
    purchase_currency: Currency
    exchange_rate: Decimal = Field(default=Decimal("1"), max_digits=18, decimal_places=6)
    shipping_cost: int = Field(default=0)
    other_cost: int = Field(default=0)
    other_cost_note: Optional[str] = Field(default=None, max_length=240)
    note: Optional[str] = Field(default=None, max_length=500)
    expected_at: Optional[datetime] = Field(default=None)
    tracking_info: Optional[str] = Field(default=None, max_length=240)
    status: PurchaseOrderStatus = Field(default=PurchaseOrderStatus.ORDERED, index=True)
    version: int = Field(default=1)
    ordered_at: Optional[datetime] = Field(default=None)
    shipped_at: Optional[datetime] = Field(default=None)
    received_at: Optional[datetime] = Field(default=None)
    cancelled_at: Optional[datetime] = Field(default=None)
    created_by: str
    updated_by: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)


class PurchaseOrderItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    purchase_order_id: int = Field(foreign_key="purchaseorder.id", index=True)
    product_id: str = Field(index=True)
    qty_ordered: int
    unit_cost_purchase: int
    unit_cost_base: int
    qty_received: int = Field(default=0)


class SequenceCounter(SQLModel, table=True):
    __table_args__ = (UniqueConstraint("store_id", "scope"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    store_id: str = Field(index=True)
    scope: str
    value: int = Field(default=0)
    updated_at: datetime = Field(default_factory=utcnow)


class AuditEvent(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    store_id: str = Field(index=True)
    actor_user_id: str
    action: str = Field(index=True)
    entity_type: str
    entity_id: str = Field(index=True)
    payload: str = Field(default="{}")
    created_at: datetime = Field(default_factory=utcnow, index=True)
