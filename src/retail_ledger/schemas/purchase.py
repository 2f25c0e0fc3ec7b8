from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from retail_ledger.models import Currency, PurchaseOrderStatus


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class PurchaseOrderItemPayload(BaseModel):
    product_id: str = Field(..., min_length=1)
    qty_ordered: int = Field(..., gt=0)
    unit_cost_purchase: int = Field(..., ge=0)


class PurchaseOrderCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    supplier_name: Optional[str] = Field(default=None, max_length=100)
    supplier_contact: Optional[str] = Field(default=None, max_length=100)
    purchase_currency: Currency
    exchange_rate: Decimal = Field(default=Decimal("1"), gt=0)
    shipping_cost: int = Field(default=0, ge=0)
    other_cost: int = Field(default=0, ge=0)
    other_cost_note: Optional[str] = Field(default=None, max_length=240)
    note: Optional[str] = Field(default=None, max_length=500)
    expected_at: Optional[datetime] = None
    items: List[PurchaseOrderItemPayload] = Field(..., min_length=1)
    receive_immediately: bool = False

    @field_validator("supplier_name", "supplier_contact", "other_cost_note", "note", "expected_at", mode="before")
    @classmethod
    def blank_is_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


class PurchaseOrderUpdate(BaseModel):
    """Partial edit of an open purchase order; only the fields sent are changed."""

    model_config = ConfigDict(str_strip_whitespace=True)

    supplier_name: Optional[str] = Field(default=None, max_length=100)
    supplier_contact: Optional[str] = Field(default=None, max_length=100)
    purchase_currency: Optional[Currency] = None
    exchange_rate: Optional[Decimal] = Field(default=None, gt=0)
    shipping_cost: Optional[int] = Field(default=None, ge=0)
    other_cost: Optional[int] = Field(default=None, ge=0)
    other_cost_note: Optional[str] = Field(default=None, max_length=240)
    note: Optional[str] = Field(default=None, max_length=500)
    expected_at: Optional[datetime] = None
    tracking_info: Optional[str] = Field(default=None, max_length=240)
    items: Optional[List[PurchaseOrderItemPayload]] = Field(default=None, min_length=1)

    @field_validator(
        "supplier_name", "supplier_contact", "other_cost_note", "note", "expected_at", "tracking_info", mode="before"
    )
    @classmethod
    def blank_is_none(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @model_validator(mode="after")
    def required_values_not_cleared(self) -> "PurchaseOrderUpdate":
        for name in ("purchase_currency", "exchange_rate", "shipping_cost", "other_cost", "items"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self


class ReceivedItemPayload(BaseModel):
    item_id: int
    qty_received: int = Field(..., ge=0)


class PurchaseOrderStatusUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    status: PurchaseOrderStatus
    tracking_info: Optional[str] = Field(default=None, max_length=240)
    received_items: Optional[List[ReceivedItemPayload]] = None

    @field_validator("tracking_info", mode="before")
    @classmethod
    def blank_is_none(cls, value: Any) -> Any:
        return _blank_to_none(value)


class PurchaseOrderItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: str
    qty_ordered: int
    qty_received: int
    unit_cost_purchase: int
    unit_cost_base: int


class PurchaseOrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    store_id: str
    po_number: str
    supplier_name: Optional[str] = None
    supplier_contact: Optional[str] = None
    purchase_currency: Currency
    exchange_rate: Decimal
    shipping_cost: int
    other_cost: int
    other_cost_note: Optional[str] = None
    note: Optional[str] = None
    expected_at: Optional[datetime] = None
    tracking_info: Optional[str] = None
    status: PurchaseOrderStatus
    version: int
    ordered_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_by: str
    created_at: datetime
    updated_at: datetime
    items: List[PurchaseOrderItemRead] = Field(default_factory=list)
    total_cost_purchase: int = 0
    total_cost_base: int = 0
