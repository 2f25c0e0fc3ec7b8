from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from retail_ledger.models import AdjustMode, MovementType, RefType


class StockMovementCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    product_id: str = Field(..., min_length=1)
    movement_type: MovementType
    unit_id: str = Field(..., min_length=1)
    qty: int = Field(..., gt=0, description="Quantity in the selected unit")
    adjust_mode: Optional[AdjustMode] = None
    note: Optional[str] = Field(default=None, max_length=240)

    @field_validator("note")
    @classmethod
    def blank_note_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @model_validator(mode="after")
    def adjust_requires_mode(self) -> "StockMovementCreate":
        if self.movement_type is MovementType.ADJUST and self.adjust_mode is None:
            raise ValueError("adjust_mode is required for ADJUST movements")
        return self


class StockMovementRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    store_id: str
    product_id: str
    unit_id: str
    movement_type: MovementType
    qty: int
    qty_base: int
    qty_delta: int
    adjust_mode: Optional[AdjustMode] = None
    ref_type: RefType
    ref_id: Optional[str] = None
    note: Optional[str] = None
    created_by: str
    created_at: datetime


class StockBalanceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    store_id: str
    product_id: str
    on_hand: int
    reserved: int
    available: int


class StockMovementResult(BaseModel):
    movement: StockMovementRead
    balance: StockBalanceRead


class LowStockItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    sku: str
    name: str
    on_hand: int
    reserved: int
    available: int
    threshold: int
