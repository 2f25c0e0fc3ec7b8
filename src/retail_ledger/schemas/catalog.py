from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ProductBase(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=64)
    sku: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=200)
    base_unit_id: str = Field(..., min_length=1, max_length=64)
    barcode: Optional[str] = Field(default=None, max_length=64)
    active: bool = True
    cost_base: int = Field(default=0, ge=0)
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)


class ProductCreate(ProductBase):
    generate_barcode: bool = Field(
        default=False,
        description="Allocate an internal EAN-13 when no barcode is supplied",
    )


class ProductRead(ProductBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    store_id: str
    created_at: datetime


class ProductUnitCreate(BaseModel):
    unit_id: str = Field(..., min_length=1, max_length=64)
    multiplier_to_base: int = Field(..., gt=0)


class ProductUnitRead(ProductUnitCreate):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: str


class BarcodeRead(BaseModel):
    barcode: str
