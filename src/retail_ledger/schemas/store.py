from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from retail_ledger.models import Currency, VatMode


class StoreBase(BaseModel):
    store_id: str = Field(..., min_length=1, max_length=64)
    name: str = Field(..., min_length=1, max_length=120)
    currency: Currency = Currency.LAK
    vat_enabled: bool = False
    vat_rate: int = Field(default=700, ge=0, le=10000)
    vat_mode: VatMode = VatMode.EXCLUSIVE
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)


class StoreCreate(StoreBase):
    pass


class StoreUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    currency: Optional[Currency] = None
    vat_enabled: Optional[bool] = None
    vat_rate: Optional[int] = Field(default=None, ge=0, le=10000)
    vat_mode: Optional[VatMode] = None
    low_stock_threshold: Optional[int] = Field(default=None, ge=0)


class StoreRead(StoreBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
