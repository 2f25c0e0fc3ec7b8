from pydantic import BaseModel, ConfigDict, Field

from retail_ledger.models import VatMode

# bound for request amounts, in minor units
MAX_AMOUNT = 10**15


def _amount(default=...):
    return Field(default, allow_inf_nan=False, ge=-MAX_AMOUNT, le=MAX_AMOUNT, description="Smallest currency unit")


class OrderTotalsRequest(BaseModel):
    """Cart amounts; VAT settings come from the store unless overridden."""

    subtotal: float = _amount()
    discount: float = _amount(0)
    shipping_fee_charged: float = _amount(0)
    vat_enabled: bool | None = None
    vat_rate: int | None = Field(default=None, ge=0, le=10000)
    vat_mode: VatMode | None = None


class OrderTotalsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    discount: int
    vat_amount: int
    total: int
    taxable_gross: int
    net_before_vat: int
