"""Order totals under a store's VAT configuration.

Amounts are integers in the smallest currency unit and VAT rates are basis
points (``10000`` is 100%). Every rounding step is round-half-up, done in
integer arithmetic so results never depend on binary floating point.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Union

from retail_ledger.models import Store, VatMode

Number = Union[int, float, Decimal]

VAT_RATE_SCALE = 10000


@dataclass(frozen=True, slots=True)
class OrderTotals:
    discount: int
    vat_amount: int
    total: int
    taxable_gross: int
    net_before_vat: int


def round_half_up(value: Number) -> int:
    amount = Decimal(str(value))
    with localcontext() as context:
        context.prec = max(context.prec, amount.adjusted() + 2)
        return int(amount.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _amount(value: Number) -> int:
    """Round an input amount; values that are not finite count as zero."""

    if not Decimal(str(value)).is_finite():
        return 0
    return round_half_up(value)


def divide_half_up(numerator: int, denominator: int) -> int:
    # both operands are non-negative here
    return (2 * numerator + denominator) // (2 * denominator)


def compute_order_totals(
    subtotal: Number,
    discount: Number,
    vat_enabled: bool,
    vat_rate: Number,
    vat_mode: VatMode | str,
    shipping_fee_charged: Number,
) -> OrderTotals:
    safe_subtotal = max(0, _amount(subtotal))
    safe_discount = max(0, min(_amount(discount), safe_subtotal))
    safe_shipping = max(0, _amount(shipping_fee_charged))
    taxable_gross = max(safe_subtotal - safe_discount, 0)

    rate = _amount(vat_rate)
    if not vat_enabled or rate <= 0:
        return OrderTotals(
            discount=safe_discount,
            vat_amount=0,
            total=taxable_gross + safe_shipping,
            taxable_gross=taxable_gross,
            net_before_vat=taxable_gross,
        )

    safe_rate = max(0, min(VAT_RATE_SCALE, rate))

    if VatMode(vat_mode) is VatMode.INCLUSIVE:
        net_before_vat = divide_half_up(taxable_gross * VAT_RATE_SCALE, VAT_RATE_SCALE + safe_rate)
        return OrderTotals(
            discount=safe_discount,
            vat_amount=max(taxable_gross - net_before_vat, 0),
            total=taxable_gross + safe_shipping,
            taxable_gross=taxable_gross,
            net_before_vat=net_before_vat,
        )

    vat_amount = divide_half_up(taxable_gross * safe_rate, VAT_RATE_SCALE)
    return OrderTotals(
        discount=safe_discount,
        vat_amount=vat_amount,
        total=taxable_gross + vat_amount + safe_shipping,
        taxable_gross=taxable_gross,
        net_before_vat=taxable_gross,
    )


def compute_store_order_totals(
    store: Store,
    subtotal: Number,
    discount: Number = 0,
    shipping_fee_charged: Number = 0,
) -> OrderTotals:
    """Compute totals with the VAT settings stored on ``store``."""

    return compute_order_totals(
        subtotal=subtotal,
        discount=discount,
        vat_enabled=store.vat_enabled,
        vat_rate=store.vat_rate,
        vat_mode=store.vat_mode,
        shipping_fee_charged=shipping_fee_charged,
    )
