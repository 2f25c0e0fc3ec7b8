import pytest

from retail_ledger.models import Store, VatMode
from retail_ledger.services.totals import compute_order_totals, compute_store_order_totals, round_half_up


def test_exclusive_vat_is_added_on_top() -> None:
    totals = compute_order_totals(10000, 0, True, 700, VatMode.EXCLUSIVE, 500)

    assert totals.vat_amount == 700
    assert totals.total == 11200
    assert totals.taxable_gross == 10000
    assert totals.net_before_vat == 10000


def test_inclusive_vat_is_extracted_from_the_price() -> None:
    totals = compute_order_totals(10000, 0, True, 700, VatMode.INCLUSIVE, 500)

    assert totals.net_before_vat == 9346
    assert totals.vat_amount == 654
    assert totals.total == 10500


def test_vat_disabled_or_zero_rate_adds_nothing() -> None:
    disabled = compute_order_totals(10000, 1000, False, 700, VatMode.EXCLUSIVE, 200)
    zero_rate = compute_order_totals(10000, 1000, True, 0, VatMode.EXCLUSIVE, 200)

    for totals in (disabled, zero_rate):
        assert totals.vat_amount == 0
        assert totals.total == 9200
        assert totals.net_before_vat == 9000


def test_discount_is_clamped_to_the_subtotal() -> None:
    totals = compute_order_totals(5000, 8000, True, 700, VatMode.EXCLUSIVE, 0)

    assert totals.discount == 5000
    assert totals.taxable_gross == 0
    assert totals.total == 0


def test_negative_inputs_are_treated_as_zero() -> None:
    totals = compute_order_totals(-100, -50, True, 700, VatMode.EXCLUSIVE, -30)

    assert totals.discount == 0
    assert totals.vat_amount == 0
    assert totals.total == 0


def test_rate_above_one_hundred_percent_is_capped() -> None:
    totals = compute_order_totals(1000, 0, True, 25000, VatMode.EXCLUSIVE, 0)

    assert totals.vat_amount == 1000
    assert totals.total == 2000


def test_fractional_amounts_round_half_up() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(1.49) == 1

    totals = compute_order_totals(99.5, 0, False, 0, VatMode.EXCLUSIVE, 0.5)
    assert totals.taxable_gross == 100
    assert totals.total == 101


def test_exclusive_vat_rounds_the_half_cent_up() -> None:
    # 150 * 7% = 10.5
    totals = compute_order_totals(150, 0, True, 700, VatMode.EXCLUSIVE, 0)

    assert totals.vat_amount == 11


@pytest.mark.parametrize("subtotal", [1, 99, 107, 1234, 9999, 10000, 123457])
@pytest.mark.parametrize("rate", [1, 500, 700, 1000, 10000])
def test_inclusive_parts_add_up_to_taxable_gross(subtotal: int, rate: int) -> None:
    totals = compute_order_totals(subtotal, 0, True, rate, VatMode.INCLUSIVE, 0)

    assert totals.net_before_vat + totals.vat_amount == totals.taxable_gross
    assert totals.vat_amount >= 0


def test_same_inputs_give_the_same_result() -> None:
    first = compute_order_totals(4321, 21, True, 700, "INCLUSIVE", 50)
    second = compute_order_totals(4321, 21, True, 700, "INCLUSIVE", 50)

    assert first == second


def test_store_configuration_drives_the_totals() -> None:
    store = Store(store_id="S009", name="Inclusive", vat_enabled=True, vat_rate=700, vat_mode=VatMode.INCLUSIVE)

    totals = compute_store_order_totals(store, 10000, shipping_fee_charged=500)

    assert totals.vat_amount == 654
    assert totals.total == 10500


def test_non_finite_amounts_count_as_zero() -> None:
    totals = compute_order_totals(float("nan"), float("inf"), True, float("nan"), VatMode.EXCLUSIVE, float("-inf"))

    assert totals == compute_order_totals(0, 0, True, 0, VatMode.EXCLUSIVE, 0)


def test_very_large_amounts_round_exactly() -> None:
    assert round_half_up(1e28) == 10**28
    assert round_half_up("123456789012345678901234567890.5") == 123456789012345678901234567891

    totals = compute_order_totals(10**30, 0, True, 700, VatMode.EXCLUSIVE, 0)
    assert totals.vat_amount == 7 * 10**28
