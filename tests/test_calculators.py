import sys
from decimal import Decimal
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

from reliefdesk.core.calculators import (
    NEVER_PAYS_OFF,
    amortized_months,
    collection_potential,
    disposable_income,
    minimum_installment,
    quick_sale_value,
    ratio,
    sum_itemized,
    surplus,
    to_display,
    total_paid,
)


def test_amortized_months_pays_off_with_interest():
    months = amortized_months(Decimal("10000"), Decimal("200"), Decimal("0.05") / 12)
    assert months is not None and months > 0
    assert total_paid(months, Decimal("200")) >= Decimal("10000")
    assert months == 57


def test_amortized_months_never_pays_off_when_payment_below_interest():
    assert amortized_months(Decimal("10000"), Decimal("1"), Decimal("0.10") / 12) is NEVER_PAYS_OFF
    assert total_paid(NEVER_PAYS_OFF, Decimal("1")) is None


def test_amortized_months_edge_cases():
    assert amortized_months(0, 100, Decimal("0.01")) == 0
    assert amortized_months(1000, 0, Decimal("0.01")) is NEVER_PAYS_OFF
    assert amortized_months(1000, 300, 0) == 4
    assert amortized_months("not a number", 100, 0) == 0


def test_collection_potential_ignores_negative_income():
    assert collection_potential(Decimal("-500"), Decimal("1000"), 12) == Decimal("1000")
    assert collection_potential(Decimal("1500"), 0, 12) == Decimal("18000")
    assert collection_potential(100, Decimal("-50"), 24) == Decimal("2400")


def test_income_helpers():
    assert disposable_income(3000, 3500) == Decimal("0")
    assert disposable_income("3,000", "1,250.50") == Decimal("1749.50")
    assert surplus(1000, 1500) == Decimal("-500")


def test_sum_itemized_treats_malformed_as_zero():
    assert sum_itemized(["100", None, "abc", Decimal("2.5"), "$1,000"]) == Decimal("1102.5")
    assert sum_itemized({"rent": 900, "food": "300"}) == Decimal("1200")


def test_sum_itemized_ignores_out_of_range_amounts():
    assert sum_itemized(["9e999999", "9e999999", "10"]) == Decimal("10")
    assert sum_itemized([Decimal("-1e30"), "250"]) == Decimal("250")


def test_minimum_installment_and_quick_sale():
    assert minimum_installment(10000, 72, 25) == Decimal("139")
    assert minimum_installment(500, 72, 25) == Decimal("25")
    assert quick_sale_value(10000, Decimal("0.8")) == Decimal("8000.0")


def test_ratio_and_display_rounding():
    assert ratio(1, 0) is None
    assert ratio(18000, 50000) == Decimal("0.36")
    assert to_display(Decimal("2.345")) == Decimal("2.35")
    assert to_display("garbage") == Decimal("0.00")
