"""Financial calculators used by eligibility rules and derived fields.

All arithmetic is carried out with :class:`~decimal.Decimal` at full
precision.  Rounding happens only in :func:`to_display`, so calculators can be
composed without accumulating rounding error.
"""
from __future__ import annotations

import math
from decimal import ROUND_CEILING, ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping

from reliefdesk.core.coerce import safe_decimal

ZERO = Decimal("0")
HALF_CENT = Decimal("0.005")

#: Returned by :func:`amortized_months` when the payment never covers interest.
NEVER_PAYS_OFF = None


def to_display(value: Any) -> Decimal:
    """Round an amount to cents for presentation."""

    return safe_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def sum_itemized(values: Iterable[Any] | Mapping[str, Any]) -> Decimal:
    """Add up itemised amounts; blanks and malformed entries count as zero."""

    if isinstance(values, Mapping):
        values = values.values()
    total = ZERO
    for value in values:
        total += safe_decimal(value)
    return total


def disposable_income(income: Any, expenses: Any) -> Decimal:
    """Monthly income left after expenses, floored at zero."""

    return max(surplus(income, expenses), ZERO)


def surplus(income: Any, expenses: Any) -> Decimal:
    """Signed difference between income and expenses (negative = deficit)."""

    return safe_decimal(income) - safe_decimal(expenses)


def quick_sale_value(amount: Any, factor: Any) -> Decimal:
    return safe_decimal(amount) * safe_decimal(factor)


def collection_potential(monthly_disposable_income: Any, asset_equity: Any, horizon_months: Any) -> Decimal:
    """Simplified estimate of what could be collected over ``horizon_months``.

    A negative disposable income contributes nothing (never a negative
    contribution); negative equity is likewise ignored.
    """

    monthly = max(safe_decimal(monthly_disposable_income), ZERO)
    equity = max(safe_decimal(asset_equity), ZERO)
    horizon = max(safe_decimal(horizon_months), ZERO)
    return monthly * horizon + equity


def amortized_months(principal: Any, monthly_payment: Any, monthly_rate: Any) -> int | None:
    """Months needed to retire ``principal`` with a fixed monthly payment.

    Returns :data:`NEVER_PAYS_OFF` when the payment does not exceed the monthly
    interest, and ``0`` when there is nothing to pay.
    """

    balance = safe_decimal(principal)
    payment = safe_decimal(monthly_payment)
    rate = max(safe_decimal(monthly_rate), ZERO)
    if balance <= 0:
        return 0
    if payment <= 0:
        return NEVER_PAYS_OFF
    if rate == 0:
        return int((balance / payment).to_integral_value(rounding=ROUND_CEILING))
    if payment <= balance * rate:
        return NEVER_PAYS_OFF

    factor = payment / (payment - balance * rate)
    months = math.log(float(factor)) / math.log1p(float(rate))
    whole = math.ceil(months)
    # float noise can leave a fraction of a cent unpaid
    if _remaining_balance(balance, payment, rate, whole) > HALF_CENT:
        whole += 1
    return max(whole, 1)


def _remaining_balance(balance: Decimal, payment: Decimal, rate: Decimal, months: int) -> Decimal:
    growth = (1 + rate) ** months
    return balance * growth - payment * (growth - 1) / rate


def total_paid(months: int | None, monthly_payment: Any) -> Decimal | None:
    if months is NEVER_PAYS_OFF:
        return None
    return safe_decimal(monthly_payment) * months


def minimum_installment(debt: Any, max_months: Any, floor: Any) -> Decimal:
    """Smallest monthly payment that clears ``debt`` within ``max_months``."""

    months = safe_decimal(max_months)
    lowest = safe_decimal(floor)
    if months <= 0:
        return max(safe_decimal(debt), lowest)
    required = (safe_decimal(debt) / months).to_integral_value(rounding=ROUND_CEILING)
    return max(required, lowest)


def ratio(numerator: Any, denominator: Any) -> Decimal | None:
    """``numerator / denominator`` or ``None`` when the denominator is not positive."""

    bottom = safe_decimal(denominator)
    if bottom <= 0:
        return None
    return safe_decimal(numerator) / bottom
