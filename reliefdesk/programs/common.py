"""Field builders and predicates shared by the program definitions."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Iterable, Mapping

from reliefdesk.core import validation as v
from reliefdesk.core.calculators import sum_itemized
from reliefdesk.core.coerce import normalise_token, safe_bool, safe_decimal
from reliefdesk.core.schema import Profile
from reliefdesk.core.settings import heuristic, heuristic_decimal, heuristic_range
from reliefdesk.domain import DisplayMetrics, FieldSpec

Answers = Mapping[str, Any]


# ----------------------------------------------------------------------
# predicates over answers
# ----------------------------------------------------------------------
def answer_is(key: str, *choices: str) -> Callable[[Answers], bool]:
    wanted = {normalise_token(choice) for choice in choices}

    def predicate(answers: Answers) -> bool:
        return normalise_token(answers.get(key)) in wanted

    return predicate


def answer_is_not(key: str, *choices: str) -> Callable[[Answers], bool]:
    matches = answer_is(key, *choices)

    def predicate(answers: Answers) -> bool:
        return not matches(answers)

    return predicate


def answer_true(key: str) -> Callable[[Answers], bool]:
    def predicate(answers: Answers) -> bool:
        return safe_bool(answers.get(key))

    return predicate


def contains(key: str, choice: str) -> Callable[[Answers], bool]:
    token = normalise_token(choice)

    def predicate(answers: Answers) -> bool:
        selected = answers.get(key)
        if not isinstance(selected, (list, tuple)):
            return False
        return any(normalise_token(item) == token for item in selected)

    return predicate


def total_of(keys: Iterable[str]) -> Callable[[Answers], Decimal]:
    keys = tuple(keys)

    def compute(answers: Answers) -> Decimal:
        return sum_itemized(answers.get(key) for key in keys)

    return compute


# ----------------------------------------------------------------------
# reusable fields
# ----------------------------------------------------------------------
def ssn_field(key: str = "ssn") -> FieldSpec:
    return FieldSpec(key, "Social Security Number", required=True, validators=(v.ssn,))


def phone_field(key: str = "phone", label: str = "Phone number", required: bool = True) -> FieldSpec:
    return FieldSpec(key, label, required=required, validators=(v.phone,))


def signature_field() -> FieldSpec:
    return FieldSpec(
        "signature_name",
        "Electronic signature",
        required=True,
        validators=(v.non_empty,),
        required_message="Electronic signature is required",
    )


def acknowledgement(key: str, label: str, message: str) -> FieldSpec:
    return FieldSpec(key, label, type="boolean", required=True, validators=(v.must_be_true(message),))


def terms_field(message: str = "You must accept the terms") -> FieldSpec:
    return acknowledgement("terms_accepted", "I accept the terms", message)


def documents_field(message: str = "Please upload supporting documentation", **kwargs: Any) -> FieldSpec:
    return FieldSpec(
        "documents",
        "Supporting documents",
        type="documents",
        validators=(v.min_documents(1, message),),
        required_message=message,
        **kwargs,
    )


def money_field(
    key: str,
    label: str,
    required: bool = True,
    minimum: Any = 0,
    message: str | None = None,
    **kwargs: Any,
) -> FieldSpec:
    return FieldSpec(key, label, type="money", required=required, validators=(v.money(minimum, message),), **kwargs)


# ----------------------------------------------------------------------
# profile helpers for eligibility rules
# ----------------------------------------------------------------------
def debt_amount(profile: Profile) -> Decimal:
    """Representative debt figure: the exact amount when known, else the bracket's."""

    if profile.total_debt_amount is not None:
        return profile.total_debt_amount
    if profile.total_debt is None:
        return Decimal("0")
    return safe_decimal(heuristic("debt_brackets", profile.total_debt.value))


def metrics(section: str, success_rate: int, *, variant: str | None = None,
            savings_base: Decimal | None = None, requirements: tuple[str, ...] = ()) -> DisplayMetrics:
    low, high = heuristic_range(section, "timeline_months")
    savings = (Decimal("0"), Decimal("0"))
    if savings_base is not None:
        floor, ceiling = heuristic_range(section, "savings_fraction")
        savings = (savings_base * floor, savings_base * ceiling)
    return DisplayMetrics(
        timeline=(int(low), int(high)),
        savings=savings,
        success_rate=success_rate,
        variant=variant,
        requirements=requirements,
    )


def success_rate(section: str, *keys: str) -> int:
    return int(heuristic_decimal(section, "success_rate", *keys))
