"""Offer in compromise: settle the balance for less than the full amount owed."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from reliefdesk.core import validation as v
from reliefdesk.core.calculators import (
    ZERO,
    collection_potential,
    disposable_income,
    quick_sale_value,
    ratio,
    sum_itemized,
    to_display,
)
from reliefdesk.core.coerce import optional_decimal, safe_decimal
from reliefdesk.core.schema import ConfidenceTier, Profile
from reliefdesk.core.settings import heuristic_decimal
from reliefdesk.domain import (
    Check,
    ConfidenceThresholds,
    DerivedField,
    DisplayMetrics,
    DisqualifyReason,
    EligibilityRule,
    FieldSpec,
    ProgramDefinition,
    StepDefinition,
)
from reliefdesk.programs.common import (
    acknowledgement,
    answer_is,
    answer_is_not,
    debt_amount,
    documents_field,
    metrics,
    money_field,
    signature_field,
    success_rate,
    terms_field,
    total_of,
)

SECTION = "offer_in_compromise"
OFFER_TYPES = ("doubt-collectibility", "doubt-liability", "effective-tax-admin")
PAYMENT_OPTIONS = ("lump-sum", "periodic")

INCOME_KEYS = ("wages", "self_employment_income", "social_security", "pension_income", "other_income")
EXPENSE_KEYS = (
    "housing_expense",
    "utilities_expense",
    "food_expense",
    "transportation_expense",
    "health_care_expense",
    "current_taxes_expense",
    "other_expense",
)
ASSET_KEYS = ("bank_accounts", "investments", "real_estate_equity", "vehicle_equity", "other_assets")

doubt_as_to_collectibility = answer_is("offer_type", "doubt-collectibility")


# ----------------------------------------------------------------------
# derived values
# ----------------------------------------------------------------------
_total_income = total_of(INCOME_KEYS)
_total_expenses = total_of(EXPENSE_KEYS)
_total_assets = total_of(ASSET_KEYS)


def _monthly_disposable_income(values: Mapping[str, Any]) -> Decimal:
    return disposable_income(values.get("total_monthly_income"), values.get("total_monthly_expenses"))


def _horizon(values: Mapping[str, Any]) -> Decimal:
    if answer_is("payment_option", "periodic")(values):
        return heuristic_decimal(SECTION, "periodic_horizon_months")
    return heuristic_decimal(SECTION, "lump_sum_horizon_months")


def _reasonable_collection_potential(values: Mapping[str, Any]) -> Decimal:
    equity = quick_sale_value(values.get("total_asset_equity"), heuristic_decimal(SECTION, "quick_sale_factor"))
    return collection_potential(values.get("monthly_disposable_income"), equity, _horizon(values))


def _offer_shortfall(values: Mapping[str, Any]) -> Decimal:
    shortfall = safe_decimal(values.get("reasonable_collection_potential")) - safe_decimal(values.get("offer_amount"))
    return max(shortfall, ZERO)


# ----------------------------------------------------------------------
# step checks
# ----------------------------------------------------------------------
def _income_entered(values: Mapping[str, Any]) -> v.ValidationResult:
    if sum_itemized(values.get(key) for key in INCOME_KEYS) > 0:
        return v.OK
    return v.fail("Please enter all income sources")


def _expenses_entered(values: Mapping[str, Any]) -> v.ValidationResult:
    if sum_itemized(values.get(key) for key in EXPENSE_KEYS) > 0:
        return v.OK
    return v.fail("Please enter all expenses")


def _offer_below_balance(values: Mapping[str, Any]) -> v.ValidationResult:
    offer = optional_decimal(values.get("offer_amount"))
    debt = optional_decimal(values.get("total_debt"))
    if offer is None or debt is None or offer < debt:
        return v.OK
    return v.fail("An offer must be less than the total balance owed")


def _offer_covers_collection_potential(values: Mapping[str, Any]) -> v.ValidationResult:
    if not doubt_as_to_collectibility(values):
        return v.OK
    offer = optional_decimal(values.get("offer_amount"))
    potential = optional_decimal(values.get("reasonable_collection_potential"))
    if offer is None or potential is None or offer >= potential:
        return v.OK
    return v.fail(
        f"Offers below your reasonable collection potential of ${to_display(potential):,} are usually rejected"
    )


# ----------------------------------------------------------------------
# eligibility
# ----------------------------------------------------------------------
def simplified_collection_potential(profile: Profile) -> Decimal:
    """Collection potential estimated from the intake profile alone."""

    equity = quick_sale_value(profile.total_assets, heuristic_decimal(SECTION, "quick_sale_factor"))
    return collection_potential(
        profile.monthly_net_income,
        equity,
        heuristic_decimal(SECTION, "eligibility_horizon_months"),
    )


def _collectibility_ratio(profile: Profile) -> Decimal | None:
    return ratio(simplified_collection_potential(profile), debt_amount(profile))


def _confidence(profile: Profile, score: Decimal | None) -> ConfidenceTier:
    thresholds = ConfidenceThresholds(
        high=heuristic_decimal(SECTION, "confidence", "high_below"),
        medium=heuristic_decimal(SECTION, "confidence", "medium_below"),
        lower_is_better=True,
    )
    return thresholds.classify(score)


def _can_pay_in_full(profile: Profile) -> bool:
    return simplified_collection_potential(profile) >= debt_amount(profile)


def _metrics(profile: Profile) -> DisplayMetrics:
    return metrics(
        SECTION,
        success_rate(SECTION),
        savings_base=debt_amount(profile),
        requirements=("Financial hardship", "All returns filed", "Current on estimated payments"),
    )


CAN_PAY = "Your estimated ability to pay covers the full balance"
NOT_FILED = "All tax returns must be filed before an offer can be considered"

ELIGIBILITY = EligibilityRule(
    applies=lambda profile: (
        debt_amount(profile) > heuristic_decimal(SECTION, "minimum_debt") and profile.monthly_net_income > 0
    ),
    predicate=lambda profile: profile.all_returns_filed and not _can_pay_in_full(profile),
    confidence=_confidence,
    fallback_reason=CAN_PAY,
    reasons=(
        DisqualifyReason(_can_pay_in_full, CAN_PAY),
        DisqualifyReason(lambda profile: not profile.all_returns_filed, NOT_FILED),
    ),
    score=_collectibility_ratio,
    metrics=_metrics,
)


PROGRAM = ProgramDefinition(
    id="offer_in_compromise",
    name="Offer in Compromise",
    category="Debt Settlement",
    description="Settle the tax debt for less than the full amount owed.",
    requirements=("Financial hardship", "All returns filed", "Current on estimated payments"),
    steps=(
        StepDefinition(
            "offer_type",
            "Offer Type",
            fields=(
                FieldSpec(
                    "offer_type",
                    "Offer type",
                    type="choice",
                    required=True,
                    choices=OFFER_TYPES,
                    validators=(v.one_of(OFFER_TYPES, "Please select an offer type"),),
                    required_message="Please select an offer type",
                ),
                money_field("total_debt", "Total tax debt", minimum=1, required_message="Total debt amount is required"),
            ),
        ),
        StepDefinition(
            "offer_basis",
            "Basis for the Offer",
            include=answer_is_not("offer_type", "doubt-collectibility"),
            fields=(
                FieldSpec(
                    "basis_explanation",
                    "Why the assessed tax is wrong or collection would be unfair",
                    required=True,
                    validators=(v.min_length(100),),
                ),
            ),
        ),
        StepDefinition(
            "income",
            "Income Analysis",
            fields=tuple(money_field(key, key.replace("_", " ").capitalize(), required=False) for key in INCOME_KEYS),
            checks=(Check("income", _income_entered),),
        ),
        StepDefinition(
            "expenses",
            "Expense Analysis",
            fields=tuple(
                money_field(key, key.replace("_expense", "").replace("_", " ").capitalize(), required=False)
                for key in EXPENSE_KEYS
            ),
            checks=(Check("expenses", _expenses_entered),),
        ),
        StepDefinition(
            "assets",
            "Asset Valuation",
            fields=tuple(money_field(key, key.replace("_", " ").capitalize(), required=False) for key in ASSET_KEYS),
        ),
        StepDefinition(
            "offer",
            "Offer Calculation",
            fields=(
                money_field(
                    "offer_amount",
                    "Offer amount",
                    minimum=1,
                    message="Offer must be at least $1",
                    required_message="Please enter your offer amount",
                ),
                FieldSpec(
                    "payment_option",
                    "Payment option",
                    type="choice",
                    required=True,
                    choices=PAYMENT_OPTIONS,
                    validators=(v.one_of(PAYMENT_OPTIONS, "Please select a payment option"),),
                    required_message="Please select a payment option",
                ),
            ),
            checks=(Check("offer_amount", _offer_covers_collection_potential),),
        ),
        StepDefinition(
            "documents",
            "Document Upload",
            fields=(documents_field("Please upload required supporting documents", required=True),),
        ),
        StepDefinition(
            "review",
            "Review & Submit",
            fields=(
                acknowledgement(
                    "application_fee_acknowledged",
                    "I understand the $205 application fee",
                    "Application fee acknowledgment is required",
                ),
                acknowledgement(
                    "initial_payment_acknowledged",
                    "I understand the initial payment requirement",
                    "Initial payment acknowledgment is required",
                ),
                terms_field(),
                signature_field(),
            ),
        ),
    ),
    derived=(
        DerivedField("total_monthly_income", INCOME_KEYS, _total_income),
        DerivedField("total_monthly_expenses", EXPENSE_KEYS, _total_expenses),
        DerivedField(
            "monthly_disposable_income",
            ("total_monthly_income", "total_monthly_expenses"),
            _monthly_disposable_income,
        ),
        DerivedField("total_asset_equity", ASSET_KEYS, _total_assets),
        DerivedField(
            "reasonable_collection_potential",
            ("monthly_disposable_income", "total_asset_equity", "payment_option"),
            _reasonable_collection_potential,
        ),
        DerivedField("offer_shortfall", ("reasonable_collection_potential", "offer_amount"), _offer_shortfall),
    ),
    certifications=(Check("offer_amount", _offer_below_balance),),
    eligibility=ELIGIBILITY,
)
