"""Installment agreement: a monthly payment plan for the full balance."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from reliefdesk.core import validation as v
from reliefdesk.core.calculators import (
    amortized_months,
    disposable_income,
    minimum_installment,
    total_paid,
)
from reliefdesk.core.coerce import normalise_token, optional_decimal
from reliefdesk.core.schema import ConfidenceTier, Profile
from reliefdesk.core.settings import heuristic_decimal
from reliefdesk.domain import (
    Check,
    DerivedField,
    DisplayMetrics,
    DisqualifyReason,
    EligibilityRule,
    FieldSpec,
    ProgramDefinition,
    StepDefinition,
)
from reliefdesk.programs.common import (
    answer_is,
    debt_amount,
    documents_field,
    metrics,
    money_field,
    phone_field,
    signature_field,
    ssn_field,
    success_rate,
    terms_field,
)

SECTION = "installment_agreement"
AGREEMENT_TYPES = ("guaranteed", "streamlined", "non-streamlined")

non_streamlined = answer_is("agreement_type", "non-streamlined")


def _limit_for(agreement_type: Any) -> Decimal | None:
    token = normalise_token(agreement_type)
    if token == "guaranteed":
        return heuristic_decimal(SECTION, "guaranteed_limit")
    if token == "streamlined":
        return heuristic_decimal(SECTION, "streamlined_limit")
    return None


def _debt_within_agreement_limit(values: Mapping[str, Any]) -> v.ValidationResult:
    limit = _limit_for(values.get("agreement_type"))
    debt = optional_decimal(values.get("total_debt"))
    if limit is None or debt is None or debt <= limit:
        return v.OK
    return v.fail(f"Balances over ${limit:,} do not qualify for a {values.get('agreement_type')} agreement")


def _payment_covers_minimum(values: Mapping[str, Any]) -> v.ValidationResult:
    if non_streamlined(values):
        return v.OK
    payment = optional_decimal(values.get("monthly_payment"))
    minimum = optional_decimal(values.get("minimum_payment"))
    if payment is None or minimum is None or payment >= minimum:
        return v.OK
    months = heuristic_decimal(SECTION, "max_months")
    return v.fail(f"A payment of at least ${minimum:,} is needed to pay off the balance within {months} months")


# ----------------------------------------------------------------------
# derived values
# ----------------------------------------------------------------------
def _minimum_payment(values: Mapping[str, Any]) -> Decimal:
    return minimum_installment(
        values.get("total_debt"),
        heuristic_decimal(SECTION, "max_months"),
        heuristic_decimal(SECTION, "minimum_payment"),
    )


def _monthly_rate() -> Decimal:
    return heuristic_decimal(SECTION, "annual_interest_rate") / 12


def _payoff_months(values: Mapping[str, Any]) -> int | None:
    return amortized_months(values.get("total_debt"), values.get("monthly_payment"), _monthly_rate())


def _total_paid(values: Mapping[str, Any]) -> Decimal | None:
    months = amortized_months(values.get("total_debt"), values.get("monthly_payment"), _monthly_rate())
    return total_paid(months, values.get("monthly_payment"))


def _monthly_disposable_income(values: Mapping[str, Any]) -> Decimal:
    return disposable_income(values.get("monthly_income"), values.get("monthly_expenses"))


# ----------------------------------------------------------------------
# eligibility
# ----------------------------------------------------------------------
def _variant(debt: Decimal) -> str:
    if debt <= heuristic_decimal(SECTION, "guaranteed_limit"):
        return "Guaranteed"
    if debt <= heuristic_decimal(SECTION, "streamlined_limit"):
        return "Streamlined"
    return "Non-Streamlined"


def _confidence(profile: Profile, score: Decimal | None) -> ConfidenceTier:
    if debt_amount(profile) <= heuristic_decimal(SECTION, "streamlined_limit"):
        return ConfidenceTier.HIGH
    return ConfidenceTier.MEDIUM


def _metrics(profile: Profile) -> DisplayMetrics:
    debt = debt_amount(profile)
    streamlined = debt <= heuristic_decimal(SECTION, "streamlined_limit")
    rate = success_rate(SECTION, "streamlined" if streamlined else "non_streamlined")
    requirements = ["All tax returns filed", "Monthly payment commitment"]
    if not streamlined:
        requirements.append("Collection information statement")
    return metrics(SECTION, rate, variant=_variant(debt), requirements=tuple(requirements))


NOT_FILED = "All required tax returns must be filed before a payment plan can be set up"

ELIGIBILITY = EligibilityRule(
    applies=lambda profile: debt_amount(profile) > 0,
    predicate=lambda profile: profile.all_returns_filed,
    confidence=_confidence,
    fallback_reason=NOT_FILED,
    reasons=(DisqualifyReason(lambda profile: not profile.all_returns_filed, NOT_FILED),),
    metrics=_metrics,
)


PROGRAM = ProgramDefinition(
    id="installment_agreement",
    name="Installment Agreement",
    category="Payment Plan",
    description="Pay the balance in monthly installments over up to 72 months.",
    requirements=("All tax returns filed", "Ability to make monthly payments"),
    steps=(
        StepDefinition(
            "agreement_type",
            "Agreement Type",
            fields=(
                money_field("total_debt", "Total tax debt", minimum=1),
                FieldSpec(
                    "agreement_type",
                    "Agreement type",
                    type="choice",
                    required=True,
                    choices=AGREEMENT_TYPES,
                    validators=(v.one_of(AGREEMENT_TYPES, "Please select an agreement type"),),
                    required_message="Please select an agreement type",
                ),
            ),
            checks=(Check("agreement_type", _debt_within_agreement_limit),),
        ),
        StepDefinition(
            "payment",
            "Payment Calculation",
            fields=(
                money_field("monthly_payment", "Monthly payment", minimum=25, message="Minimum payment is $25"),
                FieldSpec(
                    "payment_date",
                    "Payment day of month",
                    type="number",
                    required=True,
                    validators=(v.day_of_month(1, 28),),
                    required_message="Payment date is required",
                ),
            ),
            checks=(Check("monthly_payment", _payment_covers_minimum),),
        ),
        StepDefinition(
            "financial_information",
            "Financial Information",
            fields=(
                money_field(
                    "monthly_income",
                    "Monthly income",
                    required=False,
                    required_if=non_streamlined,
                    required_message="Monthly income is required",
                ),
                money_field(
                    "monthly_expenses",
                    "Monthly expenses",
                    required=False,
                    required_if=non_streamlined,
                    required_message="Monthly expenses are required",
                ),
                ssn_field(),
                phone_field(),
                FieldSpec("bank_routing_number", "Routing number", validators=(v.routing_number,)),
                FieldSpec("bank_account_number", "Account number", validators=(v.account_number,)),
                FieldSpec(
                    "bank_account_type",
                    "Account type",
                    type="choice",
                    choices=("checking", "savings"),
                    validators=(v.one_of(("checking", "savings")),),
                ),
            ),
        ),
        StepDefinition(
            "documents",
            "Document Upload",
            include=non_streamlined,
            fields=(
                documents_field(
                    "Financial documents are required for non-streamlined agreements",
                    required=True,
                ),
            ),
        ),
        StepDefinition(
            "review",
            "Review & Submit",
            fields=(terms_field(), signature_field()),
        ),
    ),
    derived=(
        DerivedField("minimum_payment", ("total_debt",), _minimum_payment),
        DerivedField("payoff_months", ("total_debt", "monthly_payment"), _payoff_months),
        DerivedField("total_paid", ("total_debt", "monthly_payment"), _total_paid),
        DerivedField("monthly_disposable_income", ("monthly_income", "monthly_expenses"), _monthly_disposable_income),
    ),
    eligibility=ELIGIBILITY,
)

