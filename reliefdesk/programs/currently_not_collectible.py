"""Currently not collectible: collection is paused while the taxpayer is in hardship."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from reliefdesk.core import validation as v
from reliefdesk.core.calculators import ratio, sum_itemized, surplus
from reliefdesk.core.coerce import safe_decimal
from reliefdesk.core.schema import Circumstance, ConfidenceTier, Profile
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
    documents_field,
    metrics,
    money_field,
    phone_field,
    signature_field,
    ssn_field,
    success_rate,
    total_of,
)

SECTION = "currently_not_collectible"
HARDSHIP_TYPES = ("unemployment", "medical", "fixed-income", "other")
EMPLOYMENT_STATUSES = ("unemployed", "employed", "self-employed", "retired", "disabled")
CALL_TIMES = ("morning", "afternoon", "evening", "anytime")
HARDSHIP_CIRCUMSTANCES = (Circumstance.MEDICAL, Circumstance.DISABILITY, Circumstance.UNEMPLOYMENT)

EXPENSE_KEYS = (
    "housing_expense",
    "utilities_expense",
    "food_expense",
    "transportation_expense",
    "medical_expense",
    "other_expense",
)

unemployed = answer_is("employment_status", "unemployed")

_total_expenses = total_of(EXPENSE_KEYS)


def _monthly_shortfall(values: Mapping[str, Any]) -> Decimal:
    return surplus(values.get("total_expenses"), values.get("monthly_income"))


def _expenses_exceed_income(values: Mapping[str, Any]) -> v.ValidationResult:
    expenses = sum_itemized(values.get(key) for key in EXPENSE_KEYS)
    if expenses <= 0:
        return v.fail("Please enter your monthly expenses")
    if expenses <= safe_decimal(values.get("monthly_income")):
        return v.fail("Your income exceeds expenses. You may not qualify for CNC status.")
    return v.OK


# ----------------------------------------------------------------------
# eligibility
# ----------------------------------------------------------------------
def _in_hardship(profile: Profile) -> bool:
    if any(profile.has(circumstance) for circumstance in HARDSHIP_CIRCUMSTANCES):
        return True
    return profile.monthly_net_income < heuristic_decimal(SECTION, "income_ceiling")


def _income_ratio(profile: Profile) -> Decimal | None:
    return ratio(profile.monthly_net_income, heuristic_decimal(SECTION, "income_ceiling"))


def _confidence(profile: Profile, score: Decimal | None) -> ConfidenceTier:
    thresholds = ConfidenceThresholds(
        high=heuristic_decimal(SECTION, "confidence", "high_below"),
        medium=heuristic_decimal(SECTION, "confidence", "medium_below"),
        lower_is_better=True,
    )
    return thresholds.classify(score)


def _metrics(profile: Profile) -> DisplayMetrics:
    return metrics(
        SECTION,
        success_rate(SECTION),
        variant="Financial Hardship",
        requirements=(
            "Prove financial hardship",
            "Provide income documentation",
            "Show necessary living expenses",
        ),
    )


NOT_FILED = "All required tax returns must be filed before collection can be suspended"

ELIGIBILITY = EligibilityRule(
    applies=_in_hardship,
    predicate=lambda profile: profile.all_returns_filed,
    confidence=_confidence,
    fallback_reason=NOT_FILED,
    reasons=(DisqualifyReason(lambda profile: not profile.all_returns_filed, NOT_FILED),),
    score=_income_ratio,
    metrics=_metrics,
)


PROGRAM = ProgramDefinition(
    id="currently_not_collectible",
    name="Currently Not Collectible",
    category="Collection Hold",
    description="Temporarily suspend collection activity due to financial hardship.",
    requirements=("Prove financial hardship", "Provide income documentation"),
    steps=(
        StepDefinition(
            "hardship",
            "Hardship Type",
            fields=(
                FieldSpec(
                    "hardship_type",
                    "Hardship type",
                    type="choice",
                    required=True,
                    choices=HARDSHIP_TYPES,
                    validators=(v.one_of(HARDSHIP_TYPES, "Please select a hardship type"),),
                    required_message="Please select a hardship type",
                ),
                FieldSpec(
                    "hardship_description",
                    "Describe your hardship",
                    required=True,
                    validators=(v.min_length(50, "Please provide a detailed description (at least 50 characters)"),),
                ),
            ),
        ),
        StepDefinition(
            "income",
            "Income Information",
            fields=(
                FieldSpec(
                    "employment_status",
                    "Employment status",
                    type="choice",
                    required=True,
                    choices=EMPLOYMENT_STATUSES,
                    validators=(v.one_of(EMPLOYMENT_STATUSES),),
                    required_message="Employment status is required",
                ),
                money_field(
                    "monthly_income",
                    "Monthly income",
                    required_message="Monthly income is required (enter 0 if none)",
                ),
            ),
        ),
        StepDefinition(
            "employment_history",
            "Employment History",
            include=unemployed,
            fields=(
                FieldSpec(
                    "last_employment_date",
                    "Last day of employment",
                    type="date",
                    required=True,
                    validators=(v.not_in_future,),
                    required_message="Please provide your last employment date",
                ),
                FieldSpec("last_employer", "Last employer"),
            ),
        ),
        StepDefinition(
            "expenses",
            "Monthly Expenses",
            fields=tuple(
                money_field(key, key.replace("_expense", "").capitalize(), required=False) for key in EXPENSE_KEYS
            ),
            checks=(Check("expenses", _expenses_exceed_income),),
        ),
        StepDefinition(
            "evidence",
            "Supporting Evidence",
            fields=(
                FieldSpec(
                    "medical_condition",
                    "Medical condition",
                    required_if=answer_is("hardship_type", "medical"),
                    validators=(v.non_empty,),
                    required_message="Please describe your medical condition",
                ),
                documents_field(required=True),
            ),
        ),
        StepDefinition(
            "contact",
            "Contact Information",
            fields=(
                ssn_field(),
                phone_field(),
                FieldSpec(
                    "best_time_to_call",
                    "Best time to call",
                    type="choice",
                    required=True,
                    choices=CALL_TIMES,
                    validators=(v.one_of(CALL_TIMES),),
                    required_message="Please select the best time to call",
                ),
                FieldSpec("alternate_contact_name", "Alternate contact"),
                phone_field("alternate_contact_phone", "Alternate contact phone", required=False),
            ),
        ),
        StepDefinition(
            "review",
            "Review & Submit",
            fields=(
                acknowledgement(
                    "statement_accuracy",
                    "My statements are accurate",
                    "You must certify the accuracy of your statements",
                ),
                acknowledgement(
                    "understand_terms",
                    "I understand CNC status is temporary",
                    "You must acknowledge understanding of CNC terms",
                ),
                signature_field(),
            ),
        ),
    ),
    derived=(
        DerivedField("total_expenses", EXPENSE_KEYS, _total_expenses),
        DerivedField("monthly_shortfall", ("total_expenses", "monthly_income"), _monthly_shortfall),
    ),
    eligibility=ELIGIBILITY,
)
