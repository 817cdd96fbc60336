"""Innocent spouse relief: release from liability caused by a spouse or former spouse."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from reliefdesk.core import validation as v
from reliefdesk.core.calculators import ratio, surplus
from reliefdesk.core.coerce import safe_decimal
from reliefdesk.core.schema import Circumstance, ConfidenceTier, Profile
from reliefdesk.domain import (
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
    answer_true,
    debt_amount,
    documents_field,
    metrics,
    money_field,
    phone_field,
    signature_field,
    ssn_field,
    success_rate,
)

SECTION = "innocent_spouse_relief"
RELIEF_TYPES = ("traditional", "separation", "equitable")
MARITAL_STATUSES = ("married", "divorced", "separated", "widowed")
FINANCE_HANDLERS = ("self", "spouse", "both")


def _yes_no(key: str, label: str, required: bool = True, **kwargs: Any) -> FieldSpec:
    return FieldSpec(
        key,
        label,
        type="boolean",
        required=required,
        validators=(v.boolean,),
        required_message="Please answer this question" if required else None,
        **kwargs,
    )


def _monthly_surplus(values: Mapping[str, Any]) -> Decimal:
    return surplus(values.get("current_income"), values.get("monthly_expenses"))


def _liability_to_income_ratio(values: Mapping[str, Any]) -> Decimal | None:
    return ratio(values.get("total_liability"), safe_decimal(values.get("current_income")) * 12)


# ----------------------------------------------------------------------
# eligibility
# ----------------------------------------------------------------------
def _metrics(profile: Profile) -> DisplayMetrics:
    return metrics(
        SECTION,
        success_rate(SECTION),
        variant="Equitable Relief",
        savings_base=debt_amount(profile),
        requirements=(
            "Prove lack of knowledge",
            "Show it would be unfair to hold you liable",
            "Submit within time limits",
        ),
    )


NOT_SEPARATED = "Relief typically requires separation, divorce, or the death of a spouse"

ELIGIBILITY = EligibilityRule(
    applies=lambda profile: profile.has(Circumstance.DIVORCE)
    or (profile.filing_status is not None and profile.filing_status.married),
    predicate=lambda profile: profile.has(Circumstance.DIVORCE),
    confidence=lambda profile, score: ConfidenceTier.LOW,
    fallback_reason=NOT_SEPARATED,
    reasons=(DisqualifyReason(lambda profile: not profile.has(Circumstance.DIVORCE), NOT_SEPARATED),),
    metrics=_metrics,
)


divorced = answer_is("current_status", "divorced")
divorced_or_separated = answer_is("current_status", "divorced", "separated")

PROGRAM = ProgramDefinition(
    id="innocent_spouse_relief",
    name="Innocent Spouse Relief",
    category="Liability Relief",
    description="Relief from joint tax liability caused by a spouse's actions.",
    requirements=("Joint return with an understatement", "No knowledge of the understatement"),
    steps=(
        StepDefinition(
            "relief_type",
            "Relief Type",
            fields=(
                FieldSpec(
                    "relief_type",
                    "Relief type",
                    type="choice",
                    required=True,
                    choices=RELIEF_TYPES,
                    validators=(v.one_of(RELIEF_TYPES, "Please select a relief type"),),
                    required_message="Please select a relief type",
                ),
                FieldSpec(
                    "tax_years",
                    "Tax years",
                    type="list",
                    required=True,
                    validators=(v.min_items(1, "Please select at least one tax year"),),
                ),
                money_field(
                    "total_liability",
                    "Total liability",
                    minimum=1,
                    required_message="Total liability amount is required",
                ),
            ),
        ),
        StepDefinition(
            "relationship",
            "Relationship Timeline",
            fields=(
                FieldSpec(
                    "marriage_date",
                    "Date of marriage",
                    type="date",
                    required=True,
                    validators=(v.not_in_future,),
                    required_message="Marriage date is required",
                ),
                FieldSpec(
                    "current_status",
                    "Current marital status",
                    type="choice",
                    required=True,
                    choices=MARITAL_STATUSES,
                    validators=(v.one_of(MARITAL_STATUSES),),
                    required_message="Current marital status is required",
                ),
                FieldSpec(
                    "separation_date",
                    "Date of separation",
                    type="date",
                    required_if=divorced_or_separated,
                    validators=(
                        v.date_value,
                        v.date_after("marriage_date", "Separation date must be after the marriage date"),
                    ),
                    required_message="Separation date is required",
                ),
                FieldSpec(
                    "divorce_date",
                    "Date of divorce",
                    type="date",
                    required_if=divorced,
                    validators=(
                        v.date_value,
                        v.date_after("marriage_date", "Divorce date must be after the marriage date"),
                        v.date_after("separation_date", "Divorce date must be after the separation date"),
                    ),
                    required_message="Divorce date is required",
                ),
                FieldSpec(
                    "spouse_name",
                    "Spouse or former spouse name",
                    required=True,
                    required_message="Spouse name is required",
                ),
            ),
        ),
        StepDefinition(
            "knowledge",
            "Knowledge Assessment",
            fields=(
                _yes_no("knew_of_understatement", "Did you know about the understatement?"),
                _yes_no("reason_to_know", "Did you have reason to know?"),
                FieldSpec(
                    "knowledge_explanation",
                    "Explain what you knew",
                    required=True,
                    validators=(v.min_length(50),),
                ),
            ),
        ),
        StepDefinition(
            "financial_control",
            "Financial Control",
            fields=(
                FieldSpec(
                    "handled_finances",
                    "Who handled the household finances?",
                    type="choice",
                    required=True,
                    choices=FINANCE_HANDLERS,
                    validators=(v.one_of(FINANCE_HANDLERS),),
                    required_message="Please indicate who handled finances",
                ),
                _yes_no("access_to_records", "Did you have access to financial records?"),
                FieldSpec(
                    "financial_control_details",
                    "Describe how finances were managed",
                    required=True,
                    validators=(v.min_length(50, "Please provide details (at least 50 characters)"),),
                ),
            ),
        ),
        StepDefinition(
            "current_situation",
            "Current Situation",
            fields=(
                money_field("current_income", "Current monthly income", required_message="Current income is required"),
                money_field(
                    "monthly_expenses",
                    "Monthly expenses",
                    required_message="Monthly expenses are required",
                ),
                _yes_no("suffer_hardship", "Would paying cause economic hardship?", required=False),
                FieldSpec(
                    "hardship_explanation",
                    "Explain the hardship",
                    required_if=answer_true("suffer_hardship"),
                    validators=(v.non_empty,),
                    required_message="Please explain the hardship",
                ),
                _yes_no("abuse_victim", "Were you a victim of abuse or financial control?", required=False),
            ),
        ),
        StepDefinition(
            "abuse_circumstances",
            "Abuse Circumstances",
            include=answer_true("abuse_victim"),
            fields=(
                FieldSpec(
                    "abuse_description",
                    "Describe the circumstances",
                    required=True,
                    validators=(v.min_length(50),),
                ),
            ),
        ),
        StepDefinition(
            "documents",
            "Supporting Documents",
            fields=(documents_field(required=True),),
        ),
        StepDefinition(
            "review",
            "Review & Submit",
            fields=(
                ssn_field(),
                phone_field(),
                acknowledgement(
                    "certify_truth",
                    "My statements are true",
                    "You must certify the truthfulness of your statements",
                ),
                signature_field(),
            ),
        ),
    ),
    derived=(
        DerivedField("monthly_surplus", ("current_income", "monthly_expenses"), _monthly_surplus),
        DerivedField(
            "liability_to_income_ratio",
            ("total_liability", "current_income"),
            _liability_to_income_ratio,
        ),
    ),
    eligibility=ELIGIBILITY,
)
