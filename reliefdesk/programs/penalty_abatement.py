"""Penalty abatement: first-time abatement or reasonable-cause relief from penalties."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from reliefdesk.core import validation as v
from reliefdesk.core.calculators import ZERO
from reliefdesk.core.coerce import is_blank, safe_decimal
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
    debt_amount,
    documents_field,
    metrics,
    money_field,
    phone_field,
    signature_field,
    ssn_field,
    success_rate,
)

SECTION = "penalty_abatement"
PENALTY_TYPES = ("first-time", "reasonable-cause")
REASON_CATEGORIES = ("death", "illness", "disaster", "records", "advice", "other")
REASONABLE_CAUSES = (Circumstance.MEDICAL, Circumstance.DISABILITY, Circumstance.COVID)

first_time = answer_is("penalty_type", "first-time")
reasonable_cause = answer_is("penalty_type", "reasonable-cause")


def _estimated_abatement(values: Mapping[str, Any]) -> Decimal:
    amount = max(safe_decimal(values.get("penalty_amount")), ZERO)
    if first_time(values):
        confirmed = values.get("prior_compliance") is True and values.get("no_prior_penalties") is True
        return amount if confirmed else ZERO
    if reasonable_cause(values):
        documented = not is_blank(values.get("reason_category")) and not is_blank(values.get("event_date"))
        return amount if documented else ZERO
    return ZERO


# ----------------------------------------------------------------------
# eligibility
# ----------------------------------------------------------------------
def first_time_eligible(profile: Profile) -> bool:
    return not profile.previous_relief and profile.all_returns_filed


def has_reasonable_cause(profile: Profile) -> bool:
    return any(profile.has(circumstance) for circumstance in REASONABLE_CAUSES)


def _confidence(profile: Profile, score: Decimal | None) -> ConfidenceTier:
    if first_time_eligible(profile):
        return ConfidenceTier.HIGH
    if has_reasonable_cause(profile):
        return ConfidenceTier.MEDIUM
    return ConfidenceTier.LOW


def _metrics(profile: Profile) -> DisplayMetrics:
    if first_time_eligible(profile):
        return metrics(
            SECTION,
            success_rate(SECTION, "first_time"),
            variant="First-Time Abatement",
            savings_base=debt_amount(profile),
            requirements=(
                "Clean compliance history (3 years)",
                "All returns filed",
                "No previous penalty abatements",
            ),
        )
    return metrics(
        SECTION,
        success_rate(SECTION, "reasonable_cause"),
        variant="Reasonable Cause",
        savings_base=debt_amount(profile),
        requirements=(
            "Document reasonable cause",
            "Provide supporting evidence",
            "Write detailed explanation letter",
        ),
    )


NO_BASIS = "No first-time eligibility or documented reasonable cause for penalty relief"

ELIGIBILITY = EligibilityRule(
    applies=lambda profile: True,
    predicate=lambda profile: first_time_eligible(profile) or has_reasonable_cause(profile),
    confidence=_confidence,
    fallback_reason=NO_BASIS,
    reasons=(
        DisqualifyReason(
            lambda profile: profile.previous_relief,
            "Penalty relief granted in a prior period rules out first-time abatement",
        ),
        DisqualifyReason(
            lambda profile: not profile.all_returns_filed,
            "All required returns must be filed to qualify for first-time abatement",
        ),
    ),
    metrics=_metrics,
)


PROGRAM = ProgramDefinition(
    id="penalty_abatement",
    name="Penalty Abatement",
    category="Penalty Relief",
    description="Remove or reduce penalties added to the tax debt.",
    requirements=("Clean compliance history or reasonable cause",),
    steps=(
        StepDefinition(
            "penalty_information",
            "Penalty Information",
            fields=(
                FieldSpec(
                    "penalty_type",
                    "Abatement type",
                    type="choice",
                    required=True,
                    choices=PENALTY_TYPES,
                    validators=(v.one_of(PENALTY_TYPES, "Please select a penalty abatement type"),),
                    required_message="Please select a penalty abatement type",
                ),
                money_field("penalty_amount", "Penalty amount", minimum=1, required_message="Penalty amount is required"),
                FieldSpec(
                    "tax_year",
                    "Tax year",
                    type="number",
                    required=True,
                    validators=(v.tax_year,),
                    required_message="Tax year is required",
                ),
            ),
        ),
        StepDefinition(
            "first_time_check",
            "First-Time Eligibility Check",
            include=first_time,
            fields=(
                acknowledgement(
                    "prior_compliance",
                    "I have filed all required returns",
                    "You must have filed all required returns to qualify",
                ),
                acknowledgement(
                    "no_prior_penalties",
                    "I had no penalties in the prior 3 years",
                    "You must have no penalties in the prior 3 years to qualify",
                ),
                FieldSpec("payment_arranged", "I have paid or arranged to pay the tax due", type="boolean"),
            ),
        ),
        StepDefinition(
            "reasonable_cause",
            "Reasonable Cause",
            include=reasonable_cause,
            fields=(
                FieldSpec(
                    "reason_category",
                    "Reason",
                    type="choice",
                    required=True,
                    choices=REASON_CATEGORIES,
                    validators=(v.one_of(REASON_CATEGORIES),),
                    required_message="Please select a reason category",
                ),
                FieldSpec(
                    "reason_details",
                    "What happened",
                    required=True,
                    validators=(v.min_length(100, "Please provide detailed explanation (at least 100 characters)"),),
                ),
                FieldSpec(
                    "event_date",
                    "Date of the event",
                    type="date",
                    required=True,
                    validators=(v.not_in_future,),
                    required_message="Please provide the date of the event",
                ),
            ),
        ),
        StepDefinition(
            "documents",
            "Supporting Documents",
            fields=(
                documents_field(
                    "Supporting documentation is required for reasonable cause requests",
                    required_if=reasonable_cause,
                ),
            ),
        ),
        StepDefinition(
            "contact",
            "Contact Information",
            fields=(
                ssn_field(),
                phone_field(),
                FieldSpec("email", "Email", validators=(v.email,)),
                FieldSpec("street", "Street address", required=True, required_message="Street address is required"),
                FieldSpec("city", "City", required=True, required_message="City is required"),
                FieldSpec("state", "State", required=True, required_message="State is required"),
                FieldSpec(
                    "zip",
                    "ZIP code",
                    required=True,
                    validators=(v.zip_code,),
                    required_message="ZIP code is required",
                ),
            ),
        ),
        StepDefinition(
            "review",
            "Review & Submit",
            fields=(
                acknowledgement(
                    "certify_accuracy",
                    "The information provided is accurate",
                    "You must certify the accuracy of your information",
                ),
                signature_field(),
            ),
        ),
    ),
    derived=(
        DerivedField(
            "estimated_abatement",
            ("penalty_type", "penalty_amount", "prior_compliance", "no_prior_penalties", "reason_category", "event_date"),
            _estimated_abatement,
        ),
    ),
    eligibility=ELIGIBILITY,
)
