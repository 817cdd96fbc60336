"""Eligibility questionnaire whose submission becomes a :class:`Profile`."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from reliefdesk.core import validation as v
from reliefdesk.core.calculators import ratio
from reliefdesk.core.coerce import safe_decimal
from reliefdesk.core.schema import Circumstance, DebtBracket, FilingStatus
from reliefdesk.core.settings import heuristic
from reliefdesk.domain import DerivedField, FieldSpec, StepDefinition, WorkflowDefinition
from reliefdesk.programs.common import answer_true, money_field, total_of

DEBT_BRACKETS = tuple(bracket.value for bracket in DebtBracket)
EMERGENCY_TYPES = ("bank-levy", "wage-garnishment", "asset-seizure", "business-closure")
RETURN_ANSWERS = ("yes", "no", "unsure")
FILING_STATUSES = tuple(status.value for status in FilingStatus)
CIRCUMSTANCES = tuple(circumstance.value for circumstance in Circumstance)
ASSET_KEYS = ("bank_balance", "retirement_balance", "home_equity")

_total_assets = total_of(ASSET_KEYS)


def _debt_to_income_ratio(values: Mapping[str, Any]) -> Decimal | None:
    debt = safe_decimal(heuristic("debt_brackets", str(values.get("total_debt") or "")))
    return ratio(debt, safe_decimal(values.get("monthly_net_income")) * 12)


WORKFLOW = WorkflowDefinition(
    id="intake",
    name="Eligibility Assessment",
    category="Assessment",
    steps=(
        StepDefinition(
            "debt",
            "Total Tax Debt",
            fields=(
                FieldSpec(
                    "total_debt",
                    "How much do you owe?",
                    type="choice",
                    required=True,
                    choices=DEBT_BRACKETS,
                    validators=(v.one_of(DEBT_BRACKETS),),
                    required_message="Please select your total tax debt",
                ),
            ),
        ),
        StepDefinition(
            "emergency",
            "Urgent Collection Action",
            fields=(
                FieldSpec(
                    "has_emergency",
                    "Are you facing a levy, garnishment or seizure?",
                    type="boolean",
                    required=True,
                    validators=(v.boolean,),
                    required_message="Please answer this question",
                ),
            ),
        ),
        StepDefinition(
            "emergency_types",
            "Collection Actions",
            include=answer_true("has_emergency"),
            fields=(
                FieldSpec(
                    "emergency_types",
                    "Which actions are you facing?",
                    type="multi_choice",
                    required=True,
                    choices=EMERGENCY_TYPES,
                    validators=(v.min_items(1, "Please select at least one action"), v.many_of(EMERGENCY_TYPES)),
                ),
            ),
        ),
        StepDefinition(
            "returns",
            "Filing Compliance",
            fields=(
                FieldSpec(
                    "returns_filed",
                    "Have you filed all required tax returns?",
                    type="choice",
                    required=True,
                    choices=RETURN_ANSWERS,
                    validators=(v.one_of(RETURN_ANSWERS),),
                ),
            ),
        ),
        StepDefinition(
            "finances",
            "Household Finances",
            fields=(
                FieldSpec(
                    "filing_status",
                    "Filing status",
                    type="choice",
                    required=True,
                    choices=FILING_STATUSES,
                    validators=(v.one_of(FILING_STATUSES),),
                ),
                money_field("monthly_net_income", "Monthly take-home income"),
            ),
        ),
        StepDefinition(
            "assets",
            "Assets",
            fields=(
                money_field("bank_balance", "Cash in bank accounts", required=False),
                money_field("retirement_balance", "Retirement accounts", required=False),
                money_field("home_equity", "Home equity", required=False),
            ),
        ),
        StepDefinition(
            "circumstances",
            "Special Circumstances",
            fields=(
                FieldSpec(
                    "circumstances",
                    "Do any of these apply?",
                    type="multi_choice",
                    choices=CIRCUMSTANCES,
                    validators=(v.many_of(CIRCUMSTANCES),),
                ),
            ),
        ),
        StepDefinition(
            "previous_relief",
            "Previous Relief",
            fields=(
                FieldSpec(
                    "previous_relief",
                    "Have you received penalty relief before?",
                    type="boolean",
                    required=True,
                    validators=(v.boolean,),
                    required_message="Please answer this question",
                ),
            ),
        ),
    ),
    derived=(
        DerivedField("total_assets", ASSET_KEYS, _total_assets),
        DerivedField("debt_to_income_ratio", ("total_debt", "monthly_net_income"), _debt_to_income_ratio),
    ),
)
