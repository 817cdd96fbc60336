import sys
from decimal import Decimal
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from reliefdesk.core.errors import StateViolation, ValidationFailure
from reliefdesk.core.schema import Profile
from reliefdesk.core.workflow import WorkflowEngine
from reliefdesk.domain import FieldSpec, StepDefinition, WorkflowDefinition
from reliefdesk.programs.registry import INTAKE, engine_for, get_program, get_workflow, list_programs

NARRATIVE = "x" * 120


def _goto(engine, session, step_id):
    while engine.current_step(session).id != step_id:
        session = engine.next(session)
    return session


def test_registry_lists_programs_in_declaration_order():
    assert [program.id for program in list_programs()] == [
        "installment_agreement",
        "offer_in_compromise",
        "currently_not_collectible",
        "penalty_abatement",
        "innocent_spouse_relief",
    ]
    assert get_program("offer_in_compromise").name == "Offer in Compromise"
    assert get_workflow("intake") is INTAKE
    with pytest.raises(StateViolation):
        get_program("intake")
    with pytest.raises(StateViolation):
        get_program("bankruptcy")


def test_every_definition_starts_with_an_unconditional_step():
    for definition in (*list_programs(), INTAKE):
        session = engine_for(definition.id).start()
        assert session.current_step_index == 0
        if definition is not INTAKE:
            assert definition.eligibility is not None
        assert definition.derived, definition.id


def test_definitions_reject_duplicate_keys():
    step = StepDefinition("a", "A", fields=(FieldSpec("x", "X"), FieldSpec("x", "X again")))
    with pytest.raises(ValueError):
        WorkflowDefinition(id="dup", name="Dup", category="Test", steps=(step,))
    with pytest.raises(ValueError):
        FieldSpec("y", "Y", type="colour")


def test_intake_skips_emergency_detail_without_emergency():
    engine = WorkflowEngine(INTAKE)
    session = engine.set_field(engine.start("intake-1"), "total_debt", "50k-100k")
    session = engine.next(session)
    session = engine.set_field(session, "has_emergency", False)
    session = engine.next(session)
    assert engine.current_step(session).id == "returns"

    session = engine.back(session)
    session = engine.set_field(session, "has_emergency", True)
    session = engine.next(session)
    assert engine.current_step(session).id == "emergency_types"
    with pytest.raises(ValidationFailure) as excinfo:
        engine.next(session)
    assert excinfo.value.errors == {"emergency_types": "Please select at least one action"}


def test_intake_submission_builds_profile():
    engine = WorkflowEngine(INTAKE)
    session = engine.start("intake-2")
    for changes in (
        {"total_debt": "50k-100k"},
        {"has_emergency": True},
        {"emergency_types": ["bank-levy"]},
        {"returns_filed": "yes"},
        {"filing_status": "single", "monthly_net_income": "1500"},
        {"bank_balance": "0"},
        {"circumstances": ["unemployment"]},
        {"previous_relief": False},
    ):
        session = engine.next(engine.set_fields(session, changes))
    assert session.derived["debt_to_income_ratio"] is not None

    payload = engine.submit(session).payload
    profile = Profile.from_intake(payload)
    assert profile.all_returns_filed
    assert profile.bank_levy
    assert profile.monthly_net_income == Decimal("1500")
    assert profile.total_debt.value == "50k-100k"


def test_penalty_paths_are_mutually_exclusive():
    engine = engine_for("penalty_abatement")
    session = engine.set_fields(
        engine.start("pa-1"),
        {"penalty_type": "first-time", "penalty_amount": "850", "tax_year": "2022"},
    )
    steps = [step.id for step in engine.effective_steps(session)]
    assert "first_time_check" in steps and "reasonable_cause" not in steps

    session = engine.next(session)
    session = engine.set_fields(session, {"prior_compliance": True, "no_prior_penalties": True})
    assert session.derived["estimated_abatement"] == "850"
    session = engine.next(session)
    # documents are optional on the first-time path
    session = engine.next(session)
    assert engine.current_step(session).id == "contact"

    session = engine.set_field(session, "penalty_type", "reasonable-cause")
    assert session.derived["estimated_abatement"] == "0"
    steps = [step.id for step in engine.effective_steps(session)]
    assert "reasonable_cause" in steps and "first_time_check" not in steps


def test_reasonable_cause_needs_documents():
    engine = engine_for("penalty_abatement")
    session = engine.set_fields(
        engine.start("pa-2"),
        {
            "penalty_type": "reasonable-cause",
            "penalty_amount": "1200",
            "tax_year": 2021,
            "reason_category": "illness",
            "reason_details": NARRATIVE,
            "event_date": "2021-02-01",
        },
    )
    session = _goto(engine, session, "documents")
    with pytest.raises(ValidationFailure) as excinfo:
        engine.next(session)
    assert excinfo.value.errors == {
        "documents": "Supporting documentation is required for reasonable cause requests"
    }


def test_spouse_relief_enforces_date_order():
    engine = engine_for("innocent_spouse_relief")
    session = engine.set_fields(
        engine.start("isr-1"),
        {"relief_type": "separation", "tax_years": ["2019"], "total_liability": "30000"},
    )
    session = engine.next(session)
    session = engine.set_fields(
        session,
        {
            "marriage_date": "2010-06-01",
            "current_status": "divorced",
            "separation_date": "2009-01-01",
            "spouse_name": "Alex Doe",
        },
    )
    with pytest.raises(ValidationFailure) as excinfo:
        engine.next(session)
    assert excinfo.value.errors == {
        "separation_date": "Separation date must be after the marriage date",
        "divorce_date": "Divorce date is required",
    }

    session = engine.set_fields(session, {"separation_date": "2018-01-01", "divorce_date": "2017-01-01"})
    with pytest.raises(ValidationFailure) as excinfo:
        engine.next(session)
    assert excinfo.value.errors == {"divorce_date": "Divorce date must be after the separation date"}


def test_spouse_relief_abuse_step_is_conditional():
    engine = engine_for("innocent_spouse_relief")
    session = engine.start("isr-2")
    assert "abuse_circumstances" not in [step.id for step in engine.effective_steps(session)]
    session = engine.set_fields(session, {"abuse_victim": True, "current_income": "2000", "total_liability": "48000"})
    assert "abuse_circumstances" in [step.id for step in engine.effective_steps(session)]
    assert session.derived["liability_to_income_ratio"] == "2"


def test_offer_collection_potential_uses_payment_horizon():
    engine = engine_for("offer_in_compromise")
    session = engine.set_fields(
        engine.start("oic-1"),
        {
            "offer_type": "doubt-collectibility",
            "total_debt": "60000",
            "wages": "3000",
            "housing_expense": "2000",
            "food_expense": "500",
            "bank_accounts": "1000",
            "payment_option": "lump-sum",
        },
    )
    assert session.derived["monthly_disposable_income"] == "500"
    assert session.derived["reasonable_collection_potential"] == "6800.0"

    session = engine.set_field(session, "payment_option", "periodic")
    assert session.derived["reasonable_collection_potential"] == "12800.0"

    assert "offer_basis" not in [step.id for step in engine.effective_steps(session)]
    session = _goto(engine, session, "offer")
    session = engine.set_field(session, "offer_amount", "5000")
    assert session.derived["offer_shortfall"] == "7800.0"
    with pytest.raises(ValidationFailure) as excinfo:
        engine.next(session)
    assert "reasonable collection potential" in excinfo.value.errors["offer_amount"]


def test_offer_basis_required_for_liability_offers():
    engine = engine_for("offer_in_compromise")
    session = engine.set_fields(engine.start("oic-2"), {"offer_type": "doubt-liability", "total_debt": "20000"})
    session = engine.next(session)
    assert engine.current_step(session).id == "offer_basis"
    session = engine.set_field(session, "basis_explanation", "The assessment is wrong.")
    with pytest.raises(ValidationFailure) as excinfo:
        engine.next(session)
    assert excinfo.value.errors["basis_explanation"].startswith("Please provide a detailed explanation")


def test_offer_matching_the_balance_is_rejected_at_submission():
    engine = engine_for("offer_in_compromise")
    session = engine.set_fields(
        engine.start("oic-3"),
        {
            "offer_type": "doubt-liability",
            "total_debt": "20000",
            "basis_explanation": NARRATIVE,
            "wages": "4000",
            "housing_expense": "1500",
            "offer_amount": "20000",
            "payment_option": "lump-sum",
            "application_fee_acknowledged": True,
            "initial_payment_acknowledged": True,
            "terms_accepted": True,
            "signature_name": "Jordan Smith",
        },
    )
    session = engine.add_document(session, "notice.pdf", 2048)
    session = _goto(engine, session, "review")
    session = engine.next(session)

    with pytest.raises(ValidationFailure) as excinfo:
        engine.submit(session)
    assert excinfo.value.errors == {"offer_amount": "An offer must be less than the total balance owed"}

    session = engine.set_field(session, "offer_amount", "8000")
    outcome = engine.submit(session)
    assert outcome.payload.answers["offer_amount"] == "8000"


def test_oversized_income_is_a_field_error():
    engine = engine_for("offer_in_compromise")
    session = engine.set_fields(engine.start("oic-4"), {"offer_type": "doubt-collectibility", "total_debt": "20000"})
    session = _goto(engine, session, "income")

    session = engine.set_fields(session, {"wages": "9e999999", "other_income": "9e999999"})
    assert session.derived["total_monthly_income"] == "0"
    assert session.derived["monthly_disposable_income"] == "0"

    with pytest.raises(ValidationFailure) as excinfo:
        engine.next(session)
    assert excinfo.value.errors["wages"] == "Enter a valid amount"
    assert excinfo.value.errors["other_income"] == "Enter a valid amount"

    session = engine.set_fields(session, {"wages": "5000000000000", "other_income": None})
    with pytest.raises(ValidationFailure) as excinfo:
        engine.next(session)
    assert excinfo.value.errors["wages"] == "Amount is too large"
