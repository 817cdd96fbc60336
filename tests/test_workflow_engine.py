import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from reliefdesk.core.errors import StateViolation, ValidationFailure
from reliefdesk.core.schema import SessionState, WorkflowSession
from reliefdesk.core.workflow import WorkflowEngine, start
from reliefdesk.programs import currently_not_collectible, installment_agreement

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
DESCRIPTION = "I lost my job in March and have been unable to find new work since then."


@pytest.fixture()
def cnc():
    return WorkflowEngine(currently_not_collectible.PROGRAM)


def _step_ids(engine, session):
    return [step.id for step in engine.effective_steps(session)]


def _visible_keys(engine, session):
    return [field["key"] for field in engine.visible_fields(session)]


def _through_income(engine, status):
    session = engine.start("s-1")
    session = engine.set_fields(session, {"hardship_type": "unemployment", "hardship_description": DESCRIPTION})
    session = engine.next(session)
    session = engine.set_fields(session, {"employment_status": status, "monthly_income": "0"})
    return session


def test_unemployed_applicant_must_give_last_employment_date(cnc):
    session = cnc.next(_through_income(cnc, "unemployed"))
    assert cnc.current_step(session).id == "employment_history"
    fields = {field["key"]: field for field in cnc.visible_fields(session)}
    assert fields["last_employment_date"]["required"] is True

    with pytest.raises(ValidationFailure) as excinfo:
        cnc.next(session)
    assert excinfo.value.errors == {"last_employment_date": "Please provide your last employment date"}

    session = cnc.set_field(session, "last_employment_date", "2024-03-15")
    session = cnc.next(session)
    assert cnc.current_step(session).id == "expenses"


def test_employed_applicant_never_sees_employment_history(cnc):
    session = _through_income(cnc, "employed")
    assert "employment_history" not in _step_ids(cnc, session)
    assert "last_employment_date" not in _visible_keys(cnc, session)

    session = cnc.next(session)
    assert cnc.current_step(session).id == "expenses"
    assert "last_employment_date" not in _visible_keys(cnc, session)


def test_answer_change_moves_cursor_off_excluded_step(cnc):
    session = cnc.next(_through_income(cnc, "unemployed"))
    assert cnc.current_step(session).id == "employment_history"

    session = cnc.set_field(session, "employment_status", "employed")
    assert cnc.current_step(session).id == "income"
    assert session.state == SessionState.IN_PROGRESS


def test_failed_next_leaves_session_untouched(cnc):
    session = cnc.start("s-1")
    session = cnc.set_fields(session, {"hardship_type": "unemployment", "hardship_description": "too short"})
    before = session.model_dump()

    with pytest.raises(ValidationFailure) as excinfo:
        cnc.next(session)

    assert excinfo.value.errors["hardship_description"] == (
        "Please provide a detailed description (at least 50 characters)"
    )
    assert session.model_dump() == before


def test_back_never_validates_and_stops_at_first_step(cnc):
    session = cnc.next(_through_income(cnc, "employed"))
    session = cnc.back(session)
    assert cnc.current_step(session).id == "income"
    session = cnc.back(session)
    assert cnc.current_step(session).id == "hardship"
    assert cnc.back(session) is session


def test_expense_check_is_reported_on_expenses(cnc):
    session = cnc.next(_through_income(cnc, "employed"))
    session = cnc.set_fields(session, {"monthly_income": "0"})
    with pytest.raises(ValidationFailure) as excinfo:
        cnc.next(session)
    assert excinfo.value.errors == {"expenses": "Please enter your monthly expenses"}


def _complete(engine):
    session = _through_income(engine, "employed")
    session = engine.next(session)
    session = engine.set_fields(session, {"housing_expense": "1200", "food_expense": 400})
    session = engine.next(session)
    session = engine.add_document(session, "termination-letter.pdf", 5120)
    session = engine.next(session)
    session = engine.set_fields(
        session,
        {"ssn": "123-45-6789", "phone": "(555) 123-4567", "best_time_to_call": "morning"},
    )
    session = engine.next(session)
    session = engine.set_fields(
        session,
        {"statement_accuracy": True, "understand_terms": True, "signature_name": "Jordan Doe"},
    )
    return engine.next(session)


def test_full_hardship_application_submits(cnc):
    session = _complete(cnc)
    assert session.state == SessionState.READY_TO_SUBMIT
    assert session.derived == {"total_expenses": "1600", "monthly_shortfall": "1600"}

    outcome = cnc.submit(session, now=NOW)
    assert outcome.session.state == SessionState.SUBMITTED
    assert outcome.session.submitted_at == NOW
    assert outcome.payload.program_id == "currently_not_collectible"
    assert outcome.payload.answers["employment_status"] == "employed"
    assert outcome.payload.derived["monthly_shortfall"] == "1600"
    assert [doc.name for doc in outcome.payload.documents] == ["termination-letter.pdf"]


def test_submit_revalidates_everything(cnc):
    session = _complete(cnc)
    session = cnc.remove_document(session, 0)
    session = cnc.set_field(session, "phone", "12")
    assert session.state == SessionState.READY_TO_SUBMIT

    with pytest.raises(ValidationFailure) as excinfo:
        cnc.submit(session, now=NOW)
    assert set(excinfo.value.errors) == {"documents", "phone"}


def test_terminal_sessions_reject_every_operation(cnc):
    submitted = cnc.submit(_complete(cnc), now=NOW).session
    abandoned = cnc.abandon(cnc.start("s-2"))
    assert abandoned.state == SessionState.ABANDONED

    for session in (submitted, abandoned):
        with pytest.raises(StateViolation):
            cnc.set_field(session, "hardship_type", "medical")
        with pytest.raises(StateViolation):
            cnc.next(session)
        with pytest.raises(StateViolation):
            cnc.back(session)
        with pytest.raises(StateViolation):
            cnc.submit(session)
        with pytest.raises(StateViolation):
            cnc.abandon(session)
        with pytest.raises(StateViolation):
            cnc.add_document(session, "late.pdf", 10)


def test_submit_requires_ready_state(cnc):
    with pytest.raises(StateViolation):
        cnc.submit(cnc.start("s-1"))


def test_unknown_and_upload_fields_are_rejected(cnc):
    session = cnc.start("s-1")
    with pytest.raises(StateViolation):
        cnc.set_field(session, "favourite_colour", "green")
    with pytest.raises(StateViolation):
        cnc.set_field(session, "documents", ["x.pdf"])
    with pytest.raises(StateViolation):
        cnc.remove_document(session, 0)


def test_replay_is_idempotent(cnc):
    first = cnc.submit(_complete(cnc), now=NOW)
    second = cnc.submit(_complete(cnc), now=NOW)
    assert first.session == second.session
    assert first.payload == second.payload


def test_sessions_survive_json_round_trip(cnc):
    session = _through_income(cnc, "unemployed")
    restored = WorkflowSession.model_validate_json(session.model_dump_json())
    assert restored == session
    assert cnc.current_step(cnc.next(restored)).id == "employment_history"


def test_progress_tracks_effective_steps(cnc):
    session = _through_income(cnc, "employed")
    progress = cnc.progress(session)
    assert progress["step_id"] == "income"
    assert progress["position"] == 2
    assert progress["total"] == 6
    assert progress["completed"] == 1

    session = cnc.set_field(session, "employment_status", "unemployed")
    assert cnc.progress(session)["total"] == 7


def test_installment_derived_values_span_steps():
    engine = WorkflowEngine(installment_agreement.PROGRAM)
    session = engine.start("ia-1")
    session = engine.set_fields(session, {"total_debt": "10000", "agreement_type": "streamlined"})
    assert session.derived["minimum_payment"] == "139"
    session = engine.next(session)

    session = engine.set_fields(session, {"monthly_payment": "100", "payment_date": 15})
    with pytest.raises(ValidationFailure) as excinfo:
        engine.next(session)
    assert "139" in excinfo.value.errors["monthly_payment"]

    session = engine.set_field(session, "monthly_payment", "200")
    assert session.derived["payoff_months"] == 57
    assert session.derived["total_paid"] == "11400"
    session = engine.next(session)
    assert engine.current_step(session).id == "financial_information"
    assert "documents" not in [step.id for step in engine.effective_steps(session)]


def test_installment_agreement_type_limits():
    engine = WorkflowEngine(installment_agreement.PROGRAM)
    session = engine.set_fields(engine.start("ia-2"), {"total_debt": "20000", "agreement_type": "guaranteed"})
    with pytest.raises(ValidationFailure) as excinfo:
        engine.next(session)
    assert "agreement_type" in excinfo.value.errors

    session = engine.set_field(session, "agreement_type", "non-streamlined")
    session = engine.next(session)
    assert "documents" in [step.id for step in engine.effective_steps(session)]
    fields = {field["key"]: field for field in engine.visible_fields(engine.next(
        engine.set_fields(session, {"monthly_payment": "300", "payment_date": 1})
    ))}
    assert fields["monthly_income"]["required"] is True


def test_module_level_start():
    session = start(currently_not_collectible.PROGRAM, "abc")
    assert session.session_id == "abc"
    assert session.program_id == "currently_not_collectible"
    assert session.current_step_index == 0
    assert session.state == SessionState.IN_PROGRESS
