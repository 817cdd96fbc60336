import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1]))

from reliefdesk.application import reset_relief_state
from reliefdesk.infrastructure import get_submission_sink


@pytest.fixture(autouse=True)
def reset_state():
    reset_relief_state()
    yield
    reset_relief_state()


@pytest.fixture()
def client():
    from reliefdesk.app import create_app

    app = create_app()
    with TestClient(app) as test_client:
        yield test_client


def _advance(client, session_id, fields):
    if fields:
        response = client.patch(f"/api/sessions/{session_id}/fields", json={"fields": fields})
        assert response.status_code == 200, response.text
    response = client.post(f"/api/sessions/{session_id}/next")
    assert response.status_code == 200, response.text
    return response.json()


def test_programs_catalogue(client):
    response = client.get("/api/programs")
    assert response.status_code == 200
    items = response.json()["items"]
    assert [item["id"] for item in items][0] == "installment_agreement"
    assert len(items) == 5
    assert all(item["steps"] for item in items)


def test_evaluate_eligibility_ranks_programs(client):
    response = client.post(
        "/api/eligibility/evaluate",
        json={"totalDebt": "50k-100k", "monthlyNetIncome": "1500", "bankBalance": "0", "allReturnsFiled": True},
    )
    assert response.status_code == 200
    body = response.json()
    order = [item["id"] for item in body["results"]]
    assert order.index("installment_agreement") < order.index("offer_in_compromise")
    offer = next(item for item in body["results"] if item["id"] == "offer_in_compromise")
    assert offer["confidence"] == "medium"
    assert body["summary"]["qualified_count"] == 4
    assert body["profile"]["total_debt"] == "50k-100k"


def test_end_to_end_intake_to_profile(client):
    response = client.post("/api/sessions", json={"program_id": "intake"})
    assert response.status_code == 200
    session = response.json()
    session_id = session["session_id"]
    assert session["step"]["id"] == "debt"

    _advance(client, session_id, {"total_debt": "25k-50k"})
    view = _advance(client, session_id, {"has_emergency": False})
    assert view["step"]["id"] == "returns"
    _advance(client, session_id, {"returns_filed": "yes"})
    _advance(client, session_id, {"filing_status": "married_joint", "monthly_net_income": "1800"})
    _advance(client, session_id, {})
    _advance(client, session_id, {"circumstances": ["divorce"]})
    view = _advance(client, session_id, {"previous_relief": False})
    assert view["state"] == "ready_to_submit"

    response = client.post(f"/api/sessions/{session_id}/submit")
    assert response.status_code == 200, response.text
    submitted = response.json()
    assert submitted["state"] == "submitted"
    spouse = next(item for item in submitted["eligibility"]["results"] if item["id"] == "innocent_spouse_relief")
    assert spouse["qualified"] is True

    response = client.post("/api/intake/profile", json={"session_id": session_id})
    assert response.status_code == 200
    assert response.json()["profile"]["filing_status"] == "married_joint"


def test_end_to_end_hardship_application(client):
    response = client.post("/api/sessions", json={"program_id": "currently_not_collectible"})
    session_id = response.json()["session_id"]

    response = client.post(f"/api/sessions/{session_id}/next")
    assert response.status_code == 422
    errors = response.json()["errors"]
    assert errors["hardship_type"] == "Please select a hardship type"
    persisted = client.get(f"/api/sessions/{session_id}").json()
    assert persisted["validation_errors"]["hardship_type"] == "Please select a hardship type"

    _advance(
        client,
        session_id,
        {
            "hardship_type": "unemployment",
            "hardship_description": "Laid off in March; savings are gone and no new job offers so far.",
        },
    )
    view = _advance(client, session_id, {"employment_status": "unemployed", "monthly_income": 0})
    assert view["step"]["id"] == "employment_history"
    assert view["fields"][0]["key"] == "last_employment_date"
    assert view["fields"][0]["required"] is True

    response = client.patch(
        f"/api/sessions/{session_id}/fields", json={"fields": {"employment_status": "employed"}}
    )
    assert response.json()["step"]["id"] == "income"
    view = _advance(client, session_id, {})
    assert view["step"]["id"] == "expenses"

    _advance(client, session_id, {"housing_expense": "950", "utilities_expense": "150"})
    response = client.post(f"/api/sessions/{session_id}/documents", json={"name": "notice.pdf", "size_bytes": 4096})
    assert response.status_code == 200
    _advance(client, session_id, {})
    _advance(client, session_id, {"ssn": "123-45-6789", "phone": "555-123-4567", "best_time_to_call": "anytime"})
    view = _advance(
        client,
        session_id,
        {"statement_accuracy": True, "understand_terms": True, "signature_name": "Jordan Doe"},
    )
    assert view["state"] == "ready_to_submit"
    assert view["derived"]["monthly_shortfall"] == "1100"

    response = client.post(f"/api/sessions/{session_id}/submit")
    assert response.status_code == 200
    assert response.json()["submission"]["program_id"] == "currently_not_collectible"
    assert [payload.session_id for payload in get_submission_sink().outbox] == [session_id]

    response = client.patch(f"/api/sessions/{session_id}/fields", json={"fields": {"phone": "555-000-0000"}})
    assert response.status_code == 409


def test_abandon_and_error_mapping(client):
    assert client.get("/api/sessions/unknown").status_code == 404
    assert client.post("/api/sessions", json={"program_id": "bankruptcy"}).status_code == 409
    assert client.post("/api/sessions", json={}).status_code == 400

    session_id = client.post("/api/sessions", json={"program_id": "penalty_abatement"}).json()["session_id"]
    response = client.delete(f"/api/sessions/{session_id}/documents/0")
    assert response.status_code == 409

    response = client.post(f"/api/sessions/{session_id}/abandon")
    assert response.json()["state"] == "abandoned"
    assert client.post(f"/api/sessions/{session_id}/next").status_code == 409
    assert client.post("/api/intake/profile", json={"session_id": session_id}).status_code == 404
