from __future__ import annotations

from fastapi import APIRouter, HTTPException

from reliefdesk.application import get_relief_service

router = APIRouter(prefix="/eligibility", tags=["eligibility"])


@router.post("/evaluate")
async def evaluate_eligibility(payload: dict) -> dict:
    answers = payload.get("profile", payload)
    if not isinstance(answers, dict):
        raise HTTPException(status_code=400, detail="profile must be an object")
    service = get_relief_service()
    return service.evaluate(answers)
