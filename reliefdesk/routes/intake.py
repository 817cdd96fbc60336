from __future__ import annotations

from fastapi import APIRouter, HTTPException

from reliefdesk.application import get_relief_service

router = APIRouter(prefix="/intake", tags=["intake"])


@router.post("/profile")
async def intake_profile(payload: dict) -> dict:
    """Eligibility for the profile built from a submitted intake session."""

    session_id = payload.get("session_id")
    if not session_id:
        raise HTTPException(status_code=400, detail="session_id is required")
    service = get_relief_service()
    result = service.intake_profile(str(session_id))
    if result is None:
        raise HTTPException(status_code=404, detail="no submitted intake for this session")
    return result
