from __future__ import annotations

from fastapi import APIRouter

from reliefdesk.application import get_relief_service

router = APIRouter(prefix="/programs", tags=["programs"])


@router.get("")
async def list_programs() -> dict:
    service = get_relief_service()
    return {"items": service.list_programs()}
