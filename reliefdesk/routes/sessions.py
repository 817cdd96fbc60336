from __future__ import annotations

from fastapi import APIRouter, HTTPException

from reliefdesk.application import get_relief_service

router = APIRouter(prefix="/sessions", tags=["sessions"])


@router.post("")
async def start_session(payload: dict) -> dict:
    program_id = payload.get("program_id")
    if not program_id:
        raise HTTPException(status_code=400, detail="program_id is required")
    service = get_relief_service()
    return service.start_session(str(program_id))


@router.get("/{session_id}")
async def get_session(session_id: str) -> dict:
    service = get_relief_service()
    return service.get_session(session_id)


@router.patch("/{session_id}/fields")
async def update_fields(session_id: str, payload: dict) -> dict:
    fields = payload.get("fields", payload)
    if not isinstance(fields, dict) or not fields:
        raise HTTPException(status_code=400, detail="fields must be a non-empty object")
    service = get_relief_service()
    return service.set_fields(session_id, fields)


@router.delete("/{session_id}/fields/{key}")
async def clear_field(session_id: str, key: str) -> dict:
    service = get_relief_service()
    return service.clear_field(session_id, key)


@router.post("/{session_id}/documents")
async def add_document(session_id: str, payload: dict) -> dict:
    name = payload.get("name")
    size_bytes = payload.get("size_bytes")
    if not isinstance(name, str) or not name.strip():
        raise HTTPException(status_code=400, detail="name is required")
    if not isinstance(size_bytes, int) or isinstance(size_bytes, bool) or size_bytes < 0:
        raise HTTPException(status_code=400, detail="size_bytes must be a non-negative integer")
    service = get_relief_service()
    return service.add_document(session_id, name.strip(), size_bytes)


@router.delete("/{session_id}/documents/{index}")
async def remove_document(session_id: str, index: int) -> dict:
    service = get_relief_service()
    return service.remove_document(session_id, index)


@router.post("/{session_id}/next")
async def next_step(session_id: str) -> dict:
    service = get_relief_service()
    return service.next(session_id)


@router.post("/{session_id}/back")
async def previous_step(session_id: str) -> dict:
    service = get_relief_service()
    return service.back(session_id)


@router.post("/{session_id}/submit")
async def submit_session(session_id: str) -> dict:
    service = get_relief_service()
    return service.submit(session_id)


@router.post("/{session_id}/abandon")
async def abandon_session(session_id: str) -> dict:
    service = get_relief_service()
    return service.abandon(session_id)
