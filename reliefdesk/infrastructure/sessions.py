"""Infrastructure layer for workflow session persistence."""
from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from reliefdesk.core.errors import SessionNotFound, StorageError
from reliefdesk.core.schema import Profile, WorkflowSession

logger = logging.getLogger(__name__)

_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class SessionStore(Protocol):
    """Persistence contract for sessions and the profiles built from intake."""

    def load(self, session_id: str) -> WorkflowSession: ...

    def save(self, session: WorkflowSession) -> None: ...

    def delete(self, session_id: str) -> None: ...

    def save_profile(self, session_id: str, profile: Profile) -> None: ...

    def load_profile(self, session_id: str) -> Profile | None: ...

    def list_sessions(self) -> list[str]: ...

    def reset(self) -> None: ...


class InMemorySessionStore:
    """Dictionary backed store for tests and single-process deployments.

    Sessions are stored as JSON-mode dumps so that what comes back out is
    exactly what a durable store would return.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, dict] = {}
        self._profiles: dict[str, dict] = {}

    def load(self, session_id: str) -> WorkflowSession:
        data = self._sessions.get(session_id)
        if data is None:
            raise SessionNotFound(session_id)
        return WorkflowSession.model_validate(data)

    def save(self, session: WorkflowSession) -> None:
        self._sessions[session.session_id] = session.model_dump(mode="json")

    def delete(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        self._profiles.pop(session_id, None)

    def save_profile(self, session_id: str, profile: Profile) -> None:
        self._profiles[session_id] = profile.model_dump(mode="json")

    def load_profile(self, session_id: str) -> Profile | None:
        data = self._profiles.get(session_id)
        return Profile.model_validate(data) if data is not None else None

    def list_sessions(self) -> list[str]:
        return sorted(self._sessions)

    def reset(self) -> None:
        self._sessions.clear()
        self._profiles.clear()


class FileSessionStore:
    """One JSON document per session under ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, session_id: str, suffix: str = "session") -> Path:
        if not _SAFE_ID.match(session_id):
            raise SessionNotFound(session_id)
        return self.root / f"{session_id}.{suffix}.json"

    def _write(self, path: Path, payload: dict) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".tmp")
            tmp_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            raise StorageError(f"could not write {path.name}: {exc}") from exc

    def _read(self, path: Path) -> dict | None:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"could not read {path.name}: {exc}") from exc
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(f"corrupt session file {path.name}") from exc

    def load(self, session_id: str) -> WorkflowSession:
        data = self._read(self._path(session_id))
        if data is None:
            raise SessionNotFound(session_id)
        try:
            return WorkflowSession.model_validate(data)
        except ValidationError as exc:
            raise StorageError(f"corrupt session {session_id}") from exc

    def save(self, session: WorkflowSession) -> None:
        self._write(self._path(session.session_id), session.model_dump(mode="json"))
        logger.debug("saved session %s revision %s", session.session_id, session.revision)

    def delete(self, session_id: str) -> None:
        for suffix in ("session", "profile"):
            try:
                self._path(session_id, suffix).unlink(missing_ok=True)
            except OSError as exc:
                raise StorageError(f"could not delete session {session_id}: {exc}") from exc

    def save_profile(self, session_id: str, profile: Profile) -> None:
        self._write(self._path(session_id, "profile"), profile.model_dump(mode="json"))

    def load_profile(self, session_id: str) -> Profile | None:
        data = self._read(self._path(session_id, "profile"))
        return Profile.model_validate(data) if data is not None else None

    def list_sessions(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(path.name[: -len(".session.json")] for path in self.root.glob("*.session.json"))

    def reset(self) -> None:
        if not self.root.exists():
            return
        for path in self.root.glob("*.json"):
            path.unlink(missing_ok=True)


def create_session_store() -> SessionStore:
    """Build the store selected by ``RELIEF_SESSION_STORE`` (``memory`` or ``file``)."""

    kind = os.getenv("RELIEF_SESSION_STORE", "memory").strip().lower()
    if kind == "file":
        root = Path(os.getenv("RELIEF_SESSIONS_ROOT", "data/sessions")).expanduser()
        logger.info("using file session store at %s", root)
        return FileSessionStore(root)
    if kind != "memory":
        logger.warning("unknown RELIEF_SESSION_STORE %r, falling back to memory", kind)
    return InMemorySessionStore()
