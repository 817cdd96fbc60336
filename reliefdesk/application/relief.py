"""Application service layer for eligibility screening and guided applications."""
from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Mapping

from reliefdesk.core.coerce import json_sanitise
from reliefdesk.core.eligibility import evaluate, summarize
from reliefdesk.core.errors import SessionNotFound, ValidationFailure
from reliefdesk.core.schema import Profile, SubmissionPayload, WorkflowSession
from reliefdesk.core.workflow import WorkflowEngine
from reliefdesk.infrastructure import (
    OutboxSubmissionSink,
    SessionStore,
    SubmissionSink,
    create_session_store,
    get_submission_sink,
)
from reliefdesk.programs.registry import INTAKE, engine_for, get_program, get_workflow, list_programs

logger = logging.getLogger(__name__)

Transition = Callable[[WorkflowEngine, WorkflowSession], WorkflowSession]


class ReliefService:
    """Coordinates eligibility and application use cases.

    Edits to one session are serialised with a per-session lock; different
    sessions proceed independently.
    """

    def __init__(self, store: SessionStore, sink: SubmissionSink | None = None) -> None:
        self._store = store
        self._sink = sink
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _lock_for(self, session_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
            return lock

    def _forget_lock(self, session_id: str) -> None:
        with self._locks_guard:
            self._locks.pop(session_id, None)

    def _load(self, session_id: str) -> WorkflowSession:
        try:
            return self._store.load(session_id)
        except SessionNotFound:
            self._forget_lock(session_id)
            raise

    def _submission_sink(self) -> SubmissionSink:
        return self._sink if self._sink is not None else get_submission_sink()

    def _transition(self, session_id: str, transition: Transition) -> dict[str, Any]:
        with self._lock_for(session_id):
            session = self._load(session_id)
            if session.state.terminal:
                self._forget_lock(session_id)
            engine = engine_for(session.program_id)
            try:
                updated = transition(engine, session)
            except ValidationFailure as exc:
                self._store.save(engine.record_errors(session, exc.errors))
                raise
            if updated is not session:
                self._store.save(updated)
            if updated.state.terminal:
                self._forget_lock(session_id)
            return self.session_view(engine, updated)

    @staticmethod
    def session_view(engine: WorkflowEngine, session: WorkflowSession) -> dict[str, Any]:
        step = engine.current_step(session)
        view = session.model_dump(mode="json")
        view["step"] = {"id": step.id, "title": step.title, "description": step.description}
        view["fields"] = json_sanitise(engine.visible_fields(session))
        view["progress"] = engine.progress(session)
        return view

    # ------------------------------------------------------------------
    # catalogue and eligibility
    # ------------------------------------------------------------------
    def list_programs(self) -> list[dict[str, Any]]:
        return [
            {
                "id": program.id,
                "name": program.name,
                "category": program.category,
                "description": program.description,
                "requirements": list(program.requirements),
                "steps": [{"id": step.id, "title": step.title} for step in program.steps],
            }
            for program in list_programs()
        ]

    def evaluate(self, answers: Mapping[str, Any] | Profile) -> dict[str, Any]:
        profile = answers if isinstance(answers, Profile) else Profile.from_answers(answers)
        results = evaluate(profile)
        summary = summarize(results, profile)
        return {
            "profile": profile.model_dump(mode="json"),
            "results": [result.model_dump(mode="json") for result in results],
            "summary": summary.model_dump(mode="json"),
        }

    def intake_profile(self, session_id: str) -> dict[str, Any] | None:
        profile = self._store.load_profile(session_id)
        if profile is None:
            return None
        return self.evaluate(profile)

    # ------------------------------------------------------------------
    # sessions
    # ------------------------------------------------------------------
    def start_session(self, program_id: str) -> dict[str, Any]:
        if program_id != INTAKE.id:
            get_program(program_id)
        engine = WorkflowEngine(get_workflow(program_id))
        session = engine.start()
        self._store.save(session)
        logger.info("started %s session %s", program_id, session.session_id)
        return self.session_view(engine, session)

    def get_session(self, session_id: str) -> dict[str, Any]:
        session = self._store.load(session_id)
        return self.session_view(engine_for(session.program_id), session)

    def set_fields(self, session_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        return self._transition(session_id, lambda engine, session: engine.set_fields(session, changes))

    def clear_field(self, session_id: str, key: str) -> dict[str, Any]:
        return self._transition(session_id, lambda engine, session: engine.clear_field(session, key))

    def add_document(self, session_id: str, name: str, size_bytes: int) -> dict[str, Any]:
        return self._transition(
            session_id, lambda engine, session: engine.add_document(session, name, size_bytes)
        )

    def remove_document(self, session_id: str, index: int) -> dict[str, Any]:
        return self._transition(session_id, lambda engine, session: engine.remove_document(session, index))

    def next(self, session_id: str) -> dict[str, Any]:
        return self._transition(session_id, lambda engine, session: engine.next(session))

    def back(self, session_id: str) -> dict[str, Any]:
        return self._transition(session_id, lambda engine, session: engine.back(session))

    def abandon(self, session_id: str) -> dict[str, Any]:
        return self._transition(session_id, lambda engine, session: engine.abandon(session))

    def submit(self, session_id: str, now: datetime | None = None) -> dict[str, Any]:
        with self._lock_for(session_id):
            session = self._load(session_id)
            if session.state.terminal:
                self._forget_lock(session_id)
            engine = engine_for(session.program_id)
            try:
                outcome = engine.submit(session, now=now)
            except ValidationFailure as exc:
                self._store.save(engine.record_errors(session, exc.errors))
                raise
            self._store.save(outcome.session)
            self._forget_lock(session_id)

            view = self.session_view(engine, outcome.session)
            view["submission"] = outcome.payload.model_dump(mode="json")
            view["delivered"] = self._deliver(outcome.payload)
            if outcome.session.program_id == INTAKE.id:
                profile = Profile.from_intake(outcome.payload)
                self._store.save_profile(session_id, profile)
                view["eligibility"] = self.evaluate(profile)
            return view

    def _deliver(self, payload: SubmissionPayload) -> bool:
        """Hand the payload to the sink; a failed hand-off leaves it with the caller."""

        try:
            self._submission_sink().deliver(payload)
        except Exception:
            logger.exception("delivery of %s submission %s failed", payload.program_id, payload.session_id)
            return False
        return True

    # ------------------------------------------------------------------
    # testing helpers
    # ------------------------------------------------------------------
    def reset(self) -> None:
        self._store.reset()
        with self._locks_guard:
            self._locks.clear()
        sink = self._submission_sink()
        if isinstance(sink, OutboxSubmissionSink):
            sink.clear()


_store = create_session_store()
_service = ReliefService(_store)


def get_relief_service() -> ReliefService:
    """Return the singleton relief service for the process."""

    return _service


def reset_relief_state() -> None:
    """Reset sessions, locks and the outbox (used in tests)."""

    _service.reset()
