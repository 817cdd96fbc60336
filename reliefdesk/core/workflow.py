"""Generic guided-application engine.

A :class:`WorkflowEngine` drives :class:`WorkflowSession` objects through the
steps of one :class:`WorkflowDefinition`.  Operations are pure: they never
mutate the session they receive and return a new one instead, so a caller can
persist the result only after the transition succeeded.

The *effective* step list is the definition's steps filtered through each
step's ``include`` predicate.  It is recomputed from the current answers on
every call, which keeps the cursor valid when an answer inserts or removes a
later step.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from reliefdesk.core.coerce import is_blank, json_sanitise
from reliefdesk.core.errors import StateViolation, ValidationFailure
from reliefdesk.core.schema import DocumentRef, SessionState, SubmissionPayload, WorkflowSession
from reliefdesk.core.validation import REQUIRED_MESSAGE, run_validator
from reliefdesk.domain.definitions import Check, FieldSpec, StepDefinition, WorkflowDefinition

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SubmissionOutcome:
    session: WorkflowSession
    payload: SubmissionPayload


class WorkflowEngine:
    """Stateless driver for one workflow definition."""

    def __init__(self, definition: WorkflowDefinition) -> None:
        self.definition = definition

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def start(self, session_id: str | None = None) -> WorkflowSession:
        derived = self._recompute({})
        values = {**derived}
        index = self._first_included(values)
        session = WorkflowSession(
            session_id=session_id or uuid.uuid4().hex,
            program_id=self.definition.id,
            definition_version=self.definition.version,
            current_step_index=index,
            derived=derived,
        )
        logger.debug("started %s session %s at step %s", self.definition.id, session.session_id, index)
        return session

    def abandon(self, session: WorkflowSession) -> WorkflowSession:
        self._ensure_mutable(session)
        logger.info("session %s abandoned at step %s", session.session_id, session.current_step_index)
        return session.model_copy(update={"state": SessionState.ABANDONED, "revision": session.revision + 1})

    # ------------------------------------------------------------------
    # editing
    # ------------------------------------------------------------------
    def set_field(self, session: WorkflowSession, key: str, value: Any) -> WorkflowSession:
        return self.set_fields(session, {key: value})

    def set_fields(self, session: WorkflowSession, changes: Mapping[str, Any]) -> WorkflowSession:
        self._ensure_mutable(session)
        for key in changes:
            self._input_spec(key)
        answers = dict(session.answers)
        errors = dict(session.validation_errors)
        for key, value in changes.items():
            answers[key] = json_sanitise(value)
            errors.pop(key, None)
        return self._apply_answers(session, answers, errors)

    def clear_field(self, session: WorkflowSession, key: str) -> WorkflowSession:
        self._ensure_mutable(session)
        self._input_spec(key)
        answers = dict(session.answers)
        answers.pop(key, None)
        errors = dict(session.validation_errors)
        errors.pop(key, None)
        return self._apply_answers(session, answers, errors)

    def add_document(self, session: WorkflowSession, name: str, size_bytes: int) -> WorkflowSession:
        self._ensure_mutable(session)
        document = DocumentRef(name=name, size_bytes=size_bytes)
        documents = [*session.uploaded_documents, document]
        errors = self._without_document_errors(session.validation_errors)
        return session.model_copy(
            update={
                "uploaded_documents": documents,
                "validation_errors": errors,
                "revision": session.revision + 1,
            }
        )

    def remove_document(self, session: WorkflowSession, index: int) -> WorkflowSession:
        self._ensure_mutable(session)
        if not 0 <= index < len(session.uploaded_documents):
            raise StateViolation(f"no document at position {index}")
        documents = [doc for pos, doc in enumerate(session.uploaded_documents) if pos != index]
        return session.model_copy(update={"uploaded_documents": documents, "revision": session.revision + 1})

    def record_errors(self, session: WorkflowSession, errors: Mapping[str, str]) -> WorkflowSession:
        """Return ``session`` with ``errors`` stored for inline rendering."""

        self._ensure_mutable(session)
        merged = {**session.validation_errors, **errors}
        return session.model_copy(update={"validation_errors": merged})

    # ------------------------------------------------------------------
    # navigation
    # ------------------------------------------------------------------
    def next(self, session: WorkflowSession) -> WorkflowSession:
        """Validate the current step and move to the next included step.

        Raises :class:`ValidationFailure` (leaving ``session`` untouched) when
        any field of the current step is invalid.
        """

        self._ensure_mutable(session)
        step = self.definition.steps[session.current_step_index]
        errors = self.validate_step(session, step)
        if errors:
            logger.debug("step %s of %s rejected: %s", step.id, session.session_id, sorted(errors))
            raise ValidationFailure(errors)

        derived = self._recompute(session.answers)
        values = {**session.answers, **derived}
        following = self._next_included(session.current_step_index, values)
        step_keys = self._step_keys(step)
        remaining_errors = {key: msg for key, msg in session.validation_errors.items() if key not in step_keys}
        update: dict[str, Any] = {
            "derived": derived,
            "validation_errors": remaining_errors,
            "revision": session.revision + 1,
        }
        if following is None:
            update["state"] = SessionState.READY_TO_SUBMIT
            logger.debug("session %s ready to submit", session.session_id)
        else:
            update["state"] = SessionState.IN_PROGRESS
            update["current_step_index"] = following
        return session.model_copy(update=update)

    def back(self, session: WorkflowSession) -> WorkflowSession:
        """Retreat one included step; never validates."""

        self._ensure_mutable(session)
        if session.state == SessionState.READY_TO_SUBMIT:
            return session.model_copy(update={"state": SessionState.IN_PROGRESS, "revision": session.revision + 1})
        previous = self._previous_included(session.current_step_index, session.values())
        if previous is None:
            return session
        return session.model_copy(update={"current_step_index": previous, "revision": session.revision + 1})

    def submit(self, session: WorkflowSession, now: datetime | None = None) -> SubmissionOutcome:
        """Re-validate the whole application and freeze it.

        Every invalid field of every included step is reported, together with
        the definition's certification checks.
        """

        self._ensure_mutable(session)
        if session.state != SessionState.READY_TO_SUBMIT:
            raise StateViolation(f"session {session.session_id} is not ready to submit")

        errors = self.validate_all(session)
        values = self._values(session)
        for check in self.definition.certifications:
            if check.key not in errors:
                message = self._run_check(check, values)
                if message:
                    errors[check.key] = message
        if errors:
            logger.debug("submission of %s rejected: %s", session.session_id, sorted(errors))
            raise ValidationFailure(errors)

        submitted_at = now or datetime.now(timezone.utc)
        derived = self._recompute(session.answers)
        frozen = session.model_copy(
            update={
                "state": SessionState.SUBMITTED,
                "derived": derived,
                "validation_errors": {},
                "submitted_at": submitted_at,
                "revision": session.revision + 1,
            }
        )
        payload = SubmissionPayload(
            program_id=self.definition.id,
            session_id=session.session_id,
            definition_version=self.definition.version,
            answers=dict(session.answers),
            derived=dict(derived),
            documents=tuple(session.uploaded_documents),
            submitted_at=submitted_at,
        )
        logger.info("session %s submitted for %s", session.session_id, self.definition.id)
        return SubmissionOutcome(session=frozen, payload=payload)

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def effective_steps(self, session: WorkflowSession) -> list[StepDefinition]:
        values = session.values()
        return [step for step in self.definition.steps if step.include(values)]

    def current_step(self, session: WorkflowSession) -> StepDefinition:
        return self.definition.steps[session.current_step_index]

    def visible_fields(self, session: WorkflowSession) -> list[dict[str, Any]]:
        """Fields of the current step with ``required`` resolved for the current answers."""

        values = self._values(session)
        step = self.current_step(session)
        return [
            {
                "key": spec.key,
                "label": spec.label,
                "type": spec.type,
                "required": spec.is_required(values),
                "choices": list(spec.choices),
                "help": spec.help,
                "value": values.get(spec.key),
                "error": session.validation_errors.get(spec.key),
            }
            for spec in step.fields
        ]

    def progress(self, session: WorkflowSession) -> dict[str, Any]:
        values = session.values()
        included = [index for index, step in enumerate(self.definition.steps) if step.include(values)]
        total = len(included)
        position = included.index(session.current_step_index) + 1 if session.current_step_index in included else 0
        if session.state in (SessionState.READY_TO_SUBMIT, SessionState.SUBMITTED):
            completed = total
        else:
            completed = max(position - 1, 0)
        return {
            "step_id": self.current_step(session).id,
            "position": position,
            "total": total,
            "completed": completed,
            "overall": round(completed / total, 4) if total else 0.0,
            "state": session.state.value,
            "steps": [
                {"id": self.definition.steps[index].id, "title": self.definition.steps[index].title}
                for index in included
            ],
        }

    def validate_step(self, session: WorkflowSession, step: StepDefinition) -> dict[str, str]:
        values = self._values(session)
        errors: dict[str, str] = {}
        for spec in step.fields:
            message = self._field_error(spec, values)
            if message:
                errors[spec.key] = message
        for check in step.checks:
            if check.key in errors:
                continue
            message = self._run_check(check, values)
            if message:
                errors[check.key] = message
        return errors

    def validate_all(self, session: WorkflowSession) -> dict[str, str]:
        errors: dict[str, str] = {}
        for step in self.effective_steps(session):
            for key, message in self.validate_step(session, step).items():
                errors.setdefault(key, message)
        return errors

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _ensure_mutable(self, session: WorkflowSession) -> None:
        if session.program_id != self.definition.id:
            raise StateViolation(
                f"session {session.session_id} belongs to {session.program_id}, not {self.definition.id}"
            )
        if session.state.terminal:
            raise StateViolation(f"session {session.session_id} is {session.state.value}; no further changes allowed")

    def _input_spec(self, key: str) -> FieldSpec:
        found = self.definition.find_field(key)
        if found is None:
            raise StateViolation(f"unknown field {key!r} for {self.definition.id}")
        spec = found[1]
        if spec.type == "documents":
            raise StateViolation(f"field {key!r} holds uploads; use add_document/remove_document")
        return spec

    def _apply_answers(
        self,
        session: WorkflowSession,
        answers: dict[str, Any],
        errors: dict[str, str],
    ) -> WorkflowSession:
        derived = self._recompute(answers)
        values = {**answers, **derived}
        index = self._reposition(session.current_step_index, values)
        return session.model_copy(
            update={
                "answers": answers,
                "derived": derived,
                "validation_errors": errors,
                "current_step_index": index,
                "revision": session.revision + 1,
            }
        )

    def _recompute(self, answers: Mapping[str, Any]) -> dict[str, Any]:
        values = dict(answers)
        derived: dict[str, Any] = {}
        for item in self.definition.derived:
            result = json_sanitise(item.compute(values))
            derived[item.key] = result
            values[item.key] = result
        return derived

    def _values(self, session: WorkflowSession) -> dict[str, Any]:
        values = session.values()
        documents = [doc.model_dump() for doc in session.uploaded_documents]
        for step in self.definition.steps:
            for spec in step.fields:
                if spec.type == "documents":
                    values[spec.key] = documents
        return values

    def _field_error(self, spec: FieldSpec, values: Mapping[str, Any]) -> str | None:
        value = values.get(spec.key)
        if is_blank(value):
            if not spec.is_required(values):
                return None
            if spec.required_message:
                return spec.required_message
            for validator in spec.validators:
                result = run_validator(validator, value, values)
                if not result.ok:
                    return result.message or REQUIRED_MESSAGE
            return REQUIRED_MESSAGE
        for validator in spec.validators:
            result = run_validator(validator, value, values)
            if not result.ok:
                return result.message or "Invalid value"
        return None

    @staticmethod
    def _run_check(check: Check, values: Mapping[str, Any]) -> str | None:
        result = run_validator(lambda value, vals: check.validate(vals), None, values)
        if result.ok:
            return None
        return result.message or "Invalid value"

    def _step_keys(self, step: StepDefinition) -> set[str]:
        keys = {spec.key for spec in step.fields}
        keys.update(check.key for check in step.checks)
        return keys

    def _without_document_errors(self, errors: Mapping[str, str]) -> dict[str, str]:
        document_keys = {
            spec.key for step in self.definition.steps for spec in step.fields if spec.type == "documents"
        }
        return {key: message for key, message in errors.items() if key not in document_keys}

    def _first_included(self, values: Mapping[str, Any]) -> int:
        for index, step in enumerate(self.definition.steps):
            if step.include(values):
                return index
        raise StateViolation(f"workflow {self.definition.id} has no applicable steps")

    def _next_included(self, index: int, values: Mapping[str, Any]) -> int | None:
        for candidate in range(index + 1, len(self.definition.steps)):
            if self.definition.steps[candidate].include(values):
                return candidate
        return None

    def _previous_included(self, index: int, values: Mapping[str, Any]) -> int | None:
        for candidate in range(index - 1, -1, -1):
            if self.definition.steps[candidate].include(values):
                return candidate
        return None

    def _reposition(self, index: int, values: Mapping[str, Any]) -> int:
        """Keep the cursor on an included step after answers changed.

        An excluded current step sends the cursor back to the nearest included
        predecessor so no unvalidated step is skipped.
        """

        if self.definition.steps[index].include(values):
            return index
        previous = self._previous_included(index, values)
        if previous is not None:
            return previous
        return self._first_included(values)


def start(definition: WorkflowDefinition, session_id: str | None = None) -> WorkflowSession:
    return WorkflowEngine(definition).start(session_id)
