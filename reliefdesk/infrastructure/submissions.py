"""Hand-off point for submitted applications.

Nothing here talks to a filing provider.  The default sink keeps payloads in
an outbox so they can be inspected; an integration provides a compatible
sink and installs it with :func:`configure_submission_sink` at start-up.
"""
from __future__ import annotations

import logging
from typing import Protocol

from reliefdesk.core.schema import SubmissionPayload

logger = logging.getLogger(__name__)


class SubmissionSink(Protocol):
    """Contract for receivers of submitted applications."""

    def deliver(self, payload: SubmissionPayload) -> None:
        """Accept one frozen submission."""


class OutboxSubmissionSink:
    """Collects payloads in memory."""

    def __init__(self) -> None:
        self.outbox: list[SubmissionPayload] = []

    def deliver(self, payload: SubmissionPayload) -> None:
        logger.info("queued %s submission %s", payload.program_id, payload.session_id)
        self.outbox.append(payload)

    def clear(self) -> None:
        self.outbox.clear()


_sink: SubmissionSink = OutboxSubmissionSink()


def configure_submission_sink(sink: SubmissionSink) -> None:
    """Install the sink that receives submitted applications."""

    global _sink
    _sink = sink


def get_submission_sink() -> SubmissionSink:
    return _sink
