"""Infrastructure layer exports."""

from .sessions import FileSessionStore, InMemorySessionStore, SessionStore, create_session_store
from .submissions import OutboxSubmissionSink, SubmissionSink, configure_submission_sink, get_submission_sink

__all__ = [
    "FileSessionStore",
    "InMemorySessionStore",
    "SessionStore",
    "create_session_store",
    "OutboxSubmissionSink",
    "SubmissionSink",
    "configure_submission_sink",
    "get_submission_sink",
]
