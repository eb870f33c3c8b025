"""Failure taxonomy for the job orchestrator.

WHY: A job can fail at any of several stages, each with a different cause
and a different HTTP mapping. A single exception type tagged with an
ErrorKind gives callers one thing to catch and one field to switch on.

RULES:
- Every stage failure surfaces as exactly one OrchestratorError
- The underlying client exception is kept in .cause (and __cause__)
"""

from __future__ import annotations

import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    """Stage at which a job failed."""

    UNSUPPORTED_FORMAT = "unsupported_format"
    EMPTY_UPLOAD = "empty_upload"
    UPLOAD_FAILED = "upload_failed"
    SUBMISSION_FAILED = "submission_failed"
    TRANSCRIPTION_FAILED = "transcription_failed"
    RESULT_FETCH_FAILED = "result_fetch_failed"
    MALFORMED_RESULT = "malformed_result"
    POLL_TIMEOUT = "poll_timeout"


class OrchestratorError(Exception):
    """Raised by JobOrchestrator.run() when a job cannot produce a transcript.

    RULES:
    - kind identifies the failing stage
    - message is human-readable and safe to return to the HTTP caller
    - job_id is None when the job failed before an ID was useful to anyone
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        cause: Optional[BaseException] = None,
        job_id: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.message = message
        self.cause = cause
        self.job_id = job_id
        super().__init__(message)

    def __repr__(self) -> str:
        return "OrchestratorError({}, {!r})".format(self.kind.value, self.message)
