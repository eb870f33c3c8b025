"""Job entity and its lifecycle state machine.

WHY: One upload becomes one Job that moves through a linear pipeline
(validating → uploading → submitted → polling → completed | failed) and
acquires up to three resources along the way. The Job records where it is
and which resources it still owes a release for, so every exit path can
clean up exactly what was acquired.

HOW: JobStatus is an ordered str enum. Job.advance() only allows moving
forward (or into FAILED from any non-terminal state) and refuses to touch
a terminal job. new_job_id() produces collision-resistant IDs.

RULES:
- Transitions are monotonic; there are no backward moves
- COMPLETED and FAILED are terminal and immutable
- transcript is set only on COMPLETED; failure only on FAILED
- Job IDs are "job-" + UUID4 hex, valid as Transcribe job names
"""

from __future__ import annotations

import enum
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from wav_transcriber.core.errors import OrchestratorError


class JobStatus(str, enum.Enum):
    """Valid states for a transcription job.

    RULES:
    - validating: input checked, nothing acquired yet
    - uploading: bytes being written to the object store
    - submitted: transcription job accepted by the provider
    - polling: waiting for the provider to reach a terminal status
    - completed: transcript extracted
    - failed: unrecoverable error at any stage
    """

    VALIDATING = "validating"
    UPLOADING = "uploading"
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"


_ORDER: List[JobStatus] = [
    JobStatus.VALIDATING,
    JobStatus.UPLOADING,
    JobStatus.SUBMITTED,
    JobStatus.POLLING,
    JobStatus.COMPLETED,
]

_TERMINAL_STATES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class InvalidTransitionError(RuntimeError):
    """Raised when a Job is asked to move backwards or out of a terminal state."""

    def __init__(self, current: JobStatus, attempted: JobStatus) -> None:
        self.current = current
        self.attempted = attempted
        super().__init__(
            "Invalid job transition {} -> {}".format(current.value, attempted.value)
        )


def new_job_id() -> str:
    """Return a fresh job ID, unique across concurrent and past jobs."""
    return "job-{}".format(uuid.uuid4().hex)


@dataclass
class Job:
    """State of one end-to-end transcription request.

    RULES:
    - id doubles as the provider's TranscriptionJobName
    - object_key is set when the put is issued and cleared if the store
      rejects it; object_uri/media_uri are set once the upload succeeds
    - submitted is set when the submit is issued and cleared if the
      provider rejects it
    - *_released flags flip exactly once, when the resource is released
    - history records every status entered, in order
    """

    source_filename: str
    source_bytes: bytes
    id: str = field(default_factory=new_job_id)
    upload_path: Optional[Path] = None
    status: JobStatus = JobStatus.VALIDATING
    object_key: Optional[str] = None
    object_uri: Optional[str] = None
    media_uri: Optional[str] = None
    result_uri: Optional[str] = None
    result_path: Optional[Path] = None
    transcript: Optional[str] = None
    failure: Optional[OrchestratorError] = None
    submitted: bool = False
    upload_released: bool = False
    object_released: bool = False
    remote_job_released: bool = False
    result_released: bool = False
    created_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None
    history: List[JobStatus] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append(self.status)

    @property
    def is_terminal(self) -> bool:
        return self.status in _TERMINAL_STATES

    @property
    def owns_remote_object(self) -> bool:
        return self.object_key is not None and not self.object_released

    @property
    def owns_remote_job(self) -> bool:
        return self.submitted and not self.remote_job_released

    def advance(self, status: JobStatus) -> None:
        """Move the job forward to status.

        RULES:
        - Raises InvalidTransitionError from a terminal state
        - Raises InvalidTransitionError when status is not later than the
          current one (FAILED is reachable from any non-terminal state)
        """
        if self.is_terminal:
            raise InvalidTransitionError(self.status, status)
        if status != JobStatus.FAILED and _ORDER.index(status) <= _ORDER.index(self.status):
            raise InvalidTransitionError(self.status, status)

        self.status = status
        self.history.append(status)
        if status in _TERMINAL_STATES:
            self.completed_at = time.time()

    def complete(self, transcript: str) -> None:
        self.advance(JobStatus.COMPLETED)
        self.transcript = transcript

    def fail(self, error: OrchestratorError) -> None:
        self.advance(JobStatus.FAILED)
        self.failure = error
