"""Job lifecycle core: Job state machine, error taxonomy, and orchestrator."""

from wav_transcriber.core.errors import ErrorKind, OrchestratorError
from wav_transcriber.core.jobs import InvalidTransitionError, Job, JobStatus
from wav_transcriber.core.orchestrator import JobOrchestrator, OrchestratorSettings

__all__ = [
    "ErrorKind",
    "InvalidTransitionError",
    "Job",
    "JobOrchestrator",
    "JobStatus",
    "OrchestratorError",
    "OrchestratorSettings",
]
