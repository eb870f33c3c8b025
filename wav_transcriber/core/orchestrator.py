"""Job orchestrator: drives one upload from received bytes to transcript.

WHY: Turning an uploaded .wav into text takes five steps across two AWS
services and one HTTPS download, and every step after the upload leaves
something behind (a local temp file, an S3 object, a Transcribe job, a
scratch result file). The orchestrator runs those steps in order and makes
sure everything acquired is released exactly once, whatever happens.

HOW: One coroutine per job. execute() walks the pipeline

    validate → upload → release local copy → submit → poll
             → release S3 object → fetch + parse → release result file

and a single finally block releases whatever the job still owns. Stage
failures are caught at this boundary and re-raised as one OrchestratorError
tagged with an ErrorKind. The poll wait is an awaited sleep, so a polling
job never blocks other jobs sharing the event loop.

RULES:
- Steps run strictly in order; each starts only after the previous one's
  side effect is confirmed
- The poll loop is bounded by max_poll_attempts; exhausting it is a
  POLL_TIMEOUT, never an endless wait
- Cleanup failures are logged as warnings and never change the outcome
- A submitted Transcribe job is deleted before execute() returns
- A put or submit interrupted by cancellation is allowed to finish, and
  what it created is released before the cancellation propagates
- Only retryable poll errors are retried; others fail the job at once
- Clients are injected; the orchestrator creates no AWS handles itself
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Optional, TypeVar, Union

from wav_transcriber.api.fetcher import ArtifactFetchError
from wav_transcriber.api.models import (
    MalformedResultError,
    TranscriptionStatus,
    extract_transcript,
    load_result_document,
)
from wav_transcriber.api.storage import StorageError, normalize_media_uri
from wav_transcriber.api.transcribe import TranscriptionServiceError
from wav_transcriber.config import (
    MAX_POLL_ATTEMPTS,
    MEDIA_FORMAT,
    POLL_INTERVAL_S,
    S3_KEY_PREFIX,
    S3_OBJECT_ACL,
    SCRATCH_DIR,
    SUPPORTED_EXTENSION,
    TRANSCRIBE_LANGUAGE_CODE,
    load_bucket_name,
)
from wav_transcriber.core.errors import ErrorKind, OrchestratorError
from wav_transcriber.core.jobs import Job, JobStatus

if TYPE_CHECKING:
    from wav_transcriber.api.fetcher import ArtifactFetcher
    from wav_transcriber.api.storage import ObjectStoreClient
    from wav_transcriber.api.transcribe import TranscriptionClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class OrchestratorSettings:
    """Per-deployment knobs for the orchestrator.

    RULES:
    - bucket is required; everything else defaults to config values
    - max_poll_attempts must be at least 1
    """

    bucket: str
    key_prefix: str = S3_KEY_PREFIX
    object_acl: str = S3_OBJECT_ACL
    language_code: str = TRANSCRIBE_LANGUAGE_CODE
    media_format: str = MEDIA_FORMAT
    supported_extension: str = SUPPORTED_EXTENSION
    poll_interval_s: float = POLL_INTERVAL_S
    max_poll_attempts: int = MAX_POLL_ATTEMPTS
    scratch_dir: Path = field(default_factory=lambda: Path(SCRATCH_DIR))

    def __post_init__(self) -> None:
        if self.max_poll_attempts < 1:
            raise ValueError("max_poll_attempts must be at least 1")

    @classmethod
    def from_env(cls) -> OrchestratorSettings:
        return cls(bucket=load_bucket_name())


class JobOrchestrator:
    """Runs transcription jobs against injected storage/provider/fetch clients.

    WHY: Explicit capability objects instead of module-level singletons let
    the HTTP server, the CLI, and the tests each wire their own clients.

    HOW: run() builds a Job and hands it to execute(). The instance holds no
    per-job state, so one orchestrator serves any number of concurrent jobs.

    RULES:
    - store must provide put(bucket, key, data, visibility) and delete(bucket, key)
    - transcriber must provide submit(), poll() and delete()
    - fetcher must provide fetch(uri, destination)
    - sleep defaults to asyncio.sleep; tests inject a no-op
    - on_status, when provided, is called with human-readable progress lines
    """

    def __init__(
        self,
        store: ObjectStoreClient,
        transcriber: TranscriptionClient,
        fetcher: ArtifactFetcher,
        settings: OrchestratorSettings,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        on_status: Optional[Callable[[str], None]] = None,
    ) -> None:
        self._store = store
        self._transcriber = transcriber
        self._fetcher = fetcher
        self._settings = settings
        self._sleep = sleep or asyncio.sleep
        self._on_status = on_status

    @property
    def settings(self) -> OrchestratorSettings:
        return self._settings

    async def run(
        self,
        file_name: str,
        file_bytes: Optional[bytes],
        upload_path: Optional[Union[str, Path]] = None,
    ) -> str:
        """Transcribe one uploaded file and return its text.

        upload_path is the caller's local temp copy of the upload, if any.
        It is deleted by the orchestrator on every path.

        Raises OrchestratorError on failure.
        """
        job = Job(
            source_filename=file_name or "",
            source_bytes=file_bytes or b"",
            upload_path=Path(upload_path) if upload_path else None,
        )
        return await self.execute(job)

    async def execute(self, job: Job) -> str:
        """Drive job through its full lifecycle and return the transcript."""
        logger.info(
            "Job %s received %s (%d bytes)",
            job.id, job.source_filename, len(job.source_bytes),
        )
        failure = None  # type: Optional[OrchestratorError]
        transcript = ""

        try:
            self._validate(job)
            await self._upload(job)
            self._release_upload(job)
            await self._submit(job)
            await self._poll(job)
            await self._release_remote_object(job)
            transcript = await self._fetch_transcript(job)
        except OrchestratorError as exc:
            exc.job_id = job.id
            failure = exc
        finally:
            self._release_upload(job)
            await self._release_remote_object(job)
            await self._release_remote_job(job)

        if failure is not None:
            job.fail(failure)
            logger.warning(
                "Job %s failed at %s: %s", job.id, failure.kind.value, failure.message
            )
            raise failure

        job.complete(transcript)
        logger.info("Job %s completed (%d chars)", job.id, len(transcript))
        self._notify("Transcription complete.")
        return transcript

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    def _validate(self, job: Job) -> None:
        extension = self._settings.supported_extension
        if not job.source_filename.lower().endswith(extension):
            raise OrchestratorError(
                ErrorKind.UNSUPPORTED_FORMAT,
                "Only {} extension is supported.".format(extension.lstrip(".")),
            )
        if not job.source_bytes:
            raise OrchestratorError(
                ErrorKind.EMPTY_UPLOAD,
                "Uploaded file '{}' is empty.".format(job.source_filename),
            )

    async def _upload(self, job: Job) -> None:
        job.advance(JobStatus.UPLOADING)
        self._notify("Uploading file...")
        key = "{}{}{}".format(
            self._settings.key_prefix, job.id, self._settings.supported_extension
        )

        # Owned from the moment the put is issued; a cancelled put may still land
        job.object_key = key
        try:
            location = await self._settle(
                self._store.put(
                    self._settings.bucket,
                    key,
                    job.source_bytes,
                    visibility=self._settings.object_acl,
                )
            )
        except StorageError as exc:
            job.object_key = None
            raise OrchestratorError(
                ErrorKind.UPLOAD_FAILED,
                "Upload to object storage failed: {}".format(exc.message),
                cause=exc,
            ) from exc

        job.object_uri = location
        job.media_uri = normalize_media_uri(location)

    async def _submit(self, job: Job) -> None:
        self._notify("Starting transcription...")
        job.submitted = True
        try:
            await self._settle(
                self._transcriber.submit(
                    job.id,
                    job.media_uri,
                    self._settings.media_format,
                    self._settings.language_code,
                )
            )
        except TranscriptionServiceError as exc:
            job.submitted = False
            raise OrchestratorError(
                ErrorKind.SUBMISSION_FAILED,
                "There is an error while trying to convert using Transcription: "
                "{}".format(exc.message),
                cause=exc,
            ) from exc

        job.advance(JobStatus.SUBMITTED)

    async def _poll(self, job: Job) -> TranscriptionStatus:
        job.advance(JobStatus.POLLING)
        interval = self._settings.poll_interval_s
        max_attempts = self._settings.max_poll_attempts

        for attempt in range(1, max_attempts + 1):
            await self._sleep(interval)

            try:
                status = await self._transcriber.poll(job.id)
            except TranscriptionServiceError as exc:
                if not exc.retryable:
                    raise OrchestratorError(
                        ErrorKind.TRANSCRIPTION_FAILED,
                        "Could not read transcription status: {}: {}".format(
                            exc.code, exc.message
                        ),
                        cause=exc,
                    ) from exc
                logger.warning(
                    "Poll %d/%d for job %s failed: %s", attempt, max_attempts, job.id, exc
                )
                continue

            logger.info(
                "Job %s poll %d/%d: %s", job.id, attempt, max_attempts, status.status
            )

            if status.is_completed:
                if not status.result_uri:
                    raise OrchestratorError(
                        ErrorKind.RESULT_FETCH_FAILED,
                        "Transcription completed without a result URI.",
                    )
                job.result_uri = status.result_uri
                return status

            if status.is_failed:
                raise OrchestratorError(
                    ErrorKind.TRANSCRIPTION_FAILED,
                    "Transcription failed: {}".format(
                        status.failure_reason or "no reason given"
                    ),
                )

            self._notify("Transcribing... ({})".format(status.status.lower()))

        raise OrchestratorError(
            ErrorKind.POLL_TIMEOUT,
            "Transcription did not finish after {} polls ({:.0f}s).".format(
                max_attempts, max_attempts * interval
            ),
        )

    async def _fetch_transcript(self, job: Job) -> str:
        self._notify("Fetching transcript...")
        job.result_path = self._settings.scratch_dir / "job_response_{}.json".format(job.id)

        try:
            job.result_path.parent.mkdir(parents=True, exist_ok=True)
            await self._fetcher.fetch(job.result_uri, job.result_path)
            document = await asyncio.to_thread(load_result_document, job.result_path)
            return extract_transcript(document)
        except ArtifactFetchError as exc:
            raise OrchestratorError(
                ErrorKind.RESULT_FETCH_FAILED, exc.message, cause=exc
            ) from exc
        except OSError as exc:
            raise OrchestratorError(
                ErrorKind.RESULT_FETCH_FAILED,
                "Result document could not be read: {}".format(exc),
                cause=exc,
            ) from exc
        except MalformedResultError as exc:
            raise OrchestratorError(
                ErrorKind.MALFORMED_RESULT, str(exc), cause=exc
            ) from exc
        finally:
            self._release_result_file(job)

    async def _settle(self, call: Awaitable[T]) -> T:
        """Await call; if this job is cancelled meanwhile, let call finish first.

        Blocking SDK calls run in worker threads that cancellation cannot
        stop, so the side effect may land after the job gave up on it.
        Waiting for the call means the finally block releases a resource
        that actually exists. The cancellation is re-raised afterwards.
        """
        task = asyncio.ensure_future(call)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            try:
                await task
            except Exception as exc:
                logger.info("In-flight call ended with %r after cancellation", exc)
            raise

    # ------------------------------------------------------------------
    # Resource release (each runs at most once per job)
    # ------------------------------------------------------------------

    def _release_upload(self, job: Job) -> None:
        if job.upload_path is None or job.upload_released:
            return
        job.upload_released = True
        try:
            job.upload_path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to delete local upload %s", job.upload_path)
        else:
            logger.info("Local file %s deleted", job.upload_path)

    def _release_result_file(self, job: Job) -> None:
        if job.result_path is None or job.result_released:
            return
        job.result_released = True
        try:
            job.result_path.unlink(missing_ok=True)
        except OSError:
            logger.warning("Failed to delete result file %s", job.result_path)

    async def _release_remote_object(self, job: Job) -> None:
        if not job.owns_remote_object:
            return
        job.object_released = True
        try:
            existed = await self._store.delete(self._settings.bucket, job.object_key)
        except StorageError as exc:
            logger.warning("Failed to delete S3 object for job %s: %s", job.id, exc)
            return
        if not existed:
            logger.info("S3 object for job %s was already gone", job.id)

    async def _release_remote_job(self, job: Job) -> None:
        if not job.owns_remote_job:
            return
        job.remote_job_released = True
        try:
            await self._transcriber.delete(job.id)
        except TranscriptionServiceError as exc:
            logger.warning("Failed to delete transcription job %s: %s", job.id, exc)

    def _notify(self, message: str) -> None:
        if self._on_status:
            self._on_status(message)
