"""Shared fakes and fixtures for the wav_transcriber test suite.

WHY: The orchestrator talks to S3, AWS Transcribe, and an HTTPS result URL.
Tests must never reach AWS, but they need to observe every call the
orchestrator makes (and in which order) to check cleanup guarantees.

HOW: In-memory fakes implement the same async methods as the real clients
and append each call to a shared event log. The make_harness fixture
wires them into a real JobOrchestrator with a no-op sleep.

RULES:
- Fakes raise the same exception types as the real clients
- The event log entries are tuples: (component, operation, detail)
- Scripted poll statuses are consumed in order; the last one repeats
"""

from __future__ import annotations

import asyncio
import json
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest

from wav_transcriber.api.fetcher import ArtifactFetchError
from wav_transcriber.api.models import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_IN_PROGRESS,
    TranscriptionStatus,
)
from wav_transcriber.api.storage import StorageError
from wav_transcriber.core.orchestrator import JobOrchestrator, OrchestratorSettings

RESULT_URI = "https://s3.us-east-1.amazonaws.com/aws-transcribe-us-east-1-prod/result.json?X-Amz-Signature=abc"

HELLO_WORLD_DOCUMENT: Dict[str, Any] = {
    "jobName": "job-0",
    "results": {
        "transcripts": [{"transcript": "hello world"}],
        "items": [],
    },
    "status": "COMPLETED",
}

WAV_BYTES = b"RIFF\x24\x00\x00\x00WAVEfmt " + b"\x00" * 32

Event = Tuple[str, str, Any]


def in_progress() -> TranscriptionStatus:
    return TranscriptionStatus(job_id="", status=STATUS_IN_PROGRESS)


def completed(result_uri: Optional[str] = RESULT_URI) -> TranscriptionStatus:
    return TranscriptionStatus(job_id="", status=STATUS_COMPLETED, result_uri=result_uri)


def failed(reason: str = "The media file is corrupt.") -> TranscriptionStatus:
    return TranscriptionStatus(job_id="", status=STATUS_FAILED, failure_reason=reason)


class FakeObjectStore:
    """In-memory stand-in for ObjectStoreClient."""

    def __init__(
        self,
        log: List[Event],
        put_error: Optional[Exception] = None,
        delete_error: Optional[Exception] = None,
        keep_objects: bool = True,
        put_delay: float = 0.0,
    ) -> None:
        self.log = log
        self.put_error = put_error
        self.put_delay = put_delay
        self.delete_error = delete_error
        self.keep_objects = keep_objects
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.puts: List[Tuple[str, str, str]] = []
        self.deletes: List[Tuple[str, str]] = []

    async def put(self, bucket: str, key: str, data: bytes, visibility: Optional[str] = None) -> str:
        self.log.append(("store", "put", key))
        self.puts.append((bucket, key, visibility))
        if self.put_error is not None:
            raise self.put_error
        # Like boto3, the write runs in a worker thread and lands even if
        # the awaiting task is cancelled
        await asyncio.to_thread(self._write, bucket, key, data)
        return "https://{}.s3.us-east-1.amazonaws.com/{}".format(bucket, key)

    def _write(self, bucket: str, key: str, data: bytes) -> None:
        time.sleep(self.put_delay)
        if self.keep_objects:
            self.objects[(bucket, key)] = data

    async def delete(self, bucket: str, key: str) -> bool:
        self.log.append(("store", "delete", key))
        self.deletes.append((bucket, key))
        if self.delete_error is not None:
            raise self.delete_error
        return self.objects.pop((bucket, key), None) is not None


class FakeTranscriptionService:
    """In-memory stand-in for TranscriptionClient."""

    def __init__(
        self,
        log: List[Event],
        statuses: Optional[List[Any]] = None,
        submit_error: Optional[Exception] = None,
        submit_delay: float = 0.0,
    ) -> None:
        self.log = log
        self.statuses = list(statuses or [completed()])
        self.submit_error = submit_error
        self.submit_delay = submit_delay
        self.submissions: Dict[str, Dict[str, str]] = {}
        self.active: set = set()
        self.polls: List[str] = []
        self.deletes: List[str] = []

    async def submit(self, job_id: str, media_uri: str, media_format: str, language_code: str) -> None:
        self.log.append(("transcribe", "submit", job_id))
        if self.submit_error is not None:
            raise self.submit_error
        submission = {
            "media_uri": media_uri,
            "media_format": media_format,
            "language_code": language_code,
        }
        await asyncio.to_thread(self._start, job_id, submission)

    def _start(self, job_id: str, submission: Dict[str, str]) -> None:
        time.sleep(self.submit_delay)
        self.submissions[job_id] = submission
        self.active.add(job_id)

    async def poll(self, job_id: str) -> TranscriptionStatus:
        self.log.append(("transcribe", "poll", job_id))
        self.polls.append(job_id)
        item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return TranscriptionStatus(
            job_id=job_id,
            status=item.status,
            result_uri=item.result_uri,
            failure_reason=item.failure_reason,
        )

    async def delete(self, job_id: str) -> bool:
        self.log.append(("transcribe", "delete", job_id))
        self.deletes.append(job_id)
        existed = job_id in self.active
        self.active.discard(job_id)
        return existed


class FakeFetcher:
    """Writes a canned document (or raw text) to the destination path."""

    def __init__(
        self,
        log: List[Event],
        document: Optional[Dict[str, Any]] = None,
        raw: Optional[str] = None,
        error: Optional[ArtifactFetchError] = None,
    ) -> None:
        self.log = log
        self.document = HELLO_WORLD_DOCUMENT if document is None else document
        self.raw = raw
        self.error = error
        self.destinations: List[Path] = []
        self.uris: List[str] = []

    async def fetch(self, uri: str, destination: Path) -> Path:
        self.log.append(("fetcher", "fetch", uri))
        self.uris.append(uri)
        self.destinations.append(Path(destination))
        if self.error is not None:
            # Leave a partial file behind, as a dropped connection would
            Path(destination).write_text('{"results": {"transcr')
            raise self.error
        text = self.raw if self.raw is not None else json.dumps(self.document)
        Path(destination).write_text(text)
        return Path(destination)


class Harness:
    """A JobOrchestrator wired to fakes, plus handles to inspect them."""

    def __init__(self, tmp_path: Path, **kwargs: Any) -> None:
        self.log: List[Event] = []
        self.sleeps: List[float] = []
        self.store = FakeObjectStore(
            self.log,
            put_error=kwargs.pop("put_error", None),
            delete_error=kwargs.pop("delete_error", None),
            keep_objects=kwargs.pop("keep_objects", True),
            put_delay=kwargs.pop("put_delay", 0.0),
        )
        self.transcriber = FakeTranscriptionService(
            self.log,
            statuses=kwargs.pop("statuses", None),
            submit_error=kwargs.pop("submit_error", None),
            submit_delay=kwargs.pop("submit_delay", 0.0),
        )
        self.fetcher = FakeFetcher(
            self.log,
            document=kwargs.pop("document", None),
            raw=kwargs.pop("raw", None),
            error=kwargs.pop("fetch_error", None),
        )
        self.scratch_dir = tmp_path / "scratch"
        self.upload_dir = tmp_path / "uploads"
        self.upload_dir.mkdir(exist_ok=True)
        self.settings = OrchestratorSettings(
            bucket="test-bucket",
            key_prefix="uploads/",
            poll_interval_s=kwargs.pop("poll_interval_s", 10.0),
            max_poll_attempts=kwargs.pop("max_poll_attempts", 10),
            scratch_dir=self.scratch_dir,
        )
        self.orchestrator = JobOrchestrator(
            self.store,
            self.transcriber,
            self.fetcher,
            self.settings,
            sleep=kwargs.pop("sleep", self._sleep),
        )
        if kwargs:
            raise TypeError("Unknown harness options: {}".format(sorted(kwargs)))

    async def _sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)

    def temp_upload(self, content: bytes = WAV_BYTES) -> Path:
        """Create a caller-owned temp upload like the HTTP layer does."""
        path = self.upload_dir / "upload-tmp"
        path.write_bytes(content)
        return path

    def run(self, file_name: str, file_bytes: Optional[bytes] = WAV_BYTES, upload_path: Optional[Path] = None) -> str:
        return asyncio.run(self.orchestrator.run(file_name, file_bytes, upload_path=upload_path))


@pytest.fixture
def make_harness(tmp_path):
    """Factory fixture: make_harness(statuses=[...], submit_error=..., ...)."""

    def _make(**kwargs: Any) -> Harness:
        return Harness(tmp_path, **kwargs)

    return _make


@pytest.fixture
def storage_error():
    return StorageError("put", "uploads/x.wav", "Access Denied")
