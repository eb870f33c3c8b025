"""Provider client package: S3, AWS Transcribe, and result download.

WHY: The orchestrator talks to two AWS services and one plain HTTPS URL.
Each is wrapped in a small async client so the orchestrator only sees
typed results and typed exceptions.

RULES:
- All boto3 usage lives in storage.py and transcribe.py
- All httpx usage lives in fetcher.py
"""

from wav_transcriber.api.fetcher import ArtifactFetcher, ArtifactFetchError
from wav_transcriber.api.models import TranscriptionStatus
from wav_transcriber.api.storage import ObjectStoreClient, StorageError
from wav_transcriber.api.transcribe import TranscriptionClient, TranscriptionServiceError

__all__ = [
    "ArtifactFetchError",
    "ArtifactFetcher",
    "ObjectStoreClient",
    "StorageError",
    "TranscriptionClient",
    "TranscriptionServiceError",
    "TranscriptionStatus",
]
