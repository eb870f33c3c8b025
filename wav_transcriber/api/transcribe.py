"""Async client for the AWS Transcribe batch transcription API.

WHY: The orchestrator submits one transcription job per upload and then
polls it until it is terminal. This module hides the boto3 request shapes
(StartTranscriptionJob, GetTranscriptionJob, DeleteTranscriptionJob)
behind three methods returning typed results.

HOW: Wraps a boto3 "transcribe" client. Each blocking boto3 call runs in a
worker thread via asyncio.to_thread. Poll responses are parsed into
TranscriptionStatus. botocore errors become TranscriptionServiceError.

RULES:
- The client performs no retries; retry policy belongs to the poll loop
- submit() returns None when the job is accepted and raises otherwise
- delete() of an unknown job returns False instead of raising
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError, HTTPClientError
from botocore.exceptions import ConnectionError as BotoConnectionError

from wav_transcriber.api.models import TranscriptionStatus
from wav_transcriber.config import AWS_REGION, load_aws_credentials

logger = logging.getLogger(__name__)

# Throttling, provider-side failures and transport errors: worth another try
RETRYABLE_CODES = frozenset({
    "ThrottlingException",
    "LimitExceededException",
    "TooManyRequestsException",
    "InternalFailureException",
    "ServiceUnavailable",
    "ServiceUnavailableException",
    "RequestTimeout",
    "RequestTimeoutException",
    "EndpointConnectionError",
    "ConnectTimeoutError",
    "ReadTimeoutError",
    "ConnectionClosedError",
})


class TranscriptionServiceError(Exception):
    """Raised when Transcribe rejects a request or cannot be reached.

    RULES:
    - code is the AWS error code ("BadRequestException", ...) or the
      botocore exception class name for transport errors
    - message is the error text returned by the service
    - retryable defaults to whether code is in RETRYABLE_CODES
    """

    def __init__(self, code: str, message: str, retryable: bool | None = None) -> None:
        self.code = code
        self.message = message
        self.retryable = code in RETRYABLE_CODES if retryable is None else retryable
        super().__init__(f"Transcribe error {code}: {message}")


def _wrap_error(exc: Exception) -> TranscriptionServiceError:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        return TranscriptionServiceError(
            str(error.get("Code", "ClientError")),
            str(error.get("Message", exc)),
        )
    transport = isinstance(exc, (BotoConnectionError, HTTPClientError))
    return TranscriptionServiceError(
        type(exc).__name__, str(exc), retryable=True if transport else None
    )


class TranscriptionClient:
    """Async submit/poll/delete interface to AWS Transcribe.

    WHY: Replaces a process-wide Transcribe singleton with an explicitly
    constructed capability object that tests can swap for a fake.

    RULES:
    - region defaults to AWS_REGION from config
    - transcribe_client, when given, is used as-is (no credentials loaded)
    - Stateless apart from the boto3 handle; safe for concurrent jobs
    """

    def __init__(
        self,
        region: str | None = None,
        transcribe_client: Any | None = None,
    ) -> None:
        self._region = region or AWS_REGION
        if transcribe_client is None:
            access_key_id, secret_access_key = load_aws_credentials()
            transcribe_client = boto3.client(
                "transcribe",
                region_name=self._region,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
            )
        self._transcribe = transcribe_client

    async def submit(
        self,
        job_id: str,
        media_uri: str,
        media_format: str,
        language_code: str,
    ) -> None:
        """Start a transcription job named job_id for the media at media_uri.

        RULES:
        - job_id must be unique among jobs the provider still knows about
        - Raises TranscriptionServiceError if the provider rejects the job
        """
        try:
            await asyncio.to_thread(
                self._transcribe.start_transcription_job,
                TranscriptionJobName=job_id,
                LanguageCode=language_code,
                MediaFormat=media_format,
                Media={"MediaFileUri": media_uri},
            )
        except (BotoCoreError, ClientError) as exc:
            raise _wrap_error(exc) from exc
        logger.info("Submitted transcription job %s for %s", job_id, media_uri)

    async def poll(self, job_id: str) -> TranscriptionStatus:
        """Return the current status of a transcription job."""
        try:
            response = await asyncio.to_thread(
                self._transcribe.get_transcription_job,
                TranscriptionJobName=job_id,
            )
        except (BotoCoreError, ClientError) as exc:
            raise _wrap_error(exc) from exc

        status = TranscriptionStatus.from_dict(response["TranscriptionJob"])
        logger.debug("Transcription job %s is %s", job_id, status.status)
        return status

    async def delete(self, job_id: str) -> bool:
        """Delete a transcription job from the provider.

        RULES:
        - Returns False when the provider does not know the job
        - Raises TranscriptionServiceError for any other failure
        """
        try:
            await asyncio.to_thread(
                self._transcribe.delete_transcription_job,
                TranscriptionJobName=job_id,
            )
        except (BotoCoreError, ClientError) as exc:
            error = _wrap_error(exc)
            if error.code == "NotFoundException":
                return False
            raise error from exc
        logger.info("Deleted transcription job %s", job_id)
        return True
