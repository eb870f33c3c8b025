"""Async wrapper around the S3 object store.

WHY: AWS Transcribe can only read media from S3, so every upload is staged
in a bucket for the lifetime of its job. This module exposes the two
operations the orchestrator needs (put and delete) and the URI quirk the
provider imposes on the returned location.

HOW: Wraps a boto3 S3 client. boto3 is blocking, so each call runs in a
worker thread via asyncio.to_thread and never stalls the event loop while
other jobs are polling. botocore errors are wrapped in StorageError.

RULES:
- put() overwrites an existing key (idempotent per key)
- delete() of a missing key returns False instead of raising
- The location returned by put() is the virtual-hosted S3 URL; pass it
  through normalize_media_uri() before handing it to Transcribe
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from urllib.parse import quote

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from wav_transcriber.config import AWS_REGION, S3_OBJECT_ACL, load_aws_credentials

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset({"NoSuchKey", "404", "NotFound"})


class StorageError(Exception):
    """Raised when an S3 put or delete fails.

    RULES:
    - operation is "put" or "delete"
    - message carries the botocore error text
    """

    def __init__(self, operation: str, key: str, message: str) -> None:
        self.operation = operation
        self.key = key
        self.message = message
        super().__init__(f"S3 {operation} of '{key}' failed: {message}")


def normalize_media_uri(uri: str) -> str:
    """Rewrite an S3 location into the host form Transcribe accepts.

    Transcribe rejects "https://bucket.s3.region.amazonaws.com/key" as an
    invalid media URI; it expects the dashed "bucket.s3-region" host.
    """
    return uri.replace(".s3.", ".s3-", 1)


class ObjectStoreClient:
    """Async put/delete interface to one AWS region's S3 service.

    WHY: The orchestrator needs a small, injectable capability object
    instead of a process-wide boto3 singleton, so tests can pass a fake.

    HOW: Holds a boto3 S3 client created from the configured region and
    credentials (or an injected client). Safe to share between concurrent
    jobs: it keeps no per-job state.

    RULES:
    - region defaults to AWS_REGION from config
    - s3_client, when given, is used as-is (no credentials are loaded)
    """

    def __init__(
        self,
        region: str | None = None,
        s3_client: Any | None = None,
    ) -> None:
        self._region = region or AWS_REGION
        if s3_client is None:
            access_key_id, secret_access_key = load_aws_credentials()
            s3_client = boto3.client(
                "s3",
                region_name=self._region,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
            )
        self._s3 = s3_client

    @property
    def region(self) -> str:
        return self._region

    def object_url(self, bucket: str, key: str) -> str:
        """Return the virtual-hosted URL of an object in this region."""
        return "https://{}.s3.{}.amazonaws.com/{}".format(
            bucket, self._region, quote(key)
        )

    async def put(
        self,
        bucket: str,
        key: str,
        data: bytes,
        visibility: str | None = None,
    ) -> str:
        """Store data under key and return the object's location URL.

        RULES:
        - visibility is the canned ACL (default S3_OBJECT_ACL, "public-read")
        - Raises StorageError on any botocore failure
        """
        acl = visibility or S3_OBJECT_ACL
        try:
            await asyncio.to_thread(
                self._s3.put_object,
                Bucket=bucket,
                Key=key,
                Body=data,
                ACL=acl,
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError("put", key, str(exc)) from exc

        location = self.object_url(bucket, key)
        logger.info("Uploaded %d bytes to %s", len(data), location)
        return location

    async def delete(self, bucket: str, key: str) -> bool:
        """Delete an object. Returns False if it did not exist.

        RULES:
        - NoSuchKey / 404 responses return False
        - Any other botocore failure raises StorageError
        """
        try:
            await asyncio.to_thread(self._s3.delete_object, Bucket=bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                logger.info("S3 object %s/%s already absent", bucket, key)
                return False
            raise StorageError("delete", key, str(exc)) from exc
        except BotoCoreError as exc:
            raise StorageError("delete", key, str(exc)) from exc

        logger.info("Deleted S3 object %s/%s", bucket, key)
        return True
