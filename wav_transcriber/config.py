"""Configuration constants, AWS settings, and .env loading.

WHY: Centralizes every configurable value (AWS region and credentials,
bucket, language, polling cadence, local directories) so the orchestrator,
HTTP server, and CLI read the same settings from one place.

HOW: python-dotenv loads the .env file on import. Constants are module-level
values read from the environment with defaults. Loader functions give a
clear error when a required value is missing.

RULES:
- Credentials and bucket name come from .env / environment, never hardcoded
- Only .wav uploads are accepted; MEDIA_FORMAT must match SUPPORTED_EXTENSION
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
import tempfile
from typing import Tuple

from dotenv import load_dotenv

# Load .env from the project root (where the service is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------

SUPPORTED_EXTENSION = ".wav"
"""The single audio container accepted by the service (lowercase, with dot)."""

MEDIA_FORMAT = "wav"
"""MediaFormat value sent to AWS Transcribe for SUPPORTED_EXTENSION files."""

TRANSCRIBE_LANGUAGE_CODE = os.getenv("TRANSCRIBE_LANGUAGE_CODE", "en-US")

# ---------------------------------------------------------------------------
# AWS
# ---------------------------------------------------------------------------

AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
S3_KEY_PREFIX = os.getenv("S3_KEY_PREFIX", "uploads/")
S3_OBJECT_ACL = os.getenv("S3_OBJECT_ACL", "public-read")

# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------

POLL_INTERVAL_S = float(os.getenv("POLL_INTERVAL_S", "10"))
MAX_POLL_ATTEMPTS = int(os.getenv("MAX_POLL_ATTEMPTS", "360"))  # 1 hour at 10s

# ---------------------------------------------------------------------------
# Local directories and server
# ---------------------------------------------------------------------------

UPLOAD_DIR = os.getenv("UPLOAD_DIR", "uploads")
SCRATCH_DIR = os.getenv("SCRATCH_DIR", tempfile.gettempdir())
PORT = int(os.getenv("PORT", "5000"))
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def load_aws_credentials() -> Tuple[str, str]:
    """Load the AWS access key pair from the environment.

    WHY: S3 and Transcribe calls are signed with an explicit key pair
    supplied through external configuration (.env).

    RULES:
    - Raises ValueError if either value is missing or empty
    - Returns (access_key_id, secret_access_key)
    """
    access_key_id = os.getenv("AWS_ACCESS_KEY_ID", "").strip()
    secret_access_key = os.getenv("AWS_SECRET_ACCESS_KEY", "").strip()
    if not access_key_id or not secret_access_key:
        raise ValueError(
            "AWS credentials not configured. "
            "Add AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY to the .env file."
        )
    return access_key_id, secret_access_key


def load_bucket_name() -> str:
    """Load the S3 bucket that holds uploads while they are transcribed.

    RULES:
    - Raises ValueError if S3_BUCKET_NAME is missing or empty
    """
    bucket = os.getenv("S3_BUCKET_NAME", "").strip()
    if not bucket:
        raise ValueError(
            "S3 bucket not configured. Add S3_BUCKET_NAME to the .env file."
        )
    return bucket
