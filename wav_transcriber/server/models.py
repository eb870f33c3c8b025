"""Pydantic response models for the HTTP API.

WHY: The transcription endpoint itself answers in plain text, but the
OpenAPI docs still need schemas for its error body and for the health
check.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Shape of a failed transcription, as documented in OpenAPI.

    The endpoint sends this as text/plain: the body is the detail string
    and the failing stage is in the X-Error-Kind header.
    """

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
