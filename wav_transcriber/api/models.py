"""AWS Transcribe response dataclasses and result-document parsing.

WHY: GetTranscriptionJob returns a nested dict, and the finished transcript
is a JSON document fetched separately. Typed dataclasses and one parsing
function keep the orchestrator free of raw dict navigation.

HOW: TranscriptionStatus.from_dict maps the "TranscriptionJob" object of a
GetTranscriptionJob response. extract_transcript pulls the first transcript
entry out of a result document and raises MalformedResultError when the
expected fields are absent.

RULES:
- status is one of: "QUEUED", "IN_PROGRESS", "COMPLETED", "FAILED"
- result_uri is only present when status is "COMPLETED"
- failure_reason is only present when status is "FAILED"
- A result document without results.transcripts[0].transcript is malformed
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

STATUS_QUEUED = "QUEUED"
STATUS_IN_PROGRESS = "IN_PROGRESS"
STATUS_COMPLETED = "COMPLETED"
STATUS_FAILED = "FAILED"

TERMINAL_STATUSES = frozenset({STATUS_COMPLETED, STATUS_FAILED})


class MalformedResultError(ValueError):
    """Raised when a result document cannot be parsed into a transcript.

    RULES:
    - Covers invalid JSON as well as missing or mistyped fields
    """


@dataclass
class TranscriptionStatus:
    """Status of a transcription job as reported by GetTranscriptionJob.

    WHY: The poll loop needs to distinguish in-progress, completed, and
    failed jobs, and needs the result URI or failure reason that comes with
    the terminal states.

    RULES:
    - job_id is the TranscriptionJobName
    - result_uri is None unless status is COMPLETED
    - failure_reason is None unless status is FAILED
    """

    job_id: str
    status: str
    result_uri: str | None = None
    failure_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == STATUS_FAILED

    @classmethod
    def from_dict(cls, data: dict) -> TranscriptionStatus:
        """Parse the "TranscriptionJob" object of a GetTranscriptionJob response.

        RULES:
        - TranscriptionJobName and TranscriptionJobStatus are required
        - Transcript.TranscriptFileUri and FailureReason default to None
        """
        transcript = data.get("Transcript") or {}
        return cls(
            job_id=data["TranscriptionJobName"],
            status=data["TranscriptionJobStatus"],
            result_uri=transcript.get("TranscriptFileUri"),
            failure_reason=data.get("FailureReason"),
        )


def load_result_document(path: Path) -> dict[str, Any]:
    """Read and decode a downloaded result document.

    Raises MalformedResultError if the file is not a JSON object.
    """
    try:
        document = json.loads(Path(path).read_text(encoding="utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedResultError(f"Result document is not valid JSON: {exc}") from exc

    if not isinstance(document, dict):
        raise MalformedResultError("Result document is not a JSON object")
    return document


def extract_transcript(document: dict[str, Any]) -> str:
    """Return the text of the first transcript entry in a result document.

    WHY: AWS Transcribe writes results as
    {"results": {"transcripts": [{"transcript": "..."}], "items": [...]}}.
    Only the first transcript's text is returned to the caller.

    RULES:
    - Raises MalformedResultError when results.transcripts[0].transcript
      is missing or is not a string
    - The text is returned as-is (an empty string is a valid transcript)
    """
    try:
        text = document["results"]["transcripts"][0]["transcript"]
    except (KeyError, IndexError, TypeError) as exc:
        raise MalformedResultError(
            "Result document has no results.transcripts[0].transcript field"
        ) from exc

    if not isinstance(text, str):
        raise MalformedResultError("Transcript field is not a string")
    return text
