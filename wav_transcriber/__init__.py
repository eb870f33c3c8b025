"""WAV Transcriber: HTTP front end for AWS Transcribe.

WHY: Callers want to post a .wav file and get text back in one request,
without managing S3 staging, Transcribe jobs, polling, or result downloads
themselves.

HOW: Three layers: provider clients (api), the job-lifecycle orchestrator
(core), and thin entry points (server, cli). Each layer is independently
testable.

RULES:
- Only the orchestrator sequences provider calls
- Every transient artifact is deleted before a request finishes
"""

__version__ = "0.1.0"
