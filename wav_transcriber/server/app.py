"""FastAPI application exposing the .wav transcription endpoint.

WHY: Clients (browsers, curl, other services) upload a .wav file over HTTP
and wait for the transcript in the same request. This module is the thin
HTTP shell around JobOrchestrator.

HOW: The lifespan handler builds the S3, Transcribe, and result-fetch
clients from config and stores one JobOrchestrator on app.state. The POST
endpoint writes the multipart upload to a temp file, runs the orchestrator
and answers with the transcript as text/plain, or with the failure message
and a 4xx status.

RULES:
- The orchestrator is resolved through the get_orchestrator dependency so
  tests can override it
- The temp upload is handed to the orchestrator, which deletes it
- Every ErrorKind maps to a 4xx status (408 for POLL_TIMEOUT, else 400)
- CORS is enabled for CORS_ORIGINS
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import AsyncExitStack, asynccontextmanager
from pathlib import Path
from typing import Annotated, Dict

from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from wav_transcriber import __version__
from wav_transcriber.api.fetcher import ArtifactFetcher
from wav_transcriber.api.storage import ObjectStoreClient
from wav_transcriber.api.transcribe import TranscriptionClient
from wav_transcriber.config import CORS_ORIGINS, LOG_LEVEL, PORT, UPLOAD_DIR
from wav_transcriber.core.errors import ErrorKind, OrchestratorError
from wav_transcriber.core.orchestrator import JobOrchestrator, OrchestratorSettings
from wav_transcriber.server.models import ErrorResponse, HealthResponse

logger = logging.getLogger(__name__)

_STATUS_BY_KIND: Dict[ErrorKind, int] = {kind: 400 for kind in ErrorKind}
_STATUS_BY_KIND[ErrorKind.POLL_TIMEOUT] = 408


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the AWS-backed orchestrator on startup, close clients on shutdown.

    A missing AWS setting is logged and leaves the service up; the
    transcription endpoint then answers 503 until it is configured.
    """
    async with AsyncExitStack() as stack:
        if getattr(app.state, "orchestrator", None) is None:
            try:
                settings = OrchestratorSettings.from_env()
                store = ObjectStoreClient()
                transcriber = TranscriptionClient()
            except ValueError as exc:
                logger.error("Transcription disabled: %s", exc)
            else:
                fetcher = await stack.enter_async_context(ArtifactFetcher())
                app.state.orchestrator = JobOrchestrator(
                    store, transcriber, fetcher, settings
                )
                logger.info("Transcription ready (bucket %s)", settings.bucket)
        yield


app = FastAPI(
    lifespan=lifespan,
    title="WAV Transcriber API",
    description=(
        "Upload a .wav file and receive its transcript. The audio is staged "
        "in S3, transcribed by AWS Transcribe, and every transient artifact "
        "is deleted before the response is sent."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_orchestrator(request: Request) -> JobOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Transcription service is not configured.")
    return orchestrator


def _save_upload(content: bytes) -> Path:
    """Write upload bytes to a uniquely named file under UPLOAD_DIR."""
    upload_dir = Path(UPLOAD_DIR)
    upload_dir.mkdir(parents=True, exist_ok=True)
    path = upload_dir / uuid.uuid4().hex
    path.write_bytes(content)
    return path


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@app.post(
    "/transcribe/wav",
    response_class=PlainTextResponse,
    tags=["transcriptions"],
    summary="Transcribe a .wav file",
    description=(
        "Upload a single .wav file as multipart field 'file'. The request "
        "stays open until AWS Transcribe finishes and returns the transcript "
        "as plain text."
    ),
    responses={
        200: {"content": {"text/plain": {}}, "description": "Transcript text"},
        400: {"model": ErrorResponse, "description": "Invalid upload or failed transcription"},
        408: {"model": ErrorResponse, "description": "Transcription did not finish in time"},
        503: {"description": "AWS settings are missing"},
    },
)
async def transcribe_wav(
    file: Annotated[UploadFile, File(description="The .wav file to transcribe")],
    orchestrator: Annotated[JobOrchestrator, Depends(get_orchestrator)],
) -> PlainTextResponse:
    # Strip any client-supplied directories from the name
    filename = Path(file.filename or "").name
    content = await file.read()
    upload_path = await asyncio.to_thread(_save_upload, content)

    try:
        transcript = await orchestrator.run(filename, content, upload_path=upload_path)
    except OrchestratorError as exc:
        return PlainTextResponse(
            exc.message,
            status_code=_STATUS_BY_KIND[exc.kind],
            headers={"X-Error-Kind": exc.kind.value},
        )
    except Exception:
        logger.exception("Unexpected failure transcribing %s", filename)
        return PlainTextResponse("Internal error while transcribing.", status_code=500)

    return PlainTextResponse(transcript)


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check for load balancers.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api(host: str = "0.0.0.0", port: int = PORT) -> None:
    """Entry point for the `serve` CLI command."""
    import uvicorn

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    uvicorn.run(app, host=host, port=port)
