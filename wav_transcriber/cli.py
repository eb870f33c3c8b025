"""Command-line interface for the WAV Transcriber.

WHY: Operators need to run the HTTP service, and it is handy to push a
local .wav through the exact same S3 → Transcribe → fetch pipeline from the
terminal without going through HTTP.

HOW: argparse with two subcommands:
  serve       run the FastAPI app with uvicorn
  transcribe  read a local file, run JobOrchestrator once, print the text

RULES:
- The transcript goes to stdout; status messages go to stderr
- Exit code 1 on any failure (missing file, config error, job failure)
- Python 3.9 compatible (no match/case, no X | Y unions)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from wav_transcriber import __version__
from wav_transcriber.api.fetcher import ArtifactFetcher
from wav_transcriber.api.storage import ObjectStoreClient
from wav_transcriber.api.transcribe import TranscriptionClient
from wav_transcriber.config import LOG_LEVEL, MAX_POLL_ATTEMPTS, POLL_INTERVAL_S, PORT
from wav_transcriber.core.errors import OrchestratorError
from wav_transcriber.core.orchestrator import JobOrchestrator, OrchestratorSettings


def _status(msg: str) -> None:
    """Print a status message to stderr so stdout stays pipeable."""
    print(msg, file=sys.stderr, flush=True)


async def _transcribe_file(args: argparse.Namespace) -> int:
    """Run one local file through the orchestrator and print the transcript."""
    input_path = Path(args.input_file)
    if not input_path.is_file():
        _status("Error: File not found: {}".format(input_path))
        return 1

    try:
        settings = replace(
            OrchestratorSettings.from_env(),
            poll_interval_s=args.poll_interval,
            max_poll_attempts=args.max_polls,
        )
        store = ObjectStoreClient()
        transcriber = TranscriptionClient()
    except ValueError as e:
        _status("Error: {}".format(e))
        return 1

    async with ArtifactFetcher() as fetcher:
        orchestrator = JobOrchestrator(
            store, transcriber, fetcher, settings, on_status=_status
        )
        try:
            # No upload_path: the local file is the user's, not a temp copy
            transcript = await orchestrator.run(input_path.name, input_path.read_bytes())
        except OrchestratorError as e:
            _status("Error ({}): {}".format(e.kind.value, e.message))
            return 1

    print(transcript)
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser (separate from main() for testability)."""
    parser = argparse.ArgumentParser(
        prog="wav_transcriber",
        description="Transcribe .wav files with AWS Transcribe, via HTTP or locally.",
    )
    parser.add_argument("--version", action="version", version=__version__)
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=PORT, help="Port (default: %(default)s).")

    transcribe = subparsers.add_parser("transcribe", help="Transcribe a local .wav file.")
    transcribe.add_argument("input_file", help="Path to the .wav file.")
    transcribe.add_argument(
        "--poll-interval",
        type=float,
        default=POLL_INTERVAL_S,
        help="Seconds between status polls (default: %(default)s).",
    )
    transcribe.add_argument(
        "--max-polls",
        type=int,
        default=MAX_POLL_ATTEMPTS,
        help="Give up after this many polls (default: %(default)s).",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m wav_transcriber`` and the console script."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        from wav_transcriber.server.app import run_api

        run_api(host=args.host, port=args.port)
        return

    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    sys.exit(asyncio.run(_transcribe_file(args)))


if __name__ == "__main__":
    main()
