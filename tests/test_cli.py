"""Tests for the command-line interface.

The AWS clients and the orchestrator are patched in the cli module, so these
tests exercise argument handling, output streams and exit codes only.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from wav_transcriber import __version__
from wav_transcriber.cli import build_parser, main
from wav_transcriber.core.errors import ErrorKind, OrchestratorError


@pytest.fixture
def wav_file(tmp_path):
    path = tmp_path / "meeting.wav"
    path.write_bytes(b"RIFF0000WAVE")
    return path


@pytest.fixture
def aws_env(monkeypatch):
    monkeypatch.setenv("S3_BUCKET_NAME", "cli-bucket")


@pytest.fixture
def patched_pipeline():
    """Patch client construction; yields the mocked JobOrchestrator class."""
    with patch("wav_transcriber.cli.ObjectStoreClient"), \
            patch("wav_transcriber.cli.TranscriptionClient"), \
            patch("wav_transcriber.cli.ArtifactFetcher") as fetcher_cls, \
            patch("wav_transcriber.cli.JobOrchestrator") as orchestrator_cls:
        fetcher_cls.return_value.__aenter__ = AsyncMock(return_value=MagicMock())
        fetcher_cls.return_value.__aexit__ = AsyncMock(return_value=None)
        orchestrator_cls.return_value.run = AsyncMock(return_value="hello world")
        yield orchestrator_cls


class TestParser:
    def test_serve_defaults(self):
        args = build_parser().parse_args(["serve"])
        assert args.command == "serve"
        assert args.host == "0.0.0.0"
        assert isinstance(args.port, int)

    def test_transcribe_options(self):
        args = build_parser().parse_args(
            ["transcribe", "a.wav", "--poll-interval", "2.5", "--max-polls", "4"]
        )
        assert args.input_file == "a.wav"
        assert args.poll_interval == 2.5
        assert args.max_polls == 4

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            build_parser().parse_args(["--version"])
        assert excinfo.value.code == 0
        assert __version__ in capsys.readouterr().out


class TestTranscribeCommand:
    def test_prints_transcript(self, wav_file, aws_env, patched_pipeline, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["transcribe", str(wav_file), "--poll-interval", "1", "--max-polls", "5"])
        assert excinfo.value.code == 0
        assert capsys.readouterr().out == "hello world\n"

        settings = patched_pipeline.call_args.args[3]
        assert settings.bucket == "cli-bucket"
        assert settings.poll_interval_s == 1.0
        assert settings.max_poll_attempts == 5

        run = patched_pipeline.return_value.run
        run.assert_awaited_once_with("meeting.wav", b"RIFF0000WAVE")

    def test_job_failure_exits_1(self, wav_file, aws_env, patched_pipeline, capsys):
        patched_pipeline.return_value.run = AsyncMock(
            side_effect=OrchestratorError(ErrorKind.POLL_TIMEOUT, "took too long")
        )
        with pytest.raises(SystemExit) as excinfo:
            main(["transcribe", str(wav_file)])
        assert excinfo.value.code == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "Error (poll_timeout): took too long" in captured.err

    def test_missing_file_exits_1(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["transcribe", str(tmp_path / "nope.wav")])
        assert excinfo.value.code == 1
        assert "File not found" in capsys.readouterr().err

    def test_missing_bucket_exits_1(self, wav_file, monkeypatch, patched_pipeline, capsys):
        monkeypatch.delenv("S3_BUCKET_NAME", raising=False)
        with pytest.raises(SystemExit) as excinfo:
            main(["transcribe", str(wav_file)])
        assert excinfo.value.code == 1
        assert "S3_BUCKET_NAME" in capsys.readouterr().err
        patched_pipeline.assert_not_called()

    def test_invalid_max_polls_exits_1(self, wav_file, aws_env, patched_pipeline, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(["transcribe", str(wav_file), "--max-polls", "0"])
        assert excinfo.value.code == 1
        assert "max_poll_attempts" in capsys.readouterr().err


class TestServeCommand:
    def test_runs_uvicorn_app(self):
        with patch("wav_transcriber.server.app.run_api") as run_api:
            main(["serve", "--port", "8123"])
        run_api.assert_called_once_with(host="0.0.0.0", port=8123)
