"""Tests for ghostup CLI helpers."""
import argparse
import asyncio
import logging
import os
import signal
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from ghostup import cli
from ghostup.cli import (
    EXIT_AUTH,
    EXIT_CANCELLED,
    EXIT_FAILURE,
    EXIT_LOCAL_FILE,
    EXIT_NETWORK,
    EXIT_OK,
    EXIT_OVERSIZE,
    EnvCredentialStore,
    _build_config,
    _build_parser,
    _exit_code_for,
    _load_env_file,
    _setup_logging,
    _upload_with_retries,
    run_cli,
)
from ghostup.errors import (
    AuthExpired,
    FileTooLarge,
    InvalidPath,
    NetworkError,
    RemoteRejected,
    ServerRejected,
    UploadCancelled,
    UploadTimeout,
)
from ghostup.models import TransferProfile, UploadOutcome, UploadResult, UploadState


def _failed(error):
    return UploadOutcome.failed("a.bin", error, UploadState.TRANSFERRING)


def _done():
    return UploadOutcome.done("a.bin", UploadResult("k", "https://cdn.test/k", 1, "text/plain"))


def test_load_env_file(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text(
        "\n".join(
            [
                "# GhostCDN",
                "GHOSTCDN_API_URL=http://localhost:3001/api/v1",
                "GHOSTCDN_API_KEY='secret key'",
                "export GHOSTCDN_PROFILE=fast",
            ]
        ),
        encoding="utf-8",
    )

    monkeypatch.delenv("GHOSTCDN_API_URL", raising=False)
    monkeypatch.delenv("GHOSTCDN_API_KEY", raising=False)
    monkeypatch.delenv("GHOSTCDN_PROFILE", raising=False)

    _load_env_file(env_path)

    assert os.environ["GHOSTCDN_API_URL"] == "http://localhost:3001/api/v1"
    assert os.environ["GHOSTCDN_API_KEY"] == "secret key"
    assert os.environ["GHOSTCDN_PROFILE"] == "fast"


def test_load_env_file_keeps_existing_values(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text("GHOSTCDN_PROFILE=slow\n", encoding="utf-8")
    monkeypatch.setenv("GHOSTCDN_PROFILE", "ultra")

    _load_env_file(env_path)

    assert os.environ["GHOSTCDN_PROFILE"] == "ultra"


def test_load_env_file_skips_malformed_lines(tmp_path, monkeypatch):
    env_path = tmp_path / ".env"
    env_path.write_text("NOEQUALS\n=orphan\nGHOSTCDN_API_URL=\"http://h/?a=b\"\n", encoding="utf-8")
    monkeypatch.delenv("GHOSTCDN_API_URL", raising=False)
    monkeypatch.delenv("NOEQUALS", raising=False)

    _load_env_file(env_path)

    assert os.environ["GHOSTCDN_API_URL"] == "http://h/?a=b"
    assert "NOEQUALS" not in os.environ


def test_load_env_file_missing(tmp_path):
    with pytest.raises(cli.CLIError):
        _load_env_file(tmp_path / "nope.env")


def test_setup_logging_silent_by_default(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    try:
        assert _setup_logging(debug=False, silent=False, log_level=None) == "silent"
    finally:
        logging.disable(logging.NOTSET)


def test_setup_logging_levels(monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    try:
        assert _setup_logging(debug=True, silent=False, log_level=None) == "DEBUG"
        assert _setup_logging(debug=False, silent=False, log_level="warning") == "WARNING"
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert _setup_logging(debug=False, silent=False, log_level=None) == "ERROR"
    finally:
        logging.disable(logging.NOTSET)
        logging.getLogger().setLevel(logging.WARNING)


def test_credentials_prefer_flag(monkeypatch):
    monkeypatch.setenv("GHOSTCDN_API_KEY", "from-env")
    assert EnvCredentialStore("from-flag").get_api_key() == "from-flag"
    assert EnvCredentialStore().get_api_key() == "from-env"

    monkeypatch.setenv("GHOSTCDN_API_KEY", "  ")
    assert EnvCredentialStore().get_api_key() is None


def test_build_config_from_flags(monkeypatch):
    monkeypatch.delenv("GHOSTCDN_PROFILE", raising=False)
    args = _build_parser().parse_args(
        ["a.png", "--profile", "ultra", "--name", "Cover", "--no-thumbnails", "--private", "--no-optimize"]
    )

    config = _build_config(args)

    assert config.profile is TransferProfile.ULTRA
    assert config.options.custom_display_name == "Cover"
    assert config.options.generate_thumbnails is False
    assert config.options.optimize is False
    assert config.options.is_public is False
    assert config.options.preserve_original_name is True


def test_build_config_profile_from_env(monkeypatch):
    monkeypatch.setenv("GHOSTCDN_PROFILE", "slow")
    args = _build_parser().parse_args(["a.png"])

    assert _build_config(args).profile is TransferProfile.SLOW


def test_build_config_rejects_bad_input(monkeypatch):
    monkeypatch.delenv("GHOSTCDN_PROFILE", raising=False)
    with pytest.raises(cli.CLIError):
        _build_config(_build_parser().parse_args(["a.png", "--profile", "warp"]))
    with pytest.raises(cli.CLIError):
        _build_config(_build_parser().parse_args(["a.png", "b.png", "--name", "x"]))


def test_parser_rejects_negative_retries():
    with pytest.raises(SystemExit):
        _build_parser().parse_args(["a.png", "--retries", "-1"])


@pytest.mark.parametrize(
    "outcome, code",
    [
        (_done(), EXIT_OK),
        (_failed(InvalidPath("bad")), EXIT_LOCAL_FILE),
        (_failed(FileTooLarge("big", 10, 5)), EXIT_OVERSIZE),
        (_failed(RemoteRejected(413)), EXIT_OVERSIZE),
        (_failed(AuthExpired("expired")), EXIT_AUTH),
        (_failed(NetworkError("reset")), EXIT_NETWORK),
        (_failed(UploadTimeout("slow")), EXIT_NETWORK),
        (_failed(ServerRejected("nope")), EXIT_FAILURE),
        (_failed(RemoteRejected(500)), EXIT_FAILURE),
        (_failed(UploadCancelled()), EXIT_CANCELLED),
    ],
)
def test_exit_code_for(outcome, code):
    assert _exit_code_for(outcome) == code


@pytest.mark.asyncio
async def test_retries_rerun_whole_pipeline(monkeypatch):
    monkeypatch.setattr(cli, "RETRY_DELAY_SECONDS", 0)
    orchestrator = AsyncMock()
    orchestrator.upload.side_effect = [_failed(NetworkError("reset")), _failed(UploadTimeout("slow")), _done()]

    outcome = await _upload_with_retries(orchestrator, Path("a.bin"), None, 2, cli.CancellationToken())

    assert outcome.success
    assert orchestrator.upload.await_count == 3


@pytest.mark.asyncio
async def test_retries_skip_non_retryable(monkeypatch):
    monkeypatch.setattr(cli, "RETRY_DELAY_SECONDS", 0)
    orchestrator = AsyncMock()
    orchestrator.upload.return_value = _failed(RemoteRejected(403))

    outcome = await _upload_with_retries(orchestrator, Path("a.bin"), None, 3, cli.CancellationToken())

    assert not outcome.success
    assert orchestrator.upload.await_count == 1


def test_run_cli_without_paths_prints_help(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    assert run_cli([]) == EXIT_OK
    assert "ghostup" in capsys.readouterr().out


def test_run_cli_requires_api_key(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("GHOSTCDN_PROFILE", raising=False)
    monkeypatch.delenv("GHOSTCDN_API_KEY", raising=False)
    (tmp_path / "a.txt").write_text("x")

    assert run_cli(["a.txt", "--silent"]) == EXIT_AUTH


def test_run_cli_reports_exit_code(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    captured = {}

    async def fake_run_upload(paths, api_url, credentials, config, retries):
        captured.update(paths=paths, api_url=api_url, config=config, retries=retries)
        return EXIT_NETWORK

    monkeypatch.setattr(cli, "_run_upload", fake_run_upload)
    monkeypatch.setattr(cli, "render_configuration_summary", lambda config: None)
    monkeypatch.delenv("GHOSTCDN_API_URL", raising=False)
    monkeypatch.delenv("GHOSTCDN_PROFILE", raising=False)

    code = run_cli(["a.txt", "--api-key", "k", "--retries", "2", "--silent"])

    assert code == EXIT_NETWORK
    assert captured["paths"] == [Path("a.txt")]
    assert captured["api_url"] == cli.DEFAULT_API_URL
    assert captured["retries"] == 2
    assert isinstance(captured["config"].profile, TransferProfile)


def test_non_negative_int():
    assert cli._non_negative_int("3") == 3
    with pytest.raises(argparse.ArgumentTypeError):
        cli._non_negative_int("-2")


def test_batch_display_tracks_active_transfers():
    from ghostup.cli_progress import BatchUploadProgressDisplay
    from ghostup.models import ProgressReport, TransferProgressSample
    from ghostup.orchestrator import BatchUploadResult
    from ghostup.utils.events import StateChange

    display = BatchUploadProgressDisplay()
    path = Path("a.bin")
    display.on_state(StateChange(path, "a.bin", UploadState.NEGOTIATING, UploadState.TRANSFERRING))
    assert path in display._active_tasks

    sample = TransferProgressSample(bytes_sent=5, total_bytes=10, elapsed_millis=1000)
    display.on_progress(path, ProgressReport(sample, 50.0, 5.0, "1s"))
    display.on_state(StateChange(path, "a.bin", UploadState.FINALIZING, UploadState.DONE))
    assert path not in display._active_tasks

    display.on_finish(BatchUploadResult(1, 1, 0, [_done()]))


class _InterruptedOrchestrator:
    """Stands in for UploadOrchestrator; the upload is interrupted by SIGINT."""

    instances = []

    def __init__(self, *args, **kwargs):
        self.tokens = []
        _InterruptedOrchestrator.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass

    def on(self, event_name, callback):
        pass

    async def upload(self, path, on_progress=None, cancel_token=None):
        self.tokens.append(cancel_token)
        signal.raise_signal(signal.SIGINT)
        await asyncio.wait_for(cancel_token.wait(), 1)
        return UploadOutcome.failed(path.name, UploadCancelled(), UploadState.TRANSFERRING)


@pytest.mark.asyncio
async def test_interrupt_cancels_run_through_token(monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "UploadOrchestrator", _InterruptedOrchestrator)
    monkeypatch.setattr(cli, "RETRY_DELAY_SECONDS", 0)
    _InterruptedOrchestrator.instances.clear()
    path = tmp_path / "a.bin"
    path.write_bytes(b"x")

    code = await cli._run_upload([path], "https://api.test", EnvCredentialStore("k"), cli.UploadConfig(), retries=2)

    assert code == EXIT_CANCELLED
    tokens = _InterruptedOrchestrator.instances[0].tokens
    assert len(tokens) == 1
    assert tokens[0].cancelled
    assert signal.getsignal(signal.SIGINT) is signal.default_int_handler
