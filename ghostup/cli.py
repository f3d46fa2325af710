"""Command line interface for ghostup package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from rich.logging import RichHandler

from . import __version__
from .errors import (
    AuthExpired,
    FileTooLarge,
    LocalFileError,
    NetworkError,
    UploadCancelled,
    UploadTimeout,
)
from .models import ProgressReport, TransferProfile, UploadConfig, UploadOptions, UploadOutcome
from .orchestrator import BatchUploadResult, UploadOrchestrator
from .utils.cancellation import CancellationToken
from .utils.events import STATE_EVENT
from .cli_progress import (
    BatchUploadProgressDisplay,
    SingleFileUploadProgress,
    render_configuration_summary,
)

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://q1.api.ghostcdn.xyz/api/v1"
DEFAULT_PROFILE = TransferProfile.MEDIUM
RETRY_DELAY_SECONDS = 2.0

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_LOCAL_FILE = 2
EXIT_AUTH = 3
EXIT_NETWORK = 4
EXIT_OVERSIZE = 5
EXIT_CANCELLED = 130


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""

    def __init__(self, message: str, exit_code: int = EXIT_FAILURE):
        self.exit_code = exit_code
        super().__init__(message)


class EnvCredentialStore:
    """Credential store backed by --api-key or GHOSTCDN_API_KEY."""

    def __init__(self, api_key: Optional[str] = None):
        self._api_key = api_key

    def get_api_key(self) -> Optional[str]:
        key = self._api_key or os.getenv("GHOSTCDN_API_KEY")
        return key.strip() if key and key.strip() else None


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """
    Configure logging.

    Default behavior is silent unless --debug, --log-level or LOG_LEVEL is
    provided. Returns a string describing effective mode.
    """
    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    logging.disable(logging.NOTSET)

    env_level = os.getenv("LOG_LEVEL")
    if silent or (not debug and not log_level and not env_level):
        logging.disable(logging.CRITICAL)
        root_logger.setLevel(logging.CRITICAL + 1)
        return "silent"

    if debug:
        level = logging.DEBUG
    else:
        level = getattr(logging, (log_level or env_level or "INFO").upper(), logging.INFO)

    handler = RichHandler(
        rich_tracebacks=True,
        markup=True,
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(handler)
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _parse_env_line(line: str) -> Optional[Tuple[str, str]]:
    """Split one `KEY=value` line; comments, blanks and malformed lines give None."""
    line = line.strip()
    if line.startswith("export "):
        line = line[7:].lstrip()
    if not line or line.startswith("#"):
        return None

    key, sep, value = line.partition("=")
    key = key.strip()
    if not sep or not key:
        return None

    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    return key, value


def _load_env_file(path: Path, override: bool = False) -> None:
    """Export GHOSTCDN_* (and any other) settings from a dotenv file."""
    if not path.is_file():
        raise CLIError(f"env file not found or not a file: {path}")

    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    pairs = filter(None, map(_parse_env_line, lines))
    for key, value in pairs:
        if override or key not in os.environ:
            os.environ[key] = value


def _resolve_default_env_file() -> Optional[Path]:
    default_env = Path(".env")
    return default_env if default_env.exists() and default_env.is_file() else None


def _resolve_profile(name: Optional[str]) -> TransferProfile:
    value = name or os.getenv("GHOSTCDN_PROFILE")
    if not value:
        return DEFAULT_PROFILE
    try:
        return TransferProfile.from_name(value)
    except ValueError as exc:
        raise CLIError(str(exc)) from exc


def _build_config(args: argparse.Namespace) -> UploadConfig:
    if args.name and len(args.paths) > 1:
        raise CLIError("--name can only be used with a single file")

    options = UploadOptions(
        preserve_original_name=not args.no_preserve_filename,
        optimize=not args.no_optimize,
        generate_thumbnails=not args.no_thumbnails,
        custom_display_name=args.name or "",
        is_public=not args.private,
    )
    return UploadConfig(profile=_resolve_profile(args.profile), options=options)


def _exit_code_for(outcome: UploadOutcome) -> int:
    """Map a terminal outcome to a process exit code."""
    if outcome.success:
        return EXIT_OK
    error = outcome.error
    if isinstance(error, UploadCancelled):
        return EXIT_CANCELLED
    if isinstance(error, FileTooLarge) or (error is not None and error.is_oversize):
        return EXIT_OVERSIZE
    if isinstance(error, LocalFileError):
        return EXIT_LOCAL_FILE
    if isinstance(error, AuthExpired):
        return EXIT_AUTH
    if isinstance(error, (NetworkError, UploadTimeout)):
        return EXIT_NETWORK
    return EXIT_FAILURE


def _is_retryable(outcome: UploadOutcome) -> bool:
    return not outcome.success and outcome.error is not None and outcome.error.retryable


async def _upload_with_retries(
    orchestrator: UploadOrchestrator,
    path: Path,
    on_progress: Optional[Callable[[ProgressReport], None]],
    retries: int,
    cancel_token: CancellationToken,
) -> UploadOutcome:
    """Re-run the whole pipeline (fresh negotiation) while the failure is retryable."""
    attempt = 0
    while True:
        outcome = await orchestrator.upload(path, on_progress, cancel_token)
        if not _is_retryable(outcome) or attempt >= retries or cancel_token.cancelled:
            return outcome
        attempt += 1
        logger.warning(f"Retrying {outcome.filename} ({attempt}/{retries}): {outcome.error}")
        await asyncio.sleep(RETRY_DELAY_SECONDS * attempt)


async def _upload_batch_with_retries(
    orchestrator: UploadOrchestrator,
    paths: List[Path],
    display: BatchUploadProgressDisplay,
    retries: int,
    cancel_token: CancellationToken,
) -> BatchUploadResult:
    batch = await orchestrator.upload_many(paths, display.on_progress, cancel_token)
    outcomes = list(batch.outcomes)

    for attempt in range(1, retries + 1):
        pending = [i for i, outcome in enumerate(outcomes) if _is_retryable(outcome)]
        if not pending or cancel_token.cancelled:
            break
        logger.warning(f"Retrying {len(pending)} file(s) ({attempt}/{retries})")
        await asyncio.sleep(RETRY_DELAY_SECONDS * attempt)
        again = await orchestrator.upload_many([paths[i] for i in pending], display.on_progress, cancel_token)
        for index, outcome in zip(pending, again.outcomes):
            outcomes[index] = outcome

    uploaded = sum(1 for o in outcomes if o.success)
    return BatchUploadResult(
        total_files=len(outcomes),
        uploaded_files=uploaded,
        failed_files=len(outcomes) - uploaded,
        outcomes=outcomes,
    )


def _install_interrupt_handler(cancel_token: CancellationToken) -> bool:
    """
    Route Ctrl-C to the cancellation token so runs end as cancelled outcomes.

    A second Ctrl-C cancels the running task. Returns False where the loop
    cannot install signal handlers.
    """
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()

    def _on_interrupt() -> None:
        if cancel_token.cancelled:
            task.cancel()
            return
        print("Cancelling... (press Ctrl-C again to abort)", file=sys.stderr)
        cancel_token.cancel()

    try:
        loop.add_signal_handler(signal.SIGINT, _on_interrupt)
    except (NotImplementedError, RuntimeError):
        return False
    return True


async def _run_upload(
    paths: List[Path],
    api_url: str,
    credentials: EnvCredentialStore,
    config: UploadConfig,
    retries: int,
) -> int:
    cancel_token = CancellationToken()
    handles_interrupt = _install_interrupt_handler(cancel_token)
    try:
        async with UploadOrchestrator(api_url, credentials, config) as orchestrator:
            if len(paths) == 1:
                progress = SingleFileUploadProgress(paths[0])
                progress.start()
                outcome = await _upload_with_retries(
                    orchestrator, paths[0], progress.get_callback(), retries, cancel_token
                )
                progress.complete(outcome)
                return _exit_code_for(outcome)

            display = BatchUploadProgressDisplay()
            orchestrator.on(STATE_EVENT, display.on_state)
            batch = await _upload_batch_with_retries(orchestrator, paths, display, retries, cancel_token)
            display.on_finish(batch)
            if batch.success:
                return EXIT_OK
            if cancel_token.cancelled:
                return EXIT_CANCELLED
            return _exit_code_for(batch.failures[0])
    finally:
        if handles_interrupt:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)


def _non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise argparse.ArgumentTypeError("must be >= 0")
    return number


def _build_parser() -> argparse.ArgumentParser:
    profiles = ", ".join(p.name.lower() for p in TransferProfile)
    parser = argparse.ArgumentParser(
        prog="ghostup",
        description="Upload files to GhostCDN.",
    )
    parser.add_argument("paths", nargs="*", type=Path, help="Files to upload")
    parser.add_argument(
        "-p",
        "--profile",
        default=None,
        help=f"Transfer profile: {profiles} (default from GHOSTCDN_PROFILE or medium)",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help=f"GhostCDN API URL (default from GHOSTCDN_API_URL or {DEFAULT_API_URL})",
    )
    parser.add_argument(
        "--api-key",
        default=None,
        help="API key (default from GHOSTCDN_API_KEY)",
    )
    parser.add_argument("-n", "--name", default=None, help="Custom display name for the upload")
    parser.add_argument(
        "--no-preserve-filename",
        action="store_true",
        help="Let the server generate the stored filename",
    )
    parser.add_argument("--no-optimize", action="store_true", help="Skip server-side optimization")
    parser.add_argument("--no-thumbnails", action="store_true", help="Do not generate thumbnails")
    parser.add_argument("--private", action="store_true", help="Upload as private file")
    parser.add_argument(
        "-r",
        "--retries",
        type=_non_negative_int,
        default=0,
        help="Re-run the upload this many times on network errors or timeouts",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ghostup {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    used_env_file = args.env_file or _resolve_default_env_file()
    if used_env_file is not None:
        try:
            _load_env_file(Path(used_env_file))
        except CLIError as exc:
            print(f"ERROR: {exc}", file=sys.stderr)
            return exc.exit_code

    effective_log_mode = _setup_logging(
        debug=args.debug,
        silent=args.silent,
        log_level=args.log_level,
    )

    if not args.paths:
        parser.print_help()
        return EXIT_OK

    try:
        config = _build_config(args)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return exc.exit_code

    credentials = EnvCredentialStore(args.api_key)
    if credentials.get_api_key() is None:
        print("ERROR: no API key (use --api-key or set GHOSTCDN_API_KEY)", file=sys.stderr)
        return EXIT_AUTH

    api_url = args.api_url or os.getenv("GHOSTCDN_API_URL") or DEFAULT_API_URL
    paths = [Path(p) for p in args.paths]
    options = config.options
    render_configuration_summary(
        {
            "Files": ", ".join(str(p) for p in paths),
            "API": api_url,
            "Profile": config.profile.name.lower(),
            "Concurrency": config.profile.max_concurrent_uploads,
            "Name": options.custom_display_name or "-",
            "Preserve Filename": "yes" if options.preserve_original_name else "no",
            "Optimize": "yes" if options.optimize else "no",
            "Thumbnails": "yes" if options.generate_thumbnails else "no",
            "Visibility": "public" if options.is_public else "private",
            "Retries": args.retries,
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(
            _run_upload(
                paths=paths,
                api_url=api_url,
                credentials=credentials,
                config=config,
                retries=args.retries,
            )
        )
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return exc.exit_code
    except (KeyboardInterrupt, asyncio.CancelledError):
        print("Cancelled.", file=sys.stderr)
        return EXIT_CANCELLED


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
