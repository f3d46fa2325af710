"""Single file upload handler."""
import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional, Union

from ..errors import UploadError
from ..models import ProgressReport, UploadConfig, UploadOutcome, UploadState
from ..protocols import IFileProbe, INegotiationClient, ITransferEngine, ProgressCallback
from ..services.planner import TransferPlanner
from ..services.progress import ProgressTracker
from ..utils.cancellation import CancellationToken
from ..utils.events import STATE_EVENT, EventEmitter
from .state import UploadRun

logger = logging.getLogger(__name__)

ReportCallback = Callable[[ProgressReport], None]


class SingleUploadHandler:
    """
    Runs one file through probe -> plan -> negotiate -> transfer -> finalize.

    Every UploadError ends the run in FAILED and is returned inside the
    outcome; nothing is retried.
    """

    def __init__(
        self,
        probe: IFileProbe,
        planner: TransferPlanner,
        negotiation: INegotiationClient,
        engine: ITransferEngine,
        config: UploadConfig,
        events: Optional[EventEmitter] = None,
    ):
        """
        Initialize single upload handler.

        Args:
            probe: FileProbe
            planner: TransferPlanner
            negotiation: NegotiationClient
            engine: TransferEngine
            config: UploadConfig (profile and options for every run)
            events: Optional emitter receiving state changes
        """
        self._probe = probe
        self._planner = planner
        self._negotiation = negotiation
        self._engine = engine
        self._config = config
        self._events = events

    async def _advance(self, run: UploadRun, state: UploadState) -> None:
        change = run.advance(state)
        logger.debug(f"{change.filename}: {change.previous.name} -> {change.current.name}")
        if self._events is not None:
            await self._events.emit(STATE_EVENT, change)

    @staticmethod
    def _observer(on_progress: Optional[ReportCallback]) -> Optional[ProgressCallback]:
        if on_progress is None:
            return None
        tracker = ProgressTracker()

        def observe(sample):
            try:
                on_progress(tracker.on_sample(sample))
            except Exception as e:
                logger.error(f"Error in progress callback: {e}")

        return observe

    async def upload(
        self,
        path: Union[str, Path],
        on_progress: Optional[ReportCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> UploadOutcome:
        """
        Upload one file.

        Args:
            path: Local file path
            on_progress: Receives a ProgressReport per transfer sample
            cancel_token: Optional cancellation flag

        Returns:
            UploadOutcome in DONE or FAILED state
        """
        run = UploadRun(path)
        profile = self._config.profile
        options = self._config.options

        try:
            await self._advance(run, UploadState.PROBING)
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            descriptor = await asyncio.to_thread(self._probe.probe, path)
            run.set_descriptor(descriptor)

            await self._advance(run, UploadState.PLANNING)
            run.strategy = self._planner.plan(descriptor, profile)
            logger.info(
                f"Uploading {descriptor.display_name} ({descriptor.size_bytes} bytes) "
                f"with {run.strategy.value} strategy, profile {profile.name}"
            )

            await self._advance(run, UploadState.NEGOTIATING)
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            run.hold_destination(await self._negotiation.begin_upload(descriptor, options))

            await self._advance(run, UploadState.TRANSFERRING)
            destination = run.claim_for_transfer()
            try:
                await self._engine.transfer(
                    destination,
                    descriptor,
                    run.strategy,
                    on_progress=self._observer(on_progress),
                    cancel_token=cancel_token,
                    timeout=profile.timeout_seconds,
                )
            except UploadError:
                run.discard_destination()
                raise

            await self._advance(run, UploadState.FINALIZING)
            opaque_key = run.claim_for_finalize()
            result = await self._negotiation.complete_upload(opaque_key, options, descriptor)

            outcome = UploadOutcome.done(run.filename, result)
            await self._advance(run, UploadState.DONE)
            return outcome

        except UploadError as exc:
            failed_state = run.state
            logger.warning(f"Upload of {run.filename} failed while {failed_state.value}: {exc}")
            outcome = UploadOutcome.failed(run.filename, exc, failed_state)
            await self._advance(run, UploadState.FAILED)
            return outcome
