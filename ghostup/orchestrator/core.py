"""Core orchestrator - coordinates upload runs."""
import logging
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import httpx

from ..models import ProgressReport, UploadConfig, UploadOutcome
from ..protocols import ICredentialStore, IFileProbe, INegotiationClient, ITransferEngine
from ..services.api_client import HTTPAPIClient
from ..services.negotiation import NegotiationClient
from ..services.planner import TransferPlanner
from ..services.probe import FileProbe
from ..services.transfer import TransferEngine
from ..utils.cancellation import CancellationToken
from ..utils.events import EventEmitter
from .models import BatchUploadResult
from .parallel import upload_bounded
from .single_upload import SingleUploadHandler

logger = logging.getLogger(__name__)


class UploadOrchestrator:
    """
    Orchestrates uploads using injected services.

    The profile and options are fixed at construction through UploadConfig;
    nothing is read from process state.

    Usage:
        config = UploadConfig(profile=TransferProfile.FAST)
        async with UploadOrchestrator(api_url, credentials, config) as uploader:
            outcome = await uploader.upload(path)
            if outcome.success:
                print(outcome.result.url)
            else:
                print(outcome.reason)
    """

    def __init__(
        self,
        api_url: str,
        credentials: ICredentialStore,
        config: Optional[UploadConfig] = None,
        negotiation_client: Optional[INegotiationClient] = None,
        transfer_engine: Optional[ITransferEngine] = None,
        probe: Optional[IFileProbe] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            api_url: CDN API base URL
            credentials: Bearer credential source
            config: Upload configuration
            negotiation_client: Pre-built negotiation client (skips the HTTP API client)
            transfer_engine: Pre-built transfer engine
            probe: Pre-built file probe
            transport: httpx transport shared by the API client and transfer engine
        """
        self._api_url = api_url
        self._credentials = credentials
        self._config = config or UploadConfig()
        self._transport = transport
        self._external_negotiation = negotiation_client
        self._external_engine = transfer_engine
        self._probe = probe or FileProbe(self._config.max_file_size)
        self._planner = TransferPlanner()
        self._events = EventEmitter()

        # Initialized in __aenter__
        self._api_client: Optional[HTTPAPIClient] = None
        self._engine: Optional[TransferEngine] = None
        self._single_handler: Optional[SingleUploadHandler] = None

    @property
    def config(self) -> UploadConfig:
        return self._config

    async def __aenter__(self):
        """Initialize services and handlers."""
        negotiation = self._external_negotiation
        if negotiation is None:
            self._api_client = HTTPAPIClient(
                self._api_url,
                self._credentials,
                timeout=self._config.api_timeout,
                transport=self._transport,
            )
            await self._api_client.__aenter__()
            negotiation = NegotiationClient(self._api_client)

        engine = self._external_engine
        if engine is None:
            self._engine = TransferEngine(
                chunk_size=self._planner.chunk_size(self._config.profile),
                credentials=self._credentials if self._config.authorize_transfer else None,
                transport=self._transport,
            )
            await self._engine.__aenter__()
            engine = self._engine

        self._single_handler = SingleUploadHandler(
            self._probe,
            self._planner,
            negotiation,
            engine,
            self._config,
            self._events,
        )
        return self

    async def __aexit__(self, *args):
        """Cleanup resources."""
        if self._engine:
            await self._engine.__aexit__(*args)
            self._engine = None
        if self._api_client:
            await self._api_client.__aexit__(*args)
            self._api_client = None

    def on(self, event_name: str, callback: Callable):
        """Subscribe to orchestrator events (``"state"`` receives StateChange)."""
        self._events.on(event_name, callback)

    def off(self, event_name: str, callback: Callable):
        self._events.off(event_name, callback)

    async def upload(
        self,
        path: Union[str, Path],
        on_progress: Optional[Callable[[ProgressReport], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> UploadOutcome:
        """Upload one file and return its terminal outcome."""
        if self._single_handler is None:
            raise RuntimeError("UploadOrchestrator not initialized. Use 'async with' context.")
        return await self._single_handler.upload(path, on_progress, cancel_token)

    async def upload_many(
        self,
        paths: Sequence[Union[str, Path]],
        on_progress: Optional[Callable[[Path, ProgressReport], None]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> BatchUploadResult:
        """
        Upload several files as independent runs, at most
        ``profile.max_concurrent_uploads`` at a time.

        Args:
            paths: Local file paths
            on_progress: Receives (path, ProgressReport)
            cancel_token: Shared cancellation flag
        """

        async def _upload_one(path):
            callback = None
            if on_progress is not None:
                def callback(report, _path=Path(path)):
                    on_progress(_path, report)
            return await self.upload(path, callback, cancel_token)

        return await upload_bounded(paths, _upload_one, self._config.profile)
