"""
Protocols (Interfaces) for Dependency Inversion.

Small, focused interfaces so the orchestrator can be driven by test doubles.
"""
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Protocol, Union, runtime_checkable

from .models import (
    FileDescriptor,
    NegotiatedDestination,
    TransferProgressSample,
    TransferStrategy,
    UploadOptions,
    UploadResult,
)

ProgressCallback = Callable[[TransferProgressSample], None]


@runtime_checkable
class ICredentialStore(Protocol):
    """Source of the bearer credential sent to the API."""

    def get_api_key(self) -> Optional[str]:
        ...


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for API operations."""

    async def post(self, endpoint: str, json: Dict) -> Any:
        """POST request to API."""
        ...


@runtime_checkable
class IFileProbe(Protocol):
    """Interface for local file inspection."""

    def probe(self, path: Union[str, Path]) -> FileDescriptor:
        ...


@runtime_checkable
class INegotiationClient(Protocol):
    """Interface for the begin/complete handshake."""

    async def begin_upload(
        self, descriptor: FileDescriptor, options: UploadOptions
    ) -> NegotiatedDestination:
        ...

    async def complete_upload(
        self,
        opaque_key: str,
        options: UploadOptions,
        descriptor: Optional[FileDescriptor] = None,
    ) -> UploadResult:
        ...


@runtime_checkable
class ITransferEngine(Protocol):
    """Interface for byte transmission."""

    async def transfer(
        self,
        destination: NegotiatedDestination,
        descriptor: FileDescriptor,
        strategy: TransferStrategy,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token=None,
        timeout: Optional[float] = None,
    ) -> None:
        ...
