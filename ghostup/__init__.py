"""
ghostup - upload client pipeline for the GhostCDN API.

Each run goes probe -> plan -> negotiate -> transfer -> finalize and ends
in a single UploadOutcome.

Usage:
    from ghostup import UploadOrchestrator, UploadConfig, TransferProfile

    config = UploadConfig(profile=TransferProfile.FAST)
    async with UploadOrchestrator(api_url, credentials, config) as uploader:
        outcome = await uploader.upload(path, on_progress=print)

    # Several files, at most profile.max_concurrent_uploads at a time
    batch = await uploader.upload_many(paths)
"""
from .orchestrator import UploadOrchestrator, BatchUploadResult
from .models import (
    FileDescriptor,
    NegotiatedDestination,
    ProgressReport,
    TransferProfile,
    TransferProgressSample,
    TransferStrategy,
    UploadConfig,
    UploadOptions,
    UploadOutcome,
    UploadResult,
    UploadState,
)
from .errors import (
    AuthExpired,
    FileTooLarge,
    InvalidPath,
    LocalFileError,
    NetworkError,
    NotAFile,
    RemoteRejected,
    ServerRejected,
    Unreadable,
    UploadCancelled,
    UploadError,
    UploadTimeout,
)
from .services import (
    FileProbe,
    NegotiationClient,
    ProgressTracker,
    TransferEngine,
    TransferPlanner,
)
from .utils.cancellation import CancellationToken

__version__ = "0.1.0"
__all__ = [
    # Main
    "UploadOrchestrator",
    "BatchUploadResult",
    "CancellationToken",
    # Models
    "FileDescriptor",
    "NegotiatedDestination",
    "ProgressReport",
    "TransferProfile",
    "TransferProgressSample",
    "TransferStrategy",
    "UploadConfig",
    "UploadOptions",
    "UploadOutcome",
    "UploadResult",
    "UploadState",
    # Errors
    "UploadError",
    "LocalFileError",
    "InvalidPath",
    "NotAFile",
    "Unreadable",
    "FileTooLarge",
    "AuthExpired",
    "ServerRejected",
    "NetworkError",
    "UploadTimeout",
    "RemoteRejected",
    "UploadCancelled",
    # Services
    "FileProbe",
    "TransferPlanner",
    "NegotiationClient",
    "TransferEngine",
    "ProgressTracker",
]
