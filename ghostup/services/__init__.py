"""Services for ghostup."""
from .api_client import HTTPAPIClient
from .negotiation import NegotiationClient
from .planner import STREAMING_THRESHOLD, TransferPlanner
from .probe import FileProbe
from .progress import ProgressTracker, format_eta, human_size
from .transfer import TransferEngine

__all__ = [
    "HTTPAPIClient",
    "NegotiationClient",
    "TransferPlanner",
    "STREAMING_THRESHOLD",
    "FileProbe",
    "ProgressTracker",
    "format_eta",
    "human_size",
    "TransferEngine",
]
