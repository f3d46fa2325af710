"""Orchestrator package - coordinates upload runs."""
from .core import UploadOrchestrator
from .models import BatchUploadResult
from .state import UploadRun

__all__ = ["UploadOrchestrator", "BatchUploadResult", "UploadRun"]
