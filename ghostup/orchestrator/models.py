"""Orchestrator data models."""
from dataclasses import dataclass
from typing import List

from ..models import UploadOutcome


@dataclass
class BatchUploadResult:
    """Result of a multi-file upload."""
    total_files: int
    uploaded_files: int
    failed_files: int
    outcomes: List[UploadOutcome]

    @property
    def success(self) -> bool:
        return self.total_files > 0 and self.failed_files == 0

    @property
    def failures(self) -> List[UploadOutcome]:
        return [o for o in self.outcomes if not o.success]
