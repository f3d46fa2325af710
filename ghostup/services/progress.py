"""
Progress Tracker - derives percentage, speed and ETA from transfer samples.

Pure computation; the only state kept is the start timestamp supplied by the
caller.
"""
import math
import time
from typing import Optional

from ..models import ProgressReport, TransferProgressSample

CALCULATING_LABEL = "Calculating..."


def human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def format_eta(remaining_seconds: Optional[float]) -> str:
    """
    Format remaining seconds as a short label.

    < 60s -> "45s", < 1h -> "2m", otherwise "1h 5m".
    None means the speed is unknown.
    """
    if remaining_seconds is None:
        return CALCULATING_LABEL
    seconds = max(0, math.ceil(remaining_seconds))
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    hours, rest = divmod(seconds, 3600)
    return f"{hours}h {rest // 60}m"


class ProgressTracker:
    """
    Turns TransferProgressSample objects into ProgressReport objects.

    Usage:
        tracker = ProgressTracker()
        report = tracker.on_sample(sample)
        print(report.percent, report.bytes_per_second, report.eta_label)
    """

    def __init__(self, started_at: Optional[float] = None):
        """
        Args:
            started_at: time.monotonic() timestamp of the transfer start
        """
        self._started_at = time.monotonic() if started_at is None else started_at

    @property
    def started_at(self) -> float:
        return self._started_at

    def sample(self, bytes_sent: int, total_bytes: int, now: Optional[float] = None) -> TransferProgressSample:
        """Build a sample relative to the start timestamp."""
        now = time.monotonic() if now is None else now
        elapsed_millis = max(0, int((now - self._started_at) * 1000))
        return TransferProgressSample(
            bytes_sent=bytes_sent,
            total_bytes=total_bytes,
            elapsed_millis=elapsed_millis,
        )

    @staticmethod
    def percent(sample: TransferProgressSample) -> float:
        if sample.total_bytes <= 0 or sample.bytes_sent >= sample.total_bytes:
            return 100.0
        value = sample.bytes_sent / sample.total_bytes * 100
        return min(100.0, max(0.0, value))

    @staticmethod
    def bytes_per_second(sample: TransferProgressSample) -> float:
        if sample.elapsed_millis <= 0:
            return 0.0
        return sample.bytes_sent / (sample.elapsed_millis / 1000)

    def on_sample(self, sample: TransferProgressSample) -> ProgressReport:
        speed = self.bytes_per_second(sample)
        if speed > 0:
            remaining = max(0, sample.total_bytes - sample.bytes_sent)
            eta_label = format_eta(remaining / speed)
        else:
            eta_label = format_eta(None)
        return ProgressReport(
            sample=sample,
            percent=self.percent(sample),
            bytes_per_second=speed,
            eta_label=eta_label,
        )
