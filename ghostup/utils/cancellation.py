"""Cooperative cancellation for in-flight uploads."""
import asyncio

from ..errors import UploadCancelled


class CancellationToken:
    """
    Flag shared between a caller and a running upload.

    The transfer engine checks it between streamed chunks; the orchestrator
    checks it between phases.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason = "Upload cancelled."

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Upload cancelled.") -> None:
        self._reason = reason
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self, bytes_sent: int = 0) -> None:
        if self._event.is_set():
            raise UploadCancelled(self._reason, bytes_sent=bytes_sent)
