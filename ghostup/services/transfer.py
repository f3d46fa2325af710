"""
Transfer Engine - sends file bytes to a negotiated destination.

Two paths:
- Buffered: the whole file in one PUT body
- Streamed: the file is piped chunk by chunk into the PUT body, with a
  progress callback per chunk and a cancellation check between chunks
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import AsyncIterator, Dict, Optional

import aiofiles
import httpx

from ..errors import NetworkError, RemoteRejected, Unreadable, UploadTimeout
from ..models import FileDescriptor, NegotiatedDestination, TransferStrategy
from ..protocols import ICredentialStore, ProgressCallback
from ..utils.cancellation import CancellationToken
from .api_client import error_detail
from .planner import MAX_STREAM_CHUNK, MIN_STREAM_CHUNK
from .progress import ProgressTracker

logger = logging.getLogger(__name__)


class _ProgressEmitter:
    """Counts bytes handed to the connection and forwards samples."""

    def __init__(self, total_bytes: int, callback: Optional[ProgressCallback]):
        self.total_bytes = total_bytes
        self.bytes_sent = 0
        self._callback = callback
        self._tracker = ProgressTracker()

    def report(self, bytes_sent: int) -> None:
        self.bytes_sent = bytes_sent
        if self._callback is None:
            return
        self._callback(self._tracker.sample(bytes_sent, self.total_bytes))


class TransferEngine:
    """
    Performs the byte transmission of one upload attempt.

    Never retries: any failure is terminal for the attempt.

    Usage:
        async with TransferEngine() as engine:
            await engine.transfer(destination, descriptor, strategy, on_progress)
    """

    def __init__(
        self,
        chunk_size: int = MAX_STREAM_CHUNK,
        credentials: Optional[ICredentialStore] = None,
        connect_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            chunk_size: Streamed read size, kept within [64 KiB, 1 MiB]
            credentials: When given, the bearer credential is sent with the PUT
            connect_timeout: Connection establishment timeout in seconds
            transport: Optional httpx transport
        """
        self._chunk_size = max(MIN_STREAM_CHUNK, min(chunk_size, MAX_STREAM_CHUNK))
        self._credentials = credentials
        self._connect_timeout = connect_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(None, connect=self._connect_timeout),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _headers(self, descriptor: FileDescriptor) -> Dict[str, str]:
        headers = {
            "Content-Type": descriptor.mime_type,
            "Content-Length": str(descriptor.size_bytes),
        }
        if self._credentials is not None:
            api_key = self._credentials.get_api_key()
            if api_key:
                headers["Authorization"] = f"Bearer {api_key}"
        return headers

    async def transfer(
        self,
        destination: NegotiatedDestination,
        descriptor: FileDescriptor,
        strategy: TransferStrategy,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Send the file's bytes to the destination.

        Args:
            destination: Negotiated write target
            descriptor: Probed file
            strategy: Buffered or streamed
            on_progress: Called with a TransferProgressSample as bytes go out
            cancel_token: Checked before sending and between streamed chunks
            timeout: Deadline in seconds for the whole attempt

        Raises:
            RemoteRejected: Non-2xx response
            UploadTimeout: Deadline expired or transport timed out
            NetworkError: Connection level failure
            UploadCancelled: Cancellation was requested
            Unreadable: Local file could not be read
        """
        if not self._client:
            raise RuntimeError("TransferEngine not initialized. Use 'async with' context.")
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()

        progress = _ProgressEmitter(descriptor.size_bytes, on_progress)
        if strategy is TransferStrategy.STREAMED:
            send = self._send_streamed(destination, descriptor, progress, cancel_token)
        else:
            send = self._send_buffered(destination, descriptor, progress)

        logger.info(
            f"Transferring {descriptor.display_name} ({descriptor.size_bytes} bytes, {strategy.value})"
        )
        started = time.monotonic()
        try:
            if timeout:
                response = await asyncio.wait_for(send, timeout)
            else:
                response = await send
        # Exception class picks timeout vs network; bytes_sent says whether any bytes left.
        except asyncio.TimeoutError as exc:
            raise UploadTimeout(
                f"Transfer of {descriptor.display_name} exceeded {timeout:.0f}s",
                bytes_sent=progress.bytes_sent,
            ) from exc
        except httpx.TimeoutException as exc:
            raise UploadTimeout(
                f"Transfer of {descriptor.display_name} timed out: {exc}",
                bytes_sent=progress.bytes_sent,
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(
                f"Connection failed during transfer of {descriptor.display_name}: {exc}",
                bytes_sent=progress.bytes_sent,
            ) from exc

        if not response.is_success:
            logger.warning(f"Storage answered HTTP {response.status_code} for {descriptor.display_name}")
            raise RemoteRejected(response.status_code, error_detail(response))

        logger.info(
            f"Transferred {descriptor.display_name} in {time.monotonic() - started:.1f}s"
        )

    async def _send_buffered(
        self,
        destination: NegotiatedDestination,
        descriptor: FileDescriptor,
        progress: _ProgressEmitter,
    ) -> httpx.Response:
        try:
            async with aiofiles.open(descriptor.absolute_path, "rb") as f:
                data = await f.read()
        except OSError as exc:
            raise Unreadable(f"Could not read file: {exc}") from exc

        progress.report(0)
        response = await self._client.put(
            destination.write_url,
            content=data,
            headers=self._headers(descriptor),
        )
        if response.is_success:
            progress.report(len(data))
        return response

    async def _send_streamed(
        self,
        destination: NegotiatedDestination,
        descriptor: FileDescriptor,
        progress: _ProgressEmitter,
        cancel_token: Optional[CancellationToken],
    ) -> httpx.Response:
        try:
            f = await aiofiles.open(descriptor.absolute_path, "rb")
        except OSError as exc:
            raise Unreadable(f"Could not open file: {exc}") from exc

        async def body() -> AsyncIterator[bytes]:
            while True:
                if cancel_token is not None:
                    cancel_token.raise_if_cancelled(progress.bytes_sent)
                try:
                    chunk = await f.read(self._chunk_size)
                except OSError as exc:
                    raise Unreadable(f"Could not read file: {exc}") from exc
                if not chunk:
                    break
                yield chunk
                progress.report(progress.bytes_sent + len(chunk))

        try:
            progress.report(0)
            return await self._client.put(
                destination.write_url,
                content=body(),
                headers=self._headers(descriptor),
            )
        finally:
            await f.close()
