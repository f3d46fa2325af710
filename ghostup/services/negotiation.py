"""
Negotiation Client - two phase handshake surrounding the byte transfer.

Phase 1 asks the backend where to write; phase 2 tells it the write is done.
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote

from ..errors import ServerRejected
from ..models import FileDescriptor, NegotiatedDestination, UploadOptions, UploadResult
from ..protocols import IAPIClient

logger = logging.getLogger(__name__)

PRESIGNED_URL_ENDPOINT = "/files/presigned-url"
COMPLETE_UPLOAD_ENDPOINT = "/files/complete-upload/{key}"


def _thumbnail_urls(data: Dict[str, Any]) -> Dict[str, str]:
    thumbnails = data.get("thumbnails")
    if isinstance(thumbnails, dict):
        urls = {str(k): str(v) for k, v in thumbnails.items() if v}
        if urls:
            return urls
    if data.get("thumbnailUrl"):
        return {"default": str(data["thumbnailUrl"])}
    return {}


class NegotiationClient:
    """
    Client for the presigned-url / complete-upload endpoints.

    Keeps no state between calls.
    """

    def __init__(self, api_client: IAPIClient):
        """
        Args:
            api_client: HTTP client for API calls
        """
        self._api = api_client

    async def begin_upload(
        self, descriptor: FileDescriptor, options: UploadOptions
    ) -> NegotiatedDestination:
        """
        Request a write destination for a file.

        Raises:
            AuthExpired, ServerRejected, UploadTimeout, NetworkError
        """
        data = await self._api.post(PRESIGNED_URL_ENDPOINT, json={
            "filename": descriptor.display_name,
            "contentType": descriptor.mime_type,
            "fileSize": descriptor.size_bytes,
            "preserveFilename": options.preserve_original_name,
            "optimize": options.optimize,
            "generateThumbnails": options.generate_thumbnails,
        })
        if not isinstance(data, dict):
            raise ServerRejected("Invalid response from server - missing data")

        write_url = data.get("presignedUrl") or data.get("uploadUrl")
        opaque_key = data.get("fileKey")
        if not write_url or not opaque_key:
            raise ServerRejected("Invalid response from server - missing upload URL or file key")

        logger.info(f"Negotiated destination for {descriptor.display_name} (key={opaque_key})")
        return NegotiatedDestination(write_url=str(write_url), opaque_key=str(opaque_key))

    async def complete_upload(
        self,
        opaque_key: str,
        options: UploadOptions,
        descriptor: Optional[FileDescriptor] = None,
    ) -> UploadResult:
        """
        Finalize an upload whose bytes were written successfully.

        Args:
            opaque_key: Key returned by begin_upload
            options: Upload options
            descriptor: Probed file, used to fill fields the server omits

        Raises:
            AuthExpired, ServerRejected, UploadTimeout, NetworkError
        """
        endpoint = COMPLETE_UPLOAD_ENDPOINT.format(key=quote(opaque_key, safe=""))
        data = await self._api.post(endpoint, json={
            "generateThumbnails": options.generate_thumbnails,
            "isPublic": options.is_public,
            "customName": options.custom_display_name or None,
        })
        if not isinstance(data, dict):
            raise ServerRejected("Invalid response from server - missing upload result")
        if not data.get("url"):
            raise ServerRejected("Invalid response from server - missing file URL")

        fallback_size = descriptor.size_bytes if descriptor else 0
        fallback_mime = descriptor.mime_type if descriptor else "application/octet-stream"
        result = UploadResult(
            remote_id=str(data.get("id") or data.get("key") or opaque_key),
            url=str(data["url"]),
            final_size_bytes=int(data.get("fileSize") or fallback_size),
            mime_type=str(data.get("contentType") or data.get("fileType") or fallback_mime),
            thumbnail_urls=_thumbnail_urls(data),
            original_filename=data.get("originalFilename") or data.get("originalName"),
        )
        logger.info(f"Upload finalized: {result.url}")
        return result
