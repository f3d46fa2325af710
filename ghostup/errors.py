"""
Exceptions for the upload pipeline.

Every failure of a run is an UploadError subclass; the orchestrator turns
them into a failed UploadOutcome instead of letting them escape.
"""
from typing import Optional


FILE_TOO_LARGE_MESSAGE = "File size exceeds the maximum limit allowed by the server."
AUTH_FAILED_MESSAGE = "Authentication failed. Please check your API key or log in again."
NETWORK_ERROR_MESSAGE = "Network error occurred. Please check your internet connection and try again."
TIMEOUT_MESSAGE = "Upload timed out. Please try again."
SERVER_ERROR_MESSAGE = "Server error occurred. Please try again later."
UPLOAD_FAILED_MESSAGE = "File upload failed. Please try again."
CANCELLED_MESSAGE = "Upload cancelled."

OVERSIZE_STATUS = 413


class UploadError(Exception):
    """Base exception for all upload pipeline errors."""

    retryable = False

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            status_code: HTTP status code (if the failure came from a response)
        """
        self.status_code = status_code
        super().__init__(message)

    @property
    def is_oversize(self) -> bool:
        return self.status_code == OVERSIZE_STATUS

    @property
    def user_message(self) -> str:
        if self.is_oversize:
            return FILE_TOO_LARGE_MESSAGE
        return str(self)


class LocalFileError(UploadError):
    """Local filesystem problem, detected before any network call."""
    pass


class InvalidPath(LocalFileError):
    """Path is unsafe or does not exist."""
    pass


class NotAFile(LocalFileError):
    """Path points to something other than a regular file."""
    pass


class Unreadable(LocalFileError):
    """File metadata or contents cannot be read."""
    pass


class FileTooLarge(LocalFileError):
    """File exceeds the configured size ceiling."""

    def __init__(self, message: str, size_bytes: int, max_size: int) -> None:
        self.size_bytes = size_bytes
        self.max_size = max_size
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return FILE_TOO_LARGE_MESSAGE


class AuthExpired(UploadError):
    """Credential rejected by the backend."""

    @property
    def user_message(self) -> str:
        return AUTH_FAILED_MESSAGE


class ServerRejected(UploadError):
    """Negotiation response was malformed or refused."""

    @property
    def user_message(self) -> str:
        if self.is_oversize:
            return FILE_TOO_LARGE_MESSAGE
        message = str(self)
        return message or SERVER_ERROR_MESSAGE


class NetworkError(UploadError):
    """Connection level failure."""

    retryable = True

    def __init__(self, message: str, bytes_sent: int = 0) -> None:
        self.bytes_sent = bytes_sent
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return NETWORK_ERROR_MESSAGE


class UploadTimeout(UploadError):
    """Request or transfer deadline expired."""

    retryable = True

    def __init__(self, message: str, bytes_sent: int = 0) -> None:
        self.bytes_sent = bytes_sent
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return TIMEOUT_MESSAGE


class RemoteRejected(UploadError):
    """Storage endpoint answered the byte transfer with a non-2xx status."""

    def __init__(self, status_code: int, detail: Optional[str] = None) -> None:
        message = f"Storage rejected transfer with HTTP {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, status_code=status_code)

    @property
    def user_message(self) -> str:
        if self.is_oversize:
            return FILE_TOO_LARGE_MESSAGE
        if self.status_code is not None and self.status_code >= 500:
            return SERVER_ERROR_MESSAGE
        return UPLOAD_FAILED_MESSAGE


class UploadCancelled(UploadError):
    """Run was cancelled by the caller."""

    def __init__(self, message: str = CANCELLED_MESSAGE, bytes_sent: int = 0) -> None:
        self.bytes_sent = bytes_sent
        super().__init__(message)

    @property
    def user_message(self) -> str:
        return CANCELLED_MESSAGE
