"""
File Probe - Single Responsibility: validate and describe a local file.

Path safety checks run on the raw input before anything touches the
filesystem.
"""
import errno
import logging
import mimetypes
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from ..errors import FileTooLarge, InvalidPath, NotAFile, Unreadable
from ..models import FileDescriptor, GIB

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"
DEFAULT_MAX_FILE_SIZE = 50 * GIB

_SUSPICIOUS_PATTERNS = (
    re.compile(r"(^|[\\/])\.\.([\\/]|$)"),  # parent directory references
    re.compile(r"^~|[\\/]~([\\/]|$)"),  # home directory shortcuts
    re.compile(r"//"),  # doubled separators
    re.compile(r"\x00"),  # null bytes
)


def check_path_safety(raw_path: str) -> None:
    """
    Reject unsafe path strings.

    Raises:
        InvalidPath: If the path is empty or matches a suspicious pattern
    """
    if not raw_path or not raw_path.strip():
        raise InvalidPath("Invalid file path provided")
    for pattern in _SUSPICIOUS_PATTERNS:
        if pattern.search(raw_path):
            raise InvalidPath("Invalid file path: contains suspicious characters")


def guess_mime_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(path.name)
    return mime_type or DEFAULT_MIME_TYPE


class FileProbe:
    """
    Inspects local files before upload.

    Responsibilities:
    - Reject unsafe paths
    - Resolve to an absolute canonical path
    - Read size, mtime and MIME type
    - Enforce the size ceiling
    """

    def __init__(self, max_file_size: Optional[int] = DEFAULT_MAX_FILE_SIZE):
        self._max_file_size = max_file_size

    def probe(self, path: Union[str, Path]) -> FileDescriptor:
        """
        Probe a file for upload.

        Args:
            path: Caller supplied path

        Returns:
            FileDescriptor for the resolved file

        Raises:
            InvalidPath: Unsafe or missing path
            NotAFile: Path is a directory (or other non-regular file)
            Unreadable: Metadata cannot be read or file is not readable
            FileTooLarge: File exceeds the size ceiling
        """
        raw = os.fspath(path)
        check_path_safety(raw)

        try:
            resolved = Path(raw).resolve()
            exists = resolved.exists()
            is_file = exists and resolved.is_file()
        except RuntimeError as exc:  # symlink loop
            raise InvalidPath(f"File path cannot be resolved: {raw}") from exc
        except OSError as exc:
            if exc.errno in (errno.EACCES, errno.EPERM):
                raise Unreadable(f"File is not accessible: {raw}") from exc
            raise InvalidPath(f"File path cannot be resolved: {exc}") from exc

        if not exists:
            raise InvalidPath(f"File does not exist or is not accessible: {raw}")
        if not is_file:
            raise NotAFile(f"Path must point to a file, not a directory: {resolved}")

        try:
            stats = resolved.stat()
        except OSError as exc:
            raise Unreadable(f"Could not read file metadata: {exc}") from exc
        if not os.access(resolved, os.R_OK):
            raise Unreadable(f"File is not readable: {resolved}")

        if self._max_file_size is not None and stats.st_size > self._max_file_size:
            raise FileTooLarge(
                f"File size {stats.st_size} exceeds maximum {self._max_file_size}",
                size_bytes=stats.st_size,
                max_size=self._max_file_size,
            )

        descriptor = FileDescriptor(
            absolute_path=resolved,
            display_name=resolved.name,
            size_bytes=stats.st_size,
            mime_type=guess_mime_type(resolved),
            modified_at=datetime.fromtimestamp(stats.st_mtime),
        )

        if not descriptor.is_supported_type:
            logger.warning(
                f"File type '{descriptor.mime_type}' may not be optimally supported: {descriptor.display_name}"
            )
        logger.debug(f"Probed {descriptor.display_name}: {descriptor.size_bytes} bytes, {descriptor.mime_type}")
        return descriptor
