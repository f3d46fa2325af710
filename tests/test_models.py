"""Tests for models and errors."""
import pytest

from ghostup.errors import (
    AUTH_FAILED_MESSAGE,
    FILE_TOO_LARGE_MESSAGE,
    NETWORK_ERROR_MESSAGE,
    SERVER_ERROR_MESSAGE,
    TIMEOUT_MESSAGE,
    UPLOAD_FAILED_MESSAGE,
    AuthExpired,
    FileTooLarge,
    InvalidPath,
    LocalFileError,
    NetworkError,
    RemoteRejected,
    ServerRejected,
    UploadTimeout,
)
from ghostup.models import (
    MIB,
    TransferProfile,
    UploadOutcome,
    UploadResult,
    UploadState,
)


def test_profile_constants():
    assert TransferProfile.SLOW.part_size_bytes == 5 * MIB
    assert TransferProfile.MEDIUM.max_concurrent_uploads == 2
    assert TransferProfile.FAST.max_concurrent_uploads == 4
    assert TransferProfile.ULTRA.part_size_bytes == 50 * MIB
    assert TransferProfile.SLOW.timeout_seconds == 3600
    assert TransferProfile.ULTRA.timeout_millis == 15 * 60 * 1000


def test_profile_from_name():
    assert TransferProfile.from_name(" fast ") is TransferProfile.FAST
    with pytest.raises(ValueError, match="Unknown transfer profile"):
        TransferProfile.from_name("warp")


def test_terminal_states():
    assert UploadState.DONE.is_terminal
    assert UploadState.FAILED.is_terminal
    assert not UploadState.TRANSFERRING.is_terminal


def test_thumbnail_url_prefers_small():
    result = UploadResult(
        remote_id="k",
        url="https://cdn.test/k",
        final_size_bytes=1,
        mime_type="image/png",
        thumbnail_urls={"large": "L", "small": "S"},
    )
    assert result.thumbnail_url == "S"
    assert UploadResult("k", "u", 1, "image/png").thumbnail_url is None


def test_outcome_done_and_failed():
    result = UploadResult("k", "https://cdn.test/k", 3, "text/plain")
    done = UploadOutcome.done("a.txt", result)
    assert done.success
    assert done.reason is None

    failed = UploadOutcome.failed("a.txt", NetworkError("boom", bytes_sent=10), UploadState.TRANSFERRING)
    assert not failed.success
    assert failed.state == UploadState.FAILED
    assert failed.failed_state == UploadState.TRANSFERRING
    assert failed.reason == NETWORK_ERROR_MESSAGE


def test_user_messages():
    assert RemoteRejected(413).user_message == FILE_TOO_LARGE_MESSAGE
    assert RemoteRejected(502).user_message == SERVER_ERROR_MESSAGE
    assert RemoteRejected(403, "denied").user_message == UPLOAD_FAILED_MESSAGE
    assert ServerRejected("too big", status_code=413).user_message == FILE_TOO_LARGE_MESSAGE
    assert ServerRejected("quota exceeded").user_message == "quota exceeded"
    assert AuthExpired("nope").user_message == AUTH_FAILED_MESSAGE
    assert UploadTimeout("slow").user_message == TIMEOUT_MESSAGE
    assert FileTooLarge("big", size_bytes=10, max_size=5).user_message == FILE_TOO_LARGE_MESSAGE


def test_error_hierarchy_and_retryable():
    assert issubclass(InvalidPath, LocalFileError)
    assert issubclass(FileTooLarge, LocalFileError)
    assert NetworkError("x").retryable
    assert UploadTimeout("x").retryable
    assert not RemoteRejected(500).retryable
    assert not AuthExpired("x").retryable
    assert RemoteRejected(413).is_oversize
    assert RemoteRejected(413).status_code == 413
