"""Shared fixtures for ghostup tests."""
import json
from datetime import datetime
from pathlib import Path

import httpx
import pytest

from ghostup.models import FileDescriptor

API_URL = "https://api.test/api/v1"
WRITE_URL = "https://storage.test/bucket/object?sig=abc"


class StaticCredentials:
    def __init__(self, api_key="test-key"):
        self.api_key = api_key

    def get_api_key(self):
        return self.api_key


def envelope(data=None, success=True, error=None, status_code=200):
    body = {"success": success}
    if data is not None:
        body["data"] = data
    if error is not None:
        body["error"] = error
    return httpx.Response(status_code, json=body)


def make_descriptor(path: Path, size_bytes: int = None, mime_type: str = "application/octet-stream"):
    path = Path(path)
    if size_bytes is None:
        size_bytes = path.stat().st_size if path.exists() else 0
    return FileDescriptor(
        absolute_path=path,
        display_name=path.name,
        size_bytes=size_bytes,
        mime_type=mime_type,
        modified_at=datetime(2026, 1, 1),
    )


def request_json(request: httpx.Request):
    return json.loads(request.content.decode("utf-8"))


@pytest.fixture
def credentials():
    return StaticCredentials()


@pytest.fixture
def small_file(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(b"\x89PNG" + b"x" * 1020)
    return path
