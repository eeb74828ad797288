"""
Shared test fixtures: a fake HTTP session and archive builders.
"""

import io
import json
import struct
import tarfile
import zipfile
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import pytest
import requests

API = "https://api.github.com"
DOWNLOADS = "https://github.com/acme/tool/releases/download"


class FakeResponse:
    """Just enough of requests.Response for the client and downloader."""

    def __init__(self, status_code: int = 200, content: bytes = b"",
                 headers: Optional[Dict[str, str]] = None, reason: str = "OK"):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.reason = reason

    @classmethod
    def json_body(cls, data, status_code: int = 200, headers=None) -> "FakeResponse":
        return cls(status_code, json.dumps(data).encode(), headers)

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")

    def json(self):
        return json.loads(self.content)

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.content), chunk_size):
            yield self.content[start:start + chunk_size]

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


Route = Union[FakeResponse, Exception]


class FakeSession:
    """Routes GET requests by URL to canned responses."""

    def __init__(self, routes: Optional[Dict[str, Route]] = None):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.headers: Dict[str, str] = {}
        self.calls: List[str] = []
        self.closed = False

    def add(self, url: str, route: Route) -> None:
        self.routes[url] = route

    def get(self, url, **kwargs):
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(404, b'{"message": "Not Found"}', reason="Not Found")
        if isinstance(route, Exception):
            raise route
        return route

    def close(self):
        self.closed = True


def release_json(tag: str, assets: List[Tuple[str, str, int]], prerelease: bool = False) -> dict:
    return {
        "tag_name": tag,
        "name": f"Release {tag}",
        "prerelease": prerelease,
        "assets": [
            {"name": name, "browser_download_url": url, "size": size}
            for name, url, size in assets
        ],
    }


def make_tar_gz(entries: List[Tuple[str, bytes, int]], dirs: Tuple[str, ...] = ()) -> bytes:
    """Build a .tar.gz in memory from (name, data, mode) entries."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for directory in dirs:
            info = tarfile.TarInfo(directory)
            info.type = tarfile.DIRTYPE
            info.mode = 0o755
            tar.addfile(info)
        for name, data, mode in entries:
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = mode
            tar.addfile(info, io.BytesIO(data))
    return buffer.getvalue()


def make_broken_tar_gz(name: str = "tool", size: int = 40_000, intact: int = 20_000) -> bytes:
    """
    Build a .tar.gz whose deflate stream turns invalid partway through the member.

    The first ``intact`` bytes of the tar stream sit in a stored deflate block,
    followed by a block with the reserved type, which zlib rejects.
    """
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        info = tarfile.TarInfo(name)
        info.size = size
        info.mode = 0o755
        tar.addfile(info, io.BytesIO(b"\x7fELF" + b"A" * (size - 4)))
    raw = buffer.getvalue()[:512 + intact]

    gzip_header = b"\x1f\x8b\x08\x00\x00\x00\x00\x00\x00\xff"
    stored_block = b"\x00" + struct.pack("<HH", len(raw), len(raw) ^ 0xFFFF) + raw
    return gzip_header + stored_block + b"\x07" + b"\x00" * 64


def make_zip(entries: List[Tuple[str, bytes, int]]) -> bytes:
    """Build a .zip in memory from (name, data, unix mode) entries."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data, mode in entries:
            info = zipfile.ZipInfo(name)
            info.external_attr = (0o100000 | mode) << 16
            zf.writestr(info, data)
    return buffer.getvalue()


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def registry_path(tmp_path: Path) -> Path:
    return tmp_path / "config" / "execman" / "registry.json"


@pytest.fixture
def install_dir(tmp_path: Path) -> Path:
    path = tmp_path / "bin"
    path.mkdir()
    return path
