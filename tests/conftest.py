"""Shared pytest fixtures for PromptGrid tests."""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from collections.abc import Sequence
from io import BytesIO
from pathlib import Path
from typing import Generator

import pytest
from PIL import Image

from promptgrid.core.config import PromptGridConfig
from promptgrid.core.errors import ArtifactFetchError
from promptgrid.core.models import BackendResult, ReferenceImage, RemoteArtifactRef
from promptgrid.core.session import SessionState

VALID_COOKIES = {"__Secure-1PSID": "psid-value", "__Secure-1PSIDTS": "psidts-value"}


def make_png(width: int = 8, height: int = 8, color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
    """Render a tiny solid-colour PNG."""
    buf = BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def make_jpeg(width: int = 8, height: int = 8) -> bytes:
    buf = BytesIO()
    Image.new("RGB", (width, height), (10, 120, 240)).save(buf, format="JPEG")
    return buf.getvalue()


class FakeBackend:
    """In-memory GenerationBackend recording every call."""

    def __init__(self, result: BackendResult | None = None) -> None:
        self.result = result or BackendResult()
        self.error: Exception | None = None
        self.calls: list[tuple[str, tuple[ReferenceImage, ...]]] = []

    async def generate(self, prompt: str, reference_images: Sequence[ReferenceImage]) -> BackendResult:
        self.calls.append((prompt, tuple(reference_images)))
        if self.error is not None:
            raise self.error
        return self.result


class FakeFetcher:
    """ArtifactFetcher serving bytes from a dict; exceptions are raised."""

    def __init__(self, responses: dict[str, bytes | Exception] | None = None) -> None:
        self.responses: dict[str, bytes | Exception] = dict(responses or {})
        self.requested: list[str] = []

    async def fetch_bytes(self, url: str) -> bytes:
        self.requested.append(url)
        value = self.responses.get(url)
        if value is None:
            raise ArtifactFetchError(url, "HTTP 404")
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def cookie_file(temp_dir: Path) -> Path:
    """Location of the test cookie store (not created)."""
    return temp_dir / "cookies.json"


@pytest.fixture
def write_cookies(cookie_file: Path):
    """Return a helper that writes *data* as the cookie store."""

    def _write(data) -> Path:
        cookie_file.write_text(json.dumps(data), encoding="utf-8")
        return cookie_file

    return _write


@pytest.fixture
def test_config(cookie_file: Path, monkeypatch: pytest.MonkeyPatch) -> PromptGridConfig:
    """Create a test configuration isolated from the user's environment.

    Any inherited ``PROMPTGRID_*`` variables are removed first.

    Args:
        cookie_file: Temporary cookie store path from fixture
        monkeypatch: Used to clear the environment

    Returns:
        PromptGridConfig instance for testing
    """
    for key in list(os.environ):
        if key.upper().startswith("PROMPTGRID_"):
            monkeypatch.delenv(key)

    return PromptGridConfig(
        _env_file=None,
        backend_url="https://backend.test/generate",
        cookie_file=str(cookie_file),
        required_cookies=["__Secure-1PSID"],
        login_command=[],
        backend_timeout=5.0,
        fetch_timeout=5.0,
    )


@pytest.fixture
def session(test_config: PromptGridConfig) -> SessionState:
    """An authenticated session."""
    return SessionState(test_config, cookies=VALID_COOKIES)


@pytest.fixture
def empty_session(test_config: PromptGridConfig) -> SessionState:
    """A session with no cookies (restore will read ``cookie_file``)."""
    return SessionState(test_config)


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def three_refs() -> list[RemoteArtifactRef]:
    """Three artifact references in backend order."""
    return [
        RemoteArtifactRef(url=f"https://img.test/{i}", filename=f"image-{i}.png", mime_type="image/png", dimensions=(8, 8))
        for i in (1, 2, 3)
    ]


@pytest.fixture
def png_factory():
    """Return :func:`make_png` for tests that need specific sizes."""
    return make_png


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_jpeg()


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def fake_fetcher() -> FakeFetcher:
    return FakeFetcher()
