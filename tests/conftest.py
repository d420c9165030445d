"""Shared pytest fixtures for imagedrop tests."""

import asyncio
import itertools
import os
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Generator

import pytest

# The global config is built when imagedrop is first imported; point its
# images directory somewhere disposable before that happens.
os.environ.setdefault("IMAGEDROP_IMAGES_DIR", tempfile.mkdtemp(prefix="imagedrop-images-"))
os.environ.pop("IMAGEDROP_GEMINI_API_KEY", None)

from fastapi.testclient import TestClient  # noqa: E402

from imagedrop.core.analysis import ImageAnalyzer  # noqa: E402
from imagedrop.core.config import ImagedropConfig, config  # noqa: E402
from imagedrop.core.errors import AnalysisError  # noqa: E402
from imagedrop.core.store import ObjectStore  # noqa: E402

PNG_BASE64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="


class StubAnalyzer(ImageAnalyzer):
    """Analyzer that answers immediately with a fixed description."""

    def __init__(self, description: str = "A single transparent pixel."):
        self.description = description
        self.calls: list[str] = []

    async def analyze(self, data_url: str) -> str:
        self.calls.append(data_url)
        return self.description


class FailingAnalyzer(ImageAnalyzer):
    """Analyzer that always fails with an AnalysisError."""

    def __init__(self, message: str = "quota exceeded"):
        self.message = message
        self.calls: list[str] = []

    async def analyze(self, data_url: str) -> str:
        self.calls.append(data_url)
        raise AnalysisError(self.message)


class GatedAnalyzer(ImageAnalyzer):
    """Analyzer that does not answer until ``release`` is set.

    Uses a thread event so tests running outside the event loop can open
    the gate.
    """

    def __init__(self, description: str = "Released description."):
        self.description = description
        self.release = threading.Event()

    async def analyze(self, data_url: str) -> str:
        while not self.release.is_set():
            await asyncio.sleep(0.005)
        return self.description


def _wait_for_settled(client: TestClient, image_id: str, timeout: float = 5.0) -> dict:
    """Poll the analysis endpoint until the image's analysis settles."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        body = client.get(f"/api/image/{image_id}/analysis").json()
        if body["status"] == "settled":
            return body
        time.sleep(0.01)
    pytest.fail(f"analysis of image {image_id} did not settle within {timeout}s")


@pytest.fixture
def wait_for_settled():
    """Return a helper that polls until an image's analysis settles."""
    return _wait_for_settled


@pytest.fixture
def png_base64() -> str:
    """A 1x1 PNG as bare base64."""
    return PNG_BASE64


@pytest.fixture
def failing_analyzer() -> FailingAnalyzer:
    return FailingAnalyzer()


@pytest.fixture
def gated_analyzer() -> GatedAnalyzer:
    return GatedAnalyzer()


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
def test_config(temp_dir: Path) -> ImagedropConfig:
    """Create a test configuration with a temporary images directory."""
    return ImagedropConfig(
        images_dir=str(temp_dir / "images"),
        gemini_api_key="test-key",
        _env_file=None,
    )


@pytest.fixture
def fake_clock():
    """Nanosecond clock advancing one second per call, starting at 1s."""
    ticks = itertools.count(1)
    return lambda: next(ticks) * 1_000_000_000


@pytest.fixture
def store(fake_clock) -> ObjectStore:
    """Empty object store with a deterministic clock."""
    return ObjectStore(clock=fake_clock)


@pytest.fixture
def analyzer() -> StubAnalyzer:
    """Analyzer used by the application under test."""
    return StubAnalyzer()


@pytest.fixture
def test_client(analyzer, monkeypatch) -> Generator[TestClient, None, None]:
    """TestClient with a running lifespan and a stubbed analyzer.

    Each test gets a fresh store because the lifespan runs per client.
    """
    from imagedrop.api import main

    monkeypatch.setattr(main, "build_analyzer", lambda cfg: analyzer)
    with TestClient(main.app) as client:
        yield client


@pytest.fixture
def images_dir() -> Generator[Path, None, None]:
    """The configured images directory, emptied after the test."""
    yield config.images_dir
    for path in config.images_dir.iterdir():
        if path.is_file():
            path.unlink()
