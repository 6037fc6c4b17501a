"""
Inkling: Test Configuration (conftest.py)
=========================================

What:  Shared pytest fixtures for the server and client test suites.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── png_bytes / jpeg_bytes: Real images generated with Pillow
    ├── fake_engine: VisionEngine with a mocked provider call
    ├── test_client: HTTPX AsyncClient wired to the FastAPI app (ASGITransport)
    ├── fake_source / camera: In-memory FrameSource and a CameraController over it
    └── clipboard: Records what would have been copied
"""

import asyncio
import io
import os
from typing import Any, List, Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Override settings BEFORE any inkling imports so no real key or server is used
os.environ["OCR_ENGINE"] = "claude-vision"
os.environ["ANTHROPIC_API_KEY"] = "test-key-not-real"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["INKLING_SERVER_URL"] = "http://inkling.test"

from inkling.client.camera import CameraController  # noqa: E402
from inkling.services.engine_base import VisionEngine  # noqa: E402
from inkling.services.resilience import CircuitBreaker  # noqa: E402


def make_image_bytes(fmt: str, size=(64, 32), color=(240, 240, 240)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


# ══════════════════════════════════════════════════════════════════════════
# Server fixtures
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes("JPEG")


class FakeEngine(VisionEngine):
    """VisionEngine whose provider call is an AsyncMock; no SDK involved."""

    name = "fake-vision"
    retryable_errors = (ConnectionError, asyncio.TimeoutError)

    def __init__(self, **kwargs):
        kwargs.setdefault("max_attempts", 3)
        kwargs.setdefault("min_wait", 0)
        kwargs.setdefault("max_wait", 0)
        kwargs.setdefault("jitter", 0)
        kwargs.setdefault("timeout", 5)
        kwargs.setdefault("circuit_breaker", CircuitBreaker(failure_threshold=3, recovery_timeout=60))
        super().__init__(**kwargs)
        self.model_call = AsyncMock(return_value="  Hello world \n")
        self.probe = AsyncMock(return_value=True)

    async def _call_model(self, image: bytes, media_type: str) -> str:
        return await self.model_call(image, media_type)

    async def health_check(self) -> bool:
        return await self.probe()


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest_asyncio.fixture
async def test_client(fake_engine, monkeypatch):
    """
    HTTPX AsyncClient talking to the FastAPI app in-process.

    The shared TranscriptionService is pointed at fake_engine, so route tests
    never reach a provider.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from inkling.main import app
    from inkling.services.transcription_service import transcription_service

    monkeypatch.setattr(transcription_service, "_engine", fake_engine)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ══════════════════════════════════════════════════════════════════════════
# Client fixtures
# ══════════════════════════════════════════════════════════════════════════

class FakeStream:
    def __init__(self, number: int):
        self.number = number
        self.closed = False


class FakeFrameSource:
    """
    In-memory FrameSource.

    Every open() hands out a new FakeStream; close() is idempotent and
    None-safe. `frame` can be set to an exception to make capture fail.
    """

    def __init__(self, frame: Any = None, deny: bool = False):
        self.frame = frame if frame is not None else Image.new("RGB", (1280, 720), (255, 255, 255))
        self.deny = deny
        self.opened: List[FakeStream] = []
        self.closed: List[FakeStream] = []

    def open(self) -> FakeStream:
        from inkling.client.errors import CameraUnavailableError

        if self.deny:
            raise CameraUnavailableError()
        stream = FakeStream(len(self.opened) + 1)
        self.opened.append(stream)
        return stream

    def current_frame(self, stream: FakeStream) -> Image.Image:
        if stream.closed:
            raise OSError("stream closed")
        if isinstance(self.frame, Exception):
            raise self.frame
        return self.frame

    def close(self, stream: Optional[FakeStream]) -> None:
        if stream is None or stream.closed:
            return
        stream.closed = True
        self.closed.append(stream)

    @property
    def live(self) -> List[FakeStream]:
        return [s for s in self.opened if not s.closed]


@pytest.fixture
def fake_source() -> FakeFrameSource:
    return FakeFrameSource()


@pytest.fixture
def camera(fake_source) -> CameraController:
    return CameraController(fake_source, jpeg_quality=0.9, bind_timeout=0.2)


class RecordingClipboard:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.copied: List[str] = []

    def copy(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("no clipboard on this system")
        self.copied.append(text)


@pytest.fixture
def clipboard() -> RecordingClipboard:
    return RecordingClipboard()
