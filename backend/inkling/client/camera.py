"""
Inkling: Camera Acquisition
===========================

What:  Owns the one live camera stream a session may have, and turns its
       current frame into a JPEG ImageBlob.
How:   The platform camera is reached only through FrameSource:

           open() -> stream          (blocking; may raise CameraUnavailableError)
           current_frame(stream)     (PIL image at the device's native resolution)
           close(stream)             (idempotent, safe on None or a closed stream)

Session Lifecycle:
    request_access() ──▶ CameraSession (active)
        ├── bind(slot)     attach the stream to the view once the UI mounts it
        ├── capture()      frame → JPEG blob (caller releases afterwards)
        └── release()      close the stream; idempotent

    A request_access() cancelled before the platform answers still gets its
    answer later; that stream is closed on arrival, never bound.
"""

import asyncio
import io
import logging
from typing import Any, Optional, Protocol

from PIL import Image

from inkling.client.errors import CameraUnavailableError
from inkling.client.models import ImageBlob

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    def open(self) -> Any: ...

    def current_frame(self, stream: Any) -> Image.Image: ...

    def close(self, stream: Any) -> None: ...


class ViewSurface(Protocol):
    """Where a UI shows the live stream (a window, a widget, a terminal notice)."""

    def attach(self, stream: Any) -> None: ...


def encode_jpeg(frame: Image.Image, quality: float = 0.9) -> bytes:
    """Encode a frame as JPEG at its own size. quality is 0..1, as in canvas.toBlob."""
    if frame.mode != "RGB":
        frame = frame.convert("RGB")
    buffer = io.BytesIO()
    frame.save(buffer, format="JPEG", quality=round(quality * 100))
    return buffer.getvalue()


class SurfaceSlot:
    """
    Mount acknowledgement for the view surface.

    The controller decides to show the stream before the UI has created the
    surface. The UI calls mount() when it exists; bind() waits for that signal.
    """

    def __init__(self):
        self._surface: Optional[ViewSurface] = None
        self._mounted = asyncio.Event()

    @property
    def surface(self) -> Optional[ViewSurface]:
        return self._surface

    def mount(self, surface: ViewSurface) -> None:
        self._surface = surface
        self._mounted.set()

    def reset(self) -> None:
        self._surface = None
        self._mounted.clear()

    async def wait(self, timeout: float) -> Optional[ViewSurface]:
        try:
            await asyncio.wait_for(self._mounted.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return None
        return self._surface


class CameraSession:
    """Handle to one open stream. release() closes it exactly once."""

    def __init__(self, source: FrameSource, stream: Any):
        self._source = source
        self._stream = stream

    @property
    def stream(self) -> Any:
        return self._stream

    @property
    def active(self) -> bool:
        return self._stream is not None

    def frame(self) -> Image.Image:
        if self._stream is None:
            raise CameraUnavailableError("Camera session is closed")
        return self._source.current_frame(self._stream)

    def release(self) -> None:
        stream, self._stream = self._stream, None
        if stream is not None:
            self._source.close(stream)
            logger.info("Camera stream closed")


class CameraController:

    def __init__(
        self,
        source: FrameSource,
        jpeg_quality: float = 0.9,
        bind_timeout: float = 2.0,
    ):
        self._source = source
        self.jpeg_quality = jpeg_quality
        self.bind_timeout = bind_timeout
        self._session: Optional[CameraSession] = None

    @property
    def session(self) -> Optional[CameraSession]:
        return self._session

    @property
    def active(self) -> bool:
        return self._session is not None and self._session.active

    async def request_access(self) -> CameraSession:
        """
        Open the camera without blocking the event loop.

        Raises:
            CameraUnavailableError: denied, missing, or failed to open
            RuntimeError: a session is already open (a caller bug)
            asyncio.CancelledError: the request was abandoned; a late stream is closed
        """
        if self.active:
            raise RuntimeError("A camera session is already open")

        loop = asyncio.get_running_loop()
        pending = loop.run_in_executor(None, self._source.open)
        try:
            stream = await asyncio.shield(pending)
        except asyncio.CancelledError:
            pending.add_done_callback(self._close_abandoned)
            logger.info("Camera access request cancelled")
            raise
        except CameraUnavailableError:
            raise
        except Exception as e:
            logger.warning("Camera open failed: %s: %s", type(e).__name__, e)
            raise CameraUnavailableError() from e

        if stream is None:
            raise CameraUnavailableError()

        self._session = CameraSession(self._source, stream)
        logger.info("Camera stream opened")
        return self._session

    def _close_abandoned(self, pending: "asyncio.Future[Any]") -> None:
        if pending.cancelled() or pending.exception() is not None:
            return
        logger.info("Closing camera stream granted after the request was cancelled")
        self._source.close(pending.result())

    async def bind(self, slot: SurfaceSlot) -> bool:
        """
        Attach the live stream to the view surface as soon as it is mounted.

        Returns False, leaving the stream unbound, if the surface does not mount
        within bind_timeout or the session ends while waiting.
        """
        surface = await slot.wait(self.bind_timeout)
        session = self._session
        if session is None or not session.active:
            return False
        if surface is None:
            logger.warning("View surface did not mount within %.1fs; live view unbound", self.bind_timeout)
            return False
        surface.attach(session.stream)
        return True

    def capture(self, session: Optional[CameraSession] = None) -> Optional[ImageBlob]:
        """
        Grab the current frame of `session` (default: the open one) and encode it as JPEG.

        Returns None if no usable frame or encoding came out of it, or if the
        session was released meanwhile. The session is left open: the caller
        releases it whatever the outcome.
        """
        session = session or self._session
        if session is None:
            logger.warning("Capture requested with no open camera session")
            return None
        try:
            frame = session.frame()
            data = encode_jpeg(frame, self.jpeg_quality)
        except Exception as e:
            logger.warning("Capture produced no usable image: %s: %s", type(e).__name__, e)
            return None
        logger.info("Captured %dx%d frame (%d bytes JPEG)", frame.width, frame.height, len(data))
        return ImageBlob(data=data, mime_type="image/jpeg", filename="capture.jpg")

    def release(self, session: Optional[CameraSession] = None) -> None:
        """
        Close the open session. Given a specific session, close only that one:
        a session that has already been replaced leaves the current one alone.
        """
        if session is not None and session is not self._session:
            session.release()
            return
        session, self._session = self._session, None
        if session is not None:
            session.release()
