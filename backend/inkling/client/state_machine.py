"""
Inkling: Capture/Result State Machine
=====================================

What:  Owns every piece of user-visible state (mode, preview, result, error)
       and the only legal ways of changing it.
Who:   Any UI. It calls the operations below and renders the SessionSnapshot
       handed to its listeners after each change.

Modes:
    home ──select_file()──────────────▶ processing ──relay done──▶ result
      │                                     ▲                         │
      └──start_scan()──▶ camera ──capture_photo()                     │
      ▲                    │                                          │
      └──────reset()───────┴──────────────reset()─────────────────────┘

    camera → home also happens when a capture yields no usable image.

Guarantees:
    - Every transition is checked against ALLOWED_TRANSITIONS.
    - Leaving camera mode always releases the camera session.
    - At most one relay call is in flight: the operations that start one are
      only accepted in home/camera, and processing accepts nothing.
    - reset() is a no-op in processing and when there is nothing to clear.

Suspension points are the relay call, the camera access request and the
surface bind. Everything else runs to completion on the event loop.
"""

import asyncio
import dataclasses
import logging
from typing import Callable, List, Optional, Union

from inkling.client.camera import CameraController, SurfaceSlot, ViewSurface
from inkling.client.clipboard import Clipboard
from inkling.client.errors import (
    CAPTURE_FAILED_MESSAGE,
    NOT_AN_IMAGE_MESSAGE,
    CameraUnavailableError,
    InvalidTransitionError,
)
from inkling.client.files import FileSelection, guess_image_type, read_image_file
from inkling.client.models import (
    ALLOWED_TRANSITIONS,
    ImageBlob,
    Mode,
    SessionSnapshot,
    TranscriptionResult,
    to_data_uri,
)
from inkling.client.relay import RelayClient

logger = logging.getLogger(__name__)

ChangeListener = Callable[[SessionSnapshot], None]


class CaptureStateMachine:

    def __init__(
        self,
        relay: RelayClient,
        camera: CameraController,
        clipboard: Clipboard,
        on_change: Optional[ChangeListener] = None,
    ):
        self._relay_client = relay
        self._camera = camera
        self._clipboard = clipboard
        self._listeners: List[ChangeListener] = [on_change] if on_change else []

        self._mode = Mode.HOME
        self._preview: Optional[str] = None
        self._result: Optional[TranscriptionResult] = None
        # Messages shown outside the result view (camera denied, bad file, failed capture)
        self._notice: Optional[str] = None
        self._blob: Optional[ImageBlob] = None
        self._pending_file: Optional[Union[FileSelection, ImageBlob]] = None

        self._slot = SurfaceSlot()
        self._access_task: Optional[asyncio.Task] = None
        self._bind_task: Optional[asyncio.Task] = None
        self._preview_task: Optional[asyncio.Task] = None

    # ── Read side ─────────────────────────────────────────────────────────

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def preview(self) -> Optional[str]:
        return self._preview

    @property
    def result(self) -> Optional[TranscriptionResult]:
        return self._result

    @property
    def error(self) -> Optional[str]:
        if self._result is not None and not self._result.ok:
            return self._result.error_message
        return self._notice

    @property
    def text(self) -> Optional[str]:
        if self._result is not None and self._result.ok:
            return self._result.text
        return None

    @property
    def blob(self) -> Optional[ImageBlob]:
        """The image awaiting relay. None once the relay call has resolved."""
        return self._blob

    @property
    def pending_file(self) -> Optional[Union[FileSelection, ImageBlob]]:
        return self._pending_file

    @property
    def camera_active(self) -> bool:
        return self._camera.active

    def snapshot(self) -> SessionSnapshot:
        result = dataclasses.replace(self._result) if self._result is not None else None
        return SessionSnapshot(
            mode=self._mode,
            preview=self._preview,
            result=result,
            error=self.error,
            camera_active=self.camera_active,
        )

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    def _transition(self, target: Mode) -> None:
        if target not in ALLOWED_TRANSITIONS[self._mode]:
            raise InvalidTransitionError(self._mode, target)
        if self._mode is Mode.CAMERA:
            self._leave_camera()
        logger.debug("Mode %s -> %s", self._mode.value, target.value)
        self._mode = target
        self._notify()

    def _leave_camera(self) -> None:
        self._cancel(self._bind_task)
        self._bind_task = None
        self._camera.release()
        self._slot.reset()

    @staticmethod
    def _cancel(task: Optional[asyncio.Task]) -> bool:
        if task is None or task.done():
            return False
        task.cancel()
        return True

    # ── File picker ───────────────────────────────────────────────────────

    async def select_file(self, selection: Union[FileSelection, ImageBlob]) -> bool:
        """
        Transcribe a picked file (a path, or an ImageBlob the UI already holds).

        Returns False, staying in home, if the selection is not accepted:
        wrong mode, or not an image/* file. Otherwise returns True once the
        machine has reached result mode.
        """
        if self._mode is not Mode.HOME:
            logger.warning("select_file() ignored in %s mode", self._mode.value)
            return False

        mime_type = None
        if not isinstance(selection, ImageBlob):
            mime_type = guess_image_type(selection)
            if mime_type is None:
                self._notice = NOT_AN_IMAGE_MESSAGE
                self._notify()
                return False

        self._pending_file = selection
        self._result = None
        self._notice = None
        self._preview = None
        self._transition(Mode.PROCESSING)

        if isinstance(selection, ImageBlob):
            blob = selection
        else:
            try:
                blob = await read_image_file(selection, mime_type)
            except (OSError, ValueError) as e:
                logger.warning("Could not read %s: %s", selection, e)
                self._result = TranscriptionResult.failure(str(e) or type(e).__name__)
                self._transition(Mode.RESULT)
                return True

        self._blob = blob
        self._preview_task = asyncio.create_task(self._render_preview(blob))
        await self._relay(blob)
        return True

    async def _render_preview(self, blob: ImageBlob) -> None:
        preview = await asyncio.to_thread(to_data_uri, blob)
        self._preview = preview
        self._notify()

    async def _relay(self, blob: ImageBlob) -> None:
        result = await self._relay_client.transcribe(blob)
        self._blob = None
        self._result = result
        if result.ok:
            logger.info("Transcription received (%d chars)", len(result.text))
        else:
            logger.info("Transcription failed: %s", result.error_message)
        self._transition(Mode.RESULT)

    # ── Camera ────────────────────────────────────────────────────────────

    async def start_scan(self) -> bool:
        """
        Ask for the camera and enter camera mode.

        Returns False and stays in home if access is refused (error is set)
        or if reset() abandoned the request before it was answered.
        """
        if self._mode is not Mode.HOME or self._access_task is not None:
            return False

        if self._notice is not None:
            self._notice = None
            self._notify()

        task = asyncio.create_task(self._camera.request_access())
        self._access_task = task
        try:
            # wait() instead of await: a reset() cancelling the request must not
            # look like this caller being cancelled
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            self._access_task = None
            raise

        if self._access_task is not task or task.cancelled():
            return False
        self._access_task = None

        error = task.exception()
        if isinstance(error, CameraUnavailableError):
            logger.info("Camera unavailable: %s", error.reason)
            self._notice = error.reason
            self._notify()
            return False
        if error is not None:
            raise error

        self._transition(Mode.CAMERA)
        self._bind_task = asyncio.create_task(self._camera.bind(self._slot))
        return True

    def surface_mounted(self, surface: ViewSurface) -> None:
        """The UI's live-view surface now exists; the stream is attached to it."""
        self._slot.mount(surface)

    async def capture_photo(self) -> bool:
        """
        Capture the current frame, release the camera and transcribe the frame.

        A capture that yields no usable image still releases the camera; the
        machine returns to home with an error asking the user to retry.
        """
        if self._mode is not Mode.CAMERA:
            logger.warning("capture_photo() ignored in %s mode", self._mode.value)
            return False

        session = self._camera.session
        try:
            blob = await asyncio.to_thread(self._camera.capture, session)
        finally:
            superseded = self._camera.session is not session
            self._camera.release(session)

        if superseded or self._mode is not Mode.CAMERA:
            # reset() ran while the frame was being encoded, maybe followed by a new scan
            return False

        if blob is None:
            self._notice = CAPTURE_FAILED_MESSAGE
            self._transition(Mode.HOME)
            return False

        self._blob = blob
        self._preview = to_data_uri(blob)
        self._transition(Mode.PROCESSING)
        await self._relay(blob)
        return True

    # ── Reset / result actions ────────────────────────────────────────────

    def reset(self) -> bool:
        """
        Return to home with nothing selected, captured or shown.

        Also abandons a pending camera request; a stream granted afterwards is
        closed on arrival. Ignored while processing. Returns False when there
        was nothing to do.
        """
        if self._mode is Mode.PROCESSING:
            logger.info("reset() ignored while a transcription is in flight")
            return False

        changed = self._access_task is not None
        self._cancel(self._access_task)
        self._access_task = None
        self._cancel(self._preview_task)
        self._preview_task = None

        for value in (self._preview, self._result, self._notice, self._blob, self._pending_file):
            if value is not None:
                changed = True
        self._preview = None
        self._result = None
        self._notice = None
        self._blob = None
        self._pending_file = None

        if self._mode is not Mode.HOME:
            self._transition(Mode.HOME)
            return True

        if self._camera.active:
            self._camera.release()
            changed = True
        if changed:
            self._notify()
        return changed

    cancel_scan = reset

    def edit_result(self, text: str) -> bool:
        """Replace the transcribed text. Only in result mode, and only without an error."""
        if self._mode is not Mode.RESULT or self._result is None or not self._result.ok:
            return False
        self._result.text = text
        self._notify()
        return True

    def copy_result(self) -> bool:
        """Copy the current text to the clipboard. Returns False if nothing was copied."""
        text = self.text
        if not text:
            return False
        try:
            self._clipboard.copy(text)
        except Exception as e:
            logger.warning("Clipboard copy failed: %s", e)
            return False
        return True
