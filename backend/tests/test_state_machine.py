"""
Inkling: Capture/Result State Machine Tests
===========================================

What:  The four-mode flow end to end, with a fake camera, a recording
       clipboard and a relay answered by httpx.MockTransport.

What we test:
    ✅ File and camera scenarios reach result through processing
    ✅ Camera denial stays in home with an error
    ✅ The camera is released on every way out of camera mode
    ✅ A capture overtaken by reset() and a new scan leaves that scan alone
    ✅ reset() clears everything, twice is a no-op, ignored while processing
    ✅ edit_result / copy_result semantics
"""

import asyncio
import base64
import threading

import httpx
import pytest

from inkling.client.errors import (
    CAMERA_UNAVAILABLE_MESSAGE,
    CAPTURE_FAILED_MESSAGE,
    NOT_AN_IMAGE_MESSAGE,
    InvalidTransitionError,
)
from inkling.client.models import ImageBlob, Mode
from inkling.client.relay import RelayClient
from inkling.client.state_machine import CaptureStateMachine


def ok(text="Hello world"):
    return httpx.Response(200, json={"success": True, "text": text, "timestamp": "2026-01-15T12:00:00.000Z"})


class Server:
    """MockTransport handler with a queue of canned answers and a request log."""

    def __init__(self, *answers):
        self.answers = list(answers) or [ok()]
        self.requests = []
        self.gate = None

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        answer = self.answers.pop(0) if len(self.answers) > 1 else self.answers[0]
        # Fresh Response per request; the last answer repeats
        return httpx.Response(answer.status_code, headers=answer.headers, content=answer.content)


class Surface:
    def __init__(self):
        self.attached = []

    def attach(self, stream):
        self.attached.append(stream)


@pytest.fixture
def server():
    return Server()


@pytest.fixture
def machine(server, camera, clipboard):
    relay = RelayClient(base_url="https://ocr.test", timeout=5, transport=httpx.MockTransport(server))
    return CaptureStateMachine(relay=relay, camera=camera, clipboard=clipboard)


@pytest.fixture
def modes(machine):
    seen = []
    machine.subscribe(lambda snapshot: seen.append(snapshot.mode) if not seen or seen[-1] is not snapshot.mode else None)
    return seen


@pytest.fixture
def note_jpg(tmp_path, jpeg_bytes):
    path = tmp_path / "note.jpg"
    path.write_bytes(jpeg_bytes)
    return path


class TestFileFlow:

    @pytest.mark.asyncio
    async def test_select_file_success(self, machine, modes, note_jpg, server):
        assert await machine.select_file(note_jpg) is True

        assert machine.mode is Mode.RESULT
        assert machine.text == "Hello world"
        assert machine.error is None
        assert modes == [Mode.PROCESSING, Mode.RESULT]
        assert machine.blob is None
        assert len(server.requests) == 1

    @pytest.mark.asyncio
    async def test_preview_rendered_alongside_relay(self, machine, note_jpg, jpeg_bytes):
        await machine.select_file(note_jpg)
        await asyncio.sleep(0.05)

        assert machine.preview == "data:image/jpeg;base64," + base64.b64encode(jpeg_bytes).decode()

    @pytest.mark.asyncio
    async def test_server_error(self, machine, note_jpg, server):
        server.answers = [httpx.Response(500, json={"error": "Failed to process image", "details": "upstream timeout"})]

        await machine.select_file(note_jpg)

        assert machine.mode is Mode.RESULT
        assert machine.error == "Server error: Internal Server Error"
        assert machine.text is None

    @pytest.mark.asyncio
    async def test_missing_text_field(self, machine, note_jpg, server):
        server.answers = [httpx.Response(200, json={"success": True})]

        await machine.select_file(note_jpg)

        assert machine.mode is Mode.RESULT
        assert machine.text == ""
        assert machine.error is None

    @pytest.mark.asyncio
    async def test_non_image_file_stays_home(self, machine, tmp_path, server):
        path = tmp_path / "notes.txt"
        path.write_text("hello")

        assert await machine.select_file(path) is False

        assert machine.mode is Mode.HOME
        assert machine.error == NOT_AN_IMAGE_MESSAGE
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_unreadable_file_is_a_result_error(self, machine, tmp_path, server):
        await machine.select_file(tmp_path / "gone.png")

        assert machine.mode is Mode.RESULT
        assert machine.error is not None
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_blob_selection(self, machine, jpeg_bytes):
        await machine.select_file(ImageBlob(data=jpeg_bytes, mime_type="image/jpeg"))
        assert machine.text == "Hello world"

    @pytest.mark.asyncio
    async def test_select_clears_previous_error(self, machine, tmp_path, note_jpg):
        await machine.select_file(tmp_path / "notes.txt")
        assert machine.error == NOT_AN_IMAGE_MESSAGE

        await machine.select_file(note_jpg)
        assert machine.error is None

    @pytest.mark.asyncio
    async def test_second_selection_rejected_while_processing(self, machine, note_jpg, server):
        server.gate = asyncio.Event()
        first = asyncio.create_task(machine.select_file(note_jpg))
        await asyncio.sleep(0.05)
        assert machine.mode is Mode.PROCESSING

        assert await machine.select_file(note_jpg) is False
        assert await machine.start_scan() is False

        server.gate.set()
        await first
        assert len(server.requests) == 1


class TestCameraFlow:

    @pytest.mark.asyncio
    async def test_scan_capture_transcribe(self, machine, modes, fake_source, server):
        surface = Surface()
        assert await machine.start_scan() is True
        assert machine.mode is Mode.CAMERA
        assert machine.camera_active

        machine.surface_mounted(surface)
        await asyncio.sleep(0.01)
        assert surface.attached == [fake_source.opened[0]]

        assert await machine.capture_photo() is True

        assert machine.mode is Mode.RESULT
        assert machine.text == "Hello world"
        assert not machine.camera_active
        assert fake_source.live == []
        assert machine.preview.startswith("data:image/jpeg;base64,")
        assert modes == [Mode.CAMERA, Mode.PROCESSING, Mode.RESULT]
        assert b'filename="capture.jpg"' in server.requests[0].read()

    @pytest.mark.asyncio
    async def test_camera_released_before_relay_resolves(self, machine, fake_source, server):
        server.gate = asyncio.Event()
        await machine.start_scan()

        capture = asyncio.create_task(machine.capture_photo())
        await asyncio.sleep(0.05)

        assert machine.mode is Mode.PROCESSING
        assert fake_source.live == []

        server.gate.set()
        await capture
        assert machine.mode is Mode.RESULT

    @pytest.mark.asyncio
    async def test_camera_denied(self, machine, fake_source):
        fake_source.deny = True

        assert await machine.start_scan() is False

        assert machine.mode is Mode.HOME
        assert machine.error == CAMERA_UNAVAILABLE_MESSAGE
        assert not machine.camera_active

    @pytest.mark.asyncio
    async def test_capture_failure_returns_home(self, machine, fake_source, server):
        fake_source.frame = OSError("no frame")
        await machine.start_scan()

        assert await machine.capture_photo() is False

        assert machine.mode is Mode.HOME
        assert machine.error == CAPTURE_FAILED_MESSAGE
        assert fake_source.live == []
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_cancel_scan_releases_camera(self, machine, fake_source):
        await machine.start_scan()

        assert machine.cancel_scan() is True

        assert machine.mode is Mode.HOME
        assert not machine.camera_active
        assert fake_source.live == []

    @pytest.mark.asyncio
    async def test_reset_during_access_request(self, machine, fake_source, monkeypatch):
        grant = asyncio.Event()
        loop = asyncio.get_running_loop()
        original_open = fake_source.open

        def slow_open():
            asyncio.run_coroutine_threadsafe(grant.wait(), loop).result(timeout=5)
            return original_open()

        monkeypatch.setattr(fake_source, "open", slow_open)

        scan = asyncio.create_task(machine.start_scan())
        await asyncio.sleep(0.05)
        assert machine.reset() is True

        assert await scan is False
        grant.set()
        for _ in range(100):
            if fake_source.opened and fake_source.opened[0].closed:
                break
            await asyncio.sleep(0.01)

        assert machine.mode is Mode.HOME
        assert fake_source.live == []
        assert not machine.camera_active

    @pytest.mark.asyncio
    async def test_stale_capture_leaves_new_scan_alone(self, machine, fake_source, server, monkeypatch):
        frame_ready = threading.Event()
        original_frame = fake_source.current_frame

        def slow_frame(stream):
            frame_ready.wait(timeout=5)
            return original_frame(stream)

        monkeypatch.setattr(fake_source, "current_frame", slow_frame)

        await machine.start_scan()
        capture = asyncio.create_task(machine.capture_photo())
        await asyncio.sleep(0.05)

        machine.reset()
        assert await machine.start_scan() is True
        frame_ready.set()

        assert await capture is False

        assert machine.mode is Mode.CAMERA
        assert machine.camera_active
        assert machine.error is None
        first, second = fake_source.opened
        assert first.closed
        assert not second.closed
        assert server.requests == []

    @pytest.mark.asyncio
    async def test_capture_outside_camera_mode(self, machine):
        assert await machine.capture_photo() is False
        assert machine.mode is Mode.HOME


class TestReset:

    @pytest.mark.asyncio
    async def test_reset_clears_everything(self, machine, note_jpg):
        await machine.select_file(note_jpg)
        await asyncio.sleep(0.05)

        assert machine.reset() is True

        snapshot = machine.snapshot()
        assert snapshot.mode is Mode.HOME
        assert snapshot.preview is None
        assert snapshot.result is None
        assert snapshot.error is None
        assert not snapshot.camera_active
        assert machine.pending_file is None

    @pytest.mark.asyncio
    async def test_second_reset_is_a_no_op(self, machine, note_jpg):
        await machine.select_file(note_jpg)
        machine.reset()
        before = machine.snapshot()
        notified = []
        machine.subscribe(notified.append)

        assert machine.reset() is False

        assert machine.snapshot() == before
        assert notified == []

    @pytest.mark.asyncio
    async def test_reset_clears_home_error(self, machine, fake_source):
        fake_source.deny = True
        await machine.start_scan()

        assert machine.reset() is True
        assert machine.error is None

    @pytest.mark.asyncio
    async def test_reset_ignored_while_processing(self, machine, note_jpg, server):
        server.gate = asyncio.Event()
        task = asyncio.create_task(machine.select_file(note_jpg))
        await asyncio.sleep(0.05)

        assert machine.reset() is False
        assert machine.mode is Mode.PROCESSING

        server.gate.set()
        await task
        assert machine.mode is Mode.RESULT

    @pytest.mark.asyncio
    async def test_camera_never_active_at_home(self, machine):
        snapshots = []
        machine.subscribe(snapshots.append)

        await machine.start_scan()
        machine.reset()
        await machine.start_scan()
        await machine.capture_photo()
        machine.reset()

        assert snapshots
        assert all(not s.camera_active for s in snapshots if s.mode is Mode.HOME)

    @pytest.mark.asyncio
    async def test_try_again_after_failure(self, machine, note_jpg, server):
        server.answers = [httpx.Response(500), ok("second time lucky")]
        await machine.select_file(note_jpg)
        assert machine.error is not None

        machine.reset()
        await machine.select_file(note_jpg)

        assert machine.text == "second time lucky"


class TestResultActions:

    @pytest.mark.asyncio
    async def test_edit_then_copy_copies_edit(self, machine, note_jpg, clipboard):
        await machine.select_file(note_jpg)

        assert machine.edit_result("Hello, world!") is True
        assert machine.copy_result() is True

        assert clipboard.copied == ["Hello, world!"]
        assert machine.mode is Mode.RESULT

    @pytest.mark.asyncio
    async def test_edit_refused_on_error(self, machine, note_jpg, server):
        server.answers = [httpx.Response(500)]
        await machine.select_file(note_jpg)

        assert machine.edit_result("anything") is False
        assert machine.text is None

    def test_edit_refused_outside_result(self, machine):
        assert machine.edit_result("anything") is False

    @pytest.mark.asyncio
    async def test_copy_without_text_is_a_no_op(self, machine, note_jpg, server, clipboard):
        assert machine.copy_result() is False

        server.answers = [httpx.Response(200, json={"success": True})]
        await machine.select_file(note_jpg)
        assert machine.copy_result() is False
        assert clipboard.copied == []

    @pytest.mark.asyncio
    async def test_clipboard_failure_does_not_change_state(self, machine, note_jpg, clipboard):
        clipboard.fail = True
        await machine.select_file(note_jpg)

        assert machine.copy_result() is False
        assert machine.mode is Mode.RESULT
        assert machine.text == "Hello world"

    @pytest.mark.asyncio
    async def test_snapshot_result_is_a_copy(self, machine, note_jpg):
        await machine.select_file(note_jpg)
        snapshot = machine.snapshot()

        machine.edit_result("changed")

        assert snapshot.text == "Hello world"
        assert machine.text == "changed"


class TestTransitions:

    def test_illegal_transition_raises(self, machine):
        with pytest.raises(InvalidTransitionError):
            machine._transition(Mode.RESULT)

    def test_unsubscribe(self, machine):
        seen = []
        unsubscribe = machine.subscribe(seen.append)
        unsubscribe()
        machine._transition(Mode.PROCESSING)
        assert seen == []
