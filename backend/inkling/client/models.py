"""
Client data model: the mode discriminator, the image being relayed, and
the transcription result. All of it is in-memory and lives for one session.
"""

import base64
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional


class Mode(str, Enum):
    HOME = "home"
    CAMERA = "camera"
    PROCESSING = "processing"
    RESULT = "result"


ALLOWED_TRANSITIONS: Dict[Mode, FrozenSet[Mode]] = {
    Mode.HOME: frozenset({Mode.CAMERA, Mode.PROCESSING}),
    Mode.CAMERA: frozenset({Mode.PROCESSING, Mode.HOME}),
    Mode.PROCESSING: frozenset({Mode.RESULT}),
    Mode.RESULT: frozenset({Mode.HOME}),
}


@dataclass(frozen=True)
class ImageBlob:
    """Raw image bytes plus MIME type, from the file picker or a camera frame."""

    data: bytes
    mime_type: str
    filename: str = "image"

    def __post_init__(self):
        if not self.mime_type.startswith("image/"):
            raise ValueError(f"ImageBlob requires an image/* MIME type, got {self.mime_type!r}")

    def __len__(self) -> int:
        return len(self.data)


def to_data_uri(blob: ImageBlob) -> str:
    """Preview representation of a blob: data:<mime>;base64,<payload>."""
    payload = base64.b64encode(blob.data).decode("ascii")
    return f"data:{blob.mime_type};base64,{payload}"


@dataclass
class TranscriptionResult:
    """
    Outcome of one relay call: exactly one of `text` or `error_message` is set.

    `text` may be the empty string; that is a successful, empty transcription.
    It is mutable so the user's edits replace it in place.
    """

    text: Optional[str] = None
    error_message: Optional[str] = None

    def __post_init__(self):
        if (self.text is None) == (self.error_message is None):
            raise ValueError("TranscriptionResult needs exactly one of text or error_message")

    @classmethod
    def success(cls, text: str) -> "TranscriptionResult":
        return cls(text=text)

    @classmethod
    def failure(cls, message: str) -> "TranscriptionResult":
        return cls(error_message=message)

    @property
    def ok(self) -> bool:
        return self.error_message is None


@dataclass(frozen=True)
class SessionSnapshot:
    """What a UI renders. Handed to listeners after every state change."""

    mode: Mode
    preview: Optional[str]
    result: Optional[TranscriptionResult]
    error: Optional[str]
    camera_active: bool

    @property
    def text(self) -> Optional[str]:
        if self.result is not None and self.result.ok:
            return self.result.text
        return None
