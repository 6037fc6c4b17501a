"""
FrameSource over OpenCV's VideoCapture.

Rear-facing preference maps to a device index: the configured camera_index is
tried first, then the fallback device. Frames are returned as RGB PIL images
at the resolution the device delivers.
"""

import logging
from typing import List, Optional

import cv2
from PIL import Image

from inkling.client.errors import CameraUnavailableError

logger = logging.getLogger(__name__)


class OpenCVFrameSource:

    def __init__(self, preferred_index: Optional[int] = None, fallback_index: int = 0):
        self.preferred_index = preferred_index
        self.fallback_index = fallback_index

    def _candidates(self) -> List[int]:
        indices = [self.preferred_index, self.fallback_index]
        return [i for n, i in enumerate(indices) if i is not None and i not in indices[:n]]

    def open(self) -> cv2.VideoCapture:
        for index in self._candidates():
            capture = cv2.VideoCapture(index)
            if capture.isOpened():
                logger.info("Opened camera device %d", index)
                return capture
            capture.release()
            logger.debug("Camera device %d unavailable", index)
        raise CameraUnavailableError()

    def current_frame(self, stream: cv2.VideoCapture) -> Image.Image:
        ok, frame = stream.read()
        if not ok or frame is None:
            raise OSError("camera returned no frame")
        return Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))

    def close(self, stream: Optional[cv2.VideoCapture]) -> None:
        # VideoCapture.release() is a no-op on an already released device
        if stream is not None:
            stream.release()
