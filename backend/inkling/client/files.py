"""
File-picker acquisition: turn a user-selected path into an ImageBlob.

The picker's "image/*" filter is applied here by extension guess; the
server re-validates the bytes themselves.
"""

import mimetypes
from os import PathLike
from pathlib import Path
from typing import Optional, Union

import aiofiles

from inkling.client.models import ImageBlob

FileSelection = Union[str, PathLike]


def guess_image_type(path: FileSelection) -> Optional[str]:
    """image/* MIME type for a path, or None if it does not look like an image."""
    mime_type, _ = mimetypes.guess_type(str(path))
    if mime_type and mime_type.startswith("image/"):
        return mime_type
    return None


async def read_image_file(path: FileSelection, mime_type: Optional[str] = None) -> ImageBlob:
    """
    Read the whole file without blocking the event loop.

    Raises:
        OSError: missing or unreadable file
        ValueError: not an image/* file
    """
    path = Path(path)
    mime_type = mime_type or guess_image_type(path)
    if mime_type is None:
        raise ValueError(f"{path.name} is not an image file")
    async with aiofiles.open(path, "rb") as f:
        data = await f.read()
    return ImageBlob(data=data, mime_type=mime_type, filename=path.name)
