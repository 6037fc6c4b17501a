"""Clipboard access for copy_result()."""

from typing import Protocol

import pyperclip


class Clipboard(Protocol):
    def copy(self, text: str) -> None: ...


class SystemClipboard:
    """pyperclip-backed clipboard. Raises pyperclip.PyperclipException on headless systems."""

    def copy(self, text: str) -> None:
        pyperclip.copy(text)
