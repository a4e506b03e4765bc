"""Text-oriented writer wrapped around a binary output stream."""

from __future__ import annotations

from typing import BinaryIO


class StringWriter:
    """Writes strings and bytes to a binary stream such as a session channel."""

    def __init__(self, stream: BinaryIO) -> None:
        self.stream = stream

    def write_line(self, text: str) -> None:
        """Write ``text`` followed by a newline."""
        self.write(text + "\n")

    def write(self, text: str) -> None:
        """Write ``text`` encoded as utf-8."""
        self.stream.write(text.encode("utf-8"))

    def write_bytes(self, data: bytes) -> None:
        """Write raw bytes."""
        self.stream.write(bytes(data))