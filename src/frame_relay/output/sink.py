"""
Output Sink
===========

Local destination for framed bytes.

Sinks:
    - NullSink: no local output (frames still go to subscribers)
    - StreamSink: an already-open binary stream, normally stdout
    - FileSink: a named file, written as a stream or atomically replaced

Atomic Replace:
    FileSink.replace() writes the image to "<path>.tmp" and renames it
    over "<path>", so a concurrent reader sees either the previous complete
    image or the new one. This relies on rename being atomic on the
    underlying filesystem.

Error Policy:
    Any OSError while writing is a SinkWriteError (fatal): the sink is
    local, so a failure means something is seriously wrong.
"""

import logging
import os
import sys
from typing import BinaryIO, Iterable, Optional, Protocol

from frame_relay.errors import InvalidOptionError, SinkWriteError


logger = logging.getLogger(__name__)


class OutputSink(Protocol):
    """
    Protocol for local output destinations.

    Implemented by:
        - NullSink
        - StreamSink
        - FileSink
    """

    name: str

    @property
    def supports_replace(self) -> bool:
        """Whether replace() can be used."""
        ...

    def write(self, parts: Iterable[bytes]) -> None:
        """Append framed bytes."""
        ...

    def replace(self, parts: Iterable[bytes]) -> None:
        """Atomically publish parts as the entire content."""
        ...

    def close(self) -> None:
        """Release the destination."""
        ...


class NullSink:
    """Discards everything."""

    name = "(none)"

    @property
    def supports_replace(self) -> bool:
        return True

    def write(self, parts: Iterable[bytes]) -> None:
        pass

    def replace(self, parts: Iterable[bytes]) -> None:
        pass

    def close(self) -> None:
        pass


class StreamSink:
    """
    Writes to an open binary stream.

    Attributes:
        name: Display name used in diagnostics
    """

    def __init__(self, stream: BinaryIO, name: str = "stdout") -> None:
        self._stream = stream
        self.name = name

    @property
    def supports_replace(self) -> bool:
        return False

    def write(self, parts: Iterable[bytes]) -> None:
        try:
            for part in parts:
                self._stream.write(part)
            self._stream.flush()
        except OSError as e:
            raise SinkWriteError(f"Error writing to {self.name}: {e}") from e

    def replace(self, parts: Iterable[bytes]) -> None:
        raise SinkWriteError(f"Cannot replace the contents of {self.name}")

    def close(self) -> None:
        try:
            self._stream.flush()
        except OSError as e:
            logger.warning(f"Error flushing {self.name}: {e}")


class FileSink:
    """
    Writes to a named file.

    The file is created (truncated) on the first streamed write. Replace
    mode never keeps the file open.

    Attributes:
        path: Published file path
        tmp_path: Sibling path used for atomic replacement
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self.tmp_path = f"{path}.tmp"
        self.name = path
        self._stream: Optional[BinaryIO] = None

    @property
    def supports_replace(self) -> bool:
        return True

    def open(self) -> None:
        """Create or truncate the output file for streamed writes."""
        if self._stream is not None:
            return
        try:
            self._stream = open(self.path, "wb")
        except OSError as e:
            raise SinkWriteError(f"Can't create {self.path}: {e}") from e

    def write(self, parts: Iterable[bytes]) -> None:
        self.open()
        try:
            for part in parts:
                self._stream.write(part)
            self._stream.flush()
        except OSError as e:
            raise SinkWriteError(f"Error writing to {self.path}: {e}") from e

    def replace(self, parts: Iterable[bytes]) -> None:
        # A streamed handle would point at the old inode after the rename
        self.close()
        try:
            with open(self.tmp_path, "wb") as f:
                for part in parts:
                    f.write(part)
        except OSError as e:
            raise SinkWriteError(f"Error writing to {self.tmp_path}: {e}") from e
        try:
            os.replace(self.tmp_path, self.path)
        except OSError as e:
            raise SinkWriteError(
                f"Can't rename {self.tmp_path} to {self.path}: {e}"
            ) from e

    def close(self) -> None:
        if self._stream is None:
            return
        stream, self._stream = self._stream, None
        try:
            stream.close()
        except OSError as e:
            logger.warning(f"Error closing {self.path}: {e}")


def open_sink(output: str, framing: str) -> OutputSink:
    """
    Create the sink named by the "output" option.

    Args:
        output: "" for none, "-" for stdout, otherwise a file path
        framing: Current framing name; "replace" cannot target stdout

    Returns:
        The sink. Streamed file sinks are opened immediately.

    Raises:
        InvalidOptionError: For replace framing on stdout
        SinkWriteError: If the file cannot be created
    """
    if output == "-":
        if framing == "replace":
            raise InvalidOptionError("Cannot use 'replace' framing with stdout")
        return StreamSink(sys.stdout.buffer)

    if not output:
        return NullSink()

    sink = FileSink(output)
    if framing != "replace":
        sink.open()
    return sink
