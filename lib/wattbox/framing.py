"""Newline framing for the WattBox text protocol."""

import codecs
from collections.abc import Iterable

from lib.wattbox.logging import log_warn

DELIMITER = "\n"
ENCODING = "utf-8"
MAX_LINE_LENGTH = 4096


class LineFramer:
    """Split a stream of transport chunks into trimmed protocol lines.

    A read may carry several lines, or only part of one. Trailing fragments
    are held until their delimiter arrives, except for fragments matching one
    of ``flush_tokens`` (prompts some firmware sends without a line ending).
    """

    def __init__(
        self,
        flush_tokens: Iterable[str] = (),
        max_line_length: int = MAX_LINE_LENGTH,
        encoding: str = ENCODING,
    ) -> None:
        """Initialize line framer.

        Parameters
        ----------
        flush_tokens : Iterable[str], optional
            Fragments emitted without waiting for a delimiter, by default ()
        max_line_length : int, optional
            Longest fragment kept without a delimiter, by default 4096
        encoding : str, optional
            Encoding used for byte chunks, by default "utf-8"
        """
        self.flush_tokens = frozenset(flush_tokens)
        self.max_line_length = max_line_length
        self.encoding = encoding
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        """Fragment received so far without a delimiter."""
        return self._buffer

    def reset(self) -> None:
        """Drop buffered state, e.g. when a new connection starts."""
        self._decoder.reset()
        self._buffer = ""

    def feed(self, chunk: bytes | str) -> list[str]:
        """Consume a transport chunk.

        Parameters
        ----------
        chunk : bytes | str
            Raw data as read from the transport

        Returns
        -------
        list[str]
            Complete, trimmed, non-empty lines in arrival order
        """
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)

        self._buffer += chunk
        *complete, self._buffer = self._buffer.split(DELIMITER)

        lines = [line.strip() for line in complete]
        lines = [line for line in lines if line]

        fragment = self._buffer.strip()
        if fragment and fragment in self.flush_tokens:
            lines.append(fragment)
            self._buffer = ""
        elif len(self._buffer) > self.max_line_length:
            log_warn(f"Discarding {len(self._buffer)} bytes without line delimiter")
            self._buffer = ""

        return lines
