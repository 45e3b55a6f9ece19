"""Bounded line reads from untrusted byte streams.

A line is read with an explicit, mandatory byte bound.  Reaching the bound
without a newline is an error: the line is never truncated silently and
nothing past the bound is buffered.

The stream belongs to the caller.  The reader only reads from it, never
closes it, and is not safe for two threads reading the same stream.
"""
from __future__ import annotations

from collections.abc import Iterator
from typing import BinaryIO

from inputguard.core.errors import IntrusionDetected, LineTooLong, ReadLimitInvalid
from inputguard.validation.canonicalizer import Canonicalizer


class BoundedLineReader:
    """Reads newline-terminated lines of at most ``max_length`` bytes.

    The bound covers the line content including a trailing ``\\r``, but
    not the ``\\n`` terminator.  A final line without a terminator is
    returned as long as it fits.

    Parameters
    ----------
    max_length:
        Maximum line length in bytes.  Must be positive.
    canonicalizer:
        When given, :meth:`read_line` returns the canonical form of each
        decoded line.
    """

    def __init__(
        self,
        max_length: int,
        *,
        canonicalizer: Canonicalizer | None = None,
    ) -> None:
        if max_length <= 0:
            raise ReadLimitInvalid(
                f"Read limit must be positive, got {max_length}",
                details={"max_length": max_length},
            )
        self._max_length = max_length
        self._canonicalizer = canonicalizer

    @property
    def max_length(self) -> int:
        return self._max_length

    def read_line_bytes(self, stream: BinaryIO) -> bytes | None:
        """Return the next line without its terminator, or ``None`` at EOF.

        Raises
        ------
        LineTooLong
            If ``max_length`` bytes were consumed without finding a newline.
        """
        limit = self._max_length
        readline = getattr(stream, "readline", None)
        if readline is not None:
            chunk = readline(limit + 1)
        else:
            chunk = _read_until_newline(stream, limit + 1)

        if not chunk:
            return None
        if chunk.endswith(b"\n"):
            line = chunk[:-1]
        elif len(chunk) > limit:
            raise LineTooLong(
                f"No newline within {limit} bytes",
                details={"max_length": limit},
            )
        else:
            line = chunk
        if line.endswith(b"\r"):
            line = line[:-1]
        return line

    def read_line(self, stream: BinaryIO) -> str | None:
        """Like :meth:`read_line_bytes`, decoded as UTF-8.

        Undecodable bytes become U+FFFD.  With a canonicalizer configured
        the canonical text is returned; a line that does not converge
        raises :class:`IntrusionDetected`.
        """
        line = self.read_line_bytes(stream)
        if line is None:
            return None
        text = line.decode("utf-8", errors="replace")
        if self._canonicalizer is None:
            return text

        form = self._canonicalizer.canonicalize(text)
        if not form.converged:
            raise IntrusionDetected(
                details={"reason": "line is still encoded after decoding passes"},
            )
        return form.value

    def iter_lines(self, stream: BinaryIO) -> Iterator[str]:
        """Yield lines from :meth:`read_line` until EOF."""
        while True:
            line = self.read_line(stream)
            if line is None:
                return
            yield line


def _read_until_newline(stream: BinaryIO, size: int) -> bytes:
    # For streams that only offer read(): one byte at a time.
    buf = bytearray()
    while len(buf) < size:
        byte = stream.read(1)
        if not byte:
            break
        buf += byte
        if byte == b"\n":
            break
    return bytes(buf)


def read_line(stream: BinaryIO, max_length: int) -> str | None:
    """Read one decoded line of at most *max_length* bytes from *stream*.

    ``max_length <= 0`` raises :class:`ReadLimitInvalid` without touching
    the stream.
    """
    return BoundedLineReader(max_length).read_line(stream)
