"""Bounded reads from untrusted streams."""
from __future__ import annotations

from inputguard.io.line_reader import BoundedLineReader, read_line

__all__ = [
    "BoundedLineReader",
    "read_line",
]
