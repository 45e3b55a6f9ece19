"""Logging helpers for inputguard.

Every module logs through ``logging.getLogger(__name__)``.  Log records
produced here frequently describe attacker-controlled input, so the
:class:`SafeFormatter` neutralises CR, LF and other control characters in
the rendered line to keep a hostile value from forging extra log entries.

Applications own their logging configuration; :func:`configure_logging`
is a convenience for scripts and tests.
"""
from __future__ import annotations

import logging
import re
import sys

_CONTROL_RE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def neutralize(text: str) -> str:
    """Replace control characters (except TAB) with ``_``."""
    return _CONTROL_RE.sub("_", text)


class SafeFormatter(logging.Formatter):
    """``logging.Formatter`` that cannot emit more than one physical line.

    Tracebacks are kept: only the message portion is neutralised.
    """

    def formatMessage(self, record: logging.LogRecord) -> str:  # noqa: N802
        return neutralize(super().formatMessage(record))


def configure_logging(
    level: str = "INFO",
    *,
    fmt: str = DEFAULT_FORMAT,
) -> logging.Logger:
    """Attach a :class:`SafeFormatter` stream handler to the ``inputguard`` logger.

    Calling it again replaces the handler instead of stacking another.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(SafeFormatter(fmt))

    logger = logging.getLogger("inputguard")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger
