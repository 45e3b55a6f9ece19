"""Canonicalization of untrusted input.

Reduces a raw value to a single representation before any allow-list is
applied, so that an encoded form cannot slip past a pattern that would
reject its decoded form.  One *pass* applies, in order:

1. Unicode NFKC normalisation (folds fullwidth and compatibility forms)
2. Removal of zero-width and bidirectional control characters
3. Percent-decoding (``%41`` -> ``A``)
4. HTML / XML entity decoding (``&lt;``, ``&#x3c;``, ``&#60;``)
5. Backslash escapes (``\\x41``, ``\\u0041``)

Passes repeat until the value stops changing.  Input that is still
changing after ``max_passes`` passes is reported as not converged; the
engine treats that as an evasion attempt.
"""
from __future__ import annotations

import html
import re
import unicodedata
import urllib.parse
from dataclasses import dataclass

DEFAULT_MAX_PASSES = 3

# ---------------------------------------------------------------------------
# Invisible-character tables
# ---------------------------------------------------------------------------

# Bidirectional control characters
_BIDI_CONTROLS = frozenset(
    "\u200e\u200f"  # LRM, RLM
    "\u202a\u202b\u202c\u202d\u202e"  # LRE, RLE, PDF, LRO, RLO
    "\u2066\u2067\u2068\u2069"  # LRI, RLI, FSI, PDI
)

# Zero-width characters
_ZERO_WIDTH = frozenset(
    "\u200b"  # ZWSP
    "\u200c"  # ZWNJ
    "\u200d"  # ZWJ
    "\u2060"  # WJ
    "\ufeff"  # BOM / ZWNBSP
)

_INVISIBLE = _BIDI_CONTROLS | _ZERO_WIDTH

_ESCAPE_RE = re.compile(r"\\(?:x([0-9A-Fa-f]{2})|u([0-9A-Fa-f]{4}))")
_PERCENT_RE = re.compile(r"%[0-9A-Fa-f]{2}")
_ENTITY_RE = re.compile(r"&(?:#[0-9]+|#[xX][0-9A-Fa-f]+|[A-Za-z][A-Za-z0-9]*);?")


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class CanonicalForm:
    """Result of :meth:`Canonicalizer.canonicalize`.

    Attributes
    ----------
    value:
        The canonical text.  When ``converged`` it is a fixed point:
        canonicalizing it again returns it unchanged.
    passes:
        Number of passes that changed the value.
    converged:
        ``False`` when the pass limit was reached while decoding was
        still making progress.
    codecs:
        Names of the decoders that fired at least once.
    """

    value: str
    passes: int
    converged: bool
    codecs: frozenset[str] = frozenset()

    @property
    def mixed(self) -> bool:
        """``True`` when more than one encoding layer kind was present."""
        return len(self.codecs - {"unicode"}) > 1


# ---------------------------------------------------------------------------
# Canonicalizer
# ---------------------------------------------------------------------------

class Canonicalizer:
    """Stateless, thread-safe canonicalizer.

    Parameters
    ----------
    max_passes:
        Number of value-changing passes tolerated before the input is
        declared non-convergent.
    """

    def __init__(self, max_passes: int = DEFAULT_MAX_PASSES) -> None:
        if max_passes < 1:
            raise ValueError("max_passes must be >= 1")
        self._max_passes = max_passes

    @property
    def max_passes(self) -> int:
        return self._max_passes

    def canonicalize(self, raw: str | bytes) -> CanonicalForm:
        """Decode *raw* to a fixed point.  Never raises."""
        if isinstance(raw, bytes):
            current = raw.decode("utf-8", errors="replace")
        else:
            current = raw

        fired: set[str] = set()
        passes = 0
        for _ in range(self._max_passes + 1):
            decoded, codecs = self.decode_once(current)
            if decoded == current:
                return CanonicalForm(current, passes, True, frozenset(fired))
            fired.update(codecs)
            passes += 1
            current = decoded
        return CanonicalForm(current, passes, False, frozenset(fired))

    def decode_once(self, text: str) -> tuple[str, tuple[str, ...]]:
        """Apply a single pass; return the new text and the codecs that fired."""
        fired: list[str] = []

        result = unicodedata.normalize("NFKC", text)
        result = "".join(ch for ch in result if ch not in _INVISIBLE)
        if result != text:
            fired.append("unicode")

        if _PERCENT_RE.search(result):
            result = urllib.parse.unquote(result, errors="replace")
            fired.append("percent")

        if _ENTITY_RE.search(result):
            unescaped = html.unescape(result)
            if unescaped != result:
                result = unescaped
                fired.append("html")

        if _ESCAPE_RE.search(result):
            result = _ESCAPE_RE.sub(_unescape, result)
            fired.append("escape")

        return result, tuple(fired)


def _unescape(m: re.Match[str]) -> str:
    return chr(int(m.group(1) or m.group(2), 16))


def canonicalize(raw: str | bytes, max_passes: int = DEFAULT_MAX_PASSES) -> str:
    """Return only the canonical text of *raw*.

    Convenience for callers that do not need the convergence report.
    """
    return Canonicalizer(max_passes).canonicalize(raw).value
