"""Rich-text sanitizer capability.

The validators treat sanitization as an opaque, side-effect-free
capability (:class:`RichTextSanitizer`).  :class:`BleachSanitizer` is the
default implementation, built on ``bleach`` with a conservative tag and
attribute allow-list.

Elements whose *content* is executable or invisible (``<script>``,
``<style>``, ...) are removed together with their content; every other
disallowed tag is stripped and its text kept.
"""
from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Protocol, runtime_checkable

import bleach

DEFAULT_TAGS: frozenset[str] = frozenset({
    "a", "abbr", "b", "blockquote", "br", "code", "em", "i",
    "li", "ol", "p", "pre", "strong", "u", "ul",
})

DEFAULT_ATTRIBUTES: Mapping[str, list[str]] = {
    "a": ["href", "title"],
    "abbr": ["title"],
}

DEFAULT_PROTOCOLS: frozenset[str] = frozenset({"http", "https", "mailto"})

# Closed blocks first; an unclosed opener swallows the rest of the input.
_DROP_WITH_CONTENT_RE = re.compile(
    r"<(script|style|iframe|object|embed|noscript|template)\b[^>]*>.*?</\1\s*>"
    r"|<(?:script|style|iframe|object|embed|noscript|template)\b.*\Z",
    re.IGNORECASE | re.DOTALL,
)


@runtime_checkable
class RichTextSanitizer(Protocol):
    """Capability that returns a safe version of untrusted markup."""

    def sanitize(self, markup: str, max_length: int) -> str:
        """Return cleaned *markup*.

        Raises ``ValueError`` if *markup* is longer than *max_length*.
        """
        ...


class BleachSanitizer:
    """:class:`RichTextSanitizer` backed by ``bleach.clean``.

    Markup that contains nothing unsafe is returned unchanged, so equality
    with the input is a reliable "was clean" signal.
    """

    def __init__(
        self,
        *,
        tags: frozenset[str] = DEFAULT_TAGS,
        attributes: Mapping[str, list[str]] = DEFAULT_ATTRIBUTES,
        protocols: frozenset[str] = DEFAULT_PROTOCOLS,
    ) -> None:
        self._tags = tags
        self._attributes = dict(attributes)
        self._protocols = protocols

    def sanitize(self, markup: str, max_length: int) -> str:
        if len(markup) > max_length:
            raise ValueError(
                f"markup length {len(markup)} exceeds limit {max_length}"
            )
        stripped = _DROP_WITH_CONTENT_RE.sub("", markup)
        cleaned = bleach.clean(
            stripped,
            tags=self._tags,
            attributes=self._attributes,
            protocols=self._protocols,
            strip=True,
            strip_comments=True,
        )
        if cleaned != markup:
            # Removed elements leave dangling whitespace behind.
            cleaned = cleaned.strip()
        return cleaned
