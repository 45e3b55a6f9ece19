"""Type validators built on the validation engine.

Each ``validate_<kind>`` method returns a
:data:`~inputguard.core.types.ValidationOutcome`.  The canonical value in
an :class:`~inputguard.core.types.Accepted` is typed for its kind: ``int``
for integers, ``float`` for numbers, ``datetime`` for dates, normalised
``str`` for paths, ``bytes`` for byte input.

Every outcome is produced through the engine's ``reject`` / ``suspect``
helpers, so the reject-versus-intrusion decision and its logging live in
one place.
"""
from __future__ import annotations

import math
import ntpath
import posixpath
import re
from collections.abc import Iterable, Sequence
from datetime import datetime

from inputguard.core.types import (
    Accepted,
    IntrusionSuspected,
    RawValue,
    UploadedFile,
    ValidationOutcome,
    ValidationRequest,
)
from inputguard.validation.engine import ValidationEngine
from inputguard.validation.richtext import BleachSanitizer, RichTextSanitizer

# Primary-account-number lengths issued by the major card networks.
CARD_NUMBER_LENGTHS = frozenset({13, 14, 15, 16, 19})

_WINDOWS_DRIVE_RE = re.compile(r"[A-Za-z]:")
_WINDOWS_ABSOLUTE_RE = re.compile(r"(?:[A-Za-z]:)?[\\/]")


def luhn_valid(digits: str) -> bool:
    """Return ``True`` if the ASCII digit string passes the Luhn checksum."""
    total = 0
    for i, ch in enumerate(reversed(digits)):
        d = ord(ch) - 48
        if i % 2 == 1:
            d *= 2
            if d > 9:
                d -= 9
        total += d
    return total % 10 == 0


class TypeValidators:
    """Kind-specific validators sharing one :class:`ValidationEngine`.

    Parameters
    ----------
    engine:
        The shared engine; its registry must hold the built-in rule names.
    sanitizer:
        Rich-text capability.  Defaults to :class:`BleachSanitizer`.
    """

    def __init__(
        self,
        engine: ValidationEngine,
        sanitizer: RichTextSanitizer | None = None,
    ) -> None:
        self._engine = engine
        self._config = engine.config
        self._sanitizer = sanitizer or BleachSanitizer()

    @property
    def engine(self) -> ValidationEngine:
        return self._engine

    # -- generic ------------------------------------------------------------

    def validate_input(
        self,
        context: str,
        value: RawValue,
        rule_name: str,
        *,
        max_length: int | None = None,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """Validate *value* against the named catalog rule."""
        return self._engine.validate_input(
            context,
            value,
            rule_name,
            max_length=max_length,
            allow_null_or_empty=allow_null_or_empty,
        )

    # -- credit card --------------------------------------------------------

    def validate_credit_card(
        self,
        context: str,
        value: str | None,
        *,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """Digits (spaces allowed between them) that pass the Luhn checksum.

        The accepted value is the bare digit string.
        """
        outcome = self._engine.validate_input(
            context, value, "CreditCard", allow_null_or_empty=allow_null_or_empty,
        )
        if not isinstance(outcome, Accepted) or outcome.value == "":
            return outcome

        rule = self._engine.registry.lookup("CreditCard")
        digits = outcome.value.replace(" ", "")
        if not digits.isascii() or not digits.isdigit():
            return self._engine.reject(context, rule, "Card number must contain only digits")
        if len(digits) not in CARD_NUMBER_LENGTHS:
            return self._engine.reject(
                context, rule, "Card number has an invalid length", length=len(digits),
            )
        if not luhn_valid(digits):
            return self._engine.reject(context, rule, "Card number fails its checksum")
        return Accepted(context, digits)

    # -- numbers ------------------------------------------------------------

    def validate_number(
        self,
        context: str,
        value: str | None,
        minimum: float,
        maximum: float,
        *,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """A finite decimal number, optionally fractional or in exponent form.

        The literal tokens ``NaN`` and ``Infinity`` never reach the parser.
        An empty value accepted under *allow_null_or_empty* yields ``None``.
        """
        return self._numeric(
            context, value, minimum, maximum, "Number", float, allow_null_or_empty,
        )

    def validate_integer(
        self,
        context: str,
        value: str | None,
        minimum: int,
        maximum: int,
        *,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """An optionally signed run of digits; no fraction, no exponent."""
        return self._numeric(
            context, value, minimum, maximum, "Integer", int, allow_null_or_empty,
        )

    def _numeric(
        self,
        context: str,
        value: str | None,
        minimum: float,
        maximum: float,
        rule_name: str,
        parse: type[int] | type[float],
        allow_null_or_empty: bool,
    ) -> ValidationOutcome:
        rule = self._engine.registry.lookup(rule_name)
        if minimum > maximum:
            return self._engine.reject(
                context,
                rule,
                f"Invalid range: minimum {minimum} is greater than maximum {maximum}",
            )

        outcome = self._engine.validate_input(
            context, value, rule_name, allow_null_or_empty=allow_null_or_empty,
        )
        if not isinstance(outcome, Accepted):
            return outcome
        if outcome.value == "":
            return Accepted(context, None)

        number = parse(outcome.value)
        if isinstance(number, float) and not math.isfinite(number):
            return self._engine.reject(context, rule, "Number is out of the representable range")
        if not minimum <= number <= maximum:
            return self._engine.reject(
                context,
                rule,
                f"Value must be between {minimum} and {maximum}",
                minimum=minimum,
                maximum=maximum,
            )
        return Accepted(context, number)

    # -- dates --------------------------------------------------------------

    def validate_date(
        self,
        context: str,
        value: str | None,
        date_format: str | Sequence[str] | None = None,
        *,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """Parse *value* with the first matching ``strptime`` format.

        Out-of-range calendar fields (``June 31``, ``June 32``) are
        rejected, never rolled over into the next month.
        """
        if date_format is None:
            formats: Sequence[str] = self._config.date_formats
        elif isinstance(date_format, str):
            formats = [date_format]
        else:
            formats = date_format

        outcome = self._engine.validate_input(
            context, value, "Date", allow_null_or_empty=allow_null_or_empty,
        )
        if not isinstance(outcome, Accepted):
            return outcome
        if outcome.value == "":
            return Accepted(context, None)

        for fmt in formats:
            try:
                return Accepted(context, datetime.strptime(outcome.value, fmt))
            except ValueError:
                continue
        return self._engine.reject(
            context,
            self._engine.registry.lookup("Date"),
            "Value is not a valid date",
            formats=list(formats),
        )

    # -- files and paths ----------------------------------------------------

    def validate_file_name(
        self,
        context: str,
        value: str | None,
        *,
        allowed_extensions: Iterable[str] | None = None,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """A bare file name.

        Any path separator, NUL or ``.``/``..`` token makes the outcome
        :class:`IntrusionSuspected`.
        """
        outcome = self._engine.validate_input(
            context, value, "FileName", allow_null_or_empty=allow_null_or_empty,
        )
        if not isinstance(outcome, Accepted) or outcome.value == "":
            return outcome

        extensions = (
            list(allowed_extensions)
            if allowed_extensions is not None
            else self._config.allowed_file_extensions
        )
        if extensions:
            lowered = outcome.value.lower()
            if not any(lowered.endswith(ext.lower()) for ext in extensions):
                return self._engine.reject(
                    context,
                    self._engine.registry.lookup("FileName"),
                    "File extension is not allowed",
                    allowed=sorted(extensions),
                )
        return outcome

    def validate_directory_path(
        self,
        context: str,
        value: str | None,
        *,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """An absolute POSIX (``/etc``) or Windows (``c:\\temp``) directory path.

        The accepted value is the normalised path.  A ``..`` segment is
        classified as :class:`IntrusionSuspected`.
        A path that only validates after backslash-escape decoding, or whose
        normalised form would decode differently, is rejected.
        """
        outcome = self._engine.validate_input(
            context, value, "DirectoryPath", allow_null_or_empty=allow_null_or_empty,
        )
        if not isinstance(outcome, Accepted) or outcome.value == "":
            return outcome

        path = outcome.value
        rule = self._engine.registry.lookup("DirectoryPath")
        # Backslash is a Windows separator, never an escape inside a path.
        if "escape" in self._engine.canonicalizer.canonicalize(value).codecs:
            return self._engine.reject(
                context, rule, "Path contains a backslash escape sequence",
            )
        if _WINDOWS_DRIVE_RE.match(path) or "\\" in path:
            if not _WINDOWS_ABSOLUTE_RE.match(path):
                return self._engine.reject(context, rule, "Path must be absolute")
            normalized = ntpath.normpath(path)
        else:
            if not path.startswith("/"):
                return self._engine.reject(context, rule, "Path must be absolute")
            normalized = posixpath.normpath(path)

        again = self._engine.validate_input(context, normalized, "DirectoryPath")
        if not isinstance(again, Accepted) or again.value != normalized:
            return self._engine.reject(
                context, rule, "Normalised path does not validate to itself",
            )
        return Accepted(context, normalized)

    def validate_file_content(
        self,
        context: str,
        content: bytes | None,
        max_bytes: int | None = None,
        *,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """Raw upload content no larger than *max_bytes*."""
        limit = self._config.max_file_size if max_bytes is None else max_bytes
        if not content:
            if allow_null_or_empty:
                return Accepted(context, b"")
            return self._engine.reject(context, None, "File content is required")
        if len(content) > limit:
            return self._engine.reject(
                context,
                None,
                f"File content exceeds the maximum size of {limit} bytes",
                size=len(content),
            )
        return Accepted(context, bytes(content))

    def validate_file_upload(
        self,
        context: str,
        directory: str | None,
        file_name: str | None,
        content: bytes | None,
        max_bytes: int | None = None,
        *,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """Directory, file name and content must all pass.

        An intrusion finding on any part takes precedence over a plain
        rejection of another.
        """
        parts = (
            self.validate_directory_path(
                context, directory, allow_null_or_empty=allow_null_or_empty,
            ),
            self.validate_file_name(
                context, file_name, allow_null_or_empty=allow_null_or_empty,
            ),
            self.validate_file_content(
                context, content, max_bytes, allow_null_or_empty=allow_null_or_empty,
            ),
        )
        for part in parts:
            if isinstance(part, IntrusionSuspected):
                return part
        for part in parts:
            if not isinstance(part, Accepted):
                return part
        path, name, data = (part.value for part in parts)
        return Accepted(context, UploadedFile(path, name, data))

    # -- printable ----------------------------------------------------------

    def validate_printable(
        self,
        context: str,
        value: str | bytes | None,
        max_length: int,
        *,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """Printable ASCII only (``0x21``-``0x7e``).

        Byte input is checked byte-by-byte before decoding; a value whose
        canonical form contains a control character (``%08``) is rejected.
        """
        rule = self._engine.registry.lookup("PrintableText")
        if isinstance(value, bytes | bytearray):
            for offset, byte in enumerate(value):
                if not 0x21 <= byte <= 0x7E:
                    return self._engine.reject(
                        context,
                        rule,
                        f"Byte 0x{byte:02x} at offset {offset} is not printable",
                    )
            outcome = self._engine.validate(
                ValidationRequest(
                    context, bytes(value).decode("ascii"), rule,
                    allow_null_or_empty, max_length,
                )
            )
            if isinstance(outcome, Accepted):
                return Accepted(context, outcome.value.encode("ascii"))
            return outcome

        return self._engine.validate(
            ValidationRequest(context, value, rule, allow_null_or_empty, max_length)
        )

    # -- enumerations and structure -----------------------------------------

    def validate_list_item(
        self,
        context: str,
        value: str | None,
        allowed: Iterable[str],
    ) -> ValidationOutcome:
        """Exact membership in a closed set of literals.

        A single ``str`` for *allowed* is one literal, not a set of characters.
        """
        members = frozenset((allowed,) if isinstance(allowed, str) else allowed)
        if value is not None and value in members:
            return Accepted(context, value)
        return self._engine.reject(context, None, "Value is not one of the allowed options")

    def validate_parameter_set(
        self,
        context: str,
        actual: Iterable[str],
        required: Iterable[str],
        optional: Iterable[str] = (),
    ) -> ValidationOutcome:
        """``required <= actual <= required | optional``.

        *actual* may be any iterable of names, including a mapping of
        request parameters.  The accepted value is ``None``.
        """
        present = set(actual)
        needed = set(required)
        permitted = needed | set(optional)

        missing = needed - present
        unexpected = present - permitted
        if missing or unexpected:
            return self._engine.reject(
                context,
                None,
                "Request parameters do not match the expected set",
                missing=sorted(missing),
                unexpected=sorted(unexpected),
            )
        return Accepted(context, None)

    # -- rich text ----------------------------------------------------------

    def validate_safe_rich_text(
        self,
        context: str,
        value: str | None,
        max_length: int | None = None,
        *,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """Accept only markup that the sanitizer leaves untouched."""
        outcome = self._sanitize(context, value, max_length, allow_null_or_empty)
        if not isinstance(outcome, Accepted) or value is None:
            return outcome
        if outcome.value != value:
            return self._engine.reject(
                context,
                None,
                "Markup contains content that is not allowed",
                removed=len(value) - len(outcome.value),
            )
        return outcome

    def clean_safe_rich_text(
        self,
        context: str,
        value: str | None,
        max_length: int | None = None,
        *,
        allow_null_or_empty: bool = False,
    ) -> ValidationOutcome:
        """Return the sanitized markup, even when content had to be removed."""
        return self._sanitize(context, value, max_length, allow_null_or_empty)

    def is_valid_safe_rich_text(
        self,
        context: str,
        value: str | None,
        max_length: int | None = None,
        *,
        allow_null_or_empty: bool = False,
    ) -> bool:
        return self.validate_safe_rich_text(
            context, value, max_length, allow_null_or_empty=allow_null_or_empty,
        ).ok

    def get_valid_safe_rich_text(
        self,
        context: str,
        value: str | None,
        max_length: int | None = None,
        *,
        allow_null_or_empty: bool = False,
    ) -> str:
        """Sanitized markup.

        Raises :class:`~inputguard.core.errors.ValidationRejected` only
        for a missing or over-long value.
        """
        return self.clean_safe_rich_text(
            context, value, max_length, allow_null_or_empty=allow_null_or_empty,
        ).unwrap()

    def _sanitize(
        self,
        context: str,
        value: str | None,
        max_length: int | None,
        allow_null_or_empty: bool,
    ) -> ValidationOutcome:
        limit = self._config.rich_text_max_length if max_length is None else max_length
        if not value:
            if allow_null_or_empty:
                return Accepted(context, "")
            return self._engine.reject(context, None, "Value is required")
        if len(value) > limit:
            return self._engine.reject(
                context, None, f"Markup exceeds the maximum length of {limit}",
            )
        return Accepted(context, self._sanitizer.sanitize(value, limit))
