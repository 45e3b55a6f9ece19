"""inputguard validation configuration.

Defines the validated configuration model read by the canonicalizer, the
engine and the type validators.  An instance is built once by the
composing application and passed by reference; it is frozen.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_DATE_FORMAT = "%B %d, %Y"


class ValidationConfig(BaseModel):
    """Configuration for the validation engine and type validators.

    All fields carry defaults so ``ValidationConfig()`` is sufficient for
    development.
    """

    model_config = ConfigDict(strict=True, frozen=True)

    max_decode_passes: int = Field(
        default=3,
        ge=1,
        le=16,
        description=(
            "Number of canonicalization passes that may still change the "
            "value.  Input that keeps decoding past this is treated as an "
            "evasion attempt."
        ),
    )
    max_input_length: int = Field(
        default=4096,
        ge=1,
        description="Hard ceiling applied on top of every rule's max_length.",
    )
    max_file_size: int = Field(
        default=10 * 1024 * 1024,  # 10 MiB
        ge=0,
        description="Default upper bound for uploaded file content in bytes.",
    )
    allowed_file_extensions: list[str] = Field(
        default_factory=list,
        description=(
            "File-name extensions (with leading dot) accepted by default. "
            "Empty means any extension."
        ),
    )
    date_formats: list[str] = Field(
        default_factory=lambda: [DEFAULT_DATE_FORMAT],
        min_length=1,
        description="strptime formats tried, in order, for date input.",
    )
    rich_text_max_length: int = Field(
        default=100_000,
        ge=1,
        description="Default bound on rich-text markup length.",
    )
    max_line_length: int = Field(
        default=8192,
        ge=1,
        description="Default bound for a single line read from a stream.",
    )
