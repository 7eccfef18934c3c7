"""Utility functions."""

from .datetime import iso_date_from_parts, utc_now
from .logging import setup_logging
from .text import (
    collapse_whitespace,
    count_words,
    decode_title,
    is_pdf_url,
    iter_batches,
    mask_secret,
    truncate,
    truncate_words,
)

__all__ = [
    "utc_now",
    "iso_date_from_parts",
    "setup_logging",
    "collapse_whitespace",
    "count_words",
    "is_pdf_url",
    "truncate_words",
    "truncate",
    "iter_batches",
    "decode_title",
    "mask_secret",
]
