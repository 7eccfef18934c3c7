"""Text helpers shared by sources, prompts and exports."""

import re
from collections.abc import Iterator, Sequence
from typing import TypeVar

T = TypeVar("T")

_WHITESPACE = re.compile(r"\s+")

_SUPERSCRIPT = str.maketrans("0123456789+-=()ni", "⁰¹²³⁴⁵⁶⁷⁸⁹⁺⁻⁼⁽⁾ⁿⁱ")
_SUBSCRIPT = str.maketrans("0123456789+-=()", "₀₁₂₃₄₅₆₇₈₉₊₋₌₍₎")


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text).strip()


def is_pdf_url(url: str | None) -> bool:
    """Whether ``url`` points straight at a PDF file, ignoring any query string."""
    return bool(url) and url.lower().split("?", 1)[0].endswith(".pdf")


def count_words(text: str | None) -> int:
    """Number of whitespace-separated tokens."""
    if not text:
        return 0
    return len(text.split())


def truncate_words(text: str, limit: int) -> str:
    """Keep the first ``limit`` words, joined by single spaces."""
    return " ".join(text.split()[:limit])


def truncate(text: str | None, limit: int) -> str | None:
    if text is None or len(text) <= limit:
        return text
    return text[:limit]


def iter_batches(items: Sequence[T], size: int) -> Iterator[tuple[int, Sequence[T]]]:
    """Yield ``(start_index, chunk)`` pairs of at most ``size`` items."""
    for start in range(0, len(items), size):
        yield start, items[start : start + size]


def decode_title(raw: str | None) -> str:
    """Decode escaped HTML in catalogue titles.

    ``e&lt;SUP&gt;+&lt;/SUP&gt;`` becomes ``e⁺``; other tags are dropped.
    """
    if not raw:
        return ""
    text = (
        raw.replace("&lt;", "<")
        .replace("&LT;", "<")
        .replace("&gt;", ">")
        .replace("&GT;", ">")
        .replace("&amp;", "&")
        .replace("&quot;", '"')
        .replace("&#39;", "'")
        .replace("&apos;", "'")
    )
    text = re.sub(r"<sup>(.*?)</sup>", lambda m: m.group(1).translate(_SUPERSCRIPT), text, flags=re.IGNORECASE)
    text = re.sub(r"<sub>(.*?)</sub>", lambda m: m.group(1).translate(_SUBSCRIPT), text, flags=re.IGNORECASE)
    text = re.sub(r"<[^>]+>", "", text)
    return collapse_whitespace(text)


def mask_secret(secret: str | None) -> str | None:
    """Short, non-reversible hint of a credential, e.g. ``sk-or-v1…9f3a``."""
    if not secret:
        return None
    if len(secret) <= 12:
        return "…" + secret[-2:]
    return f"{secret[:8]}…{secret[-4:]}"


__all__ = [
    "collapse_whitespace",
    "count_words",
    "is_pdf_url",
    "truncate_words",
    "truncate",
    "iter_batches",
    "decode_title",
    "mask_secret",
]
