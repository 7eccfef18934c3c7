"""Heuristic abstract detection in text extracted from the first pages of a PDF.

Three strategies are tried in order:

1. An explicit ``Abstract`` / ``Summary`` / ``Zusammenfassung`` header, cut at
   the first section terminator (Keywords, Introduction, ``1.``, Citation:,
   Author Summary, Background, or a run of blank lines).
2. PLoS/Nature-style front matter where title, affiliations and abstract are
   merged: the prose between the last affiliation marker and ``Citation:``
   or ``Introduction``.
3. Preprint-style pages with no terminator at all: the prose following the
   last affiliation marker on the flattened page, capped on a sentence
   boundary.
"""

import re

MIN_ABSTRACT_CHARS = 100
MAX_ABSTRACT_CHARS = 3000
FALLBACK_CAP_CHARS = 2000
FALLBACK_MIN_CUT = 500
MIN_FRONT_MATTER_CHARS = 200
MIN_AFFILIATION_OFFSET = 100

_HEADERS = (
    re.compile(r"\bAbstract\b", re.IGNORECASE),
    re.compile(r"\bSummary\b", re.IGNORECASE),
    re.compile(r"\bZusammenfassung\b", re.IGNORECASE),
)

_TERMINATOR = re.compile(
    r"\n\s*(?:(?:Keywords?|Key\s*words|Introduction|Author\s+Summary|Editor'?s?\s+Summary|Background)\b"
    r"|Citation:|1\s*[.)])"
    r"|\n\n\n",
    re.IGNORECASE,
)

_LEADING_PUNCT = re.compile(r"^[:\s.\-]+")
_LEADING_AFFILIATION_DEBRIS = re.compile(r"^[\s.,;:*†‡§]+")
_CITATION_LINE = re.compile(r"\nCitation:", re.IGNORECASE)
_INTRODUCTION_LINE = re.compile(r"\nIntroduction\b", re.IGNORECASE)

_COUNTRIES = re.compile(
    r"\b(?:Austria|Germany|Switzerland|USA|UK|United Kingdom|United States|France|Italy|Spain|Netherlands"
    r"|Sweden|Japan|China|Australia|Canada|Israel|Belgium|Czech Republic|Poland|Denmark|Norway|Finland"
    r"|Hungary|Portugal|Brazil|India|South Korea|Taiwan|Singapore)\b",
    re.IGNORECASE,
)
_EMAILS = re.compile(r"[\w.-]+@[\w.-]+\.\w{2,}")
_FOOTNOTES = re.compile(r"[*†‡§]\s*(?:These authors|Corresponding|Current address|E-mail)", re.IGNORECASE)

_AFFILIATION_MARKERS = (_COUNTRIES, _EMAILS, _FOOTNOTES)


def _flatten(text: str) -> str:
    return re.sub(r"\s+", " ", text.replace("\n", " "))


def find_last_affiliation_end(text: str) -> int:
    """Offset just past the last country, email or footnote marker; -1 if none."""
    last = -1
    for pattern in _AFFILIATION_MARKERS:
        for match in pattern.finditer(text):
            last = max(last, match.end())
    return last


def _from_header(text: str) -> str | None:
    for header in _HEADERS:
        match = header.search(text)
        if not match:
            continue
        body = _LEADING_PUNCT.sub("", text[match.end() :])
        end = _TERMINATOR.search(body)
        if not end:
            continue
        candidate = _flatten(body[: end.start()]).strip()
        if MIN_ABSTRACT_CHARS <= len(candidate) <= MAX_ABSTRACT_CHARS:
            return candidate
    return None


def _from_front_matter(text: str) -> str | None:
    citation = _CITATION_LINE.search(text)
    if citation and citation.start() > 0:
        end = citation.start()
    else:
        introduction = _INTRODUCTION_LINE.search(text)
        end = introduction.start() if introduction else -1
    if end <= MIN_FRONT_MATTER_CHARS:
        return None

    before = _flatten(text[:end])
    affiliation_end = find_last_affiliation_end(before)
    if affiliation_end <= 0:
        return None
    candidate = before[affiliation_end:].strip()
    if MIN_ABSTRACT_CHARS <= len(candidate) <= MAX_ABSTRACT_CHARS and ". " in candidate:
        return candidate
    return None


def _from_flattened_page(text: str) -> str | None:
    flat = _flatten(text)
    affiliation_end = find_last_affiliation_end(flat)
    if affiliation_end <= MIN_AFFILIATION_OFFSET:
        return None

    candidate = _LEADING_AFFILIATION_DEBRIS.sub("", flat[affiliation_end:]).strip()
    if len(candidate) > FALLBACK_CAP_CHARS:
        cut = candidate.rfind(". ", 0, FALLBACK_CAP_CHARS + 2)
        candidate = candidate[: cut + 1] if cut > FALLBACK_MIN_CUT else candidate[:FALLBACK_CAP_CHARS]
    if len(candidate) >= MIN_ABSTRACT_CHARS and ". " in candidate and re.match(r"[A-Z]", candidate):
        return candidate
    return None


def locate_abstract(text: str | None) -> str | None:
    """Best-effort abstract from raw PDF text, or None when nothing looks like one."""
    if not text:
        return None
    normalized = text.replace("\r\n", "\n")
    return _from_header(normalized) or _from_front_matter(normalized) or _from_flattened_page(normalized)


__all__ = ["locate_abstract", "find_last_affiliation_end"]
