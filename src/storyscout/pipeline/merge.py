"""Progressive merge of per-source enrichment results."""

from dataclasses import dataclass, replace
from typing import Any

from storyscout.core.constants import MAX_KEYWORDS
from storyscout.core.models import EnrichmentFields, EnrichmentStatus, Publication
from storyscout.utils.text import count_words

CSV_SOURCE = "csv"


@dataclass(frozen=True)
class MergeState:
    """Accumulated enrichment for one record.

    Precedence per field:

    - ``abstract``, ``journal``, ``pdf_url``, ``published_at``: first non-empty wins
    - ``keywords``: order-preserving union, capped
    - ``full_text_snippet``: longest wins
    - ``word_count``: maximum wins
    - ``sources``: every source that contributed anything, in order
    """

    abstract: str | None = None
    keywords: tuple[str, ...] = ()
    journal: str | None = None
    pdf_url: str | None = None
    full_text_snippet: str | None = None
    word_count: int = 0
    published_at: str | None = None
    sources: tuple[str, ...] = ()
    max_keywords: int = MAX_KEYWORDS

    @classmethod
    def seeded(cls, publication: Publication, max_keywords: int = MAX_KEYWORDS) -> "MergeState":
        """Initial state; a CSV abstract counts as the first contributing source."""
        state = cls(max_keywords=max_keywords)
        if publication.abstract and publication.abstract.strip():
            abstract = publication.abstract.strip()
            state = state.merge(EnrichmentFields(source=CSV_SOURCE, abstract=abstract, word_count=count_words(abstract)))
        return state

    def merge(self, fields: EnrichmentFields | None) -> "MergeState":
        """Return a new state with ``fields`` folded in. None or empty results change nothing."""
        if fields is None or fields.is_empty:
            return self

        keywords = list(self.keywords)
        seen = set(keywords)
        for keyword in fields.keywords:
            if keyword not in seen:
                seen.add(keyword)
                keywords.append(keyword)

        snippet = self.full_text_snippet
        if fields.full_text_snippet and len(fields.full_text_snippet) > len(snippet or ""):
            snippet = fields.full_text_snippet

        sources = self.sources if fields.source in self.sources else self.sources + (fields.source,)

        return replace(
            self,
            abstract=self.abstract or fields.abstract or None,
            keywords=tuple(keywords[: self.max_keywords]),
            journal=self.journal or fields.journal or None,
            pdf_url=self.pdf_url or fields.pdf_url or None,
            full_text_snippet=snippet,
            word_count=max(self.word_count, fields.word_count),
            published_at=self.published_at or fields.published_at or None,
            sources=sources,
        )

    @property
    def has_abstract(self) -> bool:
        return bool(self.abstract)

    @property
    def status(self) -> EnrichmentStatus:
        """enriched iff an abstract exists, partial iff something else did, else failed."""
        if self.abstract:
            return EnrichmentStatus.ENRICHED
        if self.sources:
            return EnrichmentStatus.PARTIAL
        return EnrichmentStatus.FAILED

    def to_update(self, publication: Publication) -> dict[str, Any]:
        """Store fields to write back for ``publication``."""
        fields: dict[str, Any] = {
            "enrichment_status": self.status,
            "enriched_abstract": self.abstract,
            "enriched_keywords": list(self.keywords) if self.keywords else None,
            "enriched_journal": self.journal,
            "enriched_source": "+".join(self.sources) if self.sources else None,
            "full_text_snippet": self.full_text_snippet,
            "word_count": self.word_count,
        }
        if not publication.published_at and self.published_at:
            fields["published_at"] = self.published_at
        return fields


__all__ = ["MergeState", "CSV_SOURCE"]
