"""Protocol definitions for pluggable components."""

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .models import AnalysisStatus, EnrichmentStatus, Publication


@dataclass
class LLMResponse:
    """Response from an LLM provider."""

    content: str
    model: str
    tokens_used: int = 0


@dataclass(frozen=True)
class PublicationFilter:
    """Selection criteria understood by every record store.

    Unset attributes do not constrain the query.
    """

    enrichment_statuses: tuple[EnrichmentStatus, ...] | None = None
    analysis_statuses: tuple[AnalysisStatus, ...] | None = None
    has_doi: bool | None = None
    pdf_url_or_abstract: bool = False  # url is a direct PDF link OR a CSV abstract exists
    min_word_count: int | None = None


@runtime_checkable
class PublicationStore(Protocol):
    """Record store the pipelines read from and write back to."""

    def query(self, criteria: PublicationFilter, order: str = "created_at", limit: int | None = None) -> list[Publication]:
        """Return matching publications, newest first by ``order``."""
        ...

    def update(self, publication_id: str, fields: dict[str, Any]) -> None:
        """Persist ``fields`` on one publication. Raises StorageError on failure."""
        ...


__all__ = ["LLMResponse", "PublicationFilter", "PublicationStore"]
