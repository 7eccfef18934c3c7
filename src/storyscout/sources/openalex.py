"""OpenAlex source implementation."""

import logging
from urllib.parse import quote

from storyscout.core.models import EnrichmentFields
from storyscout.utils.text import count_words

from .base import BaseSource, SourceRegistry

logger = logging.getLogger(__name__)

API_URL = "https://api.openalex.org/works/doi:"
MIN_ABSTRACT_CHARS = 20
CONCEPT_SCORE_THRESHOLD = 0.3
MAX_TOPICS = 5


@SourceRegistry.register("openalex")
class OpenAlexSource(BaseSource):
    """OpenAlex works lookup by DOI."""

    @property
    def name(self) -> str:
        return "openalex"

    @property
    def enabled(self) -> bool:
        return self.settings.sources.openalex.enabled

    def fetch(self, identifier: str) -> EnrichmentFields | None:
        """Fetch abstract, concepts, venue and OA location for a DOI."""
        data = self._get_json(
            API_URL + quote(identifier, safe="/"),
            params={"mailto": self.settings.sources.mailto},
        )
        if not data:
            return None

        abstract = _extract_openalex_abstract(data)
        keywords = _extract_keywords(data)

        primary_location = data.get("primary_location") or {}
        journal = (primary_location.get("source") or {}).get("display_name")
        best_oa = data.get("best_oa_location") or {}
        pdf_url = best_oa.get("pdf_url") or primary_location.get("pdf_url")

        if not (abstract or journal or keywords):
            logger.debug("OpenAlex has no usable metadata for %s", identifier)
            return None

        published_at = data.get("publication_date")
        if not published_at and data.get("publication_year"):
            published_at = f"{data['publication_year']}-01-01"

        return EnrichmentFields(
            source=self.name,
            abstract=abstract,
            keywords=keywords,
            journal=journal,
            pdf_url=pdf_url,
            full_text_snippet=abstract,
            word_count=count_words(abstract),
            published_at=published_at,
        )


def _extract_openalex_abstract(item: dict) -> str | None:
    """Rebuild abstract text from OpenAlex's inverted index.

    Every (position, word) pair is collected and sorted by position, so gaps
    and repeated words come out in reading order.
    """
    inverted = item.get("abstract_inverted_index")
    if not isinstance(inverted, dict) or not inverted:
        return None
    positioned = [(pos, word) for word, positions in inverted.items() for pos in positions or []]
    positioned.sort(key=lambda pair: pair[0])
    text = " ".join(word for _, word in positioned).strip()
    return text if len(text) > MIN_ABSTRACT_CHARS else None


def _extract_keywords(item: dict) -> list[str]:
    """Concepts above the score threshold, then the first few topics."""
    keywords = [
        c["display_name"]
        for c in item.get("concepts") or []
        if c.get("display_name") and (c.get("score") or 0) > CONCEPT_SCORE_THRESHOLD
    ]
    topics = [t["display_name"] for t in (item.get("topics") or [])[:MAX_TOPICS] if t.get("display_name")]
    return keywords + topics


__all__ = ["OpenAlexSource"]
