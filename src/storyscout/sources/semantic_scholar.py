"""Semantic Scholar source implementation."""

import logging
from urllib.parse import quote

from storyscout.core.models import EnrichmentFields
from storyscout.utils.text import count_words

from .base import BaseSource, SourceRegistry

logger = logging.getLogger(__name__)

API_URL = "https://api.semanticscholar.org/graph/v1/paper/DOI:"
FIELDS = "title,abstract,authors,year,openAccessPdf,citationCount,venue,tldr"


@SourceRegistry.register("semantic_scholar")
class SemanticScholarSource(BaseSource):
    """Semantic Scholar Graph API lookup by DOI."""

    @property
    def name(self) -> str:
        return "semantic_scholar"

    @property
    def enabled(self) -> bool:
        return self.settings.sources.semantic_scholar.enabled

    def fetch(self, identifier: str) -> EnrichmentFields | None:
        """Fetch abstract (or TLDR), venue and open-access PDF for a DOI."""
        headers = {}
        api_key = self.settings.sources.semantic_scholar.api_key
        if api_key:
            headers["x-api-key"] = api_key

        data = self._get_json(API_URL + quote(identifier, safe="/"), params={"fields": FIELDS}, headers=headers)
        if not data:
            return None

        abstract = (data.get("abstract") or "").strip() or None
        tldr = ((data.get("tldr") or {}).get("text") or "").strip() or None
        snippet = abstract or tldr
        journal = (data.get("venue") or "").strip() or None
        pdf_url = (data.get("openAccessPdf") or {}).get("url") or None

        if not (snippet or journal or pdf_url):
            return None

        return EnrichmentFields(
            source=self.name,
            abstract=abstract,
            journal=journal,
            pdf_url=pdf_url,
            full_text_snippet=snippet,
            word_count=count_words(snippet),
        )


__all__ = ["SemanticScholarSource"]
