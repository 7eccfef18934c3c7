"""CrossRef source implementation."""

import logging
from urllib.parse import quote

from storyscout.core.models import EnrichmentFields
from storyscout.utils.datetime import iso_date_from_parts
from storyscout.utils.text import count_words

from .base import BaseSource, SourceRegistry, clean_html

logger = logging.getLogger(__name__)

API_URL = "https://api.crossref.org/works/"


@SourceRegistry.register("crossref")
class CrossRefSource(BaseSource):
    """CrossRef works lookup by DOI."""

    @property
    def name(self) -> str:
        return "crossref"

    @property
    def enabled(self) -> bool:
        return self.settings.sources.crossref.enabled

    def fetch(self, identifier: str) -> EnrichmentFields | None:
        """Fetch abstract, subjects and journal for a DOI."""
        data = self._get_json(
            API_URL + quote(identifier, safe="/"),
            params={"mailto": self.settings.sources.mailto},
        )
        if not data:
            return None

        message = data.get("message") or {}
        abstract = clean_html(message.get("abstract"))
        keywords = [s for s in message.get("subject") or [] if isinstance(s, str) and s.strip()]
        containers = message.get("container-title") or []
        journal = containers[0] if containers else None

        if not (abstract or keywords or journal):
            logger.debug("CrossRef has no usable metadata for %s", identifier)
            return None

        return EnrichmentFields(
            source=self.name,
            abstract=abstract,
            keywords=keywords,
            journal=journal,
            full_text_snippet=abstract,
            word_count=count_words(abstract),
            published_at=_published_date(message),
        )


def _published_date(message: dict) -> str | None:
    """First available of published/print/online/issued date-parts."""
    for key in ("published", "published-print", "published-online", "issued"):
        parts = (message.get(key) or {}).get("date-parts") or []
        date = iso_date_from_parts(parts[0] if parts else None)
        if date:
            return date
    return None


__all__ = ["CrossRefSource"]
