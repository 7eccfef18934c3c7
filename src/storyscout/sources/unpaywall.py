"""Unpaywall source implementation."""

import logging
from urllib.parse import quote

from storyscout.core.models import EnrichmentFields

from .base import BaseSource, SourceRegistry

logger = logging.getLogger(__name__)

API_URL = "https://api.unpaywall.org/v2/"


@SourceRegistry.register("unpaywall")
class UnpaywallSource(BaseSource):
    """Unpaywall open-access location lookup."""

    @property
    def name(self) -> str:
        return "unpaywall"

    @property
    def enabled(self) -> bool:
        return self.settings.sources.unpaywall.enabled

    def fetch(self, identifier: str) -> EnrichmentFields | None:
        """Fetch journal name and the best open-access PDF link for a DOI."""
        data = self._get_json(
            API_URL + quote(identifier, safe="/"),
            params={"email": self.settings.sources.mailto},
        )
        if not data or not data.get("is_oa"):
            return None

        best = data.get("best_oa_location") or {}
        pdf_url = best.get("url_for_pdf")
        landing_url = pdf_url or best.get("url")
        journal = data.get("journal_name")

        if not (pdf_url or landing_url or journal):
            return None

        return EnrichmentFields(
            source=self.name,
            journal=journal,
            pdf_url=pdf_url,
            full_text_snippet=f"Open Access: {landing_url}" if landing_url else None,
        )


__all__ = ["UnpaywallSource"]
