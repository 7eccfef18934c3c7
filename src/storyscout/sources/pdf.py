"""Direct PDF download and text extraction."""

import io
import logging

import requests
from pypdf import PdfReader

from storyscout.core.models import EnrichmentFields
from storyscout.infrastructure.enrichment.abstract_locator import locate_abstract
from storyscout.utils.text import count_words

from .base import BaseSource, SourceRegistry

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


@SourceRegistry.register("pdf")
class PdfSource(BaseSource):
    """Pulls text from the first pages of an open PDF and looks for its abstract.

    Unlike the metadata sources this one never raises: unreachable hosts,
    HTML login walls, oversized files and unparsable PDFs all yield None.
    """

    @property
    def name(self) -> str:
        return "pdf"

    @property
    def enabled(self) -> bool:
        return self.settings.sources.pdf.enabled

    def fetch(self, identifier: str) -> EnrichmentFields | None:
        """Download the PDF at ``identifier`` (a URL) and extract text."""
        if not identifier:
            return None
        config = self.settings.sources.pdf

        data = self._download(identifier)
        if data is None:
            return None

        text = self._extract_text(data, identifier)
        if not text or len(text) < config.min_text_chars:
            logger.debug("PDF %s yielded too little text", identifier)
            return None

        snippet = text[: config.snippet_chars].strip()
        return EnrichmentFields(
            source=self.name,
            abstract=locate_abstract(text),
            full_text_snippet=snippet,
            word_count=count_words(snippet),
        )

    def _download(self, url: str) -> bytes | None:
        """Fetch the body, enforcing content type and the size cap."""
        config = self.settings.sources.pdf
        try:
            resp = self.session.get(url, headers={"Accept": "application/pdf"}, timeout=config.timeout, stream=True)
        except requests.RequestException as exc:
            logger.debug("PDF download failed for %s: %s", url, exc)
            return None

        with resp:
            if not resp.ok:
                logger.debug("PDF download for %s returned HTTP %s", url, resp.status_code)
                return None
            # Publisher links often redirect to an HTML login page
            if "text/html" in resp.headers.get("Content-Type", ""):
                return None
            try:
                declared = int(resp.headers.get("Content-Length") or 0)
            except ValueError:
                declared = 0
            if declared > config.max_bytes:
                logger.debug("Skipping PDF %s: declared size %d bytes", url, declared)
                return None

            buffer = io.BytesIO()
            try:
                for chunk in resp.iter_content(chunk_size=_CHUNK_SIZE):
                    buffer.write(chunk)
                    if buffer.tell() > config.max_bytes:
                        logger.debug("Skipping PDF %s: body exceeds %d bytes", url, config.max_bytes)
                        return None
            except requests.RequestException as exc:
                logger.debug("PDF download interrupted for %s: %s", url, exc)
                return None
        return buffer.getvalue()

    def _extract_text(self, data: bytes, url: str) -> str | None:
        """Text of the first pages, or None if the file cannot be parsed."""
        max_pages = self.settings.sources.pdf.max_pages
        try:
            reader = PdfReader(io.BytesIO(data))
            pages = [page.extract_text() or "" for page in reader.pages[:max_pages]]
        except Exception as exc:  # pypdf raises a wide range of errors on malformed files
            logger.debug("PDF parse failed for %s: %s", url, exc)
            return None
        return "\n".join(pages)


__all__ = ["PdfSource"]
