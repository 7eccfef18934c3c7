"""Multi-source enrichment cascade."""

import logging
from collections import Counter
from dataclasses import dataclass, field

from storyscout.config.settings import Settings
from storyscout.core.exceptions import StorageError
from storyscout.core.models import EnrichmentFields, EnrichmentRequest, EnrichmentStatus, Publication
from storyscout.core.protocols import PublicationFilter, PublicationStore
from storyscout.sources.base import BaseSource, clean_doi, create_sources, is_pdf_url
from storyscout.utils.text import truncate

from . import events
from .events import EventChannel
from .merge import MergeState

logger = logging.getLogger(__name__)

METADATA_SOURCES = ("crossref", "openalex", "unpaywall")
LATE_SOURCE = "semantic_scholar"
PDF_SOURCE = "pdf"
ALL_SOURCES = METADATA_SOURCES + (PDF_SOURCE, LATE_SOURCE)


@dataclass
class EnrichmentStats:
    """Counters reported in the final ``complete`` event."""

    total: int
    processed: int = 0
    successful: int = 0
    partial: int = 0
    failed: int = 0
    with_abstract: int = 0
    sources: Counter = field(default_factory=Counter)
    cancelled: bool = False

    def record(self, status: EnrichmentStatus, sources: tuple[str, ...]) -> None:
        self.processed += 1
        if status is EnrichmentStatus.ENRICHED:
            self.successful += 1
            self.with_abstract += 1
        elif status is EnrichmentStatus.PARTIAL:
            self.partial += 1
        else:
            self.failed += 1
        self.sources.update(sources)

    def as_event(self) -> dict:
        return {
            "processed": self.processed,
            "total": self.total,
            "successful": self.successful,
            "partial": self.partial,
            "failed": self.failed,
            "with_abstract": self.with_abstract,
            "sources": dict(self.sources),
            "cancelled": self.cancelled,
        }


class EnrichmentPipeline:
    """Fill in abstracts, keywords and journals from open metadata sources.

    Records with a DOI go through the full cascade:

    1. CrossRef, OpenAlex and Unpaywall, always (for keywords and journal
       even when an abstract is already known)
    2. the record's own URL when it is a direct PDF and no abstract yet
    3. Semantic Scholar, only while the abstract is still missing
    4. a PDF link discovered in phases 1 or 3, while the abstract is still
       missing

    Records without a usable DOI only get the CSV abstract and, if the URL
    is a PDF, the PDF extractor.
    """

    def __init__(
        self,
        settings: Settings,
        storage: PublicationStore,
        sources: dict[str, BaseSource] | None = None,
    ) -> None:
        self.settings = settings
        self.config = settings.enrichment
        self.storage = storage
        self.sources = sources if sources is not None else create_sources(settings)

    def select(self, request: EnrichmentRequest) -> list[Publication]:
        """Records eligible for this run: DOI records first, then DOI-less ones if requested."""
        statuses = (EnrichmentStatus.PENDING,)
        if request.include_partial:
            statuses += (EnrichmentStatus.PARTIAL,)

        selected = self.storage.query(
            PublicationFilter(enrichment_statuses=statuses, has_doi=True),
            order="created_at",
            limit=request.limit,
        )
        remaining = request.limit - len(selected)
        if request.include_no_doi and remaining > 0:
            selected += self.storage.query(
                PublicationFilter(enrichment_statuses=statuses, has_doi=False, pdf_url_or_abstract=True),
                order="created_at",
                limit=remaining,
            )
        return selected

    def run(self, publications: list[Publication], channel: EventChannel) -> EnrichmentStats:
        """Enrich ``publications`` in order, reporting progress on ``channel``.

        Stops before the next record once the channel is cancelled.
        Always ends with a ``complete`` event.
        """
        stats = EnrichmentStats(total=len(publications))
        logger.info("Enriching %d publications", len(publications))

        for index, pub in enumerate(publications):
            if channel.cancelled:
                stats.cancelled = True
                logger.info("Enrichment cancelled after %d of %d", stats.processed, stats.total)
                break

            doi = clean_doi(pub.doi)
            channel.send(
                events.PUB_START,
                {
                    "index": index,
                    "total": len(publications),
                    "title": pub.title,
                    "doi": pub.doi,
                    "no_doi": doi is None,
                    "has_csv_abstract": bool(pub.abstract),
                },
            )

            if doi:
                state = self._enrich_with_doi(index, pub, doi, channel)
            else:
                state = self._enrich_without_doi(index, pub, channel)

            status = state.status
            try:
                self.storage.update(pub.id, state.to_update(pub))
            except StorageError as exc:
                logger.error("Failed to persist enrichment for %s: %s", pub.id, exc)
                channel.send(events.ERROR, {"index": index, "message": str(exc), "fatal": False})
                status = EnrichmentStatus.FAILED

            stats.record(status, state.sources)
            channel.send(
                events.PUB_DONE,
                {
                    "index": index,
                    "title": pub.title,
                    "final_status": status.value,
                    "sources_used": list(state.sources),
                    "has_abstract": state.has_abstract,
                    "word_count": state.word_count,
                },
            )
            logger.debug("Enriched %s: %s via %s", pub.id, status.value, "+".join(state.sources) or "-")

            if index < len(publications) - 1:
                channel.pause(self.config.record_delay)

        channel.send(events.COMPLETE, stats.as_event())
        logger.info(
            "Enrichment finished: %d processed, %d enriched, %d partial, %d failed",
            stats.processed,
            stats.successful,
            stats.partial,
            stats.failed,
        )
        return stats

    def _enrich_with_doi(self, index: int, pub: Publication, doi: str, channel: EventChannel) -> MergeState:
        state = MergeState.seeded(pub, self.config.max_keywords)
        pdf_urls_tried: set[str] = set()

        # Phase 1: metadata APIs
        for name in METADATA_SOURCES:
            state = state.merge(self._try_source(name, doi, index, channel))
            channel.pause(self.config.source_delay)

        # Phase 2: the record's own PDF
        if not state.has_abstract and is_pdf_url(pub.url):
            pdf_urls_tried.add(pub.url)
            state = state.merge(self._try_source(PDF_SOURCE, pub.url, index, channel))

        # Phase 3: Semantic Scholar, always queried for journal and PDF links
        state = state.merge(self._try_source(LATE_SOURCE, doi, index, channel))
        channel.pause(self.config.slow_source_delay)

        # Phase 4: PDF link found by an API
        pdf_url = state.pdf_url
        if not state.has_abstract and pdf_url and pdf_url != pub.url and pdf_url not in pdf_urls_tried:
            pdf_urls_tried.add(pdf_url)
            state = state.merge(self._try_source(PDF_SOURCE, pdf_url, index, channel, fallback=True))

        if not pdf_urls_tried:
            self._skip(PDF_SOURCE, index, channel)
        return state

    def _enrich_without_doi(self, index: int, pub: Publication, channel: EventChannel) -> MergeState:
        for name in METADATA_SOURCES + (LATE_SOURCE,):
            self._skip(name, index, channel)

        state = MergeState.seeded(pub, self.config.max_keywords)
        if is_pdf_url(pub.url):
            state = state.merge(self._try_source(PDF_SOURCE, pub.url, index, channel))
        else:
            self._skip(PDF_SOURCE, index, channel)
        return state

    def _skip(self, name: str, index: int, channel: EventChannel) -> None:
        channel.send(events.SOURCE_DONE, {"index": index, "source": name, "status": "skipped"})

    def _try_source(
        self,
        name: str,
        identifier: str,
        index: int,
        channel: EventChannel,
        fallback: bool = False,
    ) -> EnrichmentFields | None:
        """Call one source, isolating its failure from the rest of the cascade."""
        source = self.sources.get(name)
        if source is None or not source.enabled:
            self._skip(name, index, channel)
            return None

        extra = {"fallback": True} if fallback else {}
        channel.send(events.SOURCE_TRY, {"index": index, "source": name, "status": "loading", **extra})
        try:
            result = source.fetch(identifier)
        except Exception as exc:
            logger.warning("Source %s failed for %s: %s", name, identifier, exc)
            channel.send(
                events.SOURCE_DONE,
                {"index": index, "source": name, "status": "error", "error": str(exc), **extra},
            )
            return None

        if result is None or result.is_empty:
            channel.send(events.SOURCE_DONE, {"index": index, "source": name, "status": "no_data", **extra})
            return None

        channel.send(
            events.SOURCE_DONE,
            {
                "index": index,
                "source": name,
                "status": "success",
                "found": {
                    "abstract": truncate(result.abstract, 120),
                    "journal": result.journal,
                    "keywords": result.keywords[:5],
                },
                **extra,
            },
        )
        return result


__all__ = ["EnrichmentPipeline", "EnrichmentStats", "ALL_SOURCES"]
