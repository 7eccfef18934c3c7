"""Job triggers that run a pipeline on a worker thread and stream its events."""

import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from storyscout.config.settings import Settings
from storyscout.core.models import AnalysisRequest, EnrichmentRequest
from storyscout.core.protocols import PublicationStore
from storyscout.llm.base import BaseLLMProvider
from storyscout.llm.factory import create_llm_client
from storyscout.sources.base import BaseSource

from . import events
from .analyze import AnalysisPipeline
from .enrich import EnrichmentPipeline
from .events import EventChannel, ProgressEvent

logger = logging.getLogger(__name__)

NOTHING_TO_ENRICH = "No publications to enrich"
NOTHING_TO_ANALYZE = "No publications to analyze"


@dataclass
class JobHandle:
    """A started job, or a plain message when there was nothing to do."""

    channel: EventChannel | None = None
    message: str | None = None
    thread: threading.Thread | None = None

    @property
    def started(self) -> bool:
        return self.channel is not None

    def events(self) -> Iterator[ProgressEvent]:
        """Events in arrival order until the job closes its channel."""
        if self.channel is None:
            return iter(())
        return iter(self.channel)

    def cancel(self) -> None:
        if self.channel is not None:
            self.channel.cancel()

    def join(self, timeout: float | None = None) -> None:
        if self.thread is not None:
            self.thread.join(timeout)


def _run(name: str, work: Callable[[EventChannel], object], channel: EventChannel) -> None:
    """Worker body: nothing escapes, and the channel is always closed exactly once."""
    try:
        work(channel)
    except Exception as exc:
        logger.exception("%s job crashed", name)
        channel.send(events.ERROR, {"message": f"Unexpected error: {exc}", "fatal": True})
    finally:
        channel.close()


def _spawn(name: str, work: Callable[[EventChannel], object]) -> JobHandle:
    channel = EventChannel()
    thread = threading.Thread(target=_run, args=(name, work, channel), name=f"storyscout-{name}", daemon=True)
    thread.start()
    return JobHandle(channel=channel, thread=thread)


def start_enrichment_job(
    settings: Settings,
    storage: PublicationStore,
    request: EnrichmentRequest | None = None,
    sources: dict[str, BaseSource] | None = None,
) -> JobHandle:
    """Select eligible records and enrich them in the background."""
    request = request or EnrichmentRequest.from_config(settings.enrichment)
    pipeline = EnrichmentPipeline(settings, storage, sources)
    publications = pipeline.select(request)
    if not publications:
        logger.info(NOTHING_TO_ENRICH)
        return JobHandle(message=NOTHING_TO_ENRICH)
    return _spawn("enrichment", lambda channel: pipeline.run(publications, channel))


def start_analysis_job(
    settings: Settings,
    storage: PublicationStore,
    request: AnalysisRequest | None = None,
    llm: BaseLLMProvider | None = None,
) -> JobHandle:
    """Select eligible records and score them in the background.

    Raises:
        ConfigurationError: No usable LLM credential is configured.
    """
    request = request or AnalysisRequest.from_config(settings.analysis)
    llm = llm or create_llm_client(settings.llm)
    pipeline = AnalysisPipeline(settings, storage, llm)
    publications = pipeline.select(request)
    if not publications:
        logger.info(NOTHING_TO_ANALYZE)
        return JobHandle(message=NOTHING_TO_ANALYZE)
    return _spawn(
        "analysis",
        lambda channel: pipeline.run(publications, channel, batch_size=request.sub_batch_size),
    )


__all__ = [
    "JobHandle",
    "start_enrichment_job",
    "start_analysis_job",
    "NOTHING_TO_ENRICH",
    "NOTHING_TO_ANALYZE",
]
