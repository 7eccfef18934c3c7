"""Batch press-worthiness scoring run."""

import logging
import re
from dataclasses import dataclass

from storyscout.config.settings import Settings
from storyscout.core.exceptions import LLMError, StorageError
from storyscout.core.models import AnalysisRequest, AnalysisStatus, EnrichmentStatus, Evaluation, Publication
from storyscout.core.protocols import PublicationFilter, PublicationStore
from storyscout.llm.base import BaseLLMProvider
from storyscout.llm.press_evaluator import PressEvaluator, pair_evaluations
from storyscout.utils.text import iter_batches

from . import events
from .budget import BudgetGuard
from .events import EventChannel
from .press_score import calculate_press_score

logger = logging.getLogger(__name__)

_CREDIT_WORDING = re.compile(r"credits|afford|max_tokens|budget|guthaben", re.IGNORECASE)
_AUTH_WORDING = re.compile(r"unauthori[sz]ed|invalid.{0,10}key", re.IGNORECASE)


def is_fatal_error(exc: BaseException) -> bool:
    """Whether an error means every later sub-batch would fail the same way.

    Out-of-credit (402) and rejected-credential (401) responses are fatal;
    everything else is treated as specific to the failing sub-batch.
    """
    message = str(exc)
    status = getattr(exc, "status_code", None)
    if (status == 402 or re.search(r"\b402\b", message)) and _CREDIT_WORDING.search(message):
        return True
    if (status == 401 or re.search(r"\b401\b", message)) and _AUTH_WORDING.search(message):
        return True
    return False


@dataclass
class AnalysisStats:
    """Counters reported in the final ``complete`` event."""

    total: int
    processed: int = 0
    successful: int = 0
    tokens_used: int = 0
    cost: float = 0.0
    cancelled: bool = False
    halted: bool = False

    def as_event(self) -> dict:
        return {
            "processed": self.processed,
            "total": self.total,
            "successful": self.successful,
            "failed": self.processed - self.successful,
            "tokens_used": self.tokens_used,
            "cost": round(self.cost, 6),
            "cancelled": self.cancelled,
        }


class AnalysisPipeline:
    """Score publications in small sub-batches and write results back."""

    def __init__(self, settings: Settings, storage: PublicationStore, llm: BaseLLMProvider) -> None:
        self.settings = settings
        self.config = settings.analysis
        self.storage = storage
        self.llm = llm
        self.evaluator = PressEvaluator(llm, settings.analysis, settings.llm)
        self.guard = BudgetGuard(llm, minimum=settings.analysis.min_budget)

    def select(self, request: AnalysisRequest) -> list[Publication]:
        """Records eligible for scoring, newest first."""
        enrichment_statuses = None
        if request.enriched_only:
            enrichment_statuses = (EnrichmentStatus.ENRICHED,)
            if request.include_partial:
                enrichment_statuses += (EnrichmentStatus.PARTIAL,)

        criteria = PublicationFilter(
            analysis_statuses=None if request.force_reanalyze else (AnalysisStatus.PENDING,),
            enrichment_statuses=enrichment_statuses,
            min_word_count=request.min_word_count or None,
        )
        return self.storage.query(criteria, order="created_at", limit=request.limit)

    def run(
        self,
        publications: list[Publication],
        channel: EventChannel,
        batch_size: int | None = None,
    ) -> AnalysisStats:
        """Score ``publications`` and report progress on ``channel``.

        Runs the budget preflight first. A fatal provider error stops the run
        after marking the failing sub-batch; other errors only fail their own
        sub-batch. Always ends with a ``complete`` event.
        """
        batch_size = batch_size or self.config.batch_size
        stats = AnalysisStats(total=len(publications))

        budget = self.guard.check()
        channel.send(
            events.INIT,
            {
                "total": len(publications),
                "batch_size": batch_size,
                "model": self.evaluator.model,
                "credential_hint": self.llm.credential_hint(),
                "budget": budget.snapshot.model_dump(),
            },
        )
        if budget.exhausted:
            channel.send(events.ERROR, budget.as_event())
            channel.send(events.COMPLETE, {**stats.as_event(), "failed": stats.total})
            return stats

        batches = list(iter_batches(publications, batch_size))
        for position, (start, batch) in enumerate(batches):
            if channel.cancelled:
                stats.cancelled = True
                logger.info("Analysis cancelled after %d of %d", stats.processed, stats.total)
                break

            channel.send(
                events.PROGRESS,
                {
                    "processed": stats.processed,
                    "total": stats.total,
                    "current_title": batch[0].title,
                    "tokens_used": stats.tokens_used,
                    "cost": round(stats.cost, 6),
                },
            )

            self._score_batch(start, list(batch), channel, stats)
            if stats.halted:
                break
            if position < len(batches) - 1:
                channel.pause(self.config.batch_delay)

        channel.send(events.COMPLETE, stats.as_event())
        logger.info(
            "Analysis finished: %d/%d processed, %d scored, %d tokens, $%.4f",
            stats.processed,
            stats.total,
            stats.successful,
            stats.tokens_used,
            stats.cost,
        )
        return stats

    def _score_batch(self, start: int, batch: list[Publication], channel: EventChannel, stats: AnalysisStats) -> None:
        try:
            result = self.evaluator.evaluate(batch)
        except LLMError as exc:
            fatal = is_fatal_error(exc)
            logger.error("Sub-batch at %d failed%s: %s", start, " (fatal)" if fatal else "", exc)
            for pub in batch:
                self._mark_failed(pub)
            stats.processed += len(batch)
            channel.send(events.ERROR, {"message": str(exc), "batch_start": start, "fatal": fatal})
            stats.halted = fatal
            return

        stats.tokens_used += result.tokens_used
        stats.cost += result.cost
        share = result.cost / len(result.evaluations) if result.evaluations else 0.0

        missing = []
        for pub, evaluation in pair_evaluations(batch, result.evaluations):
            if evaluation is None:
                missing.append(pub)
                self._mark_failed(pub)
                continue
            try:
                self.storage.update(pub.id, self._analysis_fields(evaluation, result.model, share))
            except StorageError as exc:
                logger.error("Failed to persist analysis for %s: %s", pub.id, exc)
                channel.send(events.ERROR, {"message": str(exc), "batch_start": start, "fatal": False})
                continue
            stats.successful += 1

        if missing:
            channel.send(
                events.ERROR,
                {
                    "message": f"LLM returned no evaluation for {len(missing)} of {len(batch)} publications",
                    "batch_start": start,
                    "fatal": False,
                },
            )
        stats.processed += len(batch)

    def _analysis_fields(self, evaluation: Evaluation, model: str, cost: float) -> dict:
        return {
            "analysis_status": AnalysisStatus.ANALYZED,
            "press_score": calculate_press_score(evaluation),
            "public_accessibility": evaluation.public_accessibility,
            "societal_relevance": evaluation.societal_relevance,
            "novelty_factor": evaluation.novelty_factor,
            "storytelling_potential": evaluation.storytelling_potential,
            "media_timeliness": evaluation.media_timeliness,
            "pitch_suggestion": evaluation.pitch_suggestion,
            "target_audience": evaluation.target_audience,
            "suggested_angle": evaluation.suggested_angle,
            "reasoning": evaluation.reasoning,
            "llm_model": model,
            "analysis_cost": cost,
        }

    def _mark_failed(self, pub: Publication) -> None:
        try:
            self.storage.update(pub.id, {"analysis_status": AnalysisStatus.FAILED})
        except StorageError as exc:
            logger.error("Failed to mark %s as failed: %s", pub.id, exc)


__all__ = ["AnalysisPipeline", "AnalysisStats", "is_fatal_error"]
