"""Tests for the batch scoring run."""

from datetime import datetime, timedelta

import pytest

from storyscout.core.constants import SCORE_DIMENSIONS
from storyscout.core.exceptions import LLMAuthenticationError, LLMError, LLMInsufficientCreditsError
from storyscout.core.models import AnalysisRequest, AnalysisStatus, BudgetSnapshot, EnrichmentStatus, Evaluation
from storyscout.core.protocols import LLMResponse
from storyscout.pipeline import events
from storyscout.pipeline.analyze import AnalysisPipeline, is_fatal_error
from storyscout.pipeline.events import EventChannel
from storyscout.pipeline.press_score import calculate_press_score

from .fakes import FakeLLM, evaluation, llm_reply


def run(pipeline, publications, batch_size=None, channel=None):
    channel = channel or EventChannel()
    stats = pipeline.run(publications, channel, batch_size=batch_size)
    channel.close()
    return stats, list(channel)


def types(emitted):
    return [e.type for e in emitted]


@pytest.fixture
def stored_pubs(storage, make_publication):
    def factory(count, **overrides):
        pubs = [make_publication(enriched_abstract=f"Abstract {i}.", **overrides) for i in range(count)]
        storage.insert(pubs)
        return pubs

    return factory


def test_press_score_weights():
    ev = Evaluation(
        public_accessibility=0.8,
        societal_relevance=0.6,
        novelty_factor=0.5,
        storytelling_potential=0.9,
        media_timeliness=0.4,
    )

    assert calculate_press_score(ev) == pytest.approx(0.65)
    assert calculate_press_score(Evaluation()) == 0.0
    assert calculate_press_score(Evaluation(**{dim: 1.0 for dim in SCORE_DIMENSIONS})) == 1.0


def test_scores_every_batch_and_writes_results(settings, storage, stored_pubs):
    pubs = stored_pubs(5)
    llm = FakeLLM(
        [
            llm_reply([evaluation(1), evaluation(2)]),
            llm_reply([evaluation(1), evaluation(2)]),
            llm_reply([evaluation(1, pitch="Letzter Pitch.")]),
        ]
    )
    pipeline = AnalysisPipeline(settings, storage, llm)

    stats, emitted = run(pipeline, pubs, batch_size=2)

    assert types(emitted) == ["init", "progress", "progress", "progress", "complete"]
    assert [e.data["processed"] for e in emitted if e.type == events.PROGRESS] == [0, 2, 4]
    assert emitted[0].data["batch_size"] == 2
    assert emitted[0].data["model"] == "anthropic/claude-sonnet-4"
    assert emitted[0].data["credential_hint"] == "sk-or-v1…abcd"
    assert emitted[-1].data == {
        "processed": 5,
        "total": 5,
        "successful": 5,
        "failed": 0,
        "tokens_used": 3000,
        "cost": 0.027,
        "cancelled": False,
    }
    assert llm.budget_checks == 1

    first = storage.get(pubs[0].id)
    assert first.analysis_status is AnalysisStatus.ANALYZED
    assert first.press_score == pytest.approx(0.65)
    assert first.llm_model == "anthropic/claude-sonnet-4"
    assert first.analysis_cost == pytest.approx(0.0045)
    assert first.target_audience == "APA Science"
    last = storage.get(pubs[4].id)
    assert last.pitch_suggestion == "Letzter Pitch."
    assert last.analysis_cost == pytest.approx(0.009)


def test_batch_size_defaults_to_configuration(settings, storage, stored_pubs):
    pubs = stored_pubs(3)
    llm = FakeLLM([llm_reply([evaluation(1), evaluation(2), evaluation(3)])])

    run(AnalysisPipeline(settings, storage, llm), pubs)

    assert len(llm.calls) == 1
    assert "--- Publication 3 ---" in llm.calls[0]["prompt"]


class TestBudgetPreflight:
    def test_exhausted_budget_aborts_before_any_call(self, settings, storage, stored_pubs):
        pubs = stored_pubs(20)
        llm = FakeLLM(budget=BudgetSnapshot(limit_remaining=0.0, usage=5.0, limit=5.0, account_balance=12.5))

        stats, emitted = run(AnalysisPipeline(settings, storage, llm), pubs, batch_size=3)

        assert llm.calls == []
        assert types(emitted) == ["init", "error", "complete"]
        error = emitted[1].data
        assert error["fatal"] is True
        assert error["effective_budget"] == 0.0
        assert error["shortfall"] == pytest.approx(0.01)
        assert error["limit_remaining"] == 0.0
        assert error["account_balance"] == 12.5
        assert "Budget exhausted" in error["message"]
        assert emitted[-1].data["failed"] == 20
        assert emitted[-1].data["processed"] == 0
        assert all(storage.get(p.id).analysis_status is AnalysisStatus.PENDING for p in pubs)

    def test_account_balance_is_the_binding_limit(self, settings, storage, stored_pubs):
        pubs = stored_pubs(1)
        llm = FakeLLM(budget=BudgetSnapshot(limit_remaining=50.0, account_balance=0.004))

        _, emitted = run(AnalysisPipeline(settings, storage, llm), pubs)

        assert types(emitted) == ["init", "error", "complete"]
        assert emitted[1].data["effective_budget"] == 0.004

    def test_unknown_budget_does_not_block(self, settings, storage, stored_pubs):
        pubs = stored_pubs(1)
        llm = FakeLLM([llm_reply([evaluation(1)])], budget=BudgetSnapshot())

        _, emitted = run(AnalysisPipeline(settings, storage, llm), pubs)

        assert len(llm.calls) == 1
        assert emitted[0].data["budget"]["effective_budget"] is None
        assert emitted[-1].data["successful"] == 1


class TestErrors:
    def test_fatal_error_halts_the_run(self, settings, storage, stored_pubs):
        pubs = stored_pubs(3)
        llm = FakeLLM(
            [
                LLMInsufficientCreditsError(
                    "OpenRouter API error 402: credits exhausted, not enough credits for the prompt.",
                    prompt_unaffordable=True,
                )
            ]
        )

        stats, emitted = run(AnalysisPipeline(settings, storage, llm), pubs, batch_size=1)

        assert len(llm.calls) == 1
        error = next(e for e in emitted if e.type == events.ERROR)
        assert error.data["fatal"] is True
        assert error.data["batch_start"] == 0
        assert emitted[-1].type == events.COMPLETE
        assert emitted[-1].data["processed"] == 1
        assert emitted[-1].data["failed"] == 1
        assert storage.get(pubs[0].id).analysis_status is AnalysisStatus.FAILED
        assert storage.get(pubs[1].id).analysis_status is AnalysisStatus.PENDING

    def test_non_fatal_error_fails_only_its_batch(self, settings, storage, stored_pubs):
        pubs = stored_pubs(2)
        llm = FakeLLM([LLMError("OpenRouter API error 500: upstream timeout", status_code=500), llm_reply([evaluation(1)])])

        stats, emitted = run(AnalysisPipeline(settings, storage, llm), pubs, batch_size=1)

        assert len(llm.calls) == 2
        error = next(e for e in emitted if e.type == events.ERROR)
        assert error.data["fatal"] is False
        assert storage.get(pubs[0].id).analysis_status is AnalysisStatus.FAILED
        assert storage.get(pubs[1].id).analysis_status is AnalysisStatus.ANALYZED
        assert emitted[-1].data["successful"] == 1
        assert emitted[-1].data["failed"] == 1

    def test_unparsable_reply_fails_the_batch(self, settings, storage, stored_pubs):
        pubs = stored_pubs(2)
        llm = FakeLLM([LLMResponse(content="Sorry, no JSON today.", model="x", tokens_used=10)])

        _, emitted = run(AnalysisPipeline(settings, storage, llm), pubs, batch_size=2)

        error = next(e for e in emitted if e.type == events.ERROR)
        assert "Failed to parse" in error.data["message"]
        assert error.data["fatal"] is False
        assert all(storage.get(p.id).analysis_status is AnalysisStatus.FAILED for p in pubs)

    def test_missing_evaluation_fails_that_record(self, settings, storage, stored_pubs):
        pubs = stored_pubs(2)
        llm = FakeLLM([llm_reply([evaluation(1)], tokens=1000)])

        stats, emitted = run(AnalysisPipeline(settings, storage, llm), pubs, batch_size=2)

        error = next(e for e in emitted if e.type == events.ERROR)
        assert "1 of 2" in error.data["message"]
        assert storage.get(pubs[0].id).analysis_status is AnalysisStatus.ANALYZED
        assert storage.get(pubs[0].id).analysis_cost == pytest.approx(0.009)
        assert storage.get(pubs[1].id).analysis_status is AnalysisStatus.FAILED
        assert stats.successful == 1
        assert stats.processed == 2


def test_cancellation_stops_before_next_batch(settings, storage, stored_pubs):
    pubs = stored_pubs(3)
    channel = EventChannel()
    llm = FakeLLM([llm_reply([evaluation(1)])] * 3, on_call=lambda _n: channel.cancel())

    stats, emitted = run(AnalysisPipeline(settings, storage, llm), pubs, batch_size=1, channel=channel)

    assert len(llm.calls) == 1
    assert emitted[-1].data["cancelled"] is True
    assert emitted[-1].data["processed"] == 1
    assert storage.get(pubs[2].id).analysis_status is AnalysisStatus.PENDING


@pytest.mark.parametrize(
    "exc, fatal",
    [
        (LLMInsufficientCreditsError("OpenRouter API error 402: You can only afford 12 tokens"), True),
        (LLMError("OpenRouter API error 402: Guthaben aufgebraucht"), True),
        (LLMError("budget exceeded", status_code=402), True),
        (LLMAuthenticationError("OpenRouter API error 401: Unauthorized", status_code=401), True),
        (LLMError("OpenRouter API error 401: Invalid API key"), True),
        (LLMError("OpenRouter API error 402: Payment Required"), False),
        (LLMError("OpenRouter API error 500: budget service down", status_code=500), False),
        (LLMError("OpenRouter API error 429: rate limited", status_code=429), False),
        (ValueError("credits"), False),
    ],
)
def test_is_fatal_error(exc, fatal):
    assert is_fatal_error(exc) is fatal


class TestSelection:
    @pytest.fixture
    def records(self, storage, make_publication):
        base = datetime(2025, 1, 1)
        pubs = {
            "pending_enriched": make_publication(
                created_at=base + timedelta(days=5), enrichment_status=EnrichmentStatus.ENRICHED, word_count=400
            ),
            "pending_partial": make_publication(
                created_at=base + timedelta(days=4), enrichment_status=EnrichmentStatus.PARTIAL, word_count=50
            ),
            "pending_raw": make_publication(created_at=base + timedelta(days=3)),
            "analyzed": make_publication(
                created_at=base + timedelta(days=2),
                enrichment_status=EnrichmentStatus.ENRICHED,
                analysis_status=AnalysisStatus.ANALYZED,
                word_count=900,
            ),
        }
        storage.insert(pubs.values())
        return {key: pub.id for key, pub in pubs.items()}

    def select(self, settings, storage, **kwargs):
        pipeline = AnalysisPipeline(settings, storage, FakeLLM())
        return [pub.id for pub in pipeline.select(AnalysisRequest(**kwargs))]

    def test_pending_only_by_default(self, settings, storage, records):
        assert self.select(settings, storage) == [
            records["pending_enriched"],
            records["pending_partial"],
            records["pending_raw"],
        ]

    def test_force_includes_analyzed(self, settings, storage, records):
        assert records["analyzed"] in self.select(settings, storage, force_reanalyze=True)

    def test_enriched_only(self, settings, storage, records):
        assert self.select(settings, storage, enriched_only=True) == [records["pending_enriched"]]

    def test_enriched_only_with_partial(self, settings, storage, records):
        assert self.select(settings, storage, enriched_only=True, include_partial=True) == [
            records["pending_enriched"],
            records["pending_partial"],
        ]

    def test_min_word_count(self, settings, storage, records):
        assert self.select(settings, storage, min_word_count=100) == [records["pending_enriched"]]

    def test_limit(self, settings, storage, records):
        assert self.select(settings, storage, limit=1) == [records["pending_enriched"]]
