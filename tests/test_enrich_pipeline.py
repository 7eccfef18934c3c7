"""Tests for the enrichment cascade."""

from datetime import datetime, timedelta

import pytest

from storyscout.core.exceptions import SourceFetchError
from storyscout.core.models import EnrichmentFields, EnrichmentRequest, EnrichmentStatus
from storyscout.pipeline import events
from storyscout.pipeline.enrich import EnrichmentPipeline
from storyscout.pipeline.events import EventChannel

from .fakes import FakeSource, fake_sources

DOI = "10.1000/cascade"
OA_PDF = "https://oa.example.org/paper.pdf"


def run(pipeline, publications, channel=None):
    channel = channel or EventChannel()
    stats = pipeline.run(publications, channel)
    channel.close()
    return stats, list(channel)


def source_events(event_list):
    return [
        (e.data["source"], e.data["status"])
        for e in event_list
        if e.type in (events.SOURCE_TRY, events.SOURCE_DONE)
    ]


@pytest.fixture
def pipeline_for(settings, storage):
    def factory(**overrides):
        sources = fake_sources(**overrides)
        return EnrichmentPipeline(settings, storage, sources=sources), sources

    return factory


def test_full_cascade_falls_back_to_discovered_pdf(pipeline_for, storage, make_publication):
    pub = make_publication(doi=f"https://doi.org/{DOI}", url="https://example.org/landing", published_at=None)
    storage.insert([pub])
    pipeline, sources = pipeline_for(
        crossref=FakeSource(
            "crossref",
            EnrichmentFields(source="crossref", journal="Alpine Research", keywords=["glaciers"], published_at="2023-02-01"),
        ),
        unpaywall=FakeSource("unpaywall", EnrichmentFields(source="unpaywall", pdf_url=OA_PDF)),
        pdf=FakeSource(
            "pdf",
            EnrichmentFields(source="pdf", abstract="We measured ice loss.", full_text_snippet="Full text", word_count=900),
        ),
    )

    stats, emitted = run(pipeline, [pub])

    assert sources["crossref"].calls == [DOI]
    assert sources["openalex"].calls == [DOI]
    assert sources["unpaywall"].calls == [DOI]
    assert sources["semantic_scholar"].calls == [DOI]
    assert sources["pdf"].calls == [OA_PDF]
    assert source_events(emitted) == [
        ("crossref", "loading"),
        ("crossref", "success"),
        ("openalex", "loading"),
        ("openalex", "no_data"),
        ("unpaywall", "loading"),
        ("unpaywall", "success"),
        ("semantic_scholar", "loading"),
        ("semantic_scholar", "no_data"),
        ("pdf", "loading"),
        ("pdf", "success"),
    ]
    pdf_events = [e for e in emitted if e.type != events.COMPLETE and e.data.get("source") == "pdf"]
    assert all(e.data["fallback"] is True for e in pdf_events)

    stored = storage.get(pub.id)
    assert stored.enrichment_status is EnrichmentStatus.ENRICHED
    assert stored.enriched_abstract == "We measured ice loss."
    assert stored.enriched_source == "crossref+unpaywall+pdf"
    assert stored.enriched_journal == "Alpine Research"
    assert stored.enriched_keywords == ["glaciers"]
    assert stored.word_count == 900
    assert stored.published_at == "2023-02-01"
    assert stats.successful == 1


def test_phase_one_abstract_skips_only_pdf_phases(pipeline_for, storage, make_publication):
    pub = make_publication(doi=DOI, url=OA_PDF)
    storage.insert([pub])
    pipeline, sources = pipeline_for(
        crossref=FakeSource("crossref", EnrichmentFields(source="crossref", abstract="Abstract from CrossRef.")),
        semantic_scholar=FakeSource(
            "semantic_scholar",
            EnrichmentFields(source="semantic_scholar", journal="Nature", pdf_url="https://s2.example.org/x.pdf"),
        ),
    )

    _, emitted = run(pipeline, [pub])

    assert sources["crossref"].calls and sources["unpaywall"].calls
    assert sources["semantic_scholar"].calls == [DOI]
    assert sources["pdf"].calls == []
    assert ("semantic_scholar", "success") in source_events(emitted)
    assert ("pdf", "skipped") in source_events(emitted)
    stored = storage.get(pub.id)
    assert stored.enriched_abstract == "Abstract from CrossRef."
    assert stored.enriched_journal == "Nature"
    assert stored.enriched_source == "crossref+semantic_scholar"


def test_own_pdf_url_is_tried_before_semantic_scholar(pipeline_for, storage, make_publication):
    own_pdf = "https://repository.example.org/paper.PDF"
    pub = make_publication(doi=DOI, url=own_pdf)
    storage.insert([pub])
    pipeline, sources = pipeline_for(
        pdf=FakeSource("pdf", EnrichmentFields(source="pdf", abstract="Abstract from the PDF.", word_count=300)),
    )

    _, emitted = run(pipeline, [pub])

    assert sources["pdf"].calls == [own_pdf]
    assert sources["semantic_scholar"].calls == [DOI]
    tried = [e.data["source"] for e in emitted if e.type == events.SOURCE_TRY]
    assert tried.index("pdf") < tried.index("semantic_scholar")
    pdf_try = next(e for e in emitted if e.type == events.SOURCE_TRY and e.data["source"] == "pdf")
    assert "fallback" not in pdf_try.data
    assert storage.get(pub.id).enriched_source == "pdf"


def test_discovered_pdf_equal_to_own_url_is_not_fetched_twice(pipeline_for, storage, make_publication):
    pub = make_publication(url=OA_PDF)
    storage.insert([pub])
    pipeline, sources = pipeline_for(
        unpaywall=FakeSource("unpaywall", EnrichmentFields(source="unpaywall", pdf_url=OA_PDF)),
    )

    run(pipeline, [pub])

    assert sources["pdf"].calls == [OA_PDF]
    assert sources["semantic_scholar"].calls == [pub.doi.replace("http://dx.doi.org/", "")]
    assert storage.get(pub.id).enrichment_status is EnrichmentStatus.PARTIAL


def test_semantic_scholar_pdf_link_feeds_phase_four(pipeline_for, storage, make_publication):
    pub = make_publication()
    storage.insert([pub])
    s2_pdf = "https://pdfs.example.org/s2.pdf"
    pipeline, sources = pipeline_for(
        semantic_scholar=FakeSource(
            "semantic_scholar", EnrichmentFields(source="semantic_scholar", pdf_url=s2_pdf, full_text_snippet="TLDR")
        ),
        pdf=FakeSource("pdf", EnrichmentFields(source="pdf", abstract="Found in the PDF.")),
    )

    run(pipeline, [pub])

    assert sources["pdf"].calls == [s2_pdf]
    stored = storage.get(pub.id)
    assert stored.enriched_source == "semantic_scholar+pdf"
    assert stored.enrichment_status is EnrichmentStatus.ENRICHED


def test_source_failure_does_not_stop_cascade(pipeline_for, storage, make_publication):
    pub = make_publication()
    storage.insert([pub])
    pipeline, sources = pipeline_for(
        crossref=FakeSource("crossref", error=SourceFetchError("crossref", "HTTP 503")),
        openalex=FakeSource("openalex", EnrichmentFields(source="openalex", abstract="Still found.")),
    )

    stats, emitted = run(pipeline, [pub])

    failure = next(e for e in emitted if e.type == events.SOURCE_DONE and e.data["status"] == "error")
    assert failure.data["source"] == "crossref"
    assert "HTTP 503" in failure.data["error"]
    assert sources["openalex"].calls
    assert storage.get(pub.id).enrichment_status is EnrichmentStatus.ENRICHED
    assert stats.failed == 0


def test_disabled_source_is_skipped(pipeline_for, storage, make_publication):
    pub = make_publication()
    storage.insert([pub])
    pipeline, sources = pipeline_for(crossref=FakeSource("crossref", enabled=False))

    _, emitted = run(pipeline, [pub])

    assert sources["crossref"].calls == []
    assert source_events(emitted)[0] == ("crossref", "skipped")


def test_csv_abstract_counts_as_source(pipeline_for, storage, make_publication):
    pub = make_publication(abstract="Abstract supplied in the catalogue export.")
    storage.insert([pub])
    pipeline, sources = pipeline_for(
        crossref=FakeSource("crossref", EnrichmentFields(source="crossref", journal="Physical Review")),
    )

    _, emitted = run(pipeline, [pub])

    start = next(e for e in emitted if e.type == events.PUB_START)
    assert start.data["has_csv_abstract"] is True
    assert len(sources["semantic_scholar"].calls) == 1
    assert sources["pdf"].calls == []
    stored = storage.get(pub.id)
    assert stored.enriched_abstract == "Abstract supplied in the catalogue export."
    assert stored.enriched_source == "csv+crossref"
    assert stored.enrichment_status is EnrichmentStatus.ENRICHED


def test_nothing_found_marks_record_failed(pipeline_for, storage, make_publication):
    pub = make_publication()
    storage.insert([pub])
    pipeline, _ = pipeline_for()

    stats, emitted = run(pipeline, [pub])

    stored = storage.get(pub.id)
    assert stored.enrichment_status is EnrichmentStatus.FAILED
    assert stored.enriched_source is None
    done = next(e for e in emitted if e.type == events.PUB_DONE)
    assert done.data["final_status"] == "failed"
    assert done.data["sources_used"] == []
    assert stats.failed == 1


class TestWithoutDoi:
    def test_pdf_url_only(self, pipeline_for, storage, make_publication):
        pub = make_publication(doi=None, url="https://repo.example.org/preprint.pdf")
        storage.insert([pub])
        pipeline, sources = pipeline_for(
            pdf=FakeSource("pdf", EnrichmentFields(source="pdf", abstract="Preprint abstract.")),
        )

        _, emitted = run(pipeline, [pub])

        for name in ("crossref", "openalex", "unpaywall", "semantic_scholar"):
            assert sources[name].calls == []
            assert (name, "skipped") in source_events(emitted)
        assert sources["pdf"].calls == ["https://repo.example.org/preprint.pdf"]
        assert storage.get(pub.id).enriched_source == "pdf"

    def test_csv_abstract_without_pdf(self, pipeline_for, storage, make_publication):
        pub = make_publication(doi="", url="https://example.org/landing", abstract="Only the CSV abstract.")
        storage.insert([pub])
        pipeline, sources = pipeline_for()

        _, emitted = run(pipeline, [pub])

        assert sources["pdf"].calls == []
        assert ("pdf", "skipped") in source_events(emitted)
        stored = storage.get(pub.id)
        assert stored.enrichment_status is EnrichmentStatus.ENRICHED
        assert stored.enriched_source == "csv"

    def test_malformed_doi_is_treated_as_missing(self, pipeline_for, storage, make_publication):
        pub = make_publication(doi="ISBN 978-3-7001-1234-5")
        storage.insert([pub])
        pipeline, sources = pipeline_for()

        _, emitted = run(pipeline, [pub])

        start = next(e for e in emitted if e.type == events.PUB_START)
        assert start.data["no_doi"] is True
        assert sources["crossref"].calls == []


def test_complete_event_counts(pipeline_for, storage, make_publication):
    enriched = make_publication(doi="10.1000/a")
    partial = make_publication(doi="10.1000/b")
    failed = make_publication(doi="10.1000/c")
    storage.insert([enriched, partial, failed])
    pipeline, _ = pipeline_for(
        crossref=FakeSource(
            "crossref",
            {
                "10.1000/a": EnrichmentFields(source="crossref", abstract="Abstract A."),
                "10.1000/b": EnrichmentFields(source="crossref", journal="Journal B"),
            },
        ),
    )

    stats, emitted = run(pipeline, [enriched, partial, failed])

    assert emitted[-1].type == events.COMPLETE
    assert emitted[-1].data == {
        "processed": 3,
        "total": 3,
        "successful": 1,
        "partial": 1,
        "failed": 1,
        "with_abstract": 1,
        "sources": {"crossref": 2},
        "cancelled": False,
    }
    assert [e.data["index"] for e in emitted if e.type == events.PUB_DONE] == [0, 1, 2]


def test_storage_failure_is_reported_and_counted(pipeline_for, make_publication):
    pub = make_publication()  # never inserted, so the update fails
    pipeline, _ = pipeline_for(
        crossref=FakeSource("crossref", EnrichmentFields(source="crossref", abstract="Abstract.")),
    )

    stats, emitted = run(pipeline, [pub])

    error = next(e for e in emitted if e.type == events.ERROR)
    assert error.data["fatal"] is False
    assert stats.failed == 1
    assert emitted[-1].type == events.COMPLETE


def test_cancellation_stops_before_next_record(pipeline_for, storage, make_publication):
    first = make_publication(doi="10.1000/first")
    second = make_publication(doi="10.1000/second")
    storage.insert([first, second])
    channel = EventChannel()
    pipeline, sources = pipeline_for(
        crossref=FakeSource("crossref", on_fetch=lambda _doi: channel.cancel()),
    )

    stats, emitted = run(pipeline, [first, second], channel)

    assert sources["crossref"].calls == ["10.1000/first"]
    assert sources["openalex"].calls == ["10.1000/first"]
    assert stats.processed == 1
    assert emitted[-1].type == events.COMPLETE
    assert emitted[-1].data["cancelled"] is True
    assert storage.get(second.id).enrichment_status is EnrichmentStatus.PENDING


class TestSelection:
    @pytest.fixture
    def records(self, storage, make_publication):
        base = datetime(2025, 1, 1)
        pubs = {
            "pending": make_publication(created_at=base + timedelta(days=4)),
            "partial": make_publication(created_at=base + timedelta(days=3), enrichment_status=EnrichmentStatus.PARTIAL),
            "enriched": make_publication(
                created_at=base + timedelta(days=2), enrichment_status=EnrichmentStatus.ENRICHED
            ),
            "no_doi_pdf": make_publication(doi=None, url="https://x.example.org/a.pdf", created_at=base + timedelta(days=1)),
            "no_doi_bare": make_publication(doi=None, url=None, created_at=base),
        }
        storage.insert(pubs.values())
        return {key: pub.id for key, pub in pubs.items()}

    def select(self, settings, storage, **kwargs):
        pipeline = EnrichmentPipeline(settings, storage, sources=fake_sources())
        return [pub.id for pub in pipeline.select(EnrichmentRequest(**kwargs))]

    def test_default_takes_pending_doi_records(self, settings, storage, records):
        assert self.select(settings, storage) == [records["pending"]]

    def test_include_partial(self, settings, storage, records):
        assert self.select(settings, storage, include_partial=True) == [records["pending"], records["partial"]]

    def test_include_no_doi_appends_records_with_pdf_or_abstract(self, settings, storage, records):
        assert self.select(settings, storage, include_no_doi=True) == [records["pending"], records["no_doi_pdf"]]

    def test_limit_is_filled_by_doi_records_first(self, settings, storage, records):
        assert self.select(settings, storage, include_partial=True, include_no_doi=True, limit=2) == [
            records["pending"],
            records["partial"],
        ]

    def test_processed_records_are_not_selected_again(self, settings, storage, records):
        pipeline = EnrichmentPipeline(settings, storage, sources=fake_sources())
        selected = pipeline.select(EnrichmentRequest())
        run(pipeline, selected)

        assert pipeline.select(EnrichmentRequest()) == []
