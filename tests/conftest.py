"""Shared fixtures."""

import pytest

from storyscout.config.settings import Settings
from storyscout.core.models import Publication
from storyscout.infrastructure.storage import PublicationStorage


@pytest.fixture
def settings() -> Settings:
    """Default settings with pacing delays disabled."""
    s = Settings()
    s.enrichment.source_delay = 0
    s.enrichment.slow_source_delay = 0
    s.enrichment.record_delay = 0
    s.analysis.batch_delay = 0
    s.llm.api_key = "sk-or-v1-0123456789abcdef"
    s.llm.model = "anthropic/claude-sonnet-4"
    return s


@pytest.fixture
def storage(tmp_path):
    store = PublicationStorage(tmp_path / "publications.sqlite")
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def make_publication():
    """Factory for publication records with sensible defaults."""
    counter = {"n": 0}

    def factory(**overrides) -> Publication:
        counter["n"] += 1
        data = {
            "id": f"pub-{counter['n']}",
            "title": f"Publication {counter['n']}",
            "authors": "Berger, Anna; Li, Tom; Novak, Eva; Huber, Max",
            "doi": f"http://dx.doi.org/10.1000/test.{counter['n']}",
            "institute": "Institute for Quantum Optics",
            "published_at": "2024-03-01",
        }
        data.update(overrides)
        return Publication(**data)

    return factory
