"""Core domain models for StoryScout."""

import math
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, computed_field, field_validator

from .constants import MAX_ANALYSIS_LIMIT, MAX_ENRICHMENT_LIMIT, MAX_SUB_BATCH_SIZE, SCORE_DIMENSIONS


class EnrichmentStatus(str, Enum):
    """Lifecycle of a record through the enrichment cascade."""

    PENDING = "pending"
    PARTIAL = "partial"
    ENRICHED = "enriched"
    FAILED = "failed"


class AnalysisStatus(str, Enum):
    """Lifecycle of a record through press scoring."""

    PENDING = "pending"
    ANALYZED = "analyzed"
    FAILED = "failed"


class Publication(BaseModel):
    """A publication record as held by the record store."""

    id: str
    title: str
    authors: str | None = None
    abstract: str | None = None  # Seeded from the CSV import
    doi: str | None = None
    url: str | None = None
    published_at: str | None = None  # ISO date
    publication_type: str | None = None
    institute: str | None = None
    open_access: bool = False
    citation: str | None = None

    # Enrichment
    enrichment_status: EnrichmentStatus = EnrichmentStatus.PENDING
    enriched_abstract: str | None = None
    enriched_keywords: list[str] | None = None
    enriched_journal: str | None = None
    enriched_source: str | None = None  # e.g. "crossref+openalex+pdf"
    full_text_snippet: str | None = None
    word_count: int = 0

    # Analysis
    analysis_status: AnalysisStatus = AnalysisStatus.PENDING
    press_score: float | None = None
    public_accessibility: float | None = None
    societal_relevance: float | None = None
    novelty_factor: float | None = None
    storytelling_potential: float | None = None
    media_timeliness: float | None = None
    pitch_suggestion: str | None = None
    target_audience: str | None = None
    suggested_angle: str | None = None
    reasoning: str | None = None
    llm_model: str | None = None
    analysis_cost: float | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def best_content(self) -> str:
        """Text the press evaluator reads: enriched abstract, then CSV abstract, then citation."""
        return self.enriched_abstract or self.abstract or self.citation or ""


class EnrichmentFields(BaseModel):
    """Partial metadata contributed by a single source."""

    source: str
    abstract: str | None = None
    keywords: list[str] = Field(default_factory=list)
    journal: str | None = None
    pdf_url: str | None = None
    full_text_snippet: str | None = None
    word_count: int = 0
    published_at: str | None = None

    @property
    def is_empty(self) -> bool:
        return not (self.abstract or self.keywords or self.journal or self.pdf_url or self.full_text_snippet)


class Evaluation(BaseModel):
    """One press-worthiness verdict returned by the LLM."""

    publication_index: int | None = None
    public_accessibility: float = 0.0
    societal_relevance: float = 0.0
    novelty_factor: float = 0.0
    storytelling_potential: float = 0.0
    media_timeliness: float = 0.0
    pitch_suggestion: str = ""
    target_audience: str = ""
    suggested_angle: str = ""
    reasoning: str = ""

    @field_validator(*SCORE_DIMENSIONS, mode="before")
    @classmethod
    def clamp_score(cls, value: object) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.0
        if math.isnan(score):
            return 0.0
        return min(1.0, max(0.0, score))

    @field_validator("pitch_suggestion", "target_audience", "suggested_angle", "reasoning", mode="before")
    @classmethod
    def coerce_text(cls, value: object) -> str:
        if value is None:
            return ""
        return value if isinstance(value, str) else str(value)

    @field_validator("publication_index", mode="before")
    @classmethod
    def coerce_index(cls, value: object) -> int | None:
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


class BudgetSnapshot(BaseModel):
    """Spending headroom reported by the LLM provider (USD)."""

    limit_remaining: float | None = None
    usage: float | None = None
    limit: float | None = None
    account_balance: float | None = None

    @computed_field
    @property
    def effective_budget(self) -> float | None:
        """Smaller of key headroom and account balance; None when neither is known."""
        known = [value for value in (self.limit_remaining, self.account_balance) if value is not None]
        return min(known) if known else None


def _pick(overrides: dict[str, object], defaults: dict[str, object]) -> dict[str, object]:
    """Merge CLI/API overrides onto configured defaults, ignoring unset values."""
    merged = dict(defaults)
    merged.update({key: value for key, value in overrides.items() if value is not None})
    return merged


class EnrichmentRequest(BaseModel):
    """Parameters of a single enrichment job run."""

    limit: int = 20
    include_partial: bool = False
    include_no_doi: bool = False

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, value: int) -> int:
        return min(max(value, 1), MAX_ENRICHMENT_LIMIT)

    @classmethod
    def from_config(cls, config, **overrides) -> "EnrichmentRequest":
        defaults = {
            "limit": config.limit,
            "include_partial": config.include_partial,
            "include_no_doi": config.include_no_doi,
        }
        return cls(**_pick(overrides, defaults))


class AnalysisRequest(BaseModel):
    """Parameters of a single scoring job run."""

    limit: int = 20
    sub_batch_size: int = 3
    min_word_count: int = 0
    force_reanalyze: bool = False
    enriched_only: bool = False
    include_partial: bool = False

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, value: int) -> int:
        return min(max(value, 1), MAX_ANALYSIS_LIMIT)

    @field_validator("sub_batch_size")
    @classmethod
    def clamp_batch_size(cls, value: int) -> int:
        return min(max(value, 1), MAX_SUB_BATCH_SIZE)

    @field_validator("min_word_count")
    @classmethod
    def clamp_min_words(cls, value: int) -> int:
        return max(value, 0)

    @classmethod
    def from_config(cls, config, **overrides) -> "AnalysisRequest":
        defaults = {
            "limit": config.limit,
            "sub_batch_size": config.batch_size,
            "min_word_count": config.min_word_count,
            "force_reanalyze": config.force_reanalyze,
            "enriched_only": config.enriched_only,
            "include_partial": config.include_partial,
        }
        return cls(**_pick(overrides, defaults))


__all__ = [
    "EnrichmentStatus",
    "AnalysisStatus",
    "Publication",
    "EnrichmentFields",
    "Evaluation",
    "BudgetSnapshot",
    "EnrichmentRequest",
    "AnalysisRequest",
]
