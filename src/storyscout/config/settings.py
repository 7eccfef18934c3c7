"""Configuration settings models."""

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from storyscout.core.constants import (
    COST_PER_MILLION_TOKENS,
    DEFAULT_COST_PER_MILLION_TOKENS,
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_LLM_TIMEOUT,
    DEFAULT_PDF_TIMEOUT,
    MAX_KEYWORDS,
    MAX_PDF_BYTES,
    MAX_PDF_PAGES,
    MAX_SUB_BATCH_SIZE,
    MIN_PDF_TEXT_CHARS,
    PDF_SNIPPET_CHARS,
)
from storyscout.core.exceptions import ConfigurationError

from .loader import _load_yaml


# Source Configuration
class CrossRefConfig(BaseModel):
    """CrossRef source configuration."""

    enabled: bool = True


class OpenAlexConfig(BaseModel):
    """OpenAlex source configuration."""

    enabled: bool = True


class UnpaywallConfig(BaseModel):
    """Unpaywall source configuration."""

    enabled: bool = True


class SemanticScholarConfig(BaseModel):
    """Semantic Scholar source configuration."""

    enabled: bool = True
    api_key: str = ""  # Optional, raises the public rate limit


class PdfConfig(BaseModel):
    """Direct PDF download and text extraction."""

    enabled: bool = True
    timeout: float = DEFAULT_PDF_TIMEOUT
    max_bytes: int = MAX_PDF_BYTES
    max_pages: int = MAX_PDF_PAGES
    min_text_chars: int = MIN_PDF_TEXT_CHARS
    snippet_chars: int = PDF_SNIPPET_CHARS


class SourcesConfig(BaseModel):
    """Metadata sources configuration."""

    mailto: str = "you@example.com"  # Polite-pool contact for CrossRef/OpenAlex/Unpaywall
    user_agent: str = "StoryScout/0.1 (mailto:you@example.com)"
    timeout: float = DEFAULT_HTTP_TIMEOUT
    crossref: CrossRefConfig = Field(default_factory=CrossRefConfig)
    openalex: OpenAlexConfig = Field(default_factory=OpenAlexConfig)
    unpaywall: UnpaywallConfig = Field(default_factory=UnpaywallConfig)
    semantic_scholar: SemanticScholarConfig = Field(default_factory=SemanticScholarConfig)
    pdf: PdfConfig = Field(default_factory=PdfConfig)


# Pipeline Configuration
class EnrichmentConfig(BaseModel):
    """Enrichment cascade configuration."""

    limit: int = 20
    include_partial: bool = False
    include_no_doi: bool = False
    source_delay: float = 0.1  # Pause after each metadata source call
    slow_source_delay: float = 0.2  # Pause after Semantic Scholar
    record_delay: float = 0.1  # Pause between records
    max_keywords: int = MAX_KEYWORDS


class AnalysisConfig(BaseModel):
    """Press scoring configuration."""

    limit: int = 20
    batch_size: int = 3
    min_word_count: int = 0
    force_reanalyze: bool = False
    enriched_only: bool = False
    include_partial: bool = False
    batch_delay: float = 1.0  # Pause between sub-batches
    tokens_per_record: int = 500
    retry_floor_tokens: int = 150  # Give up when the provider can afford this or less
    retry_margin_tokens: int = 50
    max_attempts: int = 3
    content_word_limit: int = 500
    max_authors: int = 3
    max_keywords: int = 8
    min_budget: float = 0.01  # USD

    @field_validator("batch_size")
    @classmethod
    def validate_batch_size(cls, value: int) -> int:
        if not 1 <= value <= MAX_SUB_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_SUB_BATCH_SIZE}")
        return value


# LLM Configuration
class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "openrouter"
    api_key: str = ""
    model: str = "anthropic/claude-sonnet-4"
    temperature: float = 0.4
    timeout: float = DEFAULT_LLM_TIMEOUT
    budget_timeout: float = DEFAULT_HTTP_TIMEOUT
    base_url: str = "https://openrouter.ai/api/v1"
    referer: str = "https://github.com/storyscout/storyscout"
    title: str = "StoryScout"
    cost_per_million_tokens: dict[str, float] = Field(default_factory=lambda: dict(COST_PER_MILLION_TOKENS))
    default_cost_per_million_tokens: float = DEFAULT_COST_PER_MILLION_TOKENS

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, value: str) -> str:
        allowed = {"openrouter"}
        if value.lower() not in allowed:
            raise ValueError(f"Unsupported LLM provider '{value}'. Allowed: {sorted(allowed)}")
        return value.lower()

    def price_for(self, model: str) -> float:
        """USD per million tokens for ``model``."""
        return self.cost_per_million_tokens.get(model, self.default_cost_per_million_tokens)


class StorageConfig(BaseModel):
    """Record store configuration."""

    path: str = "data/publications.sqlite"


# Main Settings
class Settings(BaseModel):
    """Main configuration settings."""

    sources: SourcesConfig = Field(default_factory=SourcesConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    def storage_path(self, base_dir: Path | str) -> Path:
        """Resolve the SQLite path against ``base_dir`` when relative."""
        path = Path(self.storage.path)
        return path if path.is_absolute() else Path(base_dir) / path


def load_settings(base_dir: Path | str) -> Settings:
    """Load settings from configuration file.

    ``OPENROUTER_API_KEY`` in the environment takes precedence over the
    configured key.
    """
    base = Path(base_dir)
    config_path = base / "config" / "config.yaml"
    config = _load_yaml(config_path)

    try:
        settings = Settings(
            sources=SourcesConfig(**config.get("sources", {})),
            enrichment=EnrichmentConfig(**config.get("enrichment", {})),
            analysis=AnalysisConfig(**config.get("analysis", {})),
            llm=LLMConfig(**config.get("llm", {})),
            storage=StorageConfig(**config.get("storage", {})),
        )
    except (TypeError, PydanticValidationError) as exc:
        raise ConfigurationError(f"Malformed section in {config_path}: {exc}") from exc

    env_key = os.environ.get("OPENROUTER_API_KEY")
    if env_key:
        settings.llm.api_key = env_key
    return settings


__all__ = [
    "Settings",
    "load_settings",
    "SourcesConfig",
    "CrossRefConfig",
    "OpenAlexConfig",
    "UnpaywallConfig",
    "SemanticScholarConfig",
    "PdfConfig",
    "EnrichmentConfig",
    "AnalysisConfig",
    "LLMConfig",
    "StorageConfig",
]
