"""Core constants for StoryScout."""

# Network timeouts (seconds)
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_PDF_TIMEOUT = 15.0
DEFAULT_LLM_TIMEOUT = 60.0

# PDF extraction limits
MAX_PDF_BYTES = 10 * 1024 * 1024
MAX_PDF_PAGES = 3
MIN_PDF_TEXT_CHARS = 50
PDF_SNIPPET_CHARS = 2000

# Enrichment
MAX_KEYWORDS = 20
MAX_ENRICHMENT_LIMIT = 500

# Analysis
MAX_ANALYSIS_LIMIT = 100
MAX_SUB_BATCH_SIZE = 5

# Press score weights, must sum to 1.0
SCORE_WEIGHTS: dict[str, float] = {
    "public_accessibility": 0.20,
    "societal_relevance": 0.25,
    "novelty_factor": 0.20,
    "storytelling_potential": 0.20,
    "media_timeliness": 0.15,
}

SCORE_DIMENSIONS: tuple[str, ...] = tuple(SCORE_WEIGHTS)

# USD per million tokens (blended input/output estimate)
COST_PER_MILLION_TOKENS: dict[str, float] = {
    "anthropic/claude-sonnet-4": 9.0,
    "anthropic/claude-3.5-haiku": 2.4,
    "openai/gpt-4o": 6.25,
    "openai/gpt-4o-mini": 0.375,
    "google/gemini-2.0-flash-001": 0.25,
}
DEFAULT_COST_PER_MILLION_TOKENS = 5.0

__all__ = [
    "DEFAULT_HTTP_TIMEOUT",
    "DEFAULT_PDF_TIMEOUT",
    "DEFAULT_LLM_TIMEOUT",
    "MAX_PDF_BYTES",
    "MAX_PDF_PAGES",
    "MIN_PDF_TEXT_CHARS",
    "PDF_SNIPPET_CHARS",
    "MAX_KEYWORDS",
    "MAX_ENRICHMENT_LIMIT",
    "MAX_ANALYSIS_LIMIT",
    "MAX_SUB_BATCH_SIZE",
    "SCORE_WEIGHTS",
    "SCORE_DIMENSIONS",
    "COST_PER_MILLION_TOKENS",
    "DEFAULT_COST_PER_MILLION_TOKENS",
]
