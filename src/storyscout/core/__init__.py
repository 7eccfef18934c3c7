"""Core domain models and interfaces."""

from .exceptions import (
    ConfigurationError,
    LLMAuthenticationError,
    LLMError,
    LLMInsufficientCreditsError,
    LLMResponseError,
    NetworkError,
    SourceFetchError,
    StorageError,
    StoryScoutError,
    ValidationError,
)
from .models import (
    AnalysisRequest,
    AnalysisStatus,
    BudgetSnapshot,
    EnrichmentFields,
    EnrichmentRequest,
    EnrichmentStatus,
    Evaluation,
    Publication,
)
from .protocols import LLMResponse, PublicationFilter, PublicationStore

__all__ = [
    # Models
    "Publication",
    "EnrichmentFields",
    "EnrichmentStatus",
    "AnalysisStatus",
    "Evaluation",
    "BudgetSnapshot",
    "EnrichmentRequest",
    "AnalysisRequest",
    # Protocols
    "LLMResponse",
    "PublicationFilter",
    "PublicationStore",
    # Exceptions
    "StoryScoutError",
    "ConfigurationError",
    "ValidationError",
    "NetworkError",
    "SourceFetchError",
    "LLMError",
    "LLMAuthenticationError",
    "LLMInsufficientCreditsError",
    "LLMResponseError",
    "StorageError",
]
