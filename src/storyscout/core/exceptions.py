"""Exception hierarchy for StoryScout."""


class StoryScoutError(Exception):
    """Base exception for all StoryScout errors."""


class ConfigurationError(StoryScoutError):
    """Invalid or missing configuration."""


class ValidationError(StoryScoutError):
    """Input failed validation."""


class NetworkError(StoryScoutError):
    """Network-level failure talking to an external service."""


class SourceFetchError(NetworkError):
    """A metadata source could not be reached or returned garbage."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class LLMError(StoryScoutError):
    """LLM provider call failed.

    Attributes:
        status_code: HTTP status returned by the provider, if any.
    """

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class LLMAuthenticationError(LLMError):
    """Provider rejected the API key."""


class LLMInsufficientCreditsError(LLMError):
    """Provider refused the request for lack of credits.

    Attributes:
        affordable_tokens: Output tokens the provider reports it could still
            afford, parsed from the error body. None when not reported.
        prompt_unaffordable: True when even the prompt alone exceeds the
            remaining credit, so no token reduction can help.
    """

    def __init__(
        self,
        message: str,
        affordable_tokens: int | None = None,
        prompt_unaffordable: bool = False,
    ):
        self.affordable_tokens = affordable_tokens
        self.prompt_unaffordable = prompt_unaffordable
        super().__init__(message, status_code=402)


class LLMResponseError(LLMError):
    """LLM answered but the content could not be interpreted."""


class StorageError(StoryScoutError):
    """Record store read or write failed."""


__all__ = [
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
