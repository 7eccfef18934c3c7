"""Base LLM provider interface."""

from abc import ABC, abstractmethod

from storyscout.core.models import BudgetSnapshot
from storyscout.core.protocols import LLMResponse


class BaseLLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier."""
        ...

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Model used when a call does not name one."""
        ...

    @abstractmethod
    def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        model: str | None = None,
        max_tokens: int = 1024,
        temperature: float | None = None,
        json_mode: bool = False,
    ) -> LLMResponse:
        """Run one chat completion.

        Raises:
            LLMInsufficientCreditsError: Provider refused for lack of credits.
            LLMAuthenticationError: Credential rejected.
            LLMError: Any other provider or transport failure.
        """
        ...

    @abstractmethod
    def check_budget(self) -> BudgetSnapshot:
        """Report remaining spend. Unknown values are None, never an exception."""
        ...

    def credential_hint(self) -> str | None:
        """Masked form of the credential in use, for display only."""
        return None


__all__ = ["BaseLLMProvider"]
