"""OpenRouter LLM provider implementation."""

import logging
import re

import requests

from storyscout.config.settings import LLMConfig
from storyscout.core.exceptions import (
    ConfigurationError,
    LLMAuthenticationError,
    LLMError,
    LLMInsufficientCreditsError,
    LLMResponseError,
)
from storyscout.core.models import BudgetSnapshot
from storyscout.core.protocols import LLMResponse
from storyscout.utils.text import mask_secret

from .base import BaseLLMProvider

logger = logging.getLogger(__name__)

_AFFORDABLE_PATTERN = re.compile(r"can only afford (\d+)")
_PROMPT_LIMIT_MARKER = "Prompt tokens limit exceeded"


class OpenRouterClient(BaseLLMProvider):
    """OpenRouter chat completions client with credit-aware error mapping."""

    def __init__(
        self,
        api_key: str,
        default_model: str = "anthropic/claude-sonnet-4",
        *,
        base_url: str = "https://openrouter.ai/api/v1",
        temperature: float = 0.4,
        timeout: float = 60.0,
        budget_timeout: float = 10.0,
        referer: str = "",
        title: str = "StoryScout",
        session: requests.Session | None = None,
    ) -> None:
        """Initialize OpenRouter client.

        Args:
            api_key: OpenRouter API key.
            default_model: Model slug used when a call does not specify one.
            base_url: API root, without trailing slash.
            temperature: Default sampling temperature.
            timeout: Completion request timeout in seconds.
            budget_timeout: Timeout for the key/credits lookups.
            referer: Value for the ``HTTP-Referer`` attribution header.
            title: Value for the ``X-Title`` attribution header.
            session: Optional shared HTTP session.
        """
        if not api_key:
            raise ConfigurationError("OpenRouter API key is not configured (set OPENROUTER_API_KEY)")
        self.api_key = api_key
        self._default_model = default_model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.timeout = timeout
        self.budget_timeout = budget_timeout
        self.referer = referer
        self.title = title
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: LLMConfig, session: requests.Session | None = None) -> "OpenRouterClient":
        """Create client from LLM configuration."""
        return cls(
            api_key=config.api_key,
            default_model=config.model,
            base_url=config.base_url,
            temperature=config.temperature,
            timeout=config.timeout,
            budget_timeout=config.budget_timeout,
            referer=config.referer,
            title=config.title,
            session=session,
        )

    @property
    def name(self) -> str:
        return "openrouter"

    @property
    def default_model(self) -> str:
        return self._default_model

    def credential_hint(self) -> str | None:
        return mask_secret(self.api_key)

    def _build_headers(self) -> dict[str, str]:
        """Build HTTP headers for OpenRouter API."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "X-Title": self.title,
        }
        if self.referer:
            headers["HTTP-Referer"] = self.referer
        return headers

    def _build_payload(
        self,
        prompt: str,
        system: str | None,
        model: str,
        max_tokens: int,
        temperature: float,
        json_mode: bool,
    ) -> dict:
        """Build JSON payload for the chat completions endpoint."""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        payload = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    def _extract_response(self, data: dict, model: str) -> LLMResponse:
        """Extract LLMResponse from OpenRouter API response."""
        choices = data.get("choices") or []
        content = ((choices[0] if choices else {}).get("message") or {}).get("content")
        if not content:
            raise LLMResponseError("No content in LLM response")
        return LLMResponse(
            content=content,
            model=data.get("model", model),
            tokens_used=(data.get("usage") or {}).get("total_tokens", 0) or 0,
        )

    def _raise_for_status(self, resp: requests.Response) -> None:
        """Map non-2xx responses onto the LLM error hierarchy."""
        if resp.ok:
            return
        body = resp.text
        status = resp.status_code
        if status == 402:
            if _PROMPT_LIMIT_MARKER in body:
                raise LLMInsufficientCreditsError(
                    "OpenRouter API error 402: credits exhausted, not enough credits for the prompt. "
                    f"Top up at openrouter.ai/settings/credits. ({body})",
                    prompt_unaffordable=True,
                )
            match = _AFFORDABLE_PATTERN.search(body)
            raise LLMInsufficientCreditsError(
                f"OpenRouter API error 402: {body}",
                affordable_tokens=int(match.group(1)) if match else None,
            )
        if status == 401:
            raise LLMAuthenticationError(f"OpenRouter API error 401: {body}", status_code=status)
        raise LLMError(f"OpenRouter API error {status}: {body}", status_code=status)

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
        model = model or self.default_model
        temperature = self.temperature if temperature is None else temperature
        payload = self._build_payload(prompt, system, model, max_tokens, temperature, json_mode)

        logger.debug("OpenRouter request: model=%s max_tokens=%d", model, max_tokens)
        try:
            resp = self.session.post(
                f"{self.base_url}/chat/completions",
                headers=self._build_headers(),
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise LLMError(f"OpenRouter request failed: {exc}") from exc

        self._raise_for_status(resp)
        try:
            data = resp.json()
        except ValueError as exc:
            raise LLMResponseError(f"OpenRouter returned invalid JSON: {exc}") from exc
        return self._extract_response(data, model)

    def check_budget(self) -> BudgetSnapshot:
        """Query key headroom and account balance.

        Each signal is looked up independently; a failed lookup leaves the
        corresponding fields as None.
        """
        key_data = self._get_budget_data("auth/key")
        credits_data = self._get_budget_data("credits")

        account_balance = None
        total_credits = _as_float(credits_data, "total_credits")
        total_usage = _as_float(credits_data, "total_usage")
        if total_credits is not None and total_usage is not None:
            account_balance = total_credits - total_usage

        snapshot = BudgetSnapshot(
            limit_remaining=_as_float(key_data, "limit_remaining"),
            usage=_as_float(key_data, "usage"),
            limit=_as_float(key_data, "limit"),
            account_balance=account_balance,
        )
        logger.debug("OpenRouter budget: %s", snapshot.model_dump())
        return snapshot

    def _get_budget_data(self, path: str) -> dict:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            resp = self.session.get(f"{self.base_url}/{path}", headers=headers, timeout=self.budget_timeout)
            resp.raise_for_status()
            data = resp.json().get("data")
        except (requests.RequestException, ValueError, AttributeError) as exc:
            logger.warning("OpenRouter %s lookup failed: %s", path, exc)
            return {}
        return data if isinstance(data, dict) else {}


def _as_float(data: dict, key: str) -> float | None:
    """Numeric budget field, or None when missing or not a number."""
    value = data.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring non-numeric OpenRouter budget field %s=%r", key, value)
        return None


__all__ = ["OpenRouterClient"]
