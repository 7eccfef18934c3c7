"""Press-worthiness evaluation of publication batches via LLM."""

import json
import logging
import re
from dataclasses import dataclass, field

from pydantic import ValidationError as PydanticValidationError

from storyscout.config.settings import AnalysisConfig, LLMConfig
from storyscout.core.exceptions import LLMInsufficientCreditsError, LLMResponseError
from storyscout.core.models import Evaluation, Publication
from storyscout.utils.text import decode_title, truncate_words

from .base import BaseLLMProvider
from .prompts import PRESS_EVALUATION_PROMPT, PRESS_SYSTEM_PROMPT, PUBLICATION_BLOCK

logger = logging.getLogger(__name__)

_FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


@dataclass(frozen=True)
class Attempt:
    """One call to the provider inside the adaptive retry loop."""

    number: int
    max_tokens: int
    succeeded: bool
    error: str | None = None
    affordable_tokens: int | None = None


@dataclass
class EvaluationBatch:
    """Outcome of evaluating one sub-batch."""

    evaluations: list[Evaluation]
    tokens_used: int
    cost: float
    model: str
    attempts: tuple[Attempt, ...] = field(default_factory=tuple)


def estimate_cost(tokens: int, model: str, llm_config: LLMConfig) -> float:
    """USD cost of ``tokens`` for ``model`` using the configured price table."""
    return tokens / 1_000_000 * llm_config.price_for(model)


def parse_evaluations(content: str) -> list[Evaluation]:
    """Decode the model's JSON answer into evaluations.

    Falls back to the first fenced code block when the raw content is not
    valid JSON.

    Raises:
        LLMResponseError: Content is not JSON or lacks an ``evaluations`` list.
    """
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        match = _FENCED_JSON.search(content)
        if not match:
            logger.error("Failed to parse LLM JSON (length %d): %s", len(content), content[:200])
            raise LLMResponseError("Failed to parse LLM response as JSON") from None
        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError as exc:
            raise LLMResponseError(f"Failed to parse fenced LLM response as JSON: {exc}") from exc

    items = data.get("evaluations") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise LLMResponseError("LLM response missing evaluations array")

    evaluations = []
    for item in items:
        if not isinstance(item, dict):
            raise LLMResponseError(f"Evaluation entry is not an object: {item!r}")
        try:
            evaluations.append(Evaluation.model_validate(item))
        except PydanticValidationError as exc:
            raise LLMResponseError(f"Invalid evaluation entry: {exc}") from exc
    return evaluations


def pair_evaluations(
    publications: list[Publication],
    evaluations: list[Evaluation],
) -> list[tuple[Publication, Evaluation | None]]:
    """Match evaluations to the publications they describe.

    Uses ``publication_index`` (1-based) when every evaluation carries a
    distinct in-range index; otherwise falls back to positional order.
    Publications the model skipped are paired with None.
    """
    indices = [e.publication_index for e in evaluations]
    by_index = all(i is not None and 1 <= i <= len(publications) for i in indices) and len(set(indices)) == len(
        indices
    )
    if by_index:
        lookup = {e.publication_index: e for e in evaluations}
        return [(pub, lookup.get(pos)) for pos, pub in enumerate(publications, start=1)]
    return [(pub, evaluations[pos] if pos < len(evaluations) else None) for pos, pub in enumerate(publications)]


class PressEvaluator:
    """Score publications for media interest with credit-aware retries."""

    def __init__(self, llm: BaseLLMProvider, config: AnalysisConfig, llm_config: LLMConfig) -> None:
        self.llm = llm
        self.config = config
        self.llm_config = llm_config

    @property
    def model(self) -> str:
        return self.llm_config.model or self.llm.default_model

    def build_prompt(self, publications: list[Publication]) -> str:
        """Render the evaluation prompt for a sub-batch."""
        blocks = []
        for idx, pub in enumerate(publications, start=1):
            if pub.authors:
                authors = ", ".join(a.strip() for a in re.split(r"[;,]", pub.authors)[: self.config.max_authors])
            else:
                authors = "Unknown"
            keywords = ", ".join((pub.enriched_keywords or [])[: self.config.max_keywords]) or "N/A"
            blocks.append(
                PUBLICATION_BLOCK.format(
                    index=idx,
                    title=decode_title(pub.title),
                    authors=authors,
                    institute=pub.institute or "N/A",
                    published=pub.published_at or "N/A",
                    keywords=keywords,
                    content=truncate_words(pub.best_content, self.config.content_word_limit),
                )
            )
        return PRESS_EVALUATION_PROMPT.format(count=len(publications), publications="\n\n".join(blocks))

    def evaluate(self, publications: list[Publication]) -> EvaluationBatch:
        """Evaluate one sub-batch.

        Starts with ``tokens_per_record * n`` output tokens. When the provider
        reports it can only afford N tokens and N is above the retry floor,
        the call is repeated with N minus the margin, up to ``max_attempts``
        calls in total. Cost is computed from the successful call only.

        Raises:
            LLMInsufficientCreditsError: Credits too low even after shrinking.
            LLMError: Any other provider failure, including unparsable output.
        """
        prompt = self.build_prompt(publications)
        max_tokens = self.config.tokens_per_record * len(publications)
        attempts: list[Attempt] = []

        for number in range(1, self.config.max_attempts + 1):
            try:
                response = self.llm.complete(
                    prompt,
                    system=PRESS_SYSTEM_PROMPT,
                    model=self.model,
                    max_tokens=max_tokens,
                    temperature=self.llm_config.temperature,
                    json_mode=True,
                )
            except LLMInsufficientCreditsError as exc:
                affordable = exc.affordable_tokens
                if exc.prompt_unaffordable or affordable is None or affordable <= self.config.retry_floor_tokens:
                    raise
                attempts.append(Attempt(number, max_tokens, False, str(exc), affordable))
                max_tokens = affordable - self.config.retry_margin_tokens
                logger.warning("402 from provider: retrying with max_tokens=%d (attempt %d)", max_tokens, number)
                continue

            attempts.append(Attempt(number, max_tokens, True))
            evaluations = parse_evaluations(response.content)
            return EvaluationBatch(
                evaluations=evaluations,
                tokens_used=response.tokens_used,
                cost=estimate_cost(response.tokens_used, self.model, self.llm_config),
                model=self.model,
                attempts=tuple(attempts),
            )

        last = attempts[-1]
        raise LLMInsufficientCreditsError(
            f"OpenRouter API error 402 after {len(attempts)} attempts: {last.error}",
            affordable_tokens=last.affordable_tokens,
        )


__all__ = [
    "Attempt",
    "EvaluationBatch",
    "PressEvaluator",
    "estimate_cost",
    "parse_evaluations",
    "pair_evaluations",
]
