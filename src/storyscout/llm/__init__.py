"""LLM integration."""

from .base import BaseLLMProvider
from .factory import create_llm_client
from .openrouter import OpenRouterClient
from .press_evaluator import Attempt, EvaluationBatch, PressEvaluator

__all__ = [
    "BaseLLMProvider",
    "create_llm_client",
    "OpenRouterClient",
    "PressEvaluator",
    "EvaluationBatch",
    "Attempt",
]
