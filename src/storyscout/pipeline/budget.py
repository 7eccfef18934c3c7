"""Budget preflight check before a scoring run."""

import logging
from dataclasses import dataclass

from storyscout.core.models import BudgetSnapshot
from storyscout.llm.base import BaseLLMProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BudgetCheck:
    """Outcome of a preflight check."""

    snapshot: BudgetSnapshot
    minimum: float

    @property
    def exhausted(self) -> bool:
        """True only when a budget is known and below the minimum."""
        effective = self.snapshot.effective_budget
        return effective is not None and effective < self.minimum

    @property
    def shortfall(self) -> float | None:
        effective = self.snapshot.effective_budget
        if effective is None:
            return None
        return round(max(0.0, self.minimum - effective), 6)

    def describe(self) -> str:
        """Human-readable reason for an abort."""
        snap = self.snapshot
        parts = [f"Budget exhausted: ${snap.effective_budget:.4f} available, at least ${self.minimum:.2f} required."]
        if snap.limit_remaining is not None:
            parts.append(f"Key limit remaining: ${snap.limit_remaining:.4f}.")
        if snap.account_balance is not None:
            parts.append(f"Account balance: ${snap.account_balance:.4f}.")
        parts.append("Top up credits or raise the key limit before retrying.")
        return " ".join(parts)

    def as_event(self) -> dict:
        return {
            "message": self.describe() if self.exhausted else "Budget OK",
            "fatal": self.exhausted,
            "effective_budget": self.snapshot.effective_budget,
            "shortfall": self.shortfall,
            "limit_remaining": self.snapshot.limit_remaining,
            "account_balance": self.snapshot.account_balance,
        }


class BudgetGuard:
    """Refuses to start a scoring run that cannot pay for itself."""

    def __init__(self, llm: BaseLLMProvider, minimum: float = 0.01) -> None:
        self.llm = llm
        self.minimum = minimum

    def check(self) -> BudgetCheck:
        """Query the provider. Unknown budgets never block a run."""
        result = BudgetCheck(snapshot=self.llm.check_budget(), minimum=self.minimum)
        if result.exhausted:
            logger.warning("Budget preflight failed: %s", result.describe())
        elif result.snapshot.effective_budget is None:
            logger.info("Budget unknown, proceeding unconstrained")
        else:
            logger.info("Budget available: $%.4f", result.snapshot.effective_budget)
        return result


__all__ = ["BudgetCheck", "BudgetGuard"]
