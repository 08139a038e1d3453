"""
Reduces an error budget and its burn-rate readings to one SLOStatus.

Decision table, first match wins:
- remaining units <= 0                 -> EXHAUSTED
- a fired rule with CRITICAL severity  -> CRITICAL
- a fired rule with WARNING severity   -> WARNING
- remaining ratio below attention line -> ATTENTION
- otherwise                            -> HEALTHY
"""

import math
from typing import Iterable

from .exceptions import ConfigurationError
from .models import AlertSeverity, BurnRateReading, ErrorBudgetState, SLOStatus

# Relative tolerance for boundary comparisons on derived budget values
_REL_TOL = 1e-9


def _below(value: float, bound: float) -> bool:
    """value < bound, ignoring floating-point noise at the boundary."""
    return value < bound and not math.isclose(value, bound, rel_tol=_REL_TOL, abs_tol=1e-12)


class SLOStatusClassifier:
    """Deterministic status classification."""

    def __init__(self, attention_remaining_ratio: float = 0.5):
        if not 0 < attention_remaining_ratio <= 1:
            raise ConfigurationError(
                f"Attention threshold must be in (0, 1], got {attention_remaining_ratio}"
            )
        self.attention_remaining_ratio = attention_remaining_ratio

    def classify(self, budget: ErrorBudgetState, readings: Iterable[BurnRateReading]) -> SLOStatus:
        if self.is_exhausted(budget):
            return SLOStatus.EXHAUSTED

        fired = {reading.severity for reading in readings if reading.fired}
        if AlertSeverity.CRITICAL in fired:
            return SLOStatus.CRITICAL
        if AlertSeverity.WARNING in fired:
            return SLOStatus.WARNING

        if _below(budget.remaining_ratio, self.attention_remaining_ratio):
            return SLOStatus.ATTENTION
        return SLOStatus.HEALTHY

    @staticmethod
    def is_exhausted(budget: ErrorBudgetState) -> bool:
        # Tolerance scales with the budget so a target-exact ratio counts as spent
        tolerance = budget.total_budget_units * _REL_TOL
        return budget.remaining_units <= tolerance
