"""
Error budget tracking.

The budget is recomputed against the observed sample volume in the SLO
window, so traffic changes do not distort the remaining ratio:

    total_budget_units = sample_count * (1 - target)
    consumed_units     = sample_count * (1 - success_ratio)
"""

from datetime import datetime, timedelta
from typing import Optional

from .exceptions import DataUnavailableError, InsufficientDataError
from .models import ErrorBudgetState, SLODefinition
from .sli_source import SLISource, call_source, call_source_with_timeout


class ErrorBudgetTracker:
    """Converts an SLO and an SLI source into an ErrorBudgetState."""

    def compute(self, definition: SLODefinition, now: datetime, sli: SLISource) -> ErrorBudgetState:
        """
        Compute the error budget over [now - window, now).

        Raises:
            InsufficientDataError: no samples in the window
            DataUnavailableError: the SLI source failed
        """
        start = now - definition.window
        count = call_source(sli.sample_count, definition.service, start, now)
        if count == 0:
            raise InsufficientDataError(definition.service, definition.window)
        ratio = call_source(sli.success_ratio, definition.service, start, now)
        return self.build_state(definition, now, count, ratio)

    async def compute_async(
        self,
        definition: SLODefinition,
        now: datetime,
        sli: SLISource,
        query_timeout_s: float,
    ) -> ErrorBudgetState:
        """Same as compute(), with every source query bound by a timeout."""
        start = now - definition.window
        count = await call_source_with_timeout(
            sli.sample_count, definition.service, start, now, timeout_s=query_timeout_s
        )
        if count == 0:
            raise InsufficientDataError(definition.service, definition.window)
        ratio = await call_source_with_timeout(
            sli.success_ratio, definition.service, start, now, timeout_s=query_timeout_s
        )
        return self.build_state(definition, now, count, ratio)

    def build_state(
        self,
        definition: SLODefinition,
        now: datetime,
        sample_count: int,
        success_ratio: float,
    ) -> ErrorBudgetState:
        """Pure budget arithmetic for an already-fetched window."""
        if sample_count < 0:
            raise DataUnavailableError(f"Negative sample count {sample_count} from SLI source")
        if sample_count == 0:
            raise InsufficientDataError(definition.service, definition.window)
        if not 0.0 <= success_ratio <= 1.0:
            raise DataUnavailableError(f"Success ratio {success_ratio} outside [0, 1]")

        total_budget = sample_count * (1 - definition.target_ratio)
        consumed = sample_count * (1 - success_ratio)

        return ErrorBudgetState(
            slo_name=definition.name,
            service=definition.service,
            target_ratio=definition.target_ratio,
            window=definition.window,
            evaluated_at=now,
            sample_count=sample_count,
            success_ratio=success_ratio,
            total_budget_units=total_budget,
            consumed_units=consumed,
        )


def estimate_time_to_exhaustion(budget: ErrorBudgetState, burn_rate: float) -> Optional[timedelta]:
    """
    Estimate time until the remaining budget is spent at ``burn_rate``.

    A burn rate of 1.0 spends a full budget in exactly one SLO window.
    Returns None when not burning or already exhausted.
    """
    if burn_rate <= 0 or budget.remaining_units <= 0:
        return None

    seconds = budget.remaining_ratio * budget.window.total_seconds() / burn_rate
    return timedelta(seconds=seconds)
