"""
Multi-window burn-rate evaluation.

Burn rate = actual error rate / allowed error rate
- rate = 1.0: consuming budget at the sustainable pace
- rate > 1.0: consuming faster (bad)
- rate < 1.0: consuming slower (good)

A rule fires only when both its short and long window burn at or above
the threshold. Edge transitions against the previous tick's state become
fired/cleared alert events.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from .exceptions import DataUnavailableError
from .models import (
    AlertEvent,
    AlertTransition,
    BurnRateReading,
    BurnRateRule,
    EdgeStateMap,
    RuleError,
    SLODefinition,
)
from .sli_source import SLISource, call_source, call_source_with_timeout

logger = logging.getLogger(__name__)

DEADLINE_EXCEEDED = "evaluation deadline exceeded"

# Per-rule outcome: a reading, None when skipped for lack of samples, or the failure
RuleOutcome = Union[BurnRateReading, None, DataUnavailableError]


@dataclass
class BurnRateEvaluation:
    """Output of one evaluator pass."""

    readings: List[BurnRateReading] = field(default_factory=list)
    events: List[AlertEvent] = field(default_factory=list)
    state: EdgeStateMap = field(default_factory=dict)
    errors: List[RuleError] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)


def burn_rate(success_ratio: float, target_ratio: float) -> float:
    """Observed error rate as a multiple of the allowed error rate."""
    return (1.0 - success_ratio) / (1.0 - target_ratio)


class BurnRateEvaluator:
    """Evaluates an SLO's burn-rate rules and tracks their edge transitions."""

    def evaluate(
        self,
        definition: SLODefinition,
        now: datetime,
        sli: SLISource,
        prior_state: EdgeStateMap,
    ) -> BurnRateEvaluation:
        """
        Evaluate every rule sequentially, in rule-index order.

        ``prior_state`` is not modified; the updated map is returned on the
        evaluation.
        """
        outcomes: List[RuleOutcome] = []
        for index, rule in enumerate(definition.burn_rate_rules):
            try:
                outcomes.append(self.read_rule(definition, index, rule, now, sli))
            except DataUnavailableError as e:
                outcomes.append(e)
        return self._fold(definition, now, outcomes, prior_state)

    async def evaluate_concurrently(
        self,
        definition: SLODefinition,
        now: datetime,
        sli: SLISource,
        prior_state: EdgeStateMap,
        query_timeout_s: float,
        deadline_s: Optional[float] = None,
    ) -> BurnRateEvaluation:
        """
        Evaluate rules concurrently against the source.

        Each query is bound by ``query_timeout_s``. Rules still running when
        ``deadline_s`` elapses are cancelled and reported as errors.
        Results are folded in rule-index order regardless of completion order.
        """
        rules = definition.burn_rate_rules
        if not rules:
            return BurnRateEvaluation(state=dict(prior_state))

        tasks = [
            asyncio.create_task(
                self.read_rule_async(definition, index, rule, now, sli, query_timeout_s)
            )
            for index, rule in enumerate(rules)
        ]
        done, pending = await asyncio.wait(tasks, timeout=deadline_s)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        outcomes: List[RuleOutcome] = []
        for task in tasks:
            if task in pending:
                outcomes.append(DataUnavailableError(DEADLINE_EXCEEDED))
                continue
            error = task.exception()
            if error is None:
                outcomes.append(task.result())
            elif isinstance(error, DataUnavailableError):
                outcomes.append(error)
            else:
                raise error
        return self._fold(definition, now, outcomes, prior_state)

    def read_rule(
        self,
        definition: SLODefinition,
        index: int,
        rule: BurnRateRule,
        now: datetime,
        sli: SLISource,
    ) -> Optional[BurnRateReading]:
        """Read one rule; None when either window has no samples."""
        service = definition.service
        short_start = now - rule.short_window
        long_start = now - rule.long_window

        if call_source(sli.sample_count, service, short_start, now) == 0:
            return None
        if call_source(sli.sample_count, service, long_start, now) == 0:
            return None

        short_ratio = call_source(sli.success_ratio, service, short_start, now)
        long_ratio = call_source(sli.success_ratio, service, long_start, now)
        return self._reading(definition, index, rule, short_ratio, long_ratio)

    async def read_rule_async(
        self,
        definition: SLODefinition,
        index: int,
        rule: BurnRateRule,
        now: datetime,
        sli: SLISource,
        query_timeout_s: float,
    ) -> Optional[BurnRateReading]:
        """Async read_rule() with every source query bound by a timeout."""
        service = definition.service
        short_start = now - rule.short_window
        long_start = now - rule.long_window

        async def query(func, start):
            return await call_source_with_timeout(func, service, start, now, timeout_s=query_timeout_s)

        if await query(sli.sample_count, short_start) == 0:
            return None
        if await query(sli.sample_count, long_start) == 0:
            return None

        short_ratio = await query(sli.success_ratio, short_start)
        long_ratio = await query(sli.success_ratio, long_start)
        return self._reading(definition, index, rule, short_ratio, long_ratio)

    def _reading(
        self,
        definition: SLODefinition,
        index: int,
        rule: BurnRateRule,
        short_ratio: float,
        long_ratio: float,
    ) -> BurnRateReading:
        for ratio in (short_ratio, long_ratio):
            if not 0.0 <= ratio <= 1.0:
                raise DataUnavailableError(f"Success ratio {ratio} outside [0, 1]")

        short_burn = burn_rate(short_ratio, definition.target_ratio)
        long_burn = burn_rate(long_ratio, definition.target_ratio)
        return BurnRateReading(
            rule_index=index,
            rule=rule,
            short_burn=short_burn,
            long_burn=long_burn,
            fired=short_burn >= rule.threshold and long_burn >= rule.threshold,
        )

    def _fold(
        self,
        definition: SLODefinition,
        now: datetime,
        outcomes: List[RuleOutcome],
        prior_state: EdgeStateMap,
    ) -> BurnRateEvaluation:
        """Turn per-rule outcomes into readings, transitions and the next state."""
        result = BurnRateEvaluation(state=dict(prior_state))

        for index, outcome in enumerate(outcomes):
            key = (definition.service, index)

            if isinstance(outcome, DataUnavailableError):
                logger.warning(
                    f"Burn-rate rule {index} for {definition.service} unavailable: {outcome}"
                )
                result.errors.append(RuleError(rule_index=index, error=str(outcome)))
                continue

            if outcome is None:
                # No samples in a window: neither fire nor clear
                result.skipped.append(index)
                continue

            result.readings.append(outcome)
            was_fired = prior_state.get(key, False)

            transition = None
            if outcome.fired and not was_fired:
                transition = AlertTransition.FIRED
            elif was_fired and not outcome.fired:
                transition = AlertTransition.CLEARED

            if transition is not None:
                result.events.append(
                    AlertEvent(
                        service=definition.service,
                        slo_name=definition.name,
                        rule_index=index,
                        rule_severity=outcome.rule.severity,
                        transition=transition,
                        timestamp=now,
                        short_burn=outcome.short_burn,
                        long_burn=outcome.long_burn,
                    )
                )

            result.state[key] = outcome.fired

        return result
