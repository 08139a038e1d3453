"""
Per-service evaluation pipeline.

One pipeline instance per service is the sole owner and writer of that
service's burn-rate edge state. Stages run in order:

    tracker -> burn-rate evaluator -> classifier

Edge state lives in memory only. After a restart every rule starts as
"not fired", so an alert that was already firing fires again on the first
tick that still sees it.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from threading import Lock
from typing import Iterable, List, Optional

from budgetgate.core import metrics

from .burn_rate import BurnRateEvaluator
from .classifier import SLOStatusClassifier
from .exceptions import DataUnavailableError, EvaluationInProgressError, InsufficientDataError
from .models import EdgeStateMap, EvaluationResult, SLODefinition, SLOStatus
from .notifier import AlertNotifier
from .sli_source import SLISource
from .tracker import ErrorBudgetTracker, estimate_time_to_exhaustion

logger = logging.getLogger(__name__)


class EvaluationPipeline:
    """Evaluates one service's SLO and dispatches its alert transitions."""

    def __init__(
        self,
        definition: SLODefinition,
        sli: SLISource,
        notifiers: Optional[Iterable[AlertNotifier]] = None,
        classifier: Optional[SLOStatusClassifier] = None,
        query_timeout_s: float = 5.0,
        deadline_s: float = 20.0,
    ):
        self.definition = definition
        self.sli = sli
        self.notifiers: List[AlertNotifier] = list(notifiers or [])
        self.tracker = ErrorBudgetTracker()
        self.evaluator = BurnRateEvaluator()
        self.classifier = classifier or SLOStatusClassifier()
        self.query_timeout_s = query_timeout_s
        self.deadline_s = deadline_s

        self._edge_state: EdgeStateMap = {}
        self._running = Lock()
        self.last_result: Optional[EvaluationResult] = None

        logger.info(
            f"Pipeline for {definition.service}/{definition.name} starts with empty "
            f"edge state; alerts firing before a restart will fire again"
        )

    @property
    def service(self) -> str:
        return self.definition.service

    @property
    def edge_state(self) -> EdgeStateMap:
        return dict(self._edge_state)

    @property
    def is_running(self) -> bool:
        return self._running.locked()

    async def evaluate(self, now: Optional[datetime] = None) -> EvaluationResult:
        """
        Run one evaluation tick.

        Raises:
            EvaluationInProgressError: another tick for this service is running
            InsufficientDataError: no samples in the SLO window
            DataUnavailableError: the budget window could not be read
        """
        if not self._running.acquire(blocking=False):
            raise EvaluationInProgressError(
                f"Evaluation for service '{self.service}' already in progress"
            )
        try:
            return await self._evaluate(now or datetime.now(timezone.utc))
        finally:
            self._running.release()

    async def _evaluate(self, now: datetime) -> EvaluationResult:
        definition = self.definition
        started = time.monotonic()

        try:
            budget = await asyncio.wait_for(
                self.tracker.compute_async(definition, now, self.sli, self.query_timeout_s),
                timeout=self.deadline_s,
            )
        except asyncio.TimeoutError as e:
            metrics.count_evaluation_error(self.service, "deadline")
            raise DataUnavailableError(
                f"Budget for service '{self.service}' not computed within {self.deadline_s}s"
            ) from e
        except InsufficientDataError:
            metrics.count_evaluation_error(self.service, "insufficient_data")
            logger.warning(f"No samples for {self.service} in {definition.window}; status unknown")
            raise
        except DataUnavailableError as e:
            metrics.count_evaluation_error(self.service, "data_unavailable")
            logger.error(f"SLI source unavailable for {self.service}: {e}")
            raise

        remaining = max(0.0, self.deadline_s - (time.monotonic() - started))
        evaluation = await self.evaluator.evaluate_concurrently(
            definition,
            now,
            self.sli,
            self._edge_state,
            query_timeout_s=self.query_timeout_s,
            deadline_s=remaining,
        )
        self._edge_state = evaluation.state

        status = self.classifier.classify(budget, evaluation.readings)

        # Only the shortest-window rule projects exhaustion; no fallback to slower rules
        time_to_exhaustion = None
        fastest = next((r for r in evaluation.readings if r.rule_index == 0), None)
        if fastest is not None:
            time_to_exhaustion = estimate_time_to_exhaustion(budget, fastest.short_burn)

        result = EvaluationResult(
            service=self.service,
            slo_name=definition.name,
            evaluated_at=now,
            budget=budget,
            status=status,
            readings=evaluation.readings,
            alerts=evaluation.events,
            rule_errors=evaluation.errors,
            time_to_exhaustion=time_to_exhaustion,
        )

        if status is SLOStatus.EXHAUSTED:
            logger.critical(
                f"Error budget exhausted for {self.service}/{definition.name}: "
                f"{budget.consumed_units:.1f} of {budget.total_budget_units:.1f} units consumed"
            )
        if not result.complete:
            logger.warning(
                f"Partial evaluation for {self.service}: "
                f"{len(result.rule_errors)} of {len(definition.burn_rate_rules)} rules failed"
            )

        self._dispatch(result)
        metrics.observe_evaluation(result, time.monotonic() - started)
        self.last_result = result
        return result

    def _dispatch(self, result: EvaluationResult) -> None:
        for event in result.alerts:
            metrics.count_alert(event)
            for notifier in self.notifiers:
                try:
                    notifier.notify(event)
                except Exception as e:
                    logger.error(
                        f"Notifier {type(notifier).__name__} failed for {event.service} "
                        f"rule {event.rule_index} ({event.transition.value}): {e}",
                        exc_info=True,
                    )
