"""
SLO Engine: error-budget evaluation and release gating for many services.

Holds the immutable SLO definitions, one evaluation pipeline per service,
and the release decision matrix. Services evaluate independently and can
run in parallel; no mutable state is shared between pipelines.
"""

import asyncio
import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple, Union

from budgetgate.core import metrics
from budgetgate.core.config import settings
from budgetgate.core.observability import trace_operation

from .classifier import SLOStatusClassifier
from .decision import ReleaseDecisionEngine
from .exceptions import ConfigurationError, SLOEngineError, UnknownServiceError
from .loader import load_definitions, load_events
from .models import EvaluationResult, ReleaseDecision, RiskLevel, SLODefinition, SLOStatus
from .notifier import AlertNotifier, LoggingNotifier, WebhookNotifier
from .pipeline import EvaluationPipeline
from .sli_source import InMemorySLISource, PrometheusSLISource, SLISource

logger = logging.getLogger(__name__)


class SLOEngine:
    """
    Evaluation API over a set of services.

    - evaluate(service, now) -> EvaluationResult
    - decide(status, risk) -> ReleaseDecision
    - gate(service, risk, now) -> (EvaluationResult, ReleaseDecision)
    """

    def __init__(
        self,
        definitions: Iterable[SLODefinition],
        sli: SLISource,
        notifiers: Optional[Iterable[AlertNotifier]] = None,
        decision_engine: Optional[ReleaseDecisionEngine] = None,
        classifier: Optional[SLOStatusClassifier] = None,
        query_timeout_s: float = 5.0,
        deadline_s: float = 20.0,
    ):
        self.sli = sli
        self.decision_engine = decision_engine or ReleaseDecisionEngine()
        notifiers = list(notifiers or [])
        classifier = classifier or SLOStatusClassifier()

        self._pipelines: Dict[str, EvaluationPipeline] = {}
        for definition in definitions:
            if definition.service in self._pipelines:
                raise ConfigurationError(f"Duplicate SLO for service '{definition.service}'")
            self._pipelines[definition.service] = EvaluationPipeline(
                definition,
                sli,
                notifiers=notifiers,
                classifier=classifier,
                query_timeout_s=query_timeout_s,
                deadline_s=deadline_s,
            )

        logger.info(f"SLOEngine initialized with {len(self._pipelines)} services")

    @classmethod
    def from_settings(cls, definitions: Optional[Iterable[SLODefinition]] = None) -> "SLOEngine":
        """Build an engine from environment settings."""
        if definitions is None:
            definitions = load_definitions(settings.SLO_DEFINITIONS_PATH) if settings.SLO_DEFINITIONS_PATH else []

        if settings.prometheus_enabled:
            sli: SLISource = PrometheusSLISource(
                settings.PROMETHEUS_URL, timeout_s=settings.SLI_QUERY_TIMEOUT_S
            )
        elif settings.SLI_EVENTS_PATH:
            sli = load_events(settings.SLI_EVENTS_PATH)
        else:
            sli = InMemorySLISource()
            logger.warning("SLI_BACKEND=memory without SLI_EVENTS_PATH; every evaluation will report no samples")

        notifiers: List[AlertNotifier] = [LoggingNotifier()]
        if settings.ALERT_WEBHOOK_URL:
            notifiers.append(
                WebhookNotifier(settings.ALERT_WEBHOOK_URL, timeout_s=settings.ALERT_WEBHOOK_TIMEOUT_S)
            )

        return cls(
            definitions,
            sli,
            notifiers=notifiers,
            classifier=SLOStatusClassifier(settings.ATTENTION_REMAINING_RATIO),
            query_timeout_s=settings.SLI_QUERY_TIMEOUT_S,
            deadline_s=settings.EVALUATION_DEADLINE_S,
        )

    def services(self) -> List[str]:
        return sorted(self._pipelines)

    def definitions(self) -> List[SLODefinition]:
        return [self._pipelines[s].definition for s in self.services()]

    def pipeline(self, service: str) -> EvaluationPipeline:
        try:
            return self._pipelines[service]
        except KeyError:
            raise UnknownServiceError(f"No SLO configured for service '{service}'") from None

    @trace_operation("slo.evaluate")
    async def evaluate(self, service: str, now: Optional[datetime] = None) -> EvaluationResult:
        """Evaluate one service. Errors propagate; no status is invented."""
        return await self.pipeline(service).evaluate(now)

    async def evaluate_all(
        self, now: Optional[datetime] = None
    ) -> Dict[str, Union[EvaluationResult, SLOEngineError]]:
        """Evaluate every service in parallel; failures are returned per service."""
        services = self.services()
        outcomes = await asyncio.gather(
            *(self.evaluate(service, now) for service in services),
            return_exceptions=True,
        )

        results: Dict[str, Union[EvaluationResult, SLOEngineError]] = {}
        for service, outcome in zip(services, outcomes):
            if isinstance(outcome, SLOEngineError) or isinstance(outcome, EvaluationResult):
                results[service] = outcome
            elif isinstance(outcome, BaseException):
                raise outcome
        return results

    def decide(self, status: SLOStatus, risk: RiskLevel) -> ReleaseDecision:
        decision = self.decision_engine.decide(status, risk)
        metrics.count_decision(decision)
        return decision

    async def gate(
        self, service: str, risk: RiskLevel, now: Optional[datetime] = None
    ) -> Tuple[EvaluationResult, ReleaseDecision]:
        """Evaluate a service and decide whether a change of ``risk`` may ship."""
        result = await self.evaluate(service, now)
        return result, self.decide(result.status, risk)


# Global engine instance
_engine: Optional[SLOEngine] = None


def get_engine() -> SLOEngine:
    """Get or create the SLO engine singleton."""
    global _engine
    if _engine is None:
        _engine = SLOEngine.from_settings()
    return _engine


def set_engine(engine: Optional[SLOEngine]) -> None:
    """Replace the engine singleton (None resets it)."""
    global _engine
    _engine = engine
