"""
SLO (Service Level Objective) error-budget and release-gating engine.

Tracks error budgets against observed traffic, evaluates dual-window
burn-rate rules, classifies service health and gates releases on it.
"""

from .burn_rate import BurnRateEvaluation, BurnRateEvaluator, burn_rate
from .classifier import SLOStatusClassifier
from .decision import DEFAULT_MATRIX, ReleaseDecisionEngine, validate_matrix
from .engine import SLOEngine, get_engine, set_engine
from .exceptions import (
    ConfigurationError,
    DataUnavailableError,
    EvaluationInProgressError,
    InsufficientDataError,
    SLOEngineError,
    UnknownServiceError,
)
from .loader import load_definitions, load_events, parse_definitions, parse_duration
from .models import (
    AlertEvent,
    AlertSeverity,
    AlertTransition,
    BurnRateReading,
    BurnRateRule,
    DecisionOutcome,
    EdgeStateMap,
    ErrorBudgetState,
    EvaluationResult,
    ReleaseDecision,
    RiskLevel,
    RuleError,
    SLODefinition,
    SLOStatus,
)
from .notifier import AlertNotifier, CollectingNotifier, LoggingNotifier, WebhookNotifier
from .pipeline import EvaluationPipeline
from .sli_source import InMemorySLISource, PrometheusSLISource, SLISource
from .tracker import ErrorBudgetTracker, estimate_time_to_exhaustion

__all__ = [
    "SLOEngine",
    "get_engine",
    "set_engine",
    "EvaluationPipeline",
    "ErrorBudgetTracker",
    "estimate_time_to_exhaustion",
    "BurnRateEvaluator",
    "BurnRateEvaluation",
    "burn_rate",
    "SLOStatusClassifier",
    "ReleaseDecisionEngine",
    "DEFAULT_MATRIX",
    "validate_matrix",
    "SLISource",
    "InMemorySLISource",
    "PrometheusSLISource",
    "AlertNotifier",
    "LoggingNotifier",
    "WebhookNotifier",
    "CollectingNotifier",
    "load_definitions",
    "load_events",
    "parse_definitions",
    "parse_duration",
    "SLODefinition",
    "BurnRateRule",
    "ErrorBudgetState",
    "BurnRateReading",
    "AlertEvent",
    "AlertSeverity",
    "AlertTransition",
    "EdgeStateMap",
    "RuleError",
    "EvaluationResult",
    "SLOStatus",
    "RiskLevel",
    "DecisionOutcome",
    "ReleaseDecision",
    "SLOEngineError",
    "ConfigurationError",
    "InsufficientDataError",
    "DataUnavailableError",
    "EvaluationInProgressError",
    "UnknownServiceError",
]
