"""
SLO Data Models

Defines SLO definitions, burn-rate rules, error budget state,
burn-rate readings, statuses and release decisions.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .exceptions import ConfigurationError


class _RankedEnum(str, Enum):
    """String enum whose members are ordered by declaration."""

    @property
    def rank(self) -> int:
        return list(type(self)).index(self)

    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.rank >= other.rank


class AlertSeverity(_RankedEnum):
    """Severity attached to a burn-rate rule."""

    WARNING = "warning"
    CRITICAL = "critical"


class SLOStatus(_RankedEnum):
    """Service health, from least to most severe."""

    HEALTHY = "healthy"
    ATTENTION = "attention"
    WARNING = "warning"
    CRITICAL = "critical"
    EXHAUSTED = "exhausted"


class RiskLevel(_RankedEnum):
    """Risk of the change asking to ship."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DecisionOutcome(_RankedEnum):
    """Release decision, from least to most restrictive."""

    APPROVE = "approve"
    REVIEW = "review"
    DELAY = "delay"
    BLOCK = "block"


class AlertTransition(str, Enum):
    """Edge transition of a burn-rate rule."""

    FIRED = "fired"
    CLEARED = "cleared"


# Fired/cleared history per (service name, rule index)
EdgeStateMap = Dict[Tuple[str, int], bool]


def _hours(value: timedelta) -> float:
    return round(value.total_seconds() / 3600, 4)


@dataclass(frozen=True)
class BurnRateRule:
    """Dual-window burn-rate alert rule."""

    short_window: timedelta
    long_window: timedelta
    threshold: float  # Burn-rate multiple, e.g. 14.4
    severity: AlertSeverity

    def validate(self, slo_window: timedelta) -> None:
        """Check rule invariants against the SLO window."""
        if self.short_window <= timedelta(0):
            raise ConfigurationError("Burn-rate short window must be positive")
        if self.short_window >= self.long_window:
            raise ConfigurationError(
                f"Burn-rate short window {self.short_window} must be shorter "
                f"than long window {self.long_window}"
            )
        if self.long_window > slo_window:
            raise ConfigurationError(
                f"Burn-rate long window {self.long_window} exceeds SLO window {slo_window}"
            )
        if not self.threshold > 1:
            raise ConfigurationError(
                f"Burn-rate threshold must be greater than 1, got {self.threshold}"
            )
        if not isinstance(self.severity, AlertSeverity):
            raise ConfigurationError(f"Unknown rule severity: {self.severity!r}")

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            "short_window_hours": _hours(self.short_window),
            "long_window_hours": _hours(self.long_window),
            "threshold": self.threshold,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class SLODefinition:
    """Service Level Objective definition (immutable once loaded)."""

    name: str
    service: str
    target_ratio: float  # e.g. 0.999 for 99.9%
    window: timedelta
    burn_rate_rules: Tuple[BurnRateRule, ...] = ()
    description: str = ""

    def __post_init__(self):
        """Validate invariants and fix the rule evaluation order."""
        if not self.name:
            raise ConfigurationError("SLO name is required")
        if not self.service:
            raise ConfigurationError(f"SLO '{self.name}' has no service")
        if not isinstance(self.target_ratio, (int, float)) or not 0 < self.target_ratio < 1:
            raise ConfigurationError(
                f"SLO '{self.name}' target must be in (0, 1), got {self.target_ratio!r}"
            )
        if self.window <= timedelta(0):
            raise ConfigurationError(f"SLO '{self.name}' window must be positive")

        for rule in self.burn_rate_rules:
            rule.validate(self.window)

        # Stable sort keeps declaration order for equal short windows
        ordered = tuple(sorted(self.burn_rate_rules, key=lambda r: r.short_window))
        object.__setattr__(self, "burn_rate_rules", ordered)

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            "name": self.name,
            "service": self.service,
            "description": self.description,
            "target": self.target_ratio,
            "window_days": round(self.window.total_seconds() / 86400, 4),
            "burn_rate_rules": [rule.to_dict() for rule in self.burn_rate_rules],
        }


@dataclass(frozen=True)
class ErrorBudgetState:
    """Error budget for one evaluation, recomputed on every call."""

    slo_name: str
    service: str
    target_ratio: float
    window: timedelta
    evaluated_at: datetime
    sample_count: int
    success_ratio: float
    total_budget_units: float  # Allowed bad events for the observed volume
    consumed_units: float  # Observed bad events

    @property
    def remaining_units(self) -> float:
        """Unspent budget; negative when over budget."""
        return self.total_budget_units - self.consumed_units

    @property
    def remaining_ratio(self) -> float:
        """Unclamped fraction of budget left."""
        return self.remaining_units / self.total_budget_units

    @property
    def display_remaining_pct(self) -> float:
        """Remaining budget clamped to [0, 100] for display."""
        return min(100.0, max(0.0, self.remaining_ratio * 100))

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            "slo_name": self.slo_name,
            "service": self.service,
            "target": self.target_ratio,
            "window_days": round(self.window.total_seconds() / 86400, 4),
            "evaluated_at": self.evaluated_at.isoformat(),
            "sample_count": self.sample_count,
            "success_ratio": self.success_ratio,
            "total_budget_units": self.total_budget_units,
            "consumed_units": self.consumed_units,
            "remaining_units": self.remaining_units,
            "remaining_ratio": self.remaining_ratio,
            "remaining_pct": round(self.display_remaining_pct, 2),
        }


@dataclass(frozen=True)
class BurnRateReading:
    """Observed burn rates for one rule at one evaluation tick."""

    rule_index: int
    rule: BurnRateRule
    short_burn: float
    long_burn: float
    fired: bool

    @property
    def severity(self) -> AlertSeverity:
        return self.rule.severity

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            "rule_index": self.rule_index,
            "rule": self.rule.to_dict(),
            "short_burn": round(self.short_burn, 3),
            "long_burn": round(self.long_burn, 3),
            "fired": self.fired,
        }


@dataclass(frozen=True)
class AlertEvent:
    """Fired/cleared edge of a burn-rate rule, handed to notifiers."""

    service: str
    slo_name: str
    rule_index: int
    rule_severity: AlertSeverity
    transition: AlertTransition
    timestamp: datetime
    short_burn: float
    long_burn: float

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            "service": self.service,
            "slo_name": self.slo_name,
            "rule_index": self.rule_index,
            "rule_severity": self.rule_severity.value,
            "transition": self.transition.value,
            "timestamp": self.timestamp.isoformat(),
            "short_burn": round(self.short_burn, 3),
            "long_burn": round(self.long_burn, 3),
        }


@dataclass(frozen=True)
class RuleError:
    """A burn-rate rule that could not be evaluated this tick."""

    rule_index: int
    error: str

    def to_dict(self) -> Dict:
        return {"rule_index": self.rule_index, "error": self.error}


@dataclass(frozen=True)
class ReleaseDecision:
    """Outcome of the release gate."""

    outcome: DecisionOutcome
    status: SLOStatus
    risk: RiskLevel
    rationale: str
    conditions: Tuple[str, ...] = ()

    @property
    def allowed(self) -> bool:
        """True when the change may ship (possibly after review)."""
        return self.outcome <= DecisionOutcome.REVIEW

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            "outcome": self.outcome.value,
            "status": self.status.value,
            "risk": self.risk.value,
            "allowed": self.allowed,
            "rationale": self.rationale,
            "conditions": list(self.conditions),
        }


@dataclass
class EvaluationResult:
    """Everything one evaluation tick produced for a service."""

    service: str
    slo_name: str
    evaluated_at: datetime
    budget: ErrorBudgetState
    status: SLOStatus
    readings: List[BurnRateReading] = field(default_factory=list)
    alerts: List[AlertEvent] = field(default_factory=list)
    rule_errors: List[RuleError] = field(default_factory=list)
    time_to_exhaustion: Optional[timedelta] = None

    @property
    def complete(self) -> bool:
        """False when at least one rule could not be evaluated."""
        return not self.rule_errors

    @property
    def fired_rules(self) -> List[BurnRateReading]:
        return [reading for reading in self.readings if reading.fired]

    def to_dict(self) -> Dict:
        """Convert to dictionary"""
        return {
            "service": self.service,
            "slo_name": self.slo_name,
            "evaluated_at": self.evaluated_at.isoformat(),
            "status": self.status.value,
            "complete": self.complete,
            "budget": self.budget.to_dict(),
            "readings": [r.to_dict() for r in self.readings],
            "fired_rules": [r.rule_index for r in self.fired_rules],
            "alerts": [a.to_dict() for a in self.alerts],
            "rule_errors": [e.to_dict() for e in self.rule_errors],
            "time_to_exhaustion_hours": (
                round(self.time_to_exhaustion.total_seconds() / 3600, 1)
                if self.time_to_exhaustion is not None
                else None
            ),
        }
