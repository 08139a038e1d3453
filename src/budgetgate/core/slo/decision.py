"""
Release gating: maps (SLO status, change risk) to a release decision.

Default policy:

    Status \\ Risk   low      medium   high
    healthy         approve  approve  review
    attention       approve  review   delay
    warning         review   delay    block
    critical        delay    block    block
    exhausted       block    block    block

Any override must stay monotonic: a more severe status or a riskier change
never gets a less restrictive outcome. This is checked when the engine is
built, never when deciding.
"""

import logging
from typing import Dict, Iterable, Mapping, Optional, Tuple

from .exceptions import ConfigurationError
from .models import DecisionOutcome, ReleaseDecision, RiskLevel, SLOStatus

logger = logging.getLogger(__name__)

DecisionMatrix = Mapping[SLOStatus, Mapping[RiskLevel, DecisionOutcome]]

_A = DecisionOutcome.APPROVE
_R = DecisionOutcome.REVIEW
_D = DecisionOutcome.DELAY
_B = DecisionOutcome.BLOCK

DEFAULT_MATRIX: Dict[SLOStatus, Dict[RiskLevel, DecisionOutcome]] = {
    SLOStatus.HEALTHY: {RiskLevel.LOW: _A, RiskLevel.MEDIUM: _A, RiskLevel.HIGH: _R},
    SLOStatus.ATTENTION: {RiskLevel.LOW: _A, RiskLevel.MEDIUM: _R, RiskLevel.HIGH: _D},
    SLOStatus.WARNING: {RiskLevel.LOW: _R, RiskLevel.MEDIUM: _D, RiskLevel.HIGH: _B},
    SLOStatus.CRITICAL: {RiskLevel.LOW: _D, RiskLevel.MEDIUM: _B, RiskLevel.HIGH: _B},
    SLOStatus.EXHAUSTED: {RiskLevel.LOW: _B, RiskLevel.MEDIUM: _B, RiskLevel.HIGH: _B},
}

DEFAULT_CONDITIONS: Dict[DecisionOutcome, Tuple[str, ...]] = {
    DecisionOutcome.APPROVE: (),
    DecisionOutcome.REVIEW: ("Review requires sign-off from service owner",),
    DecisionOutcome.DELAY: (
        "Hold the change until the SLO status improves",
        "Re-evaluate the release gate before shipping",
    ),
    DecisionOutcome.BLOCK: (
        "Only reliability fixes and rollbacks may ship",
        "Escalate to the service owner to override",
    ),
}


def validate_matrix(matrix: DecisionMatrix) -> None:
    """
    Check that a decision matrix is complete and monotonic.

    Raises:
        ConfigurationError: a cell is missing or ordering is violated
    """
    for status in SLOStatus:
        row = matrix.get(status)
        if row is None:
            raise ConfigurationError(f"Decision matrix has no row for status '{status.value}'")
        for risk in RiskLevel:
            outcome = row.get(risk)
            if not isinstance(outcome, DecisionOutcome):
                raise ConfigurationError(
                    f"Decision matrix cell ({status.value}, {risk.value}) is missing or invalid"
                )

    statuses = list(SLOStatus)
    risks = list(RiskLevel)
    for risk in risks:
        for milder, harsher in zip(statuses, statuses[1:]):
            if matrix[harsher][risk] < matrix[milder][risk]:
                raise ConfigurationError(
                    f"Decision matrix not monotonic for {risk.value} risk: "
                    f"'{harsher.value}' -> {matrix[harsher][risk].value} is less restrictive than "
                    f"'{milder.value}' -> {matrix[milder][risk].value}"
                )
    for status in statuses:
        for lower, higher in zip(risks, risks[1:]):
            if matrix[status][higher] < matrix[status][lower]:
                raise ConfigurationError(
                    f"Decision matrix not monotonic for status '{status.value}': "
                    f"{higher.value} risk -> {matrix[status][higher].value} is less restrictive than "
                    f"{lower.value} risk -> {matrix[status][lower].value}"
                )


class ReleaseDecisionEngine:
    """Fixed-matrix release gate."""

    def __init__(
        self,
        matrix: Optional[DecisionMatrix] = None,
        extra_conditions: Optional[Mapping[Tuple[SLOStatus, RiskLevel], Iterable[str]]] = None,
    ):
        """
        Args:
            matrix: Override matrix (validated here; defaults to DEFAULT_MATRIX)
            extra_conditions: Additional prerequisites per (status, risk) cell
        """
        matrix = matrix if matrix is not None else DEFAULT_MATRIX
        validate_matrix(matrix)
        self._matrix = {status: dict(matrix[status]) for status in SLOStatus}
        self._extra_conditions = {
            cell: tuple(conditions) for cell, conditions in (extra_conditions or {}).items()
        }

    @property
    def matrix(self) -> Dict[SLOStatus, Dict[RiskLevel, DecisionOutcome]]:
        return {status: dict(row) for status, row in self._matrix.items()}

    def decide(self, status: SLOStatus, risk: RiskLevel) -> ReleaseDecision:
        outcome = self._matrix[status][risk]
        conditions = DEFAULT_CONDITIONS[outcome] + self._extra_conditions.get((status, risk), ())

        rationale = (
            f"SLO status '{status.value}' with {risk.value}-risk change: "
            f"matrix cell ({status.value}, {risk.value}) -> {outcome.value}"
        )
        logger.info(f"Release decision: {rationale}")

        return ReleaseDecision(
            outcome=outcome,
            status=status,
            risk=risk,
            rationale=rationale,
            conditions=conditions,
        )
