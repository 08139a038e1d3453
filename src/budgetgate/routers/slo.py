"""
SLO API endpoints for error budgets and release gating.

Endpoints:
- GET  /api/v1/slo/services            - Configured SLOs
- GET  /api/v1/slo/decide              - Pure decision-matrix lookup
- GET  /api/v1/slo/{service}/status    - Evaluate a service now
- POST /api/v1/slo/{service}/decision  - Evaluate, then gate a change
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from ..core.slo import (
    DataUnavailableError,
    EvaluationInProgressError,
    InsufficientDataError,
    RiskLevel,
    SLOStatus,
    UnknownServiceError,
    get_engine,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/slo", tags=["slo"])


# Response models
class BurnRateRuleResponse(BaseModel):
    """Burn-rate rule definition."""

    short_window_hours: float
    long_window_hours: float
    threshold: float
    severity: str


class SLODefinitionResponse(BaseModel):
    """Configured SLO."""

    name: str
    service: str
    description: str = ""
    target: float
    window_days: float
    burn_rate_rules: List[BurnRateRuleResponse]


class ErrorBudgetResponse(BaseModel):
    """Error budget for the SLO window."""

    slo_name: str
    service: str
    target: float
    window_days: float
    evaluated_at: datetime
    sample_count: int
    success_ratio: float
    total_budget_units: float
    consumed_units: float
    remaining_units: float
    remaining_ratio: float = Field(..., description="Unclamped; may be negative or above 1")
    remaining_pct: float = Field(..., ge=0, le=100, description="Clamped for display")


class BurnRateReadingResponse(BaseModel):
    """Burn rates for one rule."""

    rule_index: int
    rule: BurnRateRuleResponse
    short_burn: float
    long_burn: float
    fired: bool


class AlertEventResponse(BaseModel):
    """Alert transition emitted by this evaluation."""

    service: str
    slo_name: str
    rule_index: int
    rule_severity: str
    transition: str
    timestamp: datetime
    short_burn: float
    long_burn: float


class RuleErrorResponse(BaseModel):
    rule_index: int
    error: str


class EvaluationResponse(BaseModel):
    """Complete evaluation of one service."""

    service: str
    slo_name: str
    evaluated_at: datetime
    status: str
    complete: bool
    budget: ErrorBudgetResponse
    readings: List[BurnRateReadingResponse]
    fired_rules: List[int]
    alerts: List[AlertEventResponse]
    rule_errors: List[RuleErrorResponse]
    time_to_exhaustion_hours: Optional[float] = None


class DecisionResponse(BaseModel):
    """Release decision."""

    outcome: str
    status: str
    risk: str
    allowed: bool
    rationale: str
    conditions: List[str]


class DecisionRequest(BaseModel):
    risk: RiskLevel


class GateResponse(BaseModel):
    """Evaluation plus the decision it led to."""

    evaluation: EvaluationResponse
    decision: DecisionResponse


async def _evaluate(service: str, now: Optional[datetime]):
    engine = get_engine()
    try:
        return await engine.evaluate(service, now)
    except UnknownServiceError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InsufficientDataError as e:
        raise HTTPException(status_code=422, detail={"status": "unknown", "reason": str(e)}) from e
    except EvaluationInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except DataUnavailableError as e:
        logger.error(f"SLI data unavailable for {service}: {e}")
        raise HTTPException(status_code=503, detail={"status": "unknown", "reason": str(e)}) from e


@router.get("/services", response_model=List[SLODefinitionResponse])
async def list_services():
    """List the configured SLOs."""
    return [SLODefinitionResponse.model_validate(d.to_dict()) for d in get_engine().definitions()]


@router.get("/decide", response_model=DecisionResponse)
async def decide(
    status: SLOStatus = Query(..., description="SLO status"),
    risk: RiskLevel = Query(..., description="Change risk level"),
):
    """
    Look up the release decision for a status and risk level.

    Does not evaluate any service.
    """
    decision = get_engine().decide(status, risk)
    return DecisionResponse.model_validate(decision.to_dict())


@router.get("/{service}/status", response_model=EvaluationResponse)
async def get_status(
    service: str,
    now: Optional[datetime] = Query(None, description="Evaluation time (defaults to now)"),
):
    """
    Evaluate a service's error budget and burn-rate rules.

    Returns 422 with status "unknown" when the SLO window has no samples,
    503 when the SLI source cannot be read. No status is invented in
    either case.
    """
    result = await _evaluate(service, now)
    return EvaluationResponse.model_validate(result.to_dict())


@router.post("/{service}/decision", response_model=GateResponse)
async def gate_release(
    service: str,
    request: DecisionRequest,
    now: Optional[datetime] = Query(None, description="Evaluation time (defaults to now)"),
):
    """
    Release gate for CI/CD pipelines.

    Evaluates the service, then maps its status and the change's risk
    level to approve / review / delay / block.
    """
    result = await _evaluate(service, now)
    decision = get_engine().decide(result.status, request.risk)
    return GateResponse(
        evaluation=EvaluationResponse.model_validate(result.to_dict()),
        decision=DecisionResponse.model_validate(decision.to_dict()),
    )
