"""
Background scheduler for periodic SLO evaluation.

Evaluates every configured service at a fixed interval. A tick that would
overlap a still-running evaluation for the same service is skipped, never
run concurrently. Retrying a failed evaluation is simply the next tick.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

from .engine import SLOEngine
from .exceptions import EvaluationInProgressError, InsufficientDataError, SLOEngineError
from .models import EvaluationResult

logger = logging.getLogger(__name__)


class EvaluationScheduler:
    """
    Manages the background evaluation task.
    """

    def __init__(self, engine: SLOEngine, interval_s: float = 60.0):
        self.engine = engine
        self.interval_s = interval_s
        self.running = False
        self.task: Optional[asyncio.Task] = None
        self.latest: Dict[str, EvaluationResult] = {}
        self.last_errors: Dict[str, str] = {}
        self.ticks = 0

    async def start(self):
        """Start the background evaluation task."""
        if self.running:
            logger.warning("Evaluation scheduler already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._run_periodic_evaluation())
        logger.info(f"Evaluation scheduler started (interval {self.interval_s}s)")

    async def stop(self):
        """Stop the background evaluation task."""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        logger.info("Evaluation scheduler stopped")

    async def _run_periodic_evaluation(self):
        while self.running:
            try:
                await self.tick()
                await asyncio.sleep(self.interval_s)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in periodic evaluation: {e}", exc_info=True)
                await asyncio.sleep(self.interval_s)

    async def tick(self, now: Optional[datetime] = None) -> Dict[str, EvaluationResult]:
        """Evaluate all services once, in parallel."""
        now = now or datetime.now(timezone.utc)
        self.ticks += 1

        services = self.engine.services()
        outcomes = await asyncio.gather(
            *(self._evaluate_service(service, now) for service in services)
        )

        completed = {}
        for service, result in zip(services, outcomes):
            if result is not None:
                completed[service] = result
        logger.info(f"Evaluation tick {self.ticks}: {len(completed)}/{len(services)} services evaluated")
        return completed

    async def _evaluate_service(self, service: str, now: datetime) -> Optional[EvaluationResult]:
        try:
            result = await self.engine.evaluate(service, now)
        except EvaluationInProgressError:
            logger.warning(f"Skipping {service}: previous evaluation still running")
            return None
        except InsufficientDataError as e:
            # Unknown, not healthy: drop any stale result
            self.latest.pop(service, None)
            self.last_errors[service] = str(e)
            return None
        except SLOEngineError as e:
            self.latest.pop(service, None)
            self.last_errors[service] = str(e)
            logger.error(f"Evaluation failed for {service}: {e}")
            return None

        self.latest[service] = result
        self.last_errors.pop(service, None)
        return result


# Global scheduler instance
_scheduler: Optional[EvaluationScheduler] = None


def get_scheduler(engine: SLOEngine, interval_s: float) -> EvaluationScheduler:
    """Get or create the scheduler singleton."""
    global _scheduler
    if _scheduler is None:
        _scheduler = EvaluationScheduler(engine, interval_s)
    return _scheduler
