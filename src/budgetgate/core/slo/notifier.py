"""
Alert notifiers: sinks for burn-rate fired/cleared events.

Delivery is at-least-once from the engine's side; deduplication, paging
and routing belong to the sink.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import requests

from budgetgate.core.observability import StructuredLogger

from .models import AlertEvent, AlertSeverity, AlertTransition


class AlertNotifier(ABC):
    """Receives alert events produced by the burn-rate evaluator."""

    @abstractmethod
    def notify(self, event: AlertEvent) -> None:
        """Deliver one event. May raise; the caller logs and carries on."""


class LoggingNotifier(AlertNotifier):
    """Writes every event as a structured log line."""

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger or StructuredLogger(__name__)

    def notify(self, event: AlertEvent) -> None:
        fields = event.to_dict()
        if event.transition is AlertTransition.CLEARED:
            self.logger.info(f"Burn-rate alert cleared for {event.service}", **fields)
        elif event.rule_severity is AlertSeverity.CRITICAL:
            self.logger.critical(f"Critical burn-rate alert fired for {event.service}", **fields)
        else:
            self.logger.warning(f"Burn-rate alert fired for {event.service}", **fields)


class WebhookNotifier(AlertNotifier):
    """POSTs each event as JSON to a webhook URL."""

    def __init__(self, url: str, timeout_s: float = 5.0, session: Optional[requests.Session] = None):
        self.url = url
        self.timeout_s = timeout_s
        self.session = session or requests.Session()

    def notify(self, event: AlertEvent) -> None:
        response = self.session.post(self.url, json=event.to_dict(), timeout=self.timeout_s)
        response.raise_for_status()


class CollectingNotifier(AlertNotifier):
    """Keeps events in memory."""

    def __init__(self):
        self.events: List[AlertEvent] = []

    def notify(self, event: AlertEvent) -> None:
        self.events.append(event)
