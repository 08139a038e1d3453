"""
Pytest configuration and fixtures.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from budgetgate.core.slo import (
    AlertSeverity,
    BurnRateRule,
    DataUnavailableError,
    SLODefinition,
    SLISource,
    set_engine,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class WindowedSource(SLISource):
    """
    Deterministic SLI source keyed by window length (end - start).

    ``windows`` maps a window length to (sample_count, success_ratio).
    Unknown windows return zero samples.
    """

    def __init__(
        self,
        windows: Dict[timedelta, Tuple[int, float]],
        failures: Optional[Dict[timedelta, Exception]] = None,
        delays: Optional[Dict[timedelta, float]] = None,
    ):
        self.windows = dict(windows)
        self.failures = dict(failures or {})
        self.delays = dict(delays or {})
        self.calls: List[Tuple[str, str, timedelta]] = []

    def _lookup(self, method: str, service: str, start: datetime, end: datetime):
        window = end - start
        self.calls.append((method, service, window))
        if window in self.delays:
            time.sleep(self.delays[window])
        if window in self.failures:
            raise self.failures[window]
        return self.windows.get(window, (0, 1.0))

    def success_ratio(self, service, start, end):
        return self._lookup("success_ratio", service, start, end)[1]

    def sample_count(self, service, start, end):
        return self._lookup("sample_count", service, start, end)[0]


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests that wait on real timeouts",
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def critical_rule():
    return BurnRateRule(
        short_window=timedelta(hours=1),
        long_window=timedelta(hours=6),
        threshold=14.4,
        severity=AlertSeverity.CRITICAL,
    )


@pytest.fixture
def warning_rule():
    return BurnRateRule(
        short_window=timedelta(hours=6),
        long_window=timedelta(days=3),
        threshold=1.5,
        severity=AlertSeverity.WARNING,
    )


@pytest.fixture
def definition(critical_rule, warning_rule):
    """99.9% over 30 days with a fast critical and a slow warning rule."""
    return SLODefinition(
        name="checkout-availability",
        service="checkout",
        target_ratio=0.999,
        window=timedelta(days=30),
        burn_rate_rules=(warning_rule, critical_rule),
    )


@pytest.fixture
def make_source():
    """Factory for WindowedSource instances."""
    def factory(windows, failures=None, delays=None):
        return WindowedSource(windows, failures=failures, delays=delays)

    return factory


@pytest.fixture
def unavailable():
    return DataUnavailableError("prometheus unreachable")


@pytest.fixture(autouse=True)
def reset_engine():
    """Never leak an engine singleton between tests."""
    set_engine(None)
    yield
    set_engine(None)
