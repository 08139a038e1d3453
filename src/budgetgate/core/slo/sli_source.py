"""
SLI sources: where success ratios and sample counts come from.

Any metrics backend is adapted to the two-method SLISource interface at
the boundary so the evaluation core stays backend-agnostic.
"""

import asyncio
import bisect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Callable, Dict, List, Optional, TypeVar

import requests

from .exceptions import DataUnavailableError, SLOEngineError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SLISource(ABC):
    """
    Read-only view of a service's success/failure observations.

    Both calls cover the half-open range [start, end), must be idempotent,
    and must return consistent values for overlapping ranges.
    """

    @abstractmethod
    def success_ratio(self, service: str, start: datetime, end: datetime) -> float:
        """Fraction of good events in [start, end), in [0, 1]."""

    @abstractmethod
    def sample_count(self, service: str, start: datetime, end: datetime) -> int:
        """Number of events in [start, end)."""


@dataclass(frozen=True)
class _Bucket:
    timestamp: datetime
    good: int
    total: int


class InMemorySLISource(SLISource):
    """
    SLI source backed by recorded event buckets.

    Used for tests, the CLI and the API when no metrics backend is
    configured. Each record is a (timestamp, good, total) bucket.
    """

    def __init__(self):
        self._buckets: Dict[str, List[_Bucket]] = {}
        self._lock = Lock()

    def record(self, service: str, timestamp: datetime, good: int, total: int) -> None:
        """Record a bucket of events observed at ``timestamp``."""
        if total < 0 or good < 0 or good > total:
            raise ValueError(f"Invalid bucket: good={good}, total={total}")

        with self._lock:
            buckets = self._buckets.setdefault(service, [])
            keys = [b.timestamp for b in buckets]
            buckets.insert(bisect.bisect_right(keys, timestamp), _Bucket(timestamp, good, total))

    def services(self) -> List[str]:
        with self._lock:
            return sorted(self._buckets)

    def _totals(self, service: str, start: datetime, end: datetime):
        if start >= end:
            raise DataUnavailableError(f"Empty query range [{start}, {end})")

        with self._lock:
            buckets = list(self._buckets.get(service, []))

        good = 0
        total = 0
        for bucket in buckets:
            if start <= bucket.timestamp < end:
                good += bucket.good
                total += bucket.total
        return good, total

    def success_ratio(self, service: str, start: datetime, end: datetime) -> float:
        good, total = self._totals(service, start, end)
        if total == 0:
            # No events: nothing failed
            return 1.0
        return good / total

    def sample_count(self, service: str, start: datetime, end: datetime) -> int:
        _, total = self._totals(service, start, end)
        return total


class PrometheusSLISource(SLISource):
    """
    SLI source backed by the Prometheus HTTP query API.

    Queries are instant vectors evaluated at ``end`` over a range of
    ``end - start`` seconds. The templates receive ``service`` and
    ``range`` (e.g. ``3600s``) placeholders.
    """

    DEFAULT_TOTAL_QUERY = 'sum(increase(http_requests_total{{service="{service}"}}[{range}]))'
    DEFAULT_GOOD_QUERY = (
        'sum(increase(http_requests_total{{service="{service}",code!~"5.."}}[{range}]))'
    )

    def __init__(
        self,
        prometheus_url: str = "http://prometheus:9090",
        total_query: str = DEFAULT_TOTAL_QUERY,
        good_query: str = DEFAULT_GOOD_QUERY,
        timeout_s: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.prometheus_url = prometheus_url.rstrip("/")
        self.total_query = total_query
        self.good_query = good_query
        self.timeout_s = timeout_s
        self.session = session or requests.Session()
        logger.info(f"PrometheusSLISource initialized with Prometheus: {self.prometheus_url}")

    def _query(self, promql: str, at: datetime) -> Optional[float]:
        """Run an instant query; None means an empty result vector."""
        url = f"{self.prometheus_url}/api/v1/query"
        params = {"query": promql, "time": at.timestamp()}

        try:
            response = self.session.get(url, params=params, timeout=self.timeout_s)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise DataUnavailableError(f"Prometheus query failed: {e}") from e

        if data.get("status") != "success":
            raise DataUnavailableError(f"Prometheus query failed: {data.get('error', data)}")

        result = data.get("data", {}).get("result", [])
        if not result:
            return None

        try:
            return float(result[0]["value"][1])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise DataUnavailableError(f"Malformed Prometheus response: {e}") from e

    def _render(self, template: str, service: str, start: datetime, end: datetime) -> str:
        if start >= end:
            raise DataUnavailableError(f"Empty query range [{start}, {end})")
        seconds = int((end - start).total_seconds())
        return template.format(service=service, range=f"{seconds}s")

    def sample_count(self, service: str, start: datetime, end: datetime) -> int:
        value = self._query(self._render(self.total_query, service, start, end), end)
        if value is None:
            return 0
        return int(round(value))

    def success_ratio(self, service: str, start: datetime, end: datetime) -> float:
        total = self._query(self._render(self.total_query, service, start, end), end)
        if not total:
            return 1.0
        good = self._query(self._render(self.good_query, service, start, end), end)
        if good is None:
            raise DataUnavailableError(f"No good-event series for service '{service}'")
        return min(1.0, max(0.0, good / total))


def call_source(func: Callable[..., T], *args) -> T:
    """
    Call an SLI source method, mapping foreign failures to DataUnavailableError.

    Engine errors pass through untouched.
    """
    try:
        return func(*args)
    except SLOEngineError:
        raise
    except Exception as e:
        raise DataUnavailableError(f"SLI source failure: {e}") from e


async def call_source_with_timeout(func: Callable[..., T], *args, timeout_s: float) -> T:
    """Run a blocking source call in a worker thread under a timeout."""
    try:
        return await asyncio.wait_for(asyncio.to_thread(call_source, func, *args), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise DataUnavailableError(f"SLI query timed out after {timeout_s}s") from e
