"""
Tests for SLI sources.
"""

from datetime import timedelta

import pytest
import requests

from budgetgate.core.slo import DataUnavailableError, InMemorySLISource, PrometheusSLISource


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        return self.payload


class FakeSession:
    """Answers instant queries from a dict of query substring -> value."""

    def __init__(self, values=None, status_code=200, error=None):
        self.values = values or {}
        self.status_code = status_code
        self.error = error
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        if self.error:
            raise self.error
        query = params["query"]
        result = []
        for needle, value in self.values.items():
            if needle in query:
                result = [{"metric": {}, "value": [params["time"], str(value)]}]
                break
        return FakeResponse({"status": "success", "data": {"resultType": "vector", "result": result}}, self.status_code)


class TestInMemorySLISource:
    def test_half_open_range(self, now):
        source = InMemorySLISource()
        source.record("api", now - timedelta(hours=1), good=9, total=10)
        source.record("api", now, good=0, total=10)

        start = now - timedelta(hours=1)
        assert source.sample_count("api", start, now) == 10
        assert source.success_ratio("api", start, now) == pytest.approx(0.9)
        assert source.sample_count("api", start, now + timedelta(seconds=1)) == 20

    def test_out_of_order_records(self, now):
        source = InMemorySLISource()
        source.record("api", now - timedelta(minutes=5), good=5, total=10)
        source.record("api", now - timedelta(minutes=30), good=10, total=10)

        assert source.success_ratio("api", now - timedelta(hours=1), now) == pytest.approx(0.75)

    def test_services_isolated(self, now):
        source = InMemorySLISource()
        source.record("api", now - timedelta(minutes=1), good=0, total=10)

        assert source.sample_count("web", now - timedelta(hours=1), now) == 0
        assert source.success_ratio("web", now - timedelta(hours=1), now) == 1.0
        assert source.services() == ["api"]

    def test_queries_are_idempotent(self, now):
        source = InMemorySLISource()
        source.record("api", now - timedelta(minutes=1), good=7, total=10)
        start = now - timedelta(hours=1)

        assert source.success_ratio("api", start, now) == source.success_ratio("api", start, now)

    @pytest.mark.parametrize("good,total", [(11, 10), (-1, 10), (0, -1)])
    def test_invalid_bucket(self, now, good, total):
        with pytest.raises(ValueError):
            InMemorySLISource().record("api", now, good=good, total=total)

    def test_empty_range(self, now):
        with pytest.raises(DataUnavailableError):
            InMemorySLISource().sample_count("api", now, now)


class TestPrometheusSLISource:
    def _source(self, session):
        return PrometheusSLISource("http://prom:9090/", timeout_s=2.0, session=session)

    def test_sample_count_and_ratio(self, now):
        session = FakeSession({'code!~"5.."': 990, 'service="api"': 1000})
        source = self._source(session)
        start = now - timedelta(hours=1)

        assert source.sample_count("api", start, now) == 1000
        assert source.success_ratio("api", start, now) == pytest.approx(0.99)

        url, params, timeout = session.requests[0]
        assert url == "http://prom:9090/api/v1/query"
        assert "[3600s]" in params["query"]
        assert params["time"] == now.timestamp()
        assert timeout == 2.0

    def test_empty_vector_means_no_samples(self, now):
        source = self._source(FakeSession({}))
        start = now - timedelta(hours=1)

        assert source.sample_count("api", start, now) == 0
        assert source.success_ratio("api", start, now) == 1.0

    def test_ratio_clamped(self, now):
        # counter resets can make increase() of good exceed total
        session = FakeSession({'code!~"5.."': 1003, 'service="api"': 1000})
        source = self._source(session)

        assert source.success_ratio("api", now - timedelta(hours=1), now) == 1.0

    def test_http_error(self, now):
        source = self._source(FakeSession({'service="api"': 1}, status_code=503))

        with pytest.raises(DataUnavailableError, match="Prometheus query failed"):
            source.sample_count("api", now - timedelta(hours=1), now)

    def test_connection_error(self, now):
        source = self._source(FakeSession(error=requests.ConnectionError("refused")))

        with pytest.raises(DataUnavailableError, match="refused"):
            source.sample_count("api", now - timedelta(hours=1), now)

    def test_error_status(self, now):
        class ErrorSession(FakeSession):
            def get(self, url, params=None, timeout=None):
                return FakeResponse({"status": "error", "error": "bad_data: parse error"})

        source = self._source(ErrorSession())

        with pytest.raises(DataUnavailableError, match="parse error"):
            source.sample_count("api", now - timedelta(hours=1), now)
