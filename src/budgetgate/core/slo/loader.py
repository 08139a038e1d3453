"""
Reads SLO definitions from JSON.

    {
      "slos": [
        {
          "name": "checkout-availability",
          "service": "checkout",
          "target": 0.999,
          "window": "30d",
          "burn_rate_rules": [
            {"short_window": "1h", "long_window": "6h", "threshold": 14.4, "severity": "critical"}
          ]
        }
      ]
    }

Durations are written as <number><unit> with unit one of s, m, h, d, w.
Every problem is reported as ConfigurationError at load time.

Event files seed the in-memory SLI source:

    {"events": [{"service": "checkout", "timestamp": "2026-01-15T11:50:00Z", "good": 9995, "total": 10000}]}
"""

import json
import re
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Union

from .exceptions import ConfigurationError
from .models import AlertSeverity, BurnRateRule, SLODefinition
from .sli_source import InMemorySLISource

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhdw])\s*$")
_UNITS = {"s": "seconds", "m": "minutes", "h": "hours", "d": "days", "w": "weeks"}


def parse_duration(value: Union[str, int, float]) -> timedelta:
    """Parse '30d', '6h', '5m', '90s' (or plain seconds) into a timedelta."""
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return timedelta(seconds=value)
    match = _DURATION_RE.match(str(value))
    if not match:
        raise ConfigurationError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_UNITS[unit]: float(amount)})


def _require(data: Dict[str, Any], key: str, where: str) -> Any:
    if key not in data:
        raise ConfigurationError(f"{where}: missing '{key}'")
    return data[key]


def parse_rule(data: Dict[str, Any], where: str = "rule") -> BurnRateRule:
    severity = str(_require(data, "severity", where)).lower()
    try:
        severity = AlertSeverity(severity)
    except ValueError as e:
        raise ConfigurationError(f"{where}: unknown severity '{severity}'") from e

    try:
        threshold = float(_require(data, "threshold", where))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{where}: threshold must be a number") from e

    return BurnRateRule(
        short_window=parse_duration(_require(data, "short_window", where)),
        long_window=parse_duration(_require(data, "long_window", where)),
        threshold=threshold,
        severity=severity,
    )


def parse_definition(data: Dict[str, Any]) -> SLODefinition:
    if not isinstance(data, dict):
        raise ConfigurationError(f"SLO entry must be an object, got {type(data).__name__}")

    name = data.get("name", "<unnamed>")
    where = f"SLO '{name}'"
    target = data.get("target", data.get("target_ratio"))
    if target is None:
        raise ConfigurationError(f"{where}: missing 'target'")
    try:
        target = float(target)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{where}: target must be a number") from e

    rules = [
        parse_rule(rule, where=f"{where} rule {i}")
        for i, rule in enumerate(data.get("burn_rate_rules") or [])
    ]

    return SLODefinition(
        name=str(_require(data, "name", where)),
        service=str(_require(data, "service", where)),
        target_ratio=target,
        window=parse_duration(_require(data, "window", where)),
        burn_rate_rules=tuple(rules),
        description=str(data.get("description", "")),
    )


def parse_definitions(data: Dict[str, Any]) -> List[SLODefinition]:
    entries = data.get("slos") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ConfigurationError("Definitions must contain a 'slos' list")

    definitions = [parse_definition(entry) for entry in entries]

    seen = set()
    for definition in definitions:
        if definition.service in seen:
            raise ConfigurationError(f"Duplicate SLO for service '{definition.service}'")
        seen.add(definition.service)
    return definitions


def load_definitions(path: Union[str, Path]) -> List[SLODefinition]:
    """Load and validate SLO definitions from a JSON file."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read SLO definitions from {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
    return parse_definitions(data)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    try:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as e:
        raise ConfigurationError(f"Invalid timestamp: {value!r}") from e
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def load_events(path: Union[str, Path]) -> InMemorySLISource:
    """Record every event bucket from a JSON file into an in-memory source."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read SLI events from {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e

    events = data.get("events") if isinstance(data, dict) else None
    if not isinstance(events, list):
        raise ConfigurationError("Events must contain an 'events' list")

    source = InMemorySLISource()
    for i, event in enumerate(events):
        where = f"event {i}"
        try:
            source.record(
                str(_require(event, "service", where)),
                parse_timestamp(_require(event, "timestamp", where)),
                good=int(_require(event, "good", where)),
                total=int(_require(event, "total", where)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid {where}: {e}") from e
    return source
