"""
Tests for the command-line interface.
"""

import json

import pytest

from budgetgate.cli import main

NOW = "2026-01-15T12:00:00Z"

DEFINITIONS = {
    "slos": [
        {
            "name": "checkout-availability",
            "service": "checkout",
            "target": 0.999,
            "window": "30d",
            "burn_rate_rules": [
                {"short_window": "1h", "long_window": "6h", "threshold": 14.4, "severity": "critical"},
                {"short_window": "6h", "long_window": "3d", "threshold": 1.5, "severity": "warning"},
            ],
        },
        {"name": "payments-availability", "service": "payments", "target": 0.99, "window": "7d"},
    ]
}


@pytest.fixture
def files(tmp_path):
    def write(events):
        definitions = tmp_path / "slos.json"
        definitions.write_text(json.dumps(DEFINITIONS))
        events_path = tmp_path / "events.json"
        events_path.write_text(json.dumps({"events": events}))
        return ["--definitions", str(definitions), "--events", str(events_path)]

    return write


def _run(argv, capsys):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    out = capsys.readouterr().out.strip()
    return exc.value.code, out


def _healthy():
    return [{"service": "checkout", "timestamp": "2026-01-15T11:50:00Z", "good": 9995, "total": 10000}]


def _fast_burn():
    return [
        {"service": "checkout", "timestamp": "2026-01-14T00:00:00Z", "good": 99995, "total": 100000},
        {"service": "checkout", "timestamp": "2026-01-15T11:50:00Z", "good": 980, "total": 1000},
    ]


def test_matrix_json(capsys):
    code, out = _run(["matrix"], capsys)

    assert code == 0
    data = json.loads(out)
    assert data["critical"]["low"] == "delay"
    assert data["healthy"]["high"] == "review"


def test_matrix_text(capsys):
    code, out = _run(["--format", "text", "matrix"], capsys)

    assert code == 0
    lines = out.splitlines()
    assert lines[0].split() == ["status", "low", "medium", "high"]
    assert lines[-1].split() == ["exhausted", "block", "block", "block"]


def test_decide_allowed(capsys):
    code, out = _run(["decide", "--status", "healthy", "--risk", "high"], capsys)

    assert code == 0
    assert json.loads(out)["outcome"] == "review"


def test_decide_blocked(capsys):
    code, out = _run(["decide", "--status", "critical", "--risk", "low"], capsys)

    assert code == 1
    assert json.loads(out)["outcome"] == "delay"


def test_evaluate(files, capsys):
    code, out = _run(["evaluate", *files(_healthy()), "--service", "checkout", "--now", NOW], capsys)

    assert code == 0
    data = json.loads(out)
    assert data["status"] == "healthy"
    assert data["budget"]["sample_count"] == 10000


def test_evaluate_fast_burn(files, capsys):
    code, out = _run(["evaluate", *files(_fast_burn()), "--service", "checkout", "--now", NOW], capsys)

    assert code == 0
    data = json.loads(out)
    assert data["status"] == "critical"
    assert data["fired_rules"] == [0]
    assert [a["transition"] for a in data["alerts"]] == ["fired"]


def test_evaluate_without_samples(files, capsys):
    code, out = _run(["evaluate", *files(_healthy()), "--service", "payments", "--now", NOW], capsys)

    assert code == 2
    assert json.loads(out)["status"] == "unknown"


def test_gate(files, capsys):
    code, out = _run(
        ["gate", *files(_fast_burn()), "--service", "checkout", "--risk", "low", "--now", NOW],
        capsys,
    )

    assert code == 1
    data = json.loads(out)
    assert data["evaluation"]["status"] == "critical"
    assert data["decision"]["outcome"] == "delay"


def test_gate_approves_healthy(files, capsys):
    code, out = _run(
        ["gate", *files(_healthy()), "--service", "checkout", "--risk", "medium", "--now", NOW],
        capsys,
    )

    assert code == 0
    assert json.loads(out)["decision"]["outcome"] == "approve"


def test_unknown_service_is_error(files, capsys):
    code, out = _run(["evaluate", *files(_healthy()), "--service", "search", "--now", NOW], capsys)

    assert code == 3
    assert "search" in json.loads(out)["error"]


def test_missing_definitions_file(tmp_path, capsys):
    events = tmp_path / "events.json"
    events.write_text('{"events": []}')

    code, out = _run(
        ["evaluate", "--definitions", str(tmp_path / "absent.json"), "--events", str(events),
         "--service", "checkout"],
        capsys,
    )

    assert code == 3
    assert "Cannot read" in json.loads(out)["error"]
