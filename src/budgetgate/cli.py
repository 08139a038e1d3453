"""Command-line interface for the error-budget release gate.

Evaluates SLOs from local JSON files and answers release-gate questions
without running the API server.

Exit codes: 0 ok / ship, 1 delay or block, 2 status unknown, 3 error.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List

from budgetgate.core.slo import (
    DEFAULT_MATRIX,
    InsufficientDataError,
    LoggingNotifier,
    ReleaseDecisionEngine,
    RiskLevel,
    SLOEngine,
    SLOEngineError,
    SLOStatus,
    load_definitions,
    load_events,
)
from budgetgate.core.slo.loader import parse_timestamp


def _print(data: Dict[str, Any], fmt: str) -> None:
    if fmt == "json":
        print(json.dumps(data, separators=(",", ":"), ensure_ascii=False))
    else:
        # Minimal text formatting
        for k, v in data.items():
            print(f"{k}: {v}")


def _print_matrix(matrix) -> None:
    headers = ["status"] + [r.value for r in RiskLevel]
    rows: List[List[str]] = [
        [status.value] + [matrix[status][risk].value for risk in RiskLevel] for status in SLOStatus
    ]

    widths = [len(h) for h in headers]
    for r in rows:
        for i, cell in enumerate(r):
            widths[i] = max(widths[i], len(cell))

    def fmt_row(cols: List[str]) -> str:
        return "  ".join(c.ljust(widths[i]) for i, c in enumerate(cols))

    print(fmt_row(headers))
    print("  ".join("-" * w for w in widths))
    for r in rows:
        print(fmt_row(r))


def _build_engine(args: argparse.Namespace) -> SLOEngine:
    definitions = load_definitions(args.definitions)
    sli = load_events(args.events)
    return SLOEngine(definitions, sli, notifiers=[LoggingNotifier()])


def _now(args: argparse.Namespace) -> datetime:
    return parse_timestamp(args.now) if args.now else datetime.now(timezone.utc)


def cmd_matrix(args: argparse.Namespace) -> int:
    if args.format == "json":
        _print(
            {status.value: {risk.value: DEFAULT_MATRIX[status][risk].value for risk in RiskLevel} for status in SLOStatus},
            "json",
        )
    else:
        _print_matrix(DEFAULT_MATRIX)
    return 0


def cmd_decide(args: argparse.Namespace) -> int:
    decision = ReleaseDecisionEngine().decide(SLOStatus(args.status), RiskLevel(args.risk))
    _print(decision.to_dict(), args.format)
    return 0 if decision.allowed else 1


def cmd_evaluate(args: argparse.Namespace) -> int:
    engine = _build_engine(args)
    try:
        result = asyncio.run(engine.evaluate(args.service, _now(args)))
    except InsufficientDataError as e:
        _print({"service": args.service, "status": "unknown", "reason": str(e)}, args.format)
        return 2
    _print(result.to_dict(), args.format)
    return 0


def cmd_gate(args: argparse.Namespace) -> int:
    engine = _build_engine(args)
    try:
        result, decision = asyncio.run(engine.gate(args.service, RiskLevel(args.risk), _now(args)))
    except InsufficientDataError as e:
        _print({"service": args.service, "status": "unknown", "reason": str(e)}, args.format)
        return 2
    _print({"evaluation": result.to_dict(), "decision": decision.to_dict()}, args.format)
    return 0 if decision.allowed else 1


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    from budgetgate.core.config import settings

    uvicorn.run(
        "budgetgate.main:app",
        host=args.host or settings.API_HOST,
        port=args.port or settings.API_PORT,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="budgetgate", description="Error budget release gate CLI")
    p.add_argument("--format", choices=["json", "text"], default="json")

    sp = p.add_subparsers(dest="cmd", required=True)

    mx = sp.add_parser("matrix", help="Print the release decision matrix")
    mx.set_defaults(func=cmd_matrix)

    dc = sp.add_parser("decide", help="Decide for a given status and risk")
    dc.add_argument("--status", required=True, choices=[s.value for s in SLOStatus])
    dc.add_argument("--risk", required=True, choices=[r.value for r in RiskLevel])
    dc.set_defaults(func=cmd_decide)

    for name, func, help_text in (
        ("evaluate", cmd_evaluate, "Evaluate a service's error budget"),
        ("gate", cmd_gate, "Evaluate a service and gate a change"),
    ):
        sub = sp.add_parser(name, help=help_text)
        sub.add_argument("--definitions", required=True, help="SLO definitions JSON file")
        sub.add_argument("--events", required=True, help="Events JSON file")
        sub.add_argument("--service", required=True)
        sub.add_argument("--now", help="Evaluation time (ISO 8601, default: now)")
        if name == "gate":
            sub.add_argument("--risk", required=True, choices=[r.value for r in RiskLevel])
        sub.set_defaults(func=func)

    sv = sp.add_parser("serve", help="Run the HTTP API")
    sv.add_argument("--host")
    sv.add_argument("--port", type=int)
    sv.set_defaults(func=cmd_serve)

    return p


def main(argv: List[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        code = args.func(args)
        sys.exit(code)
    except SystemExit:
        raise
    except (SLOEngineError, OSError, ValueError, KeyError) as e:
        _print({"error": str(e)}, getattr(args, "format", "json"))
        sys.exit(3)


if __name__ == "__main__":
    main()
