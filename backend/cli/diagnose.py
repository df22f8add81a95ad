#!/usr/bin/env python3
"""
ServesPlatform diagnostics: console checks against the mock API endpoint.
"""
from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any, Dict, List

from servesdiag import Client, Diagnostic, ServesDiagError
from servesdiag.client import DEFAULT_API_URL, DEFAULT_TIMEOUT, ENCODINGS
from servesdiag.diagnostics import format_result, render_report
from servesdiag.results import CheckResult

DEFAULT_API_BASE = os.environ.get("NEXT_PUBLIC_API_URL", DEFAULT_API_URL)


def _print_result(result: CheckResult) -> None:
    print(format_result(result))


def _parse_params(pairs: List[str]) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Expected key=value, got {pair!r}")
        params[key] = value
    return params


def _diagnostic(args: argparse.Namespace, client: Client) -> Diagnostic:
    reporter = _print_result if args.format == "text" else None
    return Diagnostic(client, table=args.table, reporter=reporter)


def _dump(results: List[CheckResult]) -> None:
    print(json.dumps([r.to_dict() for r in results], indent=2, ensure_ascii=False))


def cmd_full(args: argparse.Namespace, client: Client) -> None:
    diag = _diagnostic(args, client)
    if args.format == "text":
        print("Starting ServesPlatform API Diagnostic...")
    report = diag.run_full()
    if args.format == "json":
        print(json.dumps(report.to_dict(), indent=2, ensure_ascii=False))
        return
    for line in render_report(report):
        print(line)


def cmd_quick(args: argparse.Namespace, client: Client) -> None:
    result = _diagnostic(args, client).quick()
    if args.format == "json":
        _dump([result])


def cmd_encodings(args: argparse.Namespace, client: Client) -> None:
    results = _diagnostic(args, client).request_encodings()
    if args.format == "json":
        _dump(results)
    else:
        passed = sum(1 for r in results if r.success)
        print(f"{passed}/{len(results)} encodings accepted")


def cmd_tables(args: argparse.Namespace, client: Client) -> None:
    results = _diagnostic(args, client).tables_smoke()
    if args.format == "json":
        _dump(results)
    else:
        passed = sum(1 for r in results if r.success)
        print(f"{passed}/{len(results)} table checks passed")


def cmd_endpoint(args: argparse.Namespace, client: Client) -> None:
    params = _parse_params(args.param or [])
    result = client.request(
        args.action,
        params,
        method=args.method,
        encoding=args.encoding,
        name=f"Custom test: {args.action}",
    )
    if args.format == "json":
        _dump([result])
        return
    _print_result(result)
    if result.data is not None:
        print(json.dumps(result.data, indent=2, ensure_ascii=False))


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="servesdiag", description="ServesPlatform diagnostics CLI")
    p.add_argument(
        "--api-url",
        default=DEFAULT_API_BASE,
        help="Endpoint URL (default from NEXT_PUBLIC_API_URL)",
    )
    p.add_argument("--token", help="Shared-secret token (default from NEXT_PUBLIC_API_TOKEN)")
    p.add_argument(
        "--timeout",
        type=float,
        help=f"Request timeout in seconds (default from SERVES_API_TIMEOUT, else {DEFAULT_TIMEOUT})",
    )
    p.add_argument("--table", default="Materiales", help="Table used by the CRUD checks")
    p.add_argument("--format", choices=["text", "json"], default="text", help="Output format")
    sub = p.add_subparsers(dest="cmd")

    p_full = sub.add_parser("full", help="Run the complete diagnostic suite")
    p_full.set_defaults(func=cmd_full)

    p_quick = sub.add_parser("quick", help="Quick connectivity test")
    p_quick.set_defaults(func=cmd_quick)

    p_enc = sub.add_parser("encodings", help="Send whoami as GET query, POST form and POST JSON")
    p_enc.set_defaults(func=cmd_encodings)

    p_tab = sub.add_parser("tables", help="Health, dashboard stats and project table listings")
    p_tab.set_defaults(func=cmd_tables)

    p_ep = sub.add_parser("endpoint", help="Test a specific action")
    p_ep.add_argument("action")
    p_ep.add_argument("--param", action="append", metavar="KEY=VALUE", help="Extra parameter (repeatable)")
    p_ep.add_argument("--method", choices=["GET", "POST"], default="GET")
    p_ep.add_argument("--encoding", choices=list(ENCODINGS), default="query")
    p_ep.set_defaults(func=cmd_endpoint)

    args = p.parse_args(argv)
    if not getattr(args, "cmd", None):
        p.print_help()
        return 0
    client_kwargs: Dict[str, Any] = {"base_url": args.api_url}
    if args.token is not None:
        client_kwargs["token"] = args.token
    if args.timeout is not None:
        client_kwargs["timeout"] = args.timeout
    try:
        with Client(**client_kwargs) as client:
            args.func(args, client)
    except (ServesDiagError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
