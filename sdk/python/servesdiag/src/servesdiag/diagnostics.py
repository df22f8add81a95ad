"""Named diagnostic checks against the mock endpoint.

Checks run one after another; a failing check never stops the run. The
report tallies every sub-result and lists troubleshooting steps for the
groups that failed.
"""
from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlparse

from .client import Client
from .results import CheckResult, DiagnosticReport, TroubleshootingItem

logger = logging.getLogger("servesdiag.diagnostics")

TEST_EMAIL = "admin@servesplatform.com"
TEST_PASSWORD = "admin123"
MATERIALS_TABLE = "Materiales"
SMOKE_TABLES = ("Proyectos", "Colaboradores")

TROUBLESHOOTING: Dict[str, TroubleshootingItem] = {
    "connectivity": TroubleshootingItem(
        issue="Cannot connect to API",
        steps=[
            "1. Verify the endpoint URL is correct",
            "2. Check that the mock API is running (uvicorn backend.app.main:app)",
            "3. Ensure the API token matches the server's SERVES_API_TOKEN",
            "4. Check network connectivity and firewall settings",
        ],
    ),
    "auth": TroubleshootingItem(
        issue="Authentication failing",
        steps=[
            "1. Verify test credentials are correct",
            "2. Check SERVES_ADMIN_EMAIL and SERVES_ADMIN_PASSWORD on the server",
            "3. Ensure API token is valid",
            "4. Check for CORS issues",
        ],
    ),
    "materials": TroubleshootingItem(
        issue="Materials CRUD operations failing",
        steps=[
            "1. Verify the table name matches the server's materials table",
            "2. Check that the list operation returns the sample records",
            "3. Ensure proper error handling is in place",
            "4. Verify table parameter is being processed correctly",
        ],
    ),
}


def _mask(secret: Optional[str]) -> str:
    if not secret:
        return "NOT SET"
    return "***" + secret[-4:]


class Diagnostic:
    def __init__(
        self,
        client: Client,
        *,
        email: str = TEST_EMAIL,
        password: str = TEST_PASSWORD,
        table: str = MATERIALS_TABLE,
        material_id: str = "MAT001",
        reporter: Optional[Callable[[CheckResult], None]] = None,
    ) -> None:
        self.client = client
        self.email = email
        self.password = password
        self.table = table
        self.material_id = material_id
        self.reporter = reporter

    def _emit(self, result: CheckResult) -> CheckResult:
        if self.reporter is not None:
            self.reporter(result)
        return result

    def _run(self, name: str, action: Optional[str], params: Optional[Dict[str, Any]] = None, **kwargs: Any) -> CheckResult:
        return self._emit(self.client.request(action, params, name=name, **kwargs))

    # --- named checks ---
    def connectivity(self) -> CheckResult:
        return self._run("Basic connectivity test", "whoami")

    def authentication(self) -> CheckResult:
        return self._run(
            "Authentication with test credentials",
            "auth",
            {"email": self.email, "password": self.password},
        )

    def materials_crud(self) -> List[CheckResult]:
        base = {"table": self.table}
        return [
            self._run("List materials", "crud", {**base, "operation": "list"}),
            self._run("Get specific material", "crud", {**base, "operation": "get", "id": self.material_id}),
            self._run(
                "Create new material",
                "crud",
                {
                    **base,
                    "operation": "create",
                    "descripcion": "Test Material",
                    "categoria": "Test Category",
                    "unidad": "kg",
                    "costo_ref": "100",
                },
            ),
            self._run(
                "Update material",
                "crud",
                {**base, "operation": "update", "id": self.material_id, "descripcion": "Updated Test Material"},
            ),
            self._run("Delete material", "crud", {**base, "operation": "delete", "id": self.material_id}),
        ]

    def error_handling(self) -> List[CheckResult]:
        return [
            self._run("Invalid API token", "whoami", token="invalid-token", expect_status=401),
            self._run("Missing required parameters", "crud"),
            self._run("Invalid CRUD operation", "crud", {"operation": "invalid", "table": self.table}),
            self._run("Invalid action", "invalid-action"),
        ]

    def request_encodings(self) -> List[CheckResult]:
        """Send the same whoami request as GET query, POST form and POST JSON."""
        return [
            self._run("GET with query parameters", "whoami", method="GET"),
            self._run("POST with form data", "whoami", method="POST", encoding="form"),
            self._run("POST with JSON body", "whoami", method="POST", encoding="json"),
        ]

    def tables_smoke(self) -> List[CheckResult]:
        """health, dashboard stats, then a list on each project table."""
        results = [
            self._run("Health check", "health"),
            self._run("Dashboard stats", "getDashboardStats"),
        ]
        for table in SMOKE_TABLES:
            results.append(self._run(f"List {table}", "crud", {"table": table, "operation": "list"}))
        return results

    def endpoint(self, action: str, **params: Any) -> CheckResult:
        return self._run(f"Custom test: {action}", action, params)

    def config_checks(self) -> List[CheckResult]:
        parsed = urlparse(self.client.base_url)
        url_ok = parsed.scheme in ("http", "https") and bool(parsed.netloc)
        token = self.client.token or ""
        token_ok = len(token) > 10
        timeout_ok = self.client.timeout > 0
        return [
            self._emit(
                CheckResult(
                    name="API endpoint URL",
                    success=url_ok,
                    data=self.client.base_url,
                    error=None if url_ok else "Endpoint URL must be http(s) with a host",
                )
            ),
            self._emit(
                CheckResult(
                    name="API token",
                    success=token_ok,
                    data=_mask(token),
                    error=None if token_ok else "Token must be longer than 10 characters",
                )
            ),
            self._emit(
                CheckResult(
                    name="Request timeout",
                    success=timeout_ok,
                    data=f"{int(self.client.timeout * 1000)}ms",
                    error=None if timeout_ok else "Timeout must be positive",
                )
            ),
        ]

    def quick(self) -> CheckResult:
        return self.connectivity()

    def run_full(self) -> DiagnosticReport:
        start = perf_counter()
        report = DiagnosticReport()
        report.groups["config"] = self.config_checks()
        report.groups["connectivity"] = [self.connectivity()]
        report.groups["auth"] = [self.authentication()]
        report.groups["materials"] = self.materials_crud()
        report.groups["error_handling"] = self.error_handling()
        report.elapsed_ms = int(round((perf_counter() - start) * 1000))
        report.troubleshooting = troubleshoot(report)
        logger.info(
            "diagnostic.complete passed=%d failed=%d elapsed_ms=%d",
            report.passed,
            report.failed,
            report.elapsed_ms,
        )
        return report


def troubleshoot(report: DiagnosticReport) -> List[TroubleshootingItem]:
    return [item for group, item in TROUBLESHOOTING.items() if not report.group_passed(group)]


def format_result(result: CheckResult) -> str:
    if result.success:
        timing = f" - {result.response_time_ms}ms" if result.response_time_ms is not None else ""
        detail = f": {result.data}" if result.response_time_ms is None and result.data is not None else ""
        return f"[PASS] {result.name}{timing}{detail}"
    status = f" - Status: {result.status}" if result.status is not None else ""
    error = f" ({result.error})" if result.error else ""
    return f"[FAIL] {result.name}{status}{error}"


def render_report(report: DiagnosticReport) -> List[str]:
    lines = ["", "Diagnostic Summary:", f"  Total time: {report.elapsed_ms}ms"]
    lines.append(f"  Successful checks: {report.passed}")
    lines.append(f"  Failed checks: {report.failed}")
    lines.append("")
    if not report.troubleshooting:
        lines.append("No major issues detected! API appears to be working correctly.")
    for idx, item in enumerate(report.troubleshooting, start=1):
        lines.append(f"Issue {idx}: {item.issue}")
        lines.extend(f"   {step}" for step in item.steps)
    return lines
