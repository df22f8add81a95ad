"""Environment variable audit.

Checks a mapping of configuration values against an expected-shape table.
Every variable is classified on its own (success, warning or error); one
bad variable never stops the audit.
"""
from __future__ import annotations

import logging
import os
import re
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import yaml
from dotenv import dotenv_values

from .client import Client, ServesDiagError
from .results import CheckResult

logger = logging.getLogger("servesdiag.env_audit")

SUCCESS = "success"
WARNING = "warning"
ERROR = "error"

NOT_SET = "NOT SET"
CRITICAL_VARS = ("NEXT_PUBLIC_API_URL", "NEXT_PUBLIC_API_TOKEN")


@dataclass(frozen=True)
class EnvVarSpec:
    description: str
    required: bool = False
    pattern: Optional[str] = None
    allowed_values: Tuple[str, ...] = ()
    min_length: Optional[int] = None
    example: str = ""


EXPECTED_ENV_VARS: Dict[str, EnvVarSpec] = {
    "NEXT_PUBLIC_API_URL": EnvVarSpec(
        description="Google Apps Script API URL",
        required=True,
        pattern=r"script\.google\.com/macros/s/[A-Za-z0-9_-]+/exec",
        example="https://script.google.com/macros/s/AKfycbw.../exec",
    ),
    "NEXT_PUBLIC_API_TOKEN": EnvVarSpec(
        description="API authentication token",
        required=True,
        min_length=10,
        example="serves-platform-2024-api-key",
    ),
    "NEXT_PUBLIC_APP_NAME": EnvVarSpec(
        description="Application name",
        example="ServesPlatform",
    ),
    "NEXT_PUBLIC_APP_VERSION": EnvVarSpec(
        description="Application version",
        example="1.0.0",
    ),
    "NODE_ENV": EnvVarSpec(
        description="Node environment",
        required=True,
        allowed_values=("development", "production", "test"),
        example="development",
    ),
}


@dataclass
class EnvVarResult:
    name: str
    value: Optional[str]
    status: str
    issues: List[str] = field(default_factory=list)

    @property
    def display(self) -> str:
        return NOT_SET if not self.value else "***"


@dataclass
class Recommendation:
    variable: str
    issue: str
    solution: str
    description: str


@dataclass
class EnvAuditReport:
    variables: List[EnvVarResult] = field(default_factory=list)
    recommendations: List[Recommendation] = field(default_factory=list)
    connectivity: Optional[CheckResult] = None

    def _count(self, status: str) -> int:
        return sum(1 for v in self.variables if v.status == status)

    @property
    def success_count(self) -> int:
        return self._count(SUCCESS)

    @property
    def warning_count(self) -> int:
        return self._count(WARNING)

    @property
    def error_count(self) -> int:
        return self._count(ERROR)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "summary": {
                "success": self.success_count,
                "warning": self.warning_count,
                "error": self.error_count,
            },
            "variables": [
                {"name": v.name, "value": v.display, "status": v.status, "issues": list(v.issues)}
                for v in self.variables
            ],
            "recommendations": [asdict(r) for r in self.recommendations],
            "connectivity": self.connectivity.to_dict() if self.connectivity else None,
        }


def verify_env_var(name: str, value: Optional[str], spec: EnvVarSpec) -> EnvVarResult:
    result = EnvVarResult(name=name, value=value or None, status="unknown")

    if not value:
        if spec.required:
            result.status = ERROR
            result.issues.append("Required variable is not set")
        else:
            result.status = WARNING
            result.issues.append("Optional variable is not set")
        return result

    if spec.pattern:
        try:
            if not re.search(spec.pattern, value):
                result.issues.append("Value doesn't match expected pattern")
        except re.error as e:
            result.issues.append(f"Invalid pattern {spec.pattern!r}: {e}")
    if spec.allowed_values and value not in spec.allowed_values:
        result.issues.append(f"Value must be one of: {', '.join(spec.allowed_values)}")
    if spec.min_length and len(value) < spec.min_length:
        result.issues.append(f"Value must be at least {spec.min_length} characters long")

    result.status = ERROR if result.issues else SUCCESS
    return result


def recommendations_for(results: List[EnvVarResult], expected: Mapping[str, EnvVarSpec]) -> List[Recommendation]:
    recs: List[Recommendation] = []
    for r in results:
        if r.status != ERROR:
            continue
        spec = expected[r.name]
        recs.append(
            Recommendation(
                variable=r.name,
                issue=", ".join(r.issues),
                solution=f"Set {r.name}={spec.example}",
                description=spec.description,
            )
        )
    return recs


def collect_env(env_file: Optional[str] = None, include_process: bool = True) -> Dict[str, str]:
    """Process environment overlaid with values from ``env_file``."""
    values: Dict[str, str] = dict(os.environ) if include_process else {}
    if env_file:
        path = Path(env_file).expanduser()
        if not path.exists():
            raise ServesDiagError(f"env file not found: {path}")
        for key, value in dotenv_values(str(path)).items():
            if value is not None:
                values[key] = value
    return values


def _compile_pattern(pattern: str) -> "re.Pattern[str]":
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ServesDiagError(f"invalid pattern {pattern!r}: {e}") from e


def load_expected_vars(path: str) -> Dict[str, EnvVarSpec]:
    """Load an expected-shape table from YAML.

    The file maps variable names to ``EnvVarSpec`` fields; ``allowed_values``
    is a list. Any malformed entry raises :class:`ServesDiagError`.
    """
    with Path(path).open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as e:
            raise ServesDiagError(f"{path}: invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ServesDiagError(f"{path}: expected a mapping of variable names")
    table: Dict[str, EnvVarSpec] = {}
    for name, fields in data.items():
        if fields is None:
            fields = {}
        if not isinstance(fields, dict):
            raise ServesDiagError(f"{path}: entry for {name} must be a mapping, got {fields!r}")
        fields = dict(fields)
        allowed = fields.get("allowed_values")
        if allowed is not None:
            if not isinstance(allowed, list):
                raise ServesDiagError(f"{path}: allowed_values for {name} must be a list")
            fields["allowed_values"] = tuple(str(v) for v in allowed)
        if fields.get("pattern") is not None:
            fields["pattern"] = str(fields["pattern"])
            _compile_pattern(fields["pattern"])
        min_length = fields.get("min_length")
        if min_length is not None and (isinstance(min_length, bool) or not isinstance(min_length, int)):
            raise ServesDiagError(f"{path}: min_length for {name} must be an integer")
        fields.setdefault("description", str(name))
        try:
            table[str(name)] = EnvVarSpec(**fields)
        except (TypeError, ValueError) as e:
            raise ServesDiagError(f"{path}: invalid entry for {name}: {e}") from e
    return table


def probe_connectivity(
    api_url: Optional[str],
    api_token: Optional[str],
    client_factory: Callable[..., Client] = Client,
) -> CheckResult:
    """whoami against the audited URL/token with a short timeout."""
    if not api_url or not api_token:
        return CheckResult(name="API connectivity", success=False, error="Missing API URL or token")
    client = client_factory(base_url=api_url, token=api_token, timeout=5.0)
    try:
        return client.request("whoami", name="API connectivity")
    finally:
        client.close()


def audit_environment(
    env: Optional[Mapping[str, str]] = None,
    expected: Optional[Mapping[str, EnvVarSpec]] = None,
    *,
    probe: bool = False,
    client_factory: Callable[..., Client] = Client,
) -> EnvAuditReport:
    env = os.environ if env is None else env
    expected = EXPECTED_ENV_VARS if expected is None else expected

    report = EnvAuditReport()
    for name, spec in expected.items():
        result = verify_env_var(name, env.get(name), spec)
        logger.debug("env.check name=%s status=%s issues=%s", name, result.status, result.issues)
        report.variables.append(result)
    report.recommendations = recommendations_for(report.variables, expected)

    if probe:
        report.connectivity = probe_connectivity(
            env.get("NEXT_PUBLIC_API_URL"),
            env.get("NEXT_PUBLIC_API_TOKEN"),
            client_factory=client_factory,
        )

    logger.info(
        "env.audit success=%d warning=%d error=%d",
        report.success_count,
        report.warning_count,
        report.error_count,
    )
    return report


def quick_env_check(env: Optional[Mapping[str, str]] = None) -> Dict[str, bool]:
    env = os.environ if env is None else env
    return {name: bool(env.get(name)) for name in CRITICAL_VARS}


def render_audit(report: EnvAuditReport, expected: Optional[Mapping[str, EnvVarSpec]] = None) -> List[str]:
    expected = EXPECTED_ENV_VARS if expected is None else expected
    marks = {SUCCESS: "[OK]  ", WARNING: "[WARN]", ERROR: "[ERR] "}
    lines = ["Checking Environment Variables..."]
    for v in report.variables:
        issues = f" ({', '.join(v.issues)})" if v.issues else ""
        lines.append(f"{marks.get(v.status, '[??]  ')} {v.name}: {v.display}{issues}")
    if report.connectivity is not None:
        state = "Working" if report.connectivity.success else f"Failed: {report.connectivity.error}"
        lines.append(f"API Connectivity: {state}")
    lines.append("")
    lines.append("Summary:")
    lines.append(f"  Success: {report.success_count}")
    lines.append(f"  Warnings: {report.warning_count}")
    lines.append(f"  Errors: {report.error_count}")
    if report.recommendations:
        lines.append("")
        lines.append("Recommendations:")
        for idx, rec in enumerate(report.recommendations, start=1):
            lines.append(f"{idx}. {rec.variable} - {rec.description}")
            lines.append(f"   Issue: {rec.issue}")
            lines.append(f"   Solution: {rec.solution}")
    lines.append("")
    lines.append("Required format for .env file:")
    lines.extend(f"   {name}={spec.example}" for name, spec in expected.items() if spec.required)
    return lines
