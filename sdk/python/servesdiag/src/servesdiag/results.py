from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

FAULT_TRANSPORT = "transport"
FAULT_CONTENT_TYPE = "content_type"
FAULT_APPLICATION = "application"
FAULT_REQUEST = "request"


@dataclass
class CheckResult:
    """Outcome of one diagnostic check.

    ``fault`` separates where a failure came from: ``request`` (parameters
    that could not be encoded), ``transport`` (timeout, network),
    ``content_type`` (a non-JSON answer) or ``application`` (an error envelope
    or unexpected status). It is ``None`` on success.
    """

    name: str
    success: bool
    status: Optional[int] = None
    response_time_ms: Optional[int] = None
    data: Any = None
    error: Optional[str] = None
    fault: Optional[str] = None
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        return {k: v for k, v in out.items() if v is not None or k in ("name", "success")}


@dataclass
class TroubleshootingItem:
    issue: str
    steps: List[str] = field(default_factory=list)


@dataclass
class DiagnosticReport:
    groups: Dict[str, List[CheckResult]] = field(default_factory=dict)
    elapsed_ms: int = 0
    troubleshooting: List[TroubleshootingItem] = field(default_factory=list)

    @property
    def results(self) -> List[CheckResult]:
        return [r for group in self.groups.values() for r in group]

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.passed

    def group_passed(self, name: str) -> bool:
        group = self.groups.get(name) or []
        return bool(group) and group[0].success

    def to_dict(self) -> Dict[str, Any]:
        return {
            "elapsed_ms": self.elapsed_ms,
            "passed": self.passed,
            "failed": self.failed,
            "groups": {name: [r.to_dict() for r in group] for name, group in self.groups.items()},
            "troubleshooting": [asdict(t) for t in self.troubleshooting],
        }
