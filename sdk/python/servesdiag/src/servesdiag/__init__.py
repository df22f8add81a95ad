from .client import Client, ServesDiagError
from .diagnostics import Diagnostic
from .env_audit import EnvVarSpec, audit_environment, quick_env_check, verify_env_var
from .results import CheckResult, DiagnosticReport

__all__ = [
    "CheckResult",
    "Client",
    "Diagnostic",
    "DiagnosticReport",
    "EnvVarSpec",
    "ServesDiagError",
    "audit_environment",
    "quick_env_check",
    "verify_env_var",
]
