import textwrap
from pathlib import Path

import httpx
import pytest

from servesdiag import Client, ServesDiagError
from servesdiag.env_audit import (
    ERROR,
    SUCCESS,
    WARNING,
    EnvVarSpec,
    audit_environment,
    collect_env,
    load_expected_vars,
    quick_env_check,
    render_audit,
    verify_env_var,
)

GOOD_ENV = {
    "NEXT_PUBLIC_API_URL": "https://script.google.com/macros/s/AKfycbw_abc-123/exec",
    "NEXT_PUBLIC_API_TOKEN": "serves-platform-2024-api-key",
    "NEXT_PUBLIC_APP_NAME": "ServesPlatform",
    "NEXT_PUBLIC_APP_VERSION": "1.0.0",
    "NODE_ENV": "development",
}


def write(path: Path, content: str):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(content).lstrip(), encoding="utf-8")


def test_missing_api_url_is_error_and_excluded_from_success_count():
    env = dict(GOOD_ENV)
    del env["NEXT_PUBLIC_API_URL"]
    report = audit_environment(env)
    url = next(v for v in report.variables if v.name == "NEXT_PUBLIC_API_URL")
    assert url.status == ERROR
    assert url.issues == ["Required variable is not set"]
    assert url.display == "NOT SET"
    assert report.success_count == 4
    assert report.error_count == 1
    assert report.recommendations[0].variable == "NEXT_PUBLIC_API_URL"
    assert report.recommendations[0].solution.startswith("Set NEXT_PUBLIC_API_URL=https://script.google.com")


def test_all_good_environment():
    report = audit_environment(GOOD_ENV)
    assert report.success_count == 5
    assert report.warning_count == 0
    assert report.error_count == 0
    assert report.recommendations == []
    assert report.connectivity is None


def test_optional_missing_is_warning():
    result = verify_env_var("NEXT_PUBLIC_APP_NAME", None, EnvVarSpec(description="Application name"))
    assert result.status == WARNING
    assert result.issues == ["Optional variable is not set"]


def test_each_shape_issue_is_reported_individually():
    spec = EnvVarSpec(
        description="strict",
        required=True,
        pattern=r"^https://",
        allowed_values=("https://a", "https://b"),
        min_length=12,
    )
    result = verify_env_var("X", "http://c", spec)
    assert result.status == ERROR
    assert result.issues == [
        "Value doesn't match expected pattern",
        "Value must be one of: https://a, https://b",
        "Value must be at least 12 characters long",
    ]


@pytest.mark.parametrize(
    "name,value",
    [
        ("NEXT_PUBLIC_API_URL", "http://localhost:8000/exec"),
        ("NEXT_PUBLIC_API_TOKEN", "short"),
        ("NODE_ENV", "staging"),
    ],
)
def test_bad_values_in_default_table(name, value):
    env = dict(GOOD_ENV, **{name: value})
    report = audit_environment(env)
    bad = next(v for v in report.variables if v.name == name)
    assert bad.status == ERROR
    assert bad.display == "***"
    assert report.success_count == 4


def test_empty_string_counts_as_unset():
    env = dict(GOOD_ENV, NODE_ENV="")
    report = audit_environment(env)
    node = next(v for v in report.variables if v.name == "NODE_ENV")
    assert node.status == ERROR
    assert node.issues == ["Required variable is not set"]


def test_quick_env_check():
    assert quick_env_check({"NEXT_PUBLIC_API_URL": "x"}) == {
        "NEXT_PUBLIC_API_URL": True,
        "NEXT_PUBLIC_API_TOKEN": False,
    }


def test_collect_env_overlays_env_file(tmp_path, monkeypatch):
    monkeypatch.setenv("NODE_ENV", "production")
    monkeypatch.setenv("NEXT_PUBLIC_APP_NAME", "FromProcess")
    env_file = tmp_path / ".env.local"
    write(env_file, """
    NODE_ENV=test
    NEXT_PUBLIC_API_TOKEN=serves-platform-2024-api-key
    """)
    merged = collect_env(str(env_file))
    assert merged["NODE_ENV"] == "test"
    assert merged["NEXT_PUBLIC_APP_NAME"] == "FromProcess"

    only_file = collect_env(str(env_file), include_process=False)
    assert set(only_file) == {"NODE_ENV", "NEXT_PUBLIC_API_TOKEN"}


def test_collect_env_missing_file_raises(tmp_path):
    with pytest.raises(ServesDiagError):
        collect_env(str(tmp_path / "nope.env"))


def test_load_expected_vars_from_yaml(tmp_path):
    path = tmp_path / "expected.yaml"
    write(path, """
    SERVES_API_TOKEN:
      description: Shared secret
      required: true
      min_length: 10
      example: demo-token-2024
    LOG_LEVEL:
      allowed_values: [DEBUG, INFO, WARNING]
    """)
    table = load_expected_vars(str(path))
    assert table["SERVES_API_TOKEN"].required is True
    assert table["SERVES_API_TOKEN"].min_length == 10
    assert table["LOG_LEVEL"].allowed_values == ("DEBUG", "INFO", "WARNING")
    assert table["LOG_LEVEL"].description == "LOG_LEVEL"

    report = audit_environment({"SERVES_API_TOKEN": "demo-token-2024", "LOG_LEVEL": "TRACE"}, table)
    statuses = {v.name: v.status for v in report.variables}
    assert statuses == {"SERVES_API_TOKEN": SUCCESS, "LOG_LEVEL": ERROR}


def test_load_expected_vars_rejects_unknown_keys(tmp_path):
    path = tmp_path / "expected.yaml"
    write(path, """
    FOO:
      mandatory: true
    """)
    with pytest.raises(ServesDiagError):
        load_expected_vars(str(path))


def test_probe_uses_audited_url_and_token():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"ok": True, "data": {"rol": "admin"}, "timestamp": "t"})

    def factory(**kwargs):
        return Client(transport=httpx.MockTransport(handler), **kwargs)

    report = audit_environment(GOOD_ENV, probe=True, client_factory=factory)
    assert report.connectivity is not None
    assert report.connectivity.success is True
    assert "token=serves-platform-2024-api-key" in seen["url"]
    assert "action=whoami" in seen["url"]


def test_probe_without_url_reports_missing():
    env = dict(GOOD_ENV)
    del env["NEXT_PUBLIC_API_TOKEN"]
    report = audit_environment(env, probe=True)
    assert report.connectivity.success is False
    assert report.connectivity.error == "Missing API URL or token"


def test_render_audit_masks_values():
    env = dict(GOOD_ENV)
    del env["NEXT_PUBLIC_API_URL"]
    lines = render_audit(audit_environment(env))
    text = "\n".join(lines)
    assert "serves-platform-2024-api-key" not in text.split("Required format")[0]
    assert "[ERR]  NEXT_PUBLIC_API_URL: NOT SET (Required variable is not set)" in lines
    assert "  Errors: 1" in lines


def test_invalid_pattern_is_reported_without_stopping_the_audit():
    expected = {
        "BROKEN": EnvVarSpec(description="Broken", pattern="(["),
        "NODE_ENV": EnvVarSpec(description="Node environment", required=True),
    }
    report = audit_environment({"BROKEN": "x", "NODE_ENV": "test"}, expected)
    broken, node_env = report.variables
    assert broken.status == ERROR
    assert broken.issues[0].startswith("Invalid pattern '(['")
    assert node_env.status == SUCCESS
