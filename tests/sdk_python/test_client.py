from datetime import datetime
from decimal import Decimal

import httpx
import pytest

from servesdiag import Client, ServesDiagError
from servesdiag.results import FAULT_APPLICATION, FAULT_CONTENT_TYPE, FAULT_REQUEST, FAULT_TRANSPORT

URL = "http://example/exec"


def _mock_client(handler, **kwargs):
    return Client(base_url=URL, token="demo-token-2024", transport=httpx.MockTransport(handler), **kwargs)


def test_client_builds_get_query(monkeypatch):
    captured = {}

    def fake_request(self, method, url, **kwargs):
        captured.update(method=method, url=url, **kwargs)
        return httpx.Response(200, json={"ok": True, "data": [], "timestamp": "t"})

    monkeypatch.setattr("httpx.Client.request", fake_request)
    with Client(base_url=URL, token="demo-token-2024") as c:
        result = c.request("crud", {"table": "Materiales", "operation": "list", "id": None, "n": 3})
    assert result.success is True
    assert result.status == 200
    assert result.url == URL
    assert captured["method"] == "GET"
    assert captured["url"] == URL
    assert captured["params"] == {
        "token": "demo-token-2024",
        "action": "crud",
        "table": "Materiales",
        "operation": "list",
        "n": "3",
    }


def test_post_json_sends_structured_body(monkeypatch):
    captured = {}

    def fake_request(self, method, url, **kwargs):
        captured.update(method=method, **kwargs)
        return httpx.Response(200, json={"ok": True, "data": {}, "timestamp": "t"})

    monkeypatch.setattr("httpx.Client.request", fake_request)
    with Client(base_url=URL, token="demo-token-2024") as c:
        c.post_json("crud", data={"sku": "X"})
    assert captured["method"] == "POST"
    assert captured["json"] == {"token": "demo-token-2024", "action": "crud", "data": {"sku": "X"}}


def test_post_form_sends_multipart_fields():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.read()
        return httpx.Response(200, json={"ok": True, "data": [], "timestamp": "t"})

    with _mock_client(handler) as c:
        result = c.post_form("whoami", flag=True)
    assert result.success is True
    assert seen["content_type"].startswith("multipart/form-data")
    assert b'name="token"' in seen["body"]
    assert b"demo-token-2024" in seen["body"]
    assert b"filename" not in seen["body"]
    assert b"true" in seen["body"]


def test_error_envelope_is_application_fault():
    def handler(request):
        return httpx.Response(401, json={"ok": False, "message": "Invalid credentials", "status": 401, "timestamp": "t"})

    with _mock_client(handler) as c:
        result = c.request("auth", {"email": "x", "password": "y"})
    assert result.success is False
    assert result.status == 401
    assert result.error == "Invalid credentials"
    assert result.fault == FAULT_APPLICATION
    assert result.response_time_ms is not None


def test_error_envelope_with_http_200_still_fails():
    def handler(request):
        return httpx.Response(200, json={"ok": False, "message": "Invalid token", "status": 401, "timestamp": "t"})

    with _mock_client(handler) as c:
        result = c.request("whoami")
    assert result.success is False
    assert result.status == 200
    assert result.fault == FAULT_APPLICATION


def test_expect_status_passes_on_matching_error_envelope():
    def handler(request):
        return httpx.Response(200, json={"ok": False, "message": "Invalid token", "status": 401, "timestamp": "t"})

    with _mock_client(handler) as c:
        ok = c.request("whoami", token="invalid-token", expect_status=401)
        wrong = c.request("whoami", token="invalid-token", expect_status=500)
    assert ok.success is True and ok.fault is None
    assert wrong.success is False
    assert wrong.error == "Expected error status 500, got 401"


def test_non_json_response_is_content_type_fault():
    def handler(request):
        return httpx.Response(200, html="<html><body>Sign in to continue</body></html>" + "x" * 500)

    with _mock_client(handler) as c:
        result = c.request("whoami")
    assert result.success is False
    assert result.status == 200
    assert result.fault == FAULT_CONTENT_TYPE
    assert "text/html" in result.error
    assert len(result.data) == 200


def test_invalid_json_with_json_content_type_is_content_type_fault():
    def handler(request):
        return httpx.Response(200, content=b"{oops", headers={"content-type": "application/json"})

    with _mock_client(handler) as c:
        result = c.request("whoami")
    assert result.success is False
    assert result.fault == FAULT_CONTENT_TYPE


def test_timeout_is_transport_fault():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with _mock_client(handler, timeout=0.5) as c:
        result = c.request("whoami", name="quick")
    assert result.name == "quick"
    assert result.success is False
    assert result.status is None
    assert result.fault == FAULT_TRANSPORT
    assert "timed out after 0.5s" in result.error


def test_connection_error_is_transport_fault():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with _mock_client(handler) as c:
        result = c.request("whoami")
    assert result.success is False
    assert result.fault == FAULT_TRANSPORT
    assert result.error.startswith("Connection failed")


def test_env_defaults(monkeypatch):
    monkeypatch.setenv("NEXT_PUBLIC_API_URL", "https://api.test/exec")
    monkeypatch.setenv("NEXT_PUBLIC_API_TOKEN", "env-token-value")
    monkeypatch.setenv("SERVES_API_TIMEOUT", "2.5")
    c = Client()
    assert c.base_url == "https://api.test/exec"
    assert c.token == "env-token-value"
    assert c.timeout == 2.5


def test_invalid_configuration_raises(monkeypatch):
    with pytest.raises(ServesDiagError):
        Client(base_url="")
    with pytest.raises(ServesDiagError):
        Client(base_url=URL, timeout=0)
    monkeypatch.setenv("SERVES_API_TIMEOUT", "soon")
    with pytest.raises(ServesDiagError):
        Client(base_url=URL)


def test_unknown_encoding_raises():
    with pytest.raises(ServesDiagError):
        Client(base_url=URL).request("whoami", encoding="xml")


def test_result_to_dict_drops_empty_fields():
    def handler(request):
        raise httpx.ConnectError("down", request=request)

    with _mock_client(handler) as c:
        out = c.request("whoami", name="c").to_dict()
    assert out["name"] == "c"
    assert out["success"] is False
    assert "status" not in out and "data" not in out
    assert out["fault"] == FAULT_TRANSPORT


@pytest.mark.parametrize("value", [Decimal("1.5"), datetime(2024, 1, 1)])
def test_unencodable_json_param_is_request_fault(value):
    def handler(request):
        raise AssertionError("nothing should be sent")

    with _mock_client(handler) as c:
        result = c.post_json("crud", table="Materiales", operation="create", data={"costo": value})
    assert result.success is False
    assert result.status is None
    assert result.fault == FAULT_REQUEST
    assert result.error.startswith("Could not encode request")
