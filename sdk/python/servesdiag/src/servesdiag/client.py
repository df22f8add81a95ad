from __future__ import annotations
import json
import logging
import os
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any, Dict, Mapping, Optional

import httpx

from .results import FAULT_APPLICATION, FAULT_CONTENT_TYPE, FAULT_REQUEST, FAULT_TRANSPORT, CheckResult

logger = logging.getLogger("servesdiag.client")

DEFAULT_API_URL = "http://localhost:8000/exec"
DEFAULT_TOKEN = "demo-token-2024"
DEFAULT_TIMEOUT = 10.0

ENCODINGS = ("query", "json", "form")


class ServesDiagError(Exception):
    pass


def _env_timeout() -> float:
    raw = os.environ.get("SERVES_API_TIMEOUT")
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        return float(raw)
    except ValueError as e:
        raise ServesDiagError(f"SERVES_API_TIMEOUT must be a number of seconds, got {raw!r}") from e


def _as_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bool, dict, list)):
        return json.dumps(value)
    return str(value)


@dataclass
class Client:
    """Sends one request per call to the mock endpoint and classifies the answer.

    Every request method returns a :class:`CheckResult`; unencodable
    parameters, transport faults, non-JSON answers and error envelopes are
    reported, never raised.
    """

    base_url: str = field(default_factory=lambda: os.environ.get("NEXT_PUBLIC_API_URL", DEFAULT_API_URL))
    token: str = field(default_factory=lambda: os.environ.get("NEXT_PUBLIC_API_TOKEN", DEFAULT_TOKEN))
    timeout: float = field(default_factory=_env_timeout)
    transport: Optional[httpx.BaseTransport] = None
    _client: Optional[httpx.Client] = None

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ServesDiagError("base_url is required")
        if self.timeout <= 0:
            raise ServesDiagError("timeout must be positive")

    def _ensure(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout,
                headers={"Accept": "application/json"},
                transport=self.transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "Client":
        self._ensure()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _build_payload(
        self,
        action: Optional[str],
        params: Optional[Mapping[str, Any]],
        token: Optional[str],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        effective_token = self.token if token is None else token
        if effective_token:
            payload["token"] = effective_token
        if action is not None:
            payload["action"] = action
        for key, value in (params or {}).items():
            if value is not None:
                payload[key] = value
        return payload

    def _request_kwargs(self, method: str, encoding: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if method == "GET":
            return {"params": {k: _as_text(v) for k, v in payload.items()}}
        if encoding == "json":
            return {"json": payload}
        if encoding == "form":
            # (None, value) parts render as plain multipart/form-data fields
            return {"files": {k: (None, _as_text(v)) for k, v in payload.items()}}
        return {"params": {k: _as_text(v) for k, v in payload.items()}}

    # --- API ---
    def request(
        self,
        action: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
        *,
        method: str = "GET",
        encoding: str = "query",
        token: Optional[str] = None,
        name: Optional[str] = None,
        expect_status: Optional[int] = None,
    ) -> CheckResult:
        """Send one request and classify the outcome.

        ``expect_status`` turns the check around: it passes only when the
        endpoint answers with an error envelope carrying that status.
        """
        method = method.upper()
        if encoding not in ENCODINGS:
            raise ServesDiagError(f"Unknown encoding: {encoding}")
        label = name or f"{method} {action or '-'}"
        payload = self._build_payload(action, params, token)

        logger.debug("request name=%s method=%s encoding=%s url=%s", label, method, encoding, self.base_url)
        start = perf_counter()
        try:
            kwargs = self._request_kwargs(method, encoding, payload)
            resp = self._ensure().request(method, self.base_url, **kwargs)
        except httpx.TimeoutException as e:
            logger.info("check name=%s fault=transport timeout=%s", label, self.timeout)
            return CheckResult(
                name=label,
                success=False,
                error=f"Request timed out after {self.timeout}s: {e}",
                fault=FAULT_TRANSPORT,
                url=self.base_url,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.info("check name=%s fault=transport error=%s", label, e)
            return CheckResult(
                name=label,
                success=False,
                error=f"Connection failed: {e}",
                fault=FAULT_TRANSPORT,
                url=self.base_url,
            )
        except (TypeError, ValueError) as e:
            # raised while encoding the body, before anything is sent
            logger.info("check name=%s fault=request error=%s", label, e)
            return CheckResult(
                name=label,
                success=False,
                error=f"Could not encode request: {e}",
                fault=FAULT_REQUEST,
                url=self.base_url,
            )
        elapsed_ms = int(round((perf_counter() - start) * 1000))
        return self._classify(label, resp, elapsed_ms, expect_status)

    def _classify(
        self,
        label: str,
        resp: httpx.Response,
        elapsed_ms: int,
        expect_status: Optional[int],
    ) -> CheckResult:
        try:
            url = str(resp.request.url)
        except RuntimeError:
            url = self.base_url
        ctype = resp.headers.get("content-type", "")
        if "application/json" not in ctype.lower():
            logger.info("check name=%s fault=content_type content_type=%s", label, ctype)
            return CheckResult(
                name=label,
                success=False,
                status=resp.status_code,
                response_time_ms=elapsed_ms,
                data=resp.text[:200],
                error=f"Expected application/json response, got {ctype or 'no content type'}",
                fault=FAULT_CONTENT_TYPE,
                url=url,
            )
        try:
            body = resp.json()
        except ValueError as e:
            return CheckResult(
                name=label,
                success=False,
                status=resp.status_code,
                response_time_ms=elapsed_ms,
                data=resp.text[:200],
                error=f"Invalid JSON body: {e}",
                fault=FAULT_CONTENT_TYPE,
                url=url,
            )

        envelope_failed = isinstance(body, dict) and body.get("ok") is False
        message = body.get("message") if isinstance(body, dict) else None
        if expect_status is not None:
            envelope_status = body.get("status") if isinstance(body, dict) else None
            got = envelope_status if envelope_status is not None else resp.status_code
            success = envelope_failed and got == expect_status
            error = None if success else f"Expected error status {expect_status}, got {got}"
        else:
            success = resp.is_success and not envelope_failed
            error = None if success else (message or f"HTTP {resp.status_code}")

        logger.info("check name=%s success=%s status=%s time_ms=%d", label, success, resp.status_code, elapsed_ms)
        return CheckResult(
            name=label,
            success=success,
            status=resp.status_code,
            response_time_ms=elapsed_ms,
            data=body,
            error=error,
            fault=None if success else FAULT_APPLICATION,
            url=url,
        )

    def get(self, action: Optional[str] = None, **params: Any) -> CheckResult:
        return self.request(action, params, method="GET")

    def post_json(self, action: Optional[str] = None, **params: Any) -> CheckResult:
        return self.request(action, params, method="POST", encoding="json")

    def post_form(self, action: Optional[str] = None, **params: Any) -> CheckResult:
        return self.request(action, params, method="POST", encoding="form")
