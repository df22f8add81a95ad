"""Request routing for the mock endpoint.

The handler is framework-free: it takes the merged parameter mapping of one
request and always returns a well-formed envelope. Auth failures and
unexpected faults become error envelopes; nothing escapes ``handle``.
"""
from __future__ import annotations

import logging
from datetime import datetime, UTC
from time import perf_counter
from typing import Any, Callable, Mapping, Optional

from .catalog import MATERIALS_TABLE, TOKEN_PREFIX, admin_user, list_materials
from .deps import Settings
from .metrics import action_label, serves_api_latency_seconds, serves_api_requests_total
from .schemas import ApiRequest, AuthPayload, Envelope, ErrorEnvelope, SuccessEnvelope

logger = logging.getLogger("serves_api.handler")


def _utcnow() -> datetime:
    return datetime.now(UTC)


def iso_timestamp(dt: datetime) -> str:
    """ISO-8601 UTC with milliseconds and a ``Z`` suffix."""
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class MockApiHandler:
    def __init__(self, settings: Settings, clock: Callable[[], datetime] = _utcnow):
        self.settings = settings
        self.clock = clock
        self._last_token_ms = 0

    # --- envelopes ---
    def success(self, data: Any) -> SuccessEnvelope:
        return SuccessEnvelope(data=data, timestamp=iso_timestamp(self.clock()))

    def error(self, message: str, status: int = 400) -> ErrorEnvelope:
        return ErrorEnvelope(message=message, status=status, timestamp=iso_timestamp(self.clock()))

    def http_status(self, envelope: Envelope) -> int:
        if isinstance(envelope, ErrorEnvelope) and self.settings.mirror_status:
            return envelope.status
        return 200

    # --- entrypoint ---
    def handle(self, params: Optional[Mapping[str, Any]]) -> Envelope:
        raw = dict(params or {})
        action = action_label(raw.get("action"))
        start = perf_counter()
        try:
            envelope = self._handle(raw)
        except Exception as e:
            logger.exception("request_failed action=%s: %s", raw.get("action"), e)
            envelope = self.error(f"Internal server error: {e}", 500)
        finally:
            serves_api_latency_seconds.labels(action=action).observe(perf_counter() - start)

        if isinstance(envelope, ErrorEnvelope):
            outcome = "unauthorized" if envelope.status == 401 else "error"
        else:
            outcome = "ok"
        serves_api_requests_total.labels(action=action, outcome=outcome).inc()
        return envelope

    def _handle(self, raw: Mapping[str, Any]) -> Envelope:
        token = raw.get("token")
        if not token or token != self.settings.api_token:
            logger.warning("auth.invalid_token action=%s", raw.get("action"))
            return self.error(
                f"Invalid token. Expected: {self.settings.api_token}, Got: {token}",
                401,
            )
        return self._route(ApiRequest.model_validate(raw))

    def _route(self, req: ApiRequest) -> Envelope:
        if req.action == "crud" and req.table == MATERIALS_TABLE and req.operation == "list":
            logger.info("route action=crud table=%s operation=list", req.table)
            return self.success(list_materials(iso_timestamp(self.clock())))

        if req.action == "auth":
            if req.email == self.settings.admin_email and req.password == self.settings.admin_password:
                logger.info("route action=auth outcome=ok")
                payload = AuthPayload(
                    user=admin_user(self.settings.admin_email),
                    token=self._issue_token(),
                )
                return self.success(payload.model_dump())
            logger.warning("route action=auth outcome=invalid_credentials email=%s", req.email)
            return self.error("Invalid credentials", 401)

        if req.action == "whoami":
            logger.info("route action=whoami")
            return self.success(admin_user(self.settings.admin_email))

        # create/update/delete/get and unknown actions are not implemented
        logger.info(
            "route default action=%s table=%s operation=%s fields=%s",
            req.action,
            req.table,
            req.operation,
            ",".join(sorted(req.record_fields)),
        )
        return self.success([])

    def _issue_token(self) -> str:
        # strictly increasing even when two calls share a millisecond
        now_ms = int(self.clock().timestamp() * 1000)
        self._last_token_ms = max(now_ms, self._last_token_ms + 1)
        return f"{TOKEN_PREFIX}{self._last_token_ms}"
