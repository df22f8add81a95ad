"""FastAPI app exposing the ServesPlatform mock endpoint."""
from __future__ import annotations
import json
import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .deps import Settings, get_settings
from .handler import MockApiHandler
from .logging_config import configure_logging
from . import metrics

logger = logging.getLogger("serves_api")

_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


async def collect_params(request: Request) -> Dict[str, Any]:
    """Merge query string and body parameters into one mapping.

    Body values win over query values. JSON bodies must be objects; form
    bodies contribute their text fields only. A non-empty body with any other
    content type is tried as JSON, since browser clients often post JSON as
    text/plain to skip the CORS preflight.
    """
    params: Dict[str, Any] = dict(request.query_params)
    if request.method != "POST":
        return params

    ctype = (request.headers.get("content-type") or "").lower()
    if any(t in ctype for t in _FORM_TYPES):
        form = await request.form()
        for key, value in form.multi_items():
            if isinstance(value, str):
                params[key] = value
        return params

    body = await request.body()
    if not body.strip():
        return params
    if "application/json" in ctype or body.lstrip().startswith(b"{"):
        payload = json.loads(body)
        if not isinstance(payload, dict):
            raise ValueError("JSON body must be an object")
        params.update(payload)
    return params


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="ServesPlatform Mock API", version="0.1.0")
    app.state.settings = settings
    app.state.handler = MockApiHandler(settings)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_credentials="*" not in settings.cors_allow_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/healthz")
    def healthz():
        return {"ok": True}

    @app.api_route("/exec", methods=["GET", "POST"])
    async def execute(request: Request):
        handler: MockApiHandler = request.app.state.handler
        try:
            params = await collect_params(request)
        except Exception as e:
            logger.exception("request_parse_failed: %s", e)
            envelope = handler.error(f"Internal server error: {e}", 500)
        else:
            envelope = handler.handle(params)
        return JSONResponse(content=envelope.model_dump(), status_code=handler.http_status(envelope))

    @app.get("/metrics")
    def metrics_endpoint():
        data, content_type = metrics.metrics_response()
        return Response(content=data, media_type=content_type)

    logger.info(
        "Startup complete. mirror_status=%s cors_allow_origins=%s",
        settings.mirror_status,
        ",".join(settings.cors_allow_origins),
    )
    return app


app = create_app()
