from __future__ import annotations
import logging
import sys
from pythonjsonlogger import jsonlogger

_JSON_FIELDS = "%(levelname)s %(name)s %(message)s %(asctime)s %(module)s %(funcName)s %(lineno)d"


def configure_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging for the mock API and uvicorn.

    - Root logger outputs JSON to stdout
    - Uvicorn loggers inherit same formatter
    - Calling again replaces the handler instead of stacking a second one
    """
    lvl = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger()
    logger.setLevel(lvl)

    for h in list(logger.handlers):
        if getattr(h, "_serves_json", False):
            logger.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(jsonlogger.JsonFormatter(_JSON_FIELDS))
    handler._serves_json = True  # type: ignore[attr-defined]
    logger.addHandler(handler)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        lg = logging.getLogger(name)
        lg.handlers = [handler]
        lg.setLevel(lvl)
