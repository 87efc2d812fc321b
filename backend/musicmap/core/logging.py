from __future__ import annotations

import logging
import sys
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "musicmap"

# Provider clients log one line per call; these would repeat every request
_QUIET_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine", "asyncio")


class _JsonFormatter(jsonlogger.JsonFormatter):
    def __init__(self, *args: Any, environment: str = "development", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.environment = environment

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        # "%(level)s" in the format string pre-fills the key with None
        if not log_record.get("level"):
            log_record["level"] = record.levelname
        log_record["service"] = SERVICE_NAME
        log_record["environment"] = self.environment
        if record.exc_info and not log_record.get("exc_info"):
            log_record["exc_info"] = self.formatException(record.exc_info)


def setup_logging(level: str = "INFO", *, environment: str = "development") -> None:
    """Route every logger through one JSON handler on stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JsonFormatter("%(asctime)s %(level)s %(name)s %(message)s", environment=environment))

    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    # uvicorn installs its own handlers; let records reach the JSON one instead
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True
