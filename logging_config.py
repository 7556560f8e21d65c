"""
Structured logging setup.

LOG_FORMAT=json emits one ECS-style JSON object per line; anything else falls
back to a plain text format for local development.
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

SERVICE_NAME = "healthcare-waste-api"

# Attributes present on every LogRecord; anything else came in through `extra=`.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None)).keys()
) | {"message", "asctime", "taskName"}

_SENSITIVE_KEYS = ("password", "token", "secret", "authorization")


def _mask(extra: Dict[str, Any]) -> Dict[str, Any]:
    masked = {}
    for key, value in extra.items():
        if any(s in key.lower() for s in _SENSITIVE_KEYS):
            masked[key] = "***"
        else:
            masked[key] = value
    return masked


class JsonFormatter(logging.Formatter):
    def __init__(self, service_name: str = SERVICE_NAME, environment: str = "development"):
        super().__init__()
        self.service_name = service_name
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "@timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "message": record.getMessage(),
            "log.level": record.levelname.lower(),
            "log.logger": record.name,
            "service.name": self.service_name,
            "service.environment": self.environment,
        }
        if record.exc_info:
            log_obj["error.type"] = record.exc_info[0].__name__ if record.exc_info[0] else None
            log_obj["error.message"] = str(record.exc_info[1]) if record.exc_info[1] else None
            log_obj["error.stack_trace"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}
        if extra:
            log_obj["labels"] = _mask(extra)
        return json.dumps(log_obj, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO", fmt: str = "json", environment: str = "development") -> None:
    handler = logging.StreamHandler(sys.stdout)
    if fmt.lower() == "json":
        handler.setFormatter(JsonFormatter(environment=environment))
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())

    # pymongo's heartbeat chatter drowns the application logs at DEBUG
    logging.getLogger("pymongo").setLevel(logging.WARNING)
