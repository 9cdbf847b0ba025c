import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Optional

from app.core import context
from app.core.settings import settings

SERVICE_NAME = "loanops-backend"

# Libraries that log every statement or frame at INFO.
_NOISY_LOGGERS = ("sqlalchemy.engine", "asyncio", "httpx")


class RequestContextFilter(logging.Filter):
    """Copy request id, route, actor and team from contextvars onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = context.get_request_id()
        record.route = context.get_route()
        record.actor = context.get_actor_id()
        record.team = context.get_team()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; ``extra=`` fields are nested under ``extra``."""

    _CONTEXT_FIELDS = ("request_id", "route", "actor", "team")
    _RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", *_CONTEXT_FIELDS}

    def __init__(self, channel: str = "app") -> None:
        super().__init__()
        self.channel = channel

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "channel": self.channel,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in self._CONTEXT_FIELDS:
            payload[field] = getattr(record, field, "-")
        extras = {k: v for k, v in record.__dict__.items() if k not in self._RESERVED}
        if extras:
            payload["extra"] = extras
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _handler(formatter: str, level: str) -> dict:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": formatter,
        "filters": ["request_context"],
        "stream": "ext://sys.stdout",
    }


def configure_logging(level: Optional[str] = None) -> None:
    log_level = (level or settings.log_level).upper()
    loggers = {
        "": {"handlers": ["default"], "level": log_level, "propagate": False},
        "app.audit": {"handlers": ["audit"], "level": "INFO", "propagate": False},
        "uvicorn": {"handlers": ["default"], "level": log_level, "propagate": False},
        "uvicorn.error": {"handlers": ["default"], "level": log_level, "propagate": False},
        "uvicorn.access": {"handlers": ["default"], "level": "WARNING", "propagate": False},
    }
    loggers.update({name: {"level": "WARNING"} for name in _NOISY_LOGGERS})
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_context": {"()": RequestContextFilter}},
            "formatters": {
                "json": {"()": JsonFormatter, "channel": "app"},
                "audit_json": {"()": JsonFormatter, "channel": "audit"},
            },
            "handlers": {
                "default": _handler("json", log_level),
                "audit": _handler("audit_json", "INFO"),
            },
            "loggers": loggers,
        }
    )
    logging.getLogger(__name__).info(
        "Logging configured environment=%s fanout_backend=%s",
        settings.environment,
        settings.fanout_backend,
    )


def get_audit_logger() -> logging.Logger:
    return logging.getLogger("app.audit")
