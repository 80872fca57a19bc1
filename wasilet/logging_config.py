"""
Logging configuration for the wasilet process.

Three streams share stdout:
- uvicorn server and access logs, with kubelet health checks dropped
- wasilet API and provider logs
- wasilet.runtime logs, which come from per-workload worker threads and
  carry the thread name (``wasilet-<namespace>:<pod>:<container>``)
"""

import logging
from typing import Any, Dict, Optional

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
WORKLOAD_FORMAT = "%(asctime)s - %(name)s [%(threadName)s] - %(levelname)s - %(message)s"

# paths the kubelet polls for liveness
HEALTH_PATHS = frozenset({"/healthz", "/"})


class HealthCheckFilter(logging.Filter):
    """Drop uvicorn access lines for GET requests on the health paths."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name != "uvicorn.access":
            return True
        # uvicorn passes (client, method, path, http_version, status)
        args = record.args
        if isinstance(args, tuple) and len(args) == 5:
            method, path = args[1], str(args[2]).split("?", 1)[0]
            return not (method == "GET" and path in HEALTH_PATHS)
        message = record.getMessage()
        return not ('"GET /healthz' in message or '"GET / ' in message)


def _handler(formatter: str, filters: Optional[list] = None) -> Dict[str, Any]:
    handler = {
        "class": "logging.StreamHandler",
        "formatter": formatter,
        "stream": "ext://sys.stdout",
    }
    if filters:
        handler["filters"] = filters
    return handler


def _logger(handler: str, level: str) -> Dict[str, Any]:
    return {"handlers": [handler], "level": level, "propagate": False}


def get_logging_config(level: str = "INFO", runtime_level: Optional[str] = None) -> Dict[str, Any]:
    """
    Build a dictConfig for uvicorn and wasilet.

    Args:
        level: Level for wasilet and the root logger
        runtime_level: Level for the module workers, defaults to ``level``

    Returns:
        A dict accepted by logging.config.dictConfig and uvicorn's log_config
    """
    level = level.upper()
    runtime_level = (runtime_level or level).upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "health_check_filter": {"()": HealthCheckFilter},
        },
        "formatters": {
            "default": {"format": DEFAULT_FORMAT},
            "workload": {"format": WORKLOAD_FORMAT},
            "access": {"format": "%(message)s"},
        },
        "handlers": {
            "default": _handler("default"),
            "workload": _handler("workload"),
            "access": _handler("access", ["health_check_filter"]),
        },
        "loggers": {
            "uvicorn": _logger("default", "INFO"),
            "uvicorn.error": _logger("default", "INFO"),
            "uvicorn.access": _logger("access", "INFO"),
            "wasilet": _logger("default", level),
            "wasilet.runtime": _logger("workload", runtime_level),
        },
        "root": {"level": level, "handlers": ["default"]},
    }
