"""
Structured logging for the client gateway.

Every event is rendered as one JSON line. The request id and caller role
of the request being processed are attached automatically from context
variables, so adapters and pipeline stages never pass them around.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_role_var: ContextVar[Optional[str]] = ContextVar("user_role", default=None)


def _bind_component(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    # "gateway.cache" -> service="gateway", component="cache"
    service, _, component = event_dict.get("logger", "").partition(".")
    if component:
        event_dict.setdefault("service", service)
        event_dict.setdefault("component", component)
    return event_dict


def _bind_request(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key, var in (("request_id", request_id_var), ("user_role", user_role_var)):
        value = var.get()
        if value is not None:
            event_dict.setdefault(key, value)
    return event_dict


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Route structlog through stdlib logging and render JSON to stdout."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _bind_component,
            _bind_request,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.get_logger(f"{service_name}.logging").debug("Logging configured", level=log_level)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind ``request_id`` (or a fresh uuid4) to the current context and return it."""
    request_id = request_id or str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_user_role(user_role: Optional[str] = None) -> None:
    user_role_var.set(user_role)


def clear_context() -> None:
    request_id_var.set(None)
    user_role_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
