from __future__ import annotations

import logging
from typing import Any, Literal

import structlog


def configure_logging(level: int = logging.INFO, fmt: Literal["json", "console"] = "json") -> None:
    logging.basicConfig(format="%(message)s", level=level)
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def level_from_name(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def get_logger(**initial_values: Any) -> structlog.BoundLogger:
    return structlog.get_logger().bind(**initial_values)


__all__ = ["configure_logging", "get_logger", "level_from_name"]
