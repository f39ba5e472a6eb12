"""Console and audit logging for estate3, plus a JSONL metrics sink.

Every engine module calls :func:`setup_logger` at import time. Console output
is always on; the JSON audit file (``artifacts/logs/estate3.log``) is added
when the CLI passes ``--json-logs`` or ``ESTATE_JSON_LOGS`` is truthy. Audit
lines carry the projection fields below whenever the caller attaches them via
``extra=``, which :meth:`ProjectionSummary.log_fields` builds.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

from estate3.engine.infra.paths import DEFAULT_LOG_ROOT

CONSOLE_FORMAT: Final[str] = "[%(levelname)s] %(name)s: %(message)s"
DEFAULT_LEVEL: Final[str] = "INFO"
AUDIT_DIR: Final[Path] = DEFAULT_LOG_ROOT
LOG_PATH: Final[Path] = AUDIT_DIR / "estate3.log"
METRICS_PATH: Final[Path] = AUDIT_DIR / "metrics.jsonl"
JSON_ENV_FLAG: Final[str] = "ESTATE_JSON_LOGS"
LEVEL_ENV_FLAG: Final[str] = "ESTATE_LOG_LEVEL"

AUDIT_TEXT_FIELDS: Final[tuple[str, ...]] = ("scenario", "state")
AUDIT_NUMERIC_FIELDS: Final[tuple[str, ...]] = (
    "estate_value",
    "total_tax",
    "liquidity_gap",
    "year_of_death",
    "process_time_ms",
)
_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})


class ConsoleHandler(logging.StreamHandler):
    """Stream handler owned by estate3; at most one per logger."""


class AuditFileHandler(logging.FileHandler):
    """JSON audit file handler owned by estate3; at most one per logger."""


class JsonAuditFormatter(logging.Formatter):
    """One JSON object per record.

    Projection fields are emitted only when present on the record, so plain
    messages stay short. Numeric fields that cannot be parsed become ``null``.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "source": record.name,
            "message": record.getMessage(),
        }
        for name in AUDIT_TEXT_FIELDS:
            if hasattr(record, name):
                value = getattr(record, name)
                payload[name] = None if value is None else str(value)
        for name in AUDIT_NUMERIC_FIELDS:
            if hasattr(record, name):
                payload[name] = _as_float(getattr(record, name))
        return json.dumps(payload, ensure_ascii=False)


def _as_float(value: object) -> float | None:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _resolve_level(level: str | int | None) -> int:
    """``ESTATE_LOG_LEVEL`` first, then the caller's level, then INFO."""

    env_level = os.environ.get(LEVEL_ENV_FLAG, "").strip()
    if env_level:
        name = env_level.upper()
    elif isinstance(level, int):
        return level
    else:
        name = (level or DEFAULT_LEVEL).strip().upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def _json_requested(explicit: bool) -> bool:
    return explicit or os.environ.get(JSON_ENV_FLAG, "").strip().lower() in _TRUTHY


def _new_console_handler() -> logging.Handler:
    handler = ConsoleHandler()
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _new_audit_handler() -> logging.Handler:
    AUDIT_DIR.mkdir(parents=True, exist_ok=True)
    handler = AuditFileHandler(LOG_PATH, encoding="utf-8")
    handler.setFormatter(JsonAuditFormatter())
    return handler


def _attach_once(
    logger: logging.Logger,
    kind: type[logging.Handler],
    factory: Callable[[], logging.Handler],
    level: int,
) -> None:
    existing = [handler for handler in logger.handlers if isinstance(handler, kind)]
    if existing:
        for handler in existing:
            handler.setLevel(level)
        return
    handler = factory()
    handler.setLevel(level)
    logger.addHandler(handler)


def setup_logger(
    name: str,
    json_format: bool = False,
    level: str | int | None = None,
) -> logging.Logger:
    """Configure and return a module logger.

    Repeated calls reuse the handlers already attached, so modules and the CLI
    can call this freely.

    Args:
      name: Logger name, usually ``__name__``.
      json_format: Mirror records to the JSON audit file.
      level: Optional level; ``ESTATE_LOG_LEVEL`` takes precedence.

    Returns:
      The configured :class:`logging.Logger`.
    """

    resolved_level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(resolved_level)
    # pytest ``caplog`` listens on the root logger.
    logger.propagate = True
    _attach_once(logger, ConsoleHandler, _new_console_handler, resolved_level)
    if _json_requested(json_format):
        _attach_once(logger, AuditFileHandler, _new_audit_handler, resolved_level)
    return logger


def record_metrics(metric_name: str, value: float, tags: Mapping[str, str] | None = None) -> None:
    """Append one metric observation to ``metrics.jsonl``."""

    AUDIT_DIR.mkdir(parents=True, exist_ok=True)
    payload = {
        "timestamp": datetime.now(tz=UTC).isoformat(),
        "metric": metric_name,
        "value": float(value),
        "tags": dict(tags or {}),
    }
    with METRICS_PATH.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(payload, ensure_ascii=False) + "\n")


def configure_cli_logging(json_logs: bool, level: str | int | None = None) -> None:
    """Apply the CLI's logging flags to every estate3 logger created so far."""

    if json_logs:
        os.environ[JSON_ENV_FLAG] = "1"
    else:
        os.environ.pop(JSON_ENV_FLAG, None)
    names = {
        name
        for name, logger in logging.Logger.manager.loggerDict.items()
        if isinstance(logger, logging.Logger) and name.startswith("estate3")
    }
    names.add("estate3")
    for name in sorted(names):
        setup_logger(name, json_format=json_logs, level=level)


__all__ = [
    "AUDIT_NUMERIC_FIELDS",
    "AUDIT_TEXT_FIELDS",
    "AuditFileHandler",
    "ConsoleHandler",
    "JsonAuditFormatter",
    "configure_cli_logging",
    "record_metrics",
    "setup_logger",
]
