"""
# Logging Manager

Central logging setup for the ACE mentorship API. Every module obtains its logger through
`get_logger()`, optionally passing a bracketed `prefix` that tags every line the module emits:

```python
from ace_mentorship.managers.logging_manager import get_logger

logger = get_logger(prefix="[PointsService]")
logger.info("Adjusted pairing %s by %d", pairing_id, amount)
# 2026-01-05 10:00:00,000 INFO ace_mentorship [PointsService] Adjusted pairing p1 by 5
```

## Output Formats

- **Development** (`DEBUG=True`): human readable single-line text.
- **Production** (`DEBUG=False`): JSON lines, one object per record, suitable for log shipping.

`setup_logging()` is idempotent; the FastAPI lifespan and the admin CLI both call it on start.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional, Tuple

ROOT_LOGGER_NAME = "ace_mentorship"
_INITIALIZED_FLAG = "_ace_logging_initialized"


class PrefixAdapter(logging.LoggerAdapter):
    """Logger adapter that prepends a fixed prefix to each message."""

    def __init__(self, logger: logging.Logger, prefix: str = ""):
        super().__init__(logger, {"prefix": prefix})
        self.prefix = prefix

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        if self.prefix:
            msg = f"{self.prefix} {msg}"
        extra = kwargs.setdefault("extra", {})
        extra.setdefault("log_prefix", self.prefix)
        return msg, kwargs


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        prefix = getattr(record, "log_prefix", "")
        if prefix:
            log_data["prefix"] = prefix
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False, default=str)


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.environ.get("LOG_LEVEL") or "INFO").upper()
    return logging.getLevelName(name) if isinstance(logging.getLevelName(name), int) else logging.INFO


def setup_logging(level: Optional[str] = None, json_output: bool = False) -> None:
    """
    Configure the package logger once.

    Args:
        level: Log level name; falls back to the `LOG_LEVEL` environment variable, then INFO.
        json_output: Emit JSON lines instead of plain text (used in production).
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if getattr(root, _INITIALIZED_FLAG, False):
        return

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))

    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_level(level))
    root.propagate = False

    # Quiet chatty drivers
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    setattr(root, _INITIALIZED_FLAG, True)


def shutdown_logging() -> None:
    """Flush and detach the package handlers."""
    root = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root.handlers):
        try:
            handler.flush()
            handler.close()
        except Exception:  # pragma: no cover - handler teardown is best effort
            pass
        root.removeHandler(handler)
    setattr(root, _INITIALIZED_FLAG, False)


def get_logger(name: Optional[str] = None, prefix: str = "") -> PrefixAdapter:
    """
    Return a prefix-tagged logger under the package namespace.

    Args:
        name: Child logger name (defaults to the package root logger).
        prefix: Text prepended to each message, conventionally `[Component]`.
    """
    logger_name = ROOT_LOGGER_NAME if not name else f"{ROOT_LOGGER_NAME}.{name}"
    return PrefixAdapter(logging.getLogger(logger_name), prefix)
