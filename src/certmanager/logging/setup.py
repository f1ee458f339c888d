"""Structured logging configuration for the certificate manager.

Provides JSON and text formatters, a reconcile-context filter that
guarantees every record carries ``domain`` and ``container``
attributes, and a one-call ``configure_logging`` function driven by
config settings.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from certmanager.config.settings import LoggingSettings

# Attributes that are part of the standard LogRecord; everything
# else is considered "extra" and gets included in structured output.
_STANDARD_ATTRS = frozenset(
    {
        "args",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
        # Our own well-known context attributes (handled explicitly):
        "domain",
        "container",
    }
)

# One level above CRITICAL silences everything.
QUIET = logging.CRITICAL + 10


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------


class StructuredFormatter(logging.Formatter):
    """JSON-lines formatter for log shippers.

    Every record becomes a single JSON object on one line containing
    the standard fields plus any *extra* attributes passed by the
    caller.
    """

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()

        data: dict = {
            "timestamp": datetime.fromtimestamp(
                record.created,
                tz=UTC,
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        domain = getattr(record, "domain", None)
        if domain not in (None, "-"):
            data["domain"] = domain

        container = getattr(record, "container", None)
        if container not in (None, "-"):
            data["container"] = container

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                data.setdefault(key, value)

        if record.exc_info and record.exc_info[0] is not None:
            data["exception"] = self.formatException(record.exc_info)

        if record.stack_info:
            data["stack_info"] = self.formatStack(record.stack_info)

        return json.dumps(data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for console use."""

    _FMT = "%(asctime)s %(levelname)-8s [%(domain)s|%(container)s] %(name)s - %(message)s"

    def __init__(self) -> None:
        super().__init__(fmt=self._FMT, datefmt="%Y-%m-%d %H:%M:%S")


# ---------------------------------------------------------------------------
# Filter
# ---------------------------------------------------------------------------


class ReconcileContextFilter(logging.Filter):
    """Default the ``domain`` and ``container`` attributes to ``"-"``.

    Engine code passes ``extra={"domain": ..., "container": ...}``
    where it knows them; every other record still formats cleanly.
    """

    CONTEXT_ATTRS = frozenset({"domain", "container"})

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        for attr in self.CONTEXT_ATTRS:
            if not hasattr(record, attr):
                setattr(record, attr, "-")
        return True


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def configure_logging(
    settings: LoggingSettings,
    *,
    quiet: bool = False,
    verbose: bool = False,
) -> logging.Logger:
    """Configure the ``certmanager`` logger hierarchy from settings.

    Replaces any bootstrap handlers with properly formatted output.
    ``quiet`` disables all output, ``verbose`` forces DEBUG.

    Returns the root ``certmanager`` logger.
    """
    level = getattr(logging, settings.level.upper(), logging.INFO)
    if verbose:
        level = logging.DEBUG
    if quiet:
        level = QUIET

    root = logging.getLogger("certmanager")
    root.setLevel(level)
    root.handlers.clear()
    root.propagate = False

    formatter: logging.Formatter
    formatter = StructuredFormatter() if settings.format == "json" else TextFormatter()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    console.addFilter(ReconcileContextFilter())
    root.addHandler(console)

    # ── Quieten noisy third-party loggers ───────────────────────────
    for lib in ("urllib3", "asyncio"):
        logging.getLogger(lib).setLevel(logging.WARNING)

    return root
