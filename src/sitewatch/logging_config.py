# src/sitewatch/logging_config.py

import logging
import os
import sys
from typing import Optional

from opentelemetry import trace

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s [trace=%(trace_id)s span=%(span_id)s] - %(message)s"

# Per-request chatter from the probe client and the liveness endpoint
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")

_NO_SPAN = "-"


class TraceIdFilter(logging.Filter):
    """
    Stamps records with the active OpenTelemetry trace and span ids.

    Everything logged inside a poll cycle shares the cycle's trace id, so
    one cycle's checks can be pulled out of interleaved output.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = trace.get_current_span().get_span_context()
        if ctx.is_valid:
            record.trace_id = format(ctx.trace_id, "032x")
            record.span_id = format(ctx.span_id, "016x")
        else:
            record.trace_id = _NO_SPAN
            record.span_id = _NO_SPAN
        return True


class SafeFormatter(logging.Formatter):
    """Formatter for records that reached a handler without TraceIdFilter."""

    def format(self, record):
        for attr in ("trace_id", "span_id"):
            if not hasattr(record, attr):
                setattr(record, attr, _NO_SPAN)
        return super().format(record)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Send all logs to stdout with trace ids attached.

    The level comes from `level`, else SITEWATCH_LOG_LEVEL, else LOG_LEVEL,
    else INFO.
    """
    level = (level or os.getenv("SITEWATCH_LOG_LEVEL") or os.getenv("LOG_LEVEL") or "INFO").upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(SafeFormatter(LOG_FORMAT))
    handler.addFilter(TraceIdFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
