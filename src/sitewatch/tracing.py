# src/sitewatch/tracing.py

import os
from typing import Optional

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import (
    SimpleSpanProcessor,
    ConsoleSpanExporter,
)


def configure_tracing(service_name: str = "sitewatch", console: Optional[bool] = None) -> None:
    """
    Install the tracer provider for poll cycles, probes and API requests.

    Spans are printed to stdout unless `console` is False (or
    SITEWATCH_TRACE_CONSOLE=false). With console export off, spans are
    still created so log lines keep their trace ids.
    """
    if isinstance(trace.get_tracer_provider(), TracerProvider):
        return

    if console is None:
        console = os.getenv("SITEWATCH_TRACE_CONSOLE", "true").strip().lower() in ("1", "true", "yes", "on")

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if console:
        # Synchronous export; a batch worker thread can outlive pytest's stdout capture
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
