"""OpenTelemetry tracing helpers for taskbox.

Provides a thin wrapper around the OpenTelemetry API so the rest of the
codebase can call ``get_tracer()`` without caring whether the SDK is
installed.  When the SDK is *not* configured the API returns no-op
implementations.

Usage::

    from taskbox.utils.telemetry import get_tracer

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("sandbox.execute_command") as span:
        span.set_attribute(ATTR_SANDBOX_ID, sandbox.id)

``taskbox --telemetry`` calls :func:`configure_telemetry`, which prints spans
to stdout (requires the ``otel`` extra: ``pip install taskbox[otel]``).
"""

from __future__ import annotations

from opentelemetry import trace

# ---------------------------------------------------------------------------
# Semantic attribute keys used throughout taskbox instrumentation
# ---------------------------------------------------------------------------

ATTR_SANDBOX_ID = "taskbox.sandbox.id"
ATTR_SESSION_ID = "taskbox.session.id"
ATTR_COMMAND = "taskbox.command"
ATTR_EXIT_CODE = "taskbox.exit_code"
ATTR_TIMED_OUT = "taskbox.timed_out"
ATTR_HTTP_METHOD = "taskbox.http.method"
ATTR_HTTP_URL = "taskbox.http.url"
ATTR_HTTP_STATUS = "taskbox.http.status"
ATTR_STEP_TYPE = "taskbox.step.type"

_INSTRUMENTATION_NAME = "taskbox"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a :class:`~opentelemetry.trace.Tracer` for *name*.

    If the OpenTelemetry SDK has not been configured the returned tracer
    is a no-op.
    """
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(*, service_name: str = "taskbox") -> None:
    """Print finished spans to stdout as JSON (requires ``taskbox[otel]``).

    Raises:
        ImportError: If the ``opentelemetry-sdk`` package is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor  # pyright: ignore[reportMissingImports,reportUnknownVariableType]
    except ImportError as exc:
        msg = "taskbox --telemetry needs opentelemetry-sdk; install it with: pip install taskbox[otel]"
        raise ImportError(msg) from exc

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))  # pyright: ignore[reportUnknownVariableType,reportUnknownMemberType]
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)  # pyright: ignore[reportUnknownArgumentType]
