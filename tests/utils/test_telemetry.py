"""Tests for OpenTelemetry tracing helpers."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from opentelemetry import trace

from taskbox.utils.telemetry import (
    ATTR_COMMAND,
    ATTR_SANDBOX_ID,
    ATTR_STEP_TYPE,
    configure_telemetry,
    get_tracer,
)


class TestGetTracer:
    def test_returns_tracer(self) -> None:
        tracer = get_tracer("test.module")
        assert isinstance(tracer, trace.Tracer)

    def test_default_name(self) -> None:
        assert isinstance(get_tracer(), trace.Tracer)

    def test_noop_span(self) -> None:
        tracer = get_tracer("test.noop")
        with tracer.start_as_current_span("sandbox.execute_command") as span:
            span.set_attribute(ATTR_SANDBOX_ID, "s1")


class TestConfigureTelemetry:
    def test_raises_without_sdk(self) -> None:
        with patch.dict("sys.modules", {"opentelemetry.sdk.resources": None}):
            with pytest.raises(ImportError, match="pip install taskbox\\[otel\\]"):
                configure_telemetry()

    def test_installs_console_provider(self) -> None:
        try:
            from opentelemetry.sdk.trace import TracerProvider
        except ImportError:
            pytest.skip("opentelemetry-sdk not installed")

        with patch("taskbox.utils.telemetry.trace.set_tracer_provider") as set_provider:
            configure_telemetry(service_name="taskbox-test")

        provider = set_provider.call_args.args[0]
        assert isinstance(provider, TracerProvider)
        assert provider.resource.attributes["service.name"] == "taskbox-test"


class TestAttributeConstants:
    def test_constants_are_namespaced(self) -> None:
        for attr in (ATTR_SANDBOX_ID, ATTR_COMMAND, ATTR_STEP_TYPE):
            assert attr.startswith("taskbox.")
