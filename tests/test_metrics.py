"""Tests for the CloudWatch metrics client."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from appointment_agent.services.metrics import MetricsClient


def _make_client(*, enabled: bool = False) -> MetricsClient:
    with patch.dict("os.environ", {"METRICS_ENABLED": str(enabled).lower()}):
        if enabled:
            # Keep the background flush thread out of unit tests.
            with patch.object(MetricsClient, "_start_flush_thread"):
                return MetricsClient()
        return MetricsClient()


def _dim_map(point: dict) -> dict[str, str]:
    return {d["Name"]: d["Value"] for d in point["Dimensions"]}


class TestMetricsRecording:
    """Verify that record_* methods buffer the right data points."""

    def test_record_success_buffers_count_and_latency(self):
        client = _make_client()
        client.record_success("openai", "chat_completion", latency_ms=812.5)
        names = [m["MetricName"] for m in client._buffer]
        assert names == ["LLM/RequestCount", "LLM/Latency"]
        latency = client._buffer[1]
        assert latency["Value"] == 812.5
        assert latency["Unit"] == "Milliseconds"
        assert _dim_map(latency) == {"Service": "openai", "Operation": "chat_completion"}

    def test_record_failure_without_latency(self):
        client = _make_client()
        client.record_failure("openai", "chat_completion", error_type="MissingAPIKey")
        names = {m["MetricName"] for m in client._buffer}
        assert names == {"LLM/RequestCount", "LLM/ErrorCount"}

    def test_record_failure_with_latency(self):
        client = _make_client()
        client.record_failure(
            "openai", "chat_completion",
            error_type="LLMTransportError", latency_ms=30_000.0,
        )
        assert len(client._buffer) == 3
        error = next(m for m in client._buffer if m["MetricName"] == "LLM/ErrorCount")
        assert _dim_map(error)["ErrorType"] == "LLMTransportError"

    def test_failure_status_dimension(self):
        client = _make_client()
        client.record_failure("openai", "chat_completion", error_type="x")
        count = next(m for m in client._buffer if m["MetricName"] == "LLM/RequestCount")
        assert _dim_map(count)["Status"] == "failure"

    def test_record_event(self):
        client = _make_client()
        client.record_event("BookingRejected")
        client.record_event("DirectiveFallback", kind="cancel")
        assert [m["MetricName"] for m in client._buffer] == ["Ledger/Events", "Ledger/Events"]
        assert _dim_map(client._buffer[0]) == {"Event": "BookingRejected"}
        assert _dim_map(client._buffer[1]) == {"Event": "DirectiveFallback", "kind": "cancel"}


class TestMetricsFlush:
    """Verify flush behaviour with and without CloudWatch enabled."""

    def test_flush_when_disabled_drops_buffer(self):
        client = _make_client()
        client.record_event("BookingConfirmed")
        assert client.flush() == 0
        assert client._buffer == []

    def test_flush_when_enabled_calls_put_metric_data(self):
        client = _make_client(enabled=True)
        mock_cw = MagicMock()
        client._cw_client = mock_cw

        client.record_success("openai", "chat_completion", latency_ms=100.0)
        sent = client.flush()

        assert sent == 2
        mock_cw.put_metric_data.assert_called_once()
        kwargs = mock_cw.put_metric_data.call_args[1]
        assert kwargs["Namespace"] == "AppointmentAgent"
        assert len(kwargs["MetricData"]) == 2

    def test_flush_empty_buffer_returns_zero(self):
        client = _make_client(enabled=True)
        client._cw_client = MagicMock()
        assert client.flush() == 0
        client._cw_client.put_metric_data.assert_not_called()

    def test_flush_survives_cloudwatch_error(self):
        client = _make_client(enabled=True)
        client._cw_client = MagicMock()
        client._cw_client.put_metric_data.side_effect = RuntimeError("throttled")
        client.record_event("BookingConfirmed")
        assert client.flush() == 0
