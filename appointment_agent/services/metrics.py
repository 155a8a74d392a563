"""CloudWatch custom metrics with background batching.

Two families of data points are published:

* ``LLM/*`` — request count, error count and latency for every
  chat-completions call.
* ``Ledger/Events`` — one count per booking outcome
  (``BookingConfirmed``, ``BookingRejected``, ``CancellationConfirmed``,
  ``CancellationRejected``) and per fallback directive parse
  (``DirectiveFallback``).

Data points are buffered in memory and flushed by a daemon thread every
``FLUSH_INTERVAL_SECONDS``.  Unless ``METRICS_ENABLED=true`` nothing is sent
to CloudWatch; points are only logged at DEBUG and dropped on flush.

Usage
-----
>>> from appointment_agent.services.metrics import metrics
>>> metrics.record_success("openai", "chat_completion", latency_ms=812.0)
>>> metrics.record_event("BookingConfirmed")
"""

from __future__ import annotations

import atexit
import logging
import os
import threading
import time
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

NAMESPACE = "AppointmentAgent"
FLUSH_INTERVAL_SECONDS = 60
MAX_BATCH_SIZE = 1_000  # CloudWatch API limit per PutMetricData call


def _dims(**pairs: str) -> list[dict[str, str]]:
    return [{"Name": name, "Value": value} for name, value in pairs.items()]


class MetricsClient:
    """Batched CloudWatch metrics publisher."""

    def __init__(self) -> None:
        self._enabled = os.getenv("METRICS_ENABLED", "false").lower() == "true"
        self._buffer: list[dict[str, Any]] = []
        self._lock = threading.Lock()
        self._cw_client = None  # lazy-init

        if self._enabled:
            self._start_flush_thread()

    def _get_cw_client(self):
        if self._cw_client is None:
            import boto3

            self._cw_client = boto3.client("cloudwatch")
        return self._cw_client

    # ── Public API ────────────────────────────────────────────────────

    def record_success(self, service: str, operation: str, latency_ms: float) -> None:
        """Record a completed LLM call and its latency."""
        self._datum("LLM/RequestCount", 1, "Count", _dims(Service=service, Status="success"))
        self._datum(
            "LLM/Latency", latency_ms, "Milliseconds",
            _dims(Service=service, Operation=operation),
        )
        logger.debug("Metric: %s %s ok in %.1fms", service, operation, latency_ms)

    def record_failure(
        self,
        service: str,
        operation: str,
        error_type: str,
        latency_ms: float = 0,
    ) -> None:
        """Record a failed LLM call.  Latency is only kept when known."""
        self._datum("LLM/RequestCount", 1, "Count", _dims(Service=service, Status="failure"))
        self._datum("LLM/ErrorCount", 1, "Count", _dims(Service=service, ErrorType=error_type))
        if latency_ms > 0:
            self._datum(
                "LLM/Latency", latency_ms, "Milliseconds",
                _dims(Service=service, Operation=operation),
            )
        logger.debug(
            "Metric: %s %s failed (%s) after %.1fms",
            service, operation, error_type, latency_ms,
        )

    def record_event(self, event: str, **dimensions: str) -> None:
        """Count one ledger or parser event, e.g. ``BookingRejected``."""
        self._datum("Ledger/Events", 1, "Count", _dims(Event=event, **dimensions))
        logger.debug("Metric: event %s %s", event, dimensions or "")

    def flush(self) -> int:
        """Send buffered metrics to CloudWatch.  Returns count sent."""
        with self._lock:
            batch, self._buffer = self._buffer, []

        if not batch:
            return 0
        if not self._enabled:
            logger.debug("Metrics disabled, dropping %d buffered points", len(batch))
            return 0

        sent = 0
        try:
            cw = self._get_cw_client()
            for start in range(0, len(batch), MAX_BATCH_SIZE):
                chunk = batch[start : start + MAX_BATCH_SIZE]
                cw.put_metric_data(Namespace=NAMESPACE, MetricData=chunk)
                sent += len(chunk)
            logger.info("Flushed %d metrics to CloudWatch", sent)
        except Exception:
            logger.exception("Failed to flush metrics to CloudWatch")
        return sent

    # ── Internal ──────────────────────────────────────────────────────

    def _datum(
        self,
        name: str,
        value: float,
        unit: str,
        dimensions: list[dict[str, str]],
    ) -> None:
        point = {
            "MetricName": name,
            "Dimensions": dimensions,
            "Timestamp": datetime.now(UTC),
            "Value": value,
            "Unit": unit,
        }
        with self._lock:
            self._buffer.append(point)

    def _start_flush_thread(self) -> None:
        def _loop():
            while True:
                time.sleep(FLUSH_INTERVAL_SECONDS)
                try:
                    self.flush()
                except Exception:
                    logger.exception("Metrics flush thread error")

        thread = threading.Thread(target=_loop, daemon=True, name="metrics-flush")
        thread.start()
        atexit.register(self.flush)
        logger.info("Metrics flush thread started (interval=%ds)", FLUSH_INTERVAL_SECONDS)


# ── Module-level singleton ──────────────────────────────────────────
metrics = MetricsClient()
