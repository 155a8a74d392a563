"""Tests for the CLI command translation and response sinks."""

from __future__ import annotations

import pytest

from appointment_agent.main import CANCEL_USAGE, QuitRequested, parse_input
from appointment_agent.messages import (
    AgentResponse,
    CancelAppointment,
    GetAvailableSlots,
    GetBookedAppointments,
    UserMessage,
)
from appointment_agent.sinks import CallbackSink


class TestParseInput:
    def test_free_text_becomes_user_message(self, sink):
        assert parse_input("  I'd like 9am on Nov 6 ", sink) == UserMessage("I'd like 9am on Nov 6", sink)

    def test_slots(self, sink):
        assert parse_input("/slots", sink) == GetAvailableSlots(sink)

    def test_booked_is_case_insensitive(self, sink):
        assert parse_input("/BOOKED", sink) == GetBookedAppointments(sink)

    def test_cancel_with_arguments(self, sink):
        assert parse_input("/cancel 2025-11-06 09:00", sink) == CancelAppointment(
            "2025-11-06", "09:00", sink
        )

    @pytest.mark.parametrize("line", ["/cancel", "/cancel 2025-11-06"])
    def test_cancel_without_arguments_prints_usage(self, line, sink):
        assert parse_input(line, sink) == CANCEL_USAGE

    @pytest.mark.parametrize("line", ["/quit", "exit", "EXIT"])
    def test_quit_words(self, line, sink):
        with pytest.raises(QuitRequested):
            parse_input(line, sink)

    def test_blank_line(self, sink):
        assert parse_input("   ", sink) is None


class TestSinks:
    def test_queue_sink_preserves_order(self, sink):
        sink.send(AgentResponse("one"))
        sink.send(AgentResponse("two"))
        assert sink.messages() == ["one", "two"]
        assert sink.drain() == []

    def test_callback_sink_forwards(self):
        received = []
        CallbackSink(received.append).send(AgentResponse("hi"))
        assert received == [AgentResponse("hi")]

    def test_callback_sink_survives_failing_callback(self):
        def boom(response):
            raise RuntimeError("terminal closed")

        CallbackSink(boom).send(AgentResponse("hi"))
