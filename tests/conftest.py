"""Shared test fixtures for the appointment agent test suite."""

from __future__ import annotations

import os
from unittest.mock import AsyncMock

import pytest


def pytest_configure(config):
    """Pin the environment BEFORE collection starts.

    This runs before any test module imports the package, so config.py and
    the metrics singleton read known values.
    """
    os.environ["METRICS_ENABLED"] = "false"
    os.environ.pop("SEED_SLOTS", None)
    os.environ.pop("LLM_HISTORY_WINDOW", None)


@pytest.fixture
def seed_ledger():
    """A fresh ledger holding the default seed availability."""
    from appointment_agent.config import DEFAULT_SEED_SLOTS
    from appointment_agent.ledger import Ledger

    return Ledger.initial(DEFAULT_SEED_SLOTS)


@pytest.fixture
def stub_llm():
    """An LLM client double whose ``complete`` returns canned replies.

    Set ``stub_llm.complete.return_value`` or ``.side_effect`` per test.
    """
    from appointment_agent.services.llm_client import LLMClient

    llm = AsyncMock(spec=LLMClient)
    llm.complete.return_value = "How can I help you today?"
    return llm


@pytest.fixture
def sink():
    from appointment_agent.sinks import QueueSink

    return QueueSink()
