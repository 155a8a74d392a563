"""Tests for the system prompt builder."""

from __future__ import annotations

from appointment_agent.ledger import Ledger
from appointment_agent.prompts import get_system_prompt


class TestSystemPrompt:
    def test_lists_available_slots_by_date(self, seed_ledger):
        prompt = get_system_prompt(seed_ledger)
        assert "2025-11-05: 10:00, 14:00, 16:00" in prompt
        assert "2025-11-06: 09:00, 11:00, 15:00" in prompt

    def test_includes_directive_grammar(self, seed_ledger):
        prompt = get_system_prompt(seed_ledger)
        assert "BOOK:YYYY-MM-DD:HH:MM" in prompt
        assert "CANCEL:YYYY-MM-DD:HH:MM" in prompt
        assert "NEVER say an appointment is booked or cancelled" in prompt

    def test_starts_with_role_preamble(self, seed_ledger):
        assert get_system_prompt(seed_ledger).startswith(
            "You are an appointment scheduling assistant."
        )

    def test_reflects_bookings(self, seed_ledger):
        ledger = seed_ledger.book("2025-11-06", "09:00")
        prompt = get_system_prompt(ledger)
        assert "2025-11-06: 11:00, 15:00" in prompt
        assert "- 2025-11-06 at 09:00" in prompt

    def test_no_bookings_placeholder(self, seed_ledger):
        assert "None yet." in get_system_prompt(seed_ledger)

    def test_empty_calendar(self):
        assert "No slots are currently available." in get_system_prompt(Ledger())
