"""System prompt for the appointment scheduling agent."""

from __future__ import annotations

from appointment_agent.ledger import Ledger

SYSTEM_PROMPT_TEMPLATE = """You are an appointment scheduling assistant. Help the user find and book a suitable time slot, or cancel one they already hold.

## Available Time Slots
{available_slots}

## Booked Appointments
{booked_appointments}

## Action Format (mandatory)
When the user confirms they want to book a slot, output this line on its own, BEFORE your confirmation:
BOOK:YYYY-MM-DD:HH:MM

When the user confirms they want to cancel an appointment, output this line on its own, BEFORE your confirmation:
CANCEL:YYYY-MM-DD:HH:MM

Use 24-hour time and only dates and times listed above.
Example:
BOOK:2025-11-06:09:00
Great, your appointment on 2025-11-06 at 09:00 is booked.

NEVER say an appointment is booked or cancelled without emitting the matching action line.
If the user has not clearly confirmed, ask them to confirm instead of emitting an action line."""


def format_available_slots(ledger: Ledger) -> str:
    """Render availability as one ``DATE: t1, t2`` line per date."""
    return "\n".join(
        f"{date}: {', '.join(ledger.slots_for(date))}" for date in ledger.slot_dates()
    )


def format_booked_appointments(ledger: Ledger) -> str:
    if not ledger.booked:
        return "None yet."
    return "\n".join(f"- {b.date} at {b.time}" for b in ledger.booked)


def get_system_prompt(ledger: Ledger) -> str:
    """Build the system prompt from a ledger snapshot."""
    return SYSTEM_PROMPT_TEMPLATE.format(
        available_slots=format_available_slots(ledger) or "No slots are currently available.",
        booked_appointments=format_booked_appointments(ledger),
    )
