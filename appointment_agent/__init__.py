"""Appointment Scheduling Agent — a conversational booking engine.

Architecture Overview
=====================

A user chats in natural language with an assistant backed by the OpenAI
chat-completions API.  The assistant advises the user and, once the user
confirms, books or cancels slots in a local ledger.

1. **Ledger** — immutable value holding the transcript, the per-date
   availability calendar and the confirmed bookings.
2. **Directive parser** — pulls ``BOOK:`` / ``CANCEL:`` directives (or, as
   a fallback, English phrasing) out of the model's reply.
3. **LLM client** — async httpx client for ``/chat/completions``.
4. **Booking agent** — serialized state machine over an asyncio inbox; the
   only writer of the ledger.  LLM completions re-enter its inbox as
   commands instead of mutating state directly.
5. **Response sinks** — ordered destinations for user-facing replies.

Key Design Decisions
--------------------
- **Single writer**: directives produced by an LLM completion are sent back
  to the agent as ``BookAppointment`` / ``CancelAppointment`` commands.
- **No locks**: the ledger is a value; every transition swaps it whole, so a
  rejected operation simply keeps the old value.
- **Non-blocking inbox**: the agent keeps serving ``/slots``, ``/booked`` and
  new messages while an LLM call is in flight.

Package Structure
-----------------
- ``appointment_agent/agent.py`` — the booking agent state machine
- ``appointment_agent/ledger.py`` — immutable ledger value
- ``appointment_agent/directives.py`` — directive parser
- ``appointment_agent/messages.py`` — command union and ``AgentResponse``
- ``appointment_agent/sinks.py`` — response sinks
- ``appointment_agent/prompts.py`` — system prompt built from a ledger
- ``appointment_agent/config.py`` — configuration from environment variables
- ``appointment_agent/main.py`` — CLI chat interface
- ``appointment_agent/services/`` — LLM client, wire schemas, metrics
"""
