"""CLI entry point for the appointment scheduling agent.

A plain terminal loop: every line typed is translated into a command for
the agent, and every response the agent produces is printed as it arrives.

Usage:
    python -m appointment_agent.main            # normal mode (quiet)
    python -m appointment_agent.main --debug    # debug mode (shows API calls)

Commands:
    /slots                  list available slots
    /booked                 list booked appointments
    /cancel <date> <time>   cancel an appointment (e.g. /cancel 2025-11-06 09:00)
    /quit or exit           leave
"""

from __future__ import annotations

import argparse
import asyncio
import logging

from dotenv import load_dotenv

from appointment_agent.agent import BookingAgent
from appointment_agent.messages import (
    AgentResponse,
    CancelAppointment,
    Command,
    GetAvailableSlots,
    GetBookedAppointments,
    ResponseSink,
    UserMessage,
)
from appointment_agent.services.llm_client import LLMClient
from appointment_agent.sinks import CallbackSink

logger = logging.getLogger(__name__)

QUIT_WORDS = ("/quit", "exit")
CANCEL_USAGE = "Usage: /cancel <date> <time> (e.g. /cancel 2025-11-06 09:00)"


class QuitRequested(Exception):
    """Raised by ``parse_input`` when the user asks to leave."""


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("appointment_agent").setLevel(logging.DEBUG if debug else logging.INFO)


def parse_input(line: str, reply_to: ResponseSink) -> Command | str | None:
    """Translate one line of user input into a command.

    Returns a ``Command`` for the agent, a string to print locally (usage
    help), or ``None`` for blank input.  Raises ``QuitRequested`` on
    ``/quit`` or ``exit``.
    """
    text = line.strip()
    if not text:
        return None

    lowered = text.lower()
    if lowered in QUIT_WORDS:
        raise QuitRequested
    if lowered == "/slots":
        return GetAvailableSlots(reply_to)
    if lowered == "/booked":
        return GetBookedAppointments(reply_to)
    if lowered == "/cancel" or lowered.startswith("/cancel "):
        parts = text.split()
        if len(parts) < 3:
            return CANCEL_USAGE
        return CancelAppointment(parts[1], parts[2], reply_to)
    return UserMessage(text, reply_to)


def _print_response(response: AgentResponse) -> None:
    print(f"\nAgent: {response.message}\n")


async def chat() -> None:
    """Run the interactive chat loop until the user quits."""
    print("\n" + "=" * 60)
    print("  Appointment Scheduling Agent")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: /slots, /booked, /cancel <date> <time>, /quit")
    print("=" * 60 + "\n")

    sink = CallbackSink(_print_response)
    async with LLMClient() as llm:
        agent = BookingAgent(llm)
        agent.start()
        try:
            while True:
                try:
                    line = await asyncio.to_thread(input, "You: ")
                except EOFError:
                    break

                try:
                    parsed = parse_input(line, sink)
                except QuitRequested:
                    break

                if parsed is None:
                    continue
                if isinstance(parsed, str):
                    print(parsed)
                    continue
                agent.tell(parsed)
        finally:
            await agent.shutdown()

    print("\nThank you for using the Appointment Scheduling Agent. Goodbye!")


def main():
    parser = argparse.ArgumentParser(description="Appointment Scheduling Agent CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including HTTP requests",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    try:
        asyncio.run(chat())
    except KeyboardInterrupt:
        print("\n\nGoodbye!")


if __name__ == "__main__":
    main()
