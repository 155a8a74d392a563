"""The booking agent: a single-writer state machine over an asyncio inbox.

Architecture:
  The agent owns the current ``Ledger`` and consumes ``Command`` values one
  at a time, in arrival order, from an ``asyncio.Queue``.

    UserMessage ──▶ append user turn ──▶ spawn LLM task ──┐
                                                           │ (runs concurrently)
    inbox ◀── BookAppointment / CancelAppointment ◀────────┤
    inbox ◀── LLMReply ◀───────────────────────────────────┘
                          reply_to ◀── visible assistant text

  The LLM task never touches the ledger.  Whatever it learns from the
  model (a directive, the assistant's own turn) is told back to the agent
  and applied by the inbox loop, so every ledger transition happens in one
  place, one command at a time.

  Because LLM replies re-enter through the inbox tail, the agent keeps
  serving later commands while a call is in flight, and an assistant turn
  may land in the transcript after a later user turn.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from appointment_agent import config
from appointment_agent.directives import parse_reply
from appointment_agent.ledger import Ledger
from appointment_agent.messages import (
    AgentResponse,
    BookAppointment,
    CancelAppointment,
    Command,
    GetAvailableSlots,
    GetBookedAppointments,
    LLMReply,
    ResponseSink,
    UserMessage,
)
from appointment_agent.prompts import format_available_slots, get_system_prompt
from appointment_agent.services.llm_client import LLMClient, LLMError, LLMParseError
from appointment_agent.services.metrics import metrics

logger = logging.getLogger(__name__)

SLOT_NOT_AVAILABLE = "Sorry, that slot is not available."
NO_SUCH_APPOINTMENT = "No such appointment found to cancel."
NO_BOOKINGS = "No appointments booked yet."
LLM_ERROR_PREFIX = "Sorry, I encountered an error: "
PARSE_ERROR_PREFIX = "Error parsing response: "

_STOP = object()


class BookingAgent:
    """Serialized owner of the booking ledger.

    Typical use::

        async with LLMClient() as llm:
            agent = BookingAgent(llm)
            agent.start()
            agent.tell(UserMessage("I'd like 9am on Nov 6", reply_to=sink))
            ...
            await agent.shutdown()
    """

    def __init__(
        self,
        llm: LLMClient,
        ledger: Ledger | None = None,
        *,
        prompt_builder: Callable[[Ledger], str] = get_system_prompt,
        history_window: int | None = None,
    ):
        self._llm = llm
        self._ledger = ledger if ledger is not None else Ledger.initial(config.get_seed_slots())
        self._prompt_builder = prompt_builder
        self._history_window = (
            config.LLM_HISTORY_WINDOW if history_window is None else history_window
        )
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._in_flight: set[asyncio.Task] = set()
        self._runner: asyncio.Task | None = None
        self._closed = False

    @property
    def ledger(self) -> Ledger:
        """The current ledger value (read-only snapshot)."""
        return self._ledger

    @property
    def is_closed(self) -> bool:
        return self._closed

    # ── Inbox ────────────────────────────────────────────────────────

    def tell(self, command: Command) -> None:
        """Enqueue *command* at the inbox tail.  Never blocks."""
        if self._closed:
            logger.warning("Agent is shut down; dropping %s", type(command).__name__)
            return
        self._inbox.put_nowait(command)

    def start(self) -> asyncio.Task:
        """Spawn the inbox loop on the running event loop."""
        if self._runner is None:
            self._runner = asyncio.create_task(self.run(), name="booking-agent")
        return self._runner

    async def run(self) -> None:
        """Process commands until ``shutdown`` is called."""
        logger.info("Booking agent started with %d dates of availability", len(self._ledger.available))
        while True:
            command = await self._inbox.get()
            try:
                if command is _STOP:
                    break
                self._process(command)
            finally:
                self._inbox.task_done()
        logger.info("Booking agent stopped")

    async def wait_idle(self) -> None:
        """Wait until the inbox is empty and no LLM call is in flight.

        Raises ``RuntimeError`` if commands are queued but the inbox loop
        was never started, since they would never be drained.
        """
        if self._runner is None and not self._inbox.empty():
            raise RuntimeError("wait_idle() called before start() with commands queued")
        while True:
            if self._in_flight:
                await asyncio.gather(*list(self._in_flight), return_exceptions=True)
            await self._inbox.join()
            if not self._in_flight and self._inbox.empty():
                return

    async def shutdown(self) -> None:
        """Stop the agent, discarding queued commands and in-flight replies."""
        if self._closed:
            return
        self._closed = True

        discarded = 0
        while not self._inbox.empty():
            self._inbox.get_nowait()
            self._inbox.task_done()
            discarded += 1
        if discarded:
            logger.info("Shutdown discarded %d queued command(s)", discarded)

        for task in list(self._in_flight):
            task.cancel()
        if self._in_flight:
            await asyncio.gather(*list(self._in_flight), return_exceptions=True)

        if self._runner is not None:
            self._inbox.put_nowait(_STOP)
            await self._runner

    # ── Dispatch ─────────────────────────────────────────────────────

    def _process(self, command: Command) -> None:
        """Apply one command.  A failing handler leaves the ledger as it was."""
        try:
            self._ledger = self._handle(command, self._ledger)
        except Exception:
            logger.exception("Unhandled error processing %s", type(command).__name__)

    def _handle(self, command: Command, ledger: Ledger) -> Ledger:
        if isinstance(command, UserMessage):
            return self._on_user_message(command, ledger)
        if isinstance(command, LLMReply):
            return ledger.append("assistant", command.content)
        if isinstance(command, BookAppointment):
            return self._on_book(command, ledger)
        if isinstance(command, CancelAppointment):
            return self._on_cancel(command, ledger)
        if isinstance(command, GetAvailableSlots):
            command.reply_to.send(AgentResponse(render_available_slots(ledger)))
            return ledger
        if isinstance(command, GetBookedAppointments):
            command.reply_to.send(AgentResponse(render_booked_appointments(ledger)))
            return ledger
        raise TypeError(f"Unknown command: {command!r}")

    # ── Handlers ─────────────────────────────────────────────────────

    def _on_user_message(self, command: UserMessage, ledger: Ledger) -> Ledger:
        updated = ledger.append("user", command.text)
        system_prompt = self._prompt_builder(updated)
        transcript = updated.recent_transcript(self._history_window)

        task = asyncio.create_task(
            self._complete(system_prompt, transcript, command.reply_to),
            name="llm-completion",
        )
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        logger.debug("User turn %d sent to LLM", len(updated.transcript))
        return updated

    def _on_book(self, command: BookAppointment, ledger: Ledger) -> Ledger:
        booked = ledger.book(command.date, command.time)
        if booked is None:
            logger.info("Booking rejected: %s %s not available", command.date, command.time)
            metrics.record_event("BookingRejected")
            command.reply_to.send(AgentResponse(SLOT_NOT_AVAILABLE))
            return ledger

        logger.info("Booked %s at %s", command.date, command.time)
        metrics.record_event("BookingConfirmed")
        return booked

    def _on_cancel(self, command: CancelAppointment, ledger: Ledger) -> Ledger:
        released = ledger.cancel(command.date, command.time)
        if released is None:
            logger.info("Cancellation rejected: no booking %s %s", command.date, command.time)
            metrics.record_event("CancellationRejected")
            command.reply_to.send(AgentResponse(NO_SUCH_APPOINTMENT))
            return ledger

        logger.info("Cancelled %s at %s", command.date, command.time)
        metrics.record_event("CancellationConfirmed")
        command.reply_to.send(
            AgentResponse(
                f"Your appointment on {command.date} at {command.time} has been cancelled."
            )
        )
        return released

    # ── LLM completion (runs outside the inbox loop) ─────────────────

    async def _complete(self, system_prompt, transcript, reply_to: ResponseSink) -> None:
        try:
            raw = await self._llm.complete(system_prompt, transcript)
        except LLMParseError as exc:
            logger.warning("LLM response could not be parsed: %s", exc)
            visible, directive = f"{PARSE_ERROR_PREFIX}{exc}", None
        except LLMError as exc:
            logger.warning("LLM call failed: %s", exc)
            reply_to.send(AgentResponse(f"{LLM_ERROR_PREFIX}{exc}"))
            return
        except Exception as exc:
            logger.exception("Unexpected error during LLM call")
            reply_to.send(AgentResponse(f"{LLM_ERROR_PREFIX}{exc}"))
            return
        else:
            parsed = parse_reply(raw)
            visible, directive = parsed.visible_text, parsed.directive

        if self._closed:
            return

        if directive is not None:
            if directive.kind == "book":
                self.tell(BookAppointment(directive.date, directive.time, reply_to))
            else:
                self.tell(CancelAppointment(directive.date, directive.time, reply_to))

        reply_to.send(AgentResponse(visible))
        self.tell(LLMReply(visible))


# ── Renderers ────────────────────────────────────────────────────────


def render_available_slots(ledger: Ledger) -> str:
    return "Available slots:\n" + format_available_slots(ledger)


def render_booked_appointments(ledger: Ledger) -> str:
    if not ledger.booked:
        return NO_BOOKINGS
    lines = ["Booked appointments:"]
    lines.extend(f"  - {b.date} at {b.time}" for b in ledger.booked)
    return "\n".join(lines)
