"""Immutable booking ledger: transcript, availability and confirmed bookings.

Every mutator returns a *new* ``Ledger`` and leaves the receiver untouched,
so a rejected operation simply keeps the previous value in force.  Rejection
is signalled by returning ``None``; it is an expected outcome, not an error.

Invariants (hold for every value produced by this module):
  - a (date, time) pair is either in ``available[date]`` or in ``booked``,
    never both;
  - ``available[date]`` is sorted ascending with no duplicates;
  - ``transcript`` only ever grows.
"""

from __future__ import annotations

import bisect
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType

logger = logging.getLogger(__name__)

ROLES = ("system", "user", "assistant")


@dataclass(frozen=True)
class TranscriptEntry:
    """One conversation turn, in the shape the chat-completions API expects."""

    role: str
    content: str


@dataclass(frozen=True)
class Booking:
    """A confirmed appointment.  Equal when date and time are equal."""

    date: str
    time: str


def _freeze_slots(slots: Mapping[str, object]) -> Mapping[str, tuple[str, ...]]:
    """Return a read-only slot map with each day's times sorted and unique."""
    return MappingProxyType(
        {date: tuple(sorted(set(times))) for date, times in slots.items()}
    )


@dataclass(frozen=True)
class Ledger:
    """The agent's whole state as a single value."""

    transcript: tuple[TranscriptEntry, ...] = ()
    available: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    booked: tuple[Booking, ...] = ()

    @classmethod
    def initial(cls, seed: Mapping[str, object]) -> Ledger:
        """Build a fresh ledger from seed availability, with no history."""
        return cls(available=_freeze_slots(seed))

    # ── Transcript ───────────────────────────────────────────────────

    def append(self, role: str, content: str) -> Ledger:
        if role not in ROLES:
            raise ValueError(f"Unknown transcript role: {role!r}")
        entry = TranscriptEntry(role=role, content=content)
        return replace(self, transcript=self.transcript + (entry,))

    def recent_transcript(self, window: int = 0) -> tuple[TranscriptEntry, ...]:
        """Return the last *window* entries, or the full transcript if 0."""
        if window and window > 0:
            return self.transcript[-window:]
        return self.transcript

    # ── Bookings ─────────────────────────────────────────────────────

    def book(self, date: str, time: str) -> Ledger | None:
        """Move *time* on *date* from availability to the booking set.

        Returns ``None`` if the slot is not currently available.
        """
        day = self.available.get(date, ())
        if time not in day:
            logger.debug("Ledger: book %s %s rejected (not available)", date, time)
            return None

        slots = dict(self.available)
        slots[date] = tuple(t for t in day if t != time)
        return replace(
            self,
            available=MappingProxyType(slots),
            booked=self.booked + (Booking(date, time),),
        )

    def cancel(self, date: str, time: str) -> Ledger | None:
        """Release a booking and return its slot to availability.

        The slot is re-inserted in sort order; the date key is created if it
        had disappeared.  Returns ``None`` if there is no such booking.
        """
        target = Booking(date, time)
        if target not in self.booked:
            logger.debug("Ledger: cancel %s %s rejected (no such booking)", date, time)
            return None

        day = list(self.available.get(date, ()))
        if time not in day:
            bisect.insort(day, time)
        slots = dict(self.available)
        slots[date] = tuple(day)
        return replace(
            self,
            available=MappingProxyType(slots),
            booked=tuple(b for b in self.booked if b != target),
        )

    # ── Reads ────────────────────────────────────────────────────────

    def has_booking(self, date: str, time: str) -> bool:
        return Booking(date, time) in self.booked

    def slots_for(self, date: str) -> tuple[str, ...]:
        return self.available.get(date, ())

    def slot_dates(self) -> list[str]:
        """Dates with an availability entry, in ascending order."""
        return sorted(self.available)
