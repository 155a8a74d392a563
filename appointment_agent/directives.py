"""Extract BOOK / CANCEL directives from free-form assistant text.

The model is instructed to put a line such as ``BOOK:2025-11-06:09:00`` in
front of its confirmation.  That explicit grammar is always preferred.  When
the model ignores it, a lossy English-only heuristic looks for phrases like
"scheduled ... for 10:00 on November 5th, 2025".

The parser only *produces* directives; applying them is the agent's job.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from appointment_agent.services.metrics import metrics

logger = logging.getLogger(__name__)

_BOOK_RE = re.compile(r"BOOK:(\d{4}-\d{2}-\d{2}):(\d{2}:\d{2})")
_CANCEL_RE = re.compile(r"CANCEL:(\d{4}-\d{2}-\d{2}):(\d{2}:\d{2})")
_BLANK_LINES_RE = re.compile(r"\n{2,}")

MONTHS = {
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
}

_MONTH = r"(" + "|".join(MONTHS) + r")"
_DAY = r"(\d{1,2})(?:st|nd|rd|th)?"
_TIME = r"(\d{1,2}:\d{2})"
_ISO_DATE = r"(\d{4}-\d{2}-\d{2})"
_MERIDIEM_TIME = r"(\d{1,2}):(\d{2})\s*([AP]M)"

_FOR_TIME_ON_MONTH = re.compile(rf"for {_TIME} on {_MONTH} {_DAY},? (\d{{4}})", re.IGNORECASE)
_ON_ISO_AT_TIME = re.compile(rf"on {_ISO_DATE} at {_TIME}", re.IGNORECASE)
_FOR_TIME_ON_ISO = re.compile(rf"for {_TIME} on {_ISO_DATE}", re.IGNORECASE)
_FOR_MERIDIEM_ON_MONTH = re.compile(
    rf"for {_MERIDIEM_TIME} on {_MONTH} {_DAY},? (\d{{4}})", re.IGNORECASE
)
_AT_MERIDIEM_ON_MONTH = re.compile(
    rf"at {_MERIDIEM_TIME} on {_MONTH} {_DAY},? (\d{{4}})", re.IGNORECASE
)
_ON_MONTH_AT_TIME = re.compile(rf"on {_MONTH} {_DAY},? (\d{{4}}) at {_TIME}", re.IGNORECASE)


@dataclass(frozen=True)
class Directive:
    """A structured action: ``kind`` is ``"book"`` or ``"cancel"``."""

    kind: str
    date: str
    time: str


@dataclass(frozen=True)
class ParsedReply:
    visible_text: str
    directive: Directive | None = None


# ── Normalisation helpers ────────────────────────────────────────────


def _iso_date(month_name: str, day: str, year: str) -> str:
    return f"{int(year):04d}-{MONTHS[month_name.lower()]:02d}-{int(day):02d}"


def _clock(value: str) -> str:
    """Zero-pad ``H:MM`` to ``HH:MM``."""
    hour, minute = value.split(":")
    return f"{int(hour):02d}:{minute}"


def _to_24h(hour: str, minute: str, meridiem: str) -> str:
    h = int(hour) % 12
    if meridiem.upper() == "PM":
        h += 12
    return f"{h:02d}:{minute}"


# ── Fallback extractors (each returns (date, time) or None) ─────────


def _match_for_time_on_month(text: str) -> tuple[str, str] | None:
    m = _FOR_TIME_ON_MONTH.search(text)
    if not m:
        return None
    time, month, day, year = m.groups()
    return _iso_date(month, day, year), _clock(time)


def _match_on_iso_at_time(text: str) -> tuple[str, str] | None:
    m = _ON_ISO_AT_TIME.search(text)
    if not m:
        return None
    date, time = m.groups()
    return date, _clock(time)


def _match_for_time_on_iso(text: str) -> tuple[str, str] | None:
    m = _FOR_TIME_ON_ISO.search(text)
    if not m:
        return None
    time, date = m.groups()
    return date, _clock(time)


def _match_meridiem_on_month(text: str) -> tuple[str, str] | None:
    for pattern in (_FOR_MERIDIEM_ON_MONTH, _AT_MERIDIEM_ON_MONTH):
        m = pattern.search(text)
        if m:
            hour, minute, meridiem, month, day, year = m.groups()
            return _iso_date(month, day, year), _to_24h(hour, minute, meridiem)
    return None


def _match_on_month_at_time(text: str) -> tuple[str, str] | None:
    m = _ON_MONTH_AT_TIME.search(text)
    if not m:
        return None
    month, day, year, time = m.groups()
    return _iso_date(month, day, year), _clock(time)


# Cancel recognises fewer shapes than Book.
_BOOK_EXTRACTORS = (
    _match_for_time_on_month,
    _match_on_iso_at_time,
    _match_for_time_on_iso,
    _match_meridiem_on_month,
)
_CANCEL_EXTRACTORS = (
    _match_for_time_on_month,
    _match_on_month_at_time,
)


def _first_match(text: str, extractors) -> tuple[str, str] | None:
    for extract in extractors:
        found = extract(text)
        if found:
            return found
    return None


def _fallback_directive(text: str) -> Directive | None:
    lowered = text.lower()

    if "scheduled" in lowered or "booked" in lowered:
        found = _first_match(text, _BOOK_EXTRACTORS)
        if found:
            return Directive("book", *found)

    if "cancelled" in lowered or "canceled" in lowered:
        found = _first_match(text, _CANCEL_EXTRACTORS)
        if found:
            return Directive("cancel", *found)

    return None


# ── Public API ───────────────────────────────────────────────────────


def parse_reply(text: str) -> ParsedReply:
    """Split assistant text into user-visible text and an optional directive.

    An explicit ``BOOK:`` token wins over ``CANCEL:``; only the first
    occurrence of the winning kind is used.  Explicit tokens are stripped
    from the visible text, fallback matches are not.
    """
    match = _BOOK_RE.search(text)
    kind = "book"
    if match is None:
        match = _CANCEL_RE.search(text)
        kind = "cancel"

    if match is not None:
        date, time = match.groups()
        visible = text[: match.start()] + text[match.end():]
        visible = _BLANK_LINES_RE.sub("\n", visible).strip()
        return ParsedReply(visible, Directive(kind, date, time))

    directive = _fallback_directive(text)
    if directive is not None:
        logger.info(
            "Directive fallback fired: %s %s %s (no explicit token in reply)",
            directive.kind, directive.date, directive.time,
        )
        metrics.record_event("DirectiveFallback", kind=directive.kind)
    return ParsedReply(text.strip(), directive)
