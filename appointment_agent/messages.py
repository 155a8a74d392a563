"""Commands accepted by the agent and the responses it sends out.

``Command`` is a closed union: the agent dispatches on exactly these six
types and logs anything else as a programming error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Union


@dataclass(frozen=True)
class AgentResponse:
    """A user-facing message produced by the agent."""

    message: str


class ResponseSink(Protocol):
    """Write-only destination for ``AgentResponse`` values."""

    def send(self, response: AgentResponse) -> None: ...


@dataclass(frozen=True)
class UserMessage:
    text: str
    reply_to: ResponseSink


@dataclass(frozen=True)
class LLMReply:
    """Assistant text fed back from a completed LLM call."""

    content: str


@dataclass(frozen=True)
class BookAppointment:
    date: str
    time: str
    reply_to: ResponseSink


@dataclass(frozen=True)
class CancelAppointment:
    date: str
    time: str
    reply_to: ResponseSink


@dataclass(frozen=True)
class GetAvailableSlots:
    reply_to: ResponseSink


@dataclass(frozen=True)
class GetBookedAppointments:
    reply_to: ResponseSink


Command = Union[
    UserMessage,
    LLMReply,
    BookAppointment,
    CancelAppointment,
    GetAvailableSlots,
    GetBookedAppointments,
]
