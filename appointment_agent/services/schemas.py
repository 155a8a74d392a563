"""Pydantic schemas for the chat-completions wire format.

Only the fields this agent reads or writes are modelled; unknown response
fields (``usage``, ``id``, ``finish_reason`` ...) are ignored.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: str = Field(..., description="system, user or assistant")
    content: str


class ChatCompletionRequest(BaseModel):
    """Request body for ``POST /chat/completions``."""

    model: str
    messages: list[ChatMessage]


class ResponseMessage(BaseModel):
    content: str


class Choice(BaseModel):
    message: ResponseMessage


class ChatCompletionResponse(BaseModel):
    """Response body; the reply lives at ``choices[0].message.content``."""

    choices: list[Choice] = Field(..., min_length=1)
