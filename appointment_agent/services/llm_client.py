"""Async HTTP client for the OpenAI chat-completions API.

The client is deliberately thin: it serialises a system prompt plus a
transcript snapshot, POSTs it, and hands back ``choices[0].message.content``.
It never sees the ledger itself, only the immutable entries it is given.

All failures surface as one of two exceptions:

* ``LLMTransportError`` — no usable HTTP response (network error, timeout,
  non-2xx status, missing API key).
* ``LLMParseError`` — a 2xx response whose body is not the expected shape.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable

import httpx
from pydantic import ValidationError

from appointment_agent import config
from appointment_agent.ledger import TranscriptEntry
from appointment_agent.services.metrics import metrics
from appointment_agent.services.schemas import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
)

logger = logging.getLogger(__name__)

INITIAL_BACKOFF_SECONDS = 1.0
_COMPLETIONS_PATH = "/chat/completions"


class LLMError(Exception):
    """Base class for chat-completion failures."""


class LLMTransportError(LLMError):
    """The request could not be completed (network, timeout, HTTP status)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class LLMParseError(LLMError):
    """The response body could not be navigated to the reply text."""


def build_request(
    system_prompt: str,
    transcript: Iterable[TranscriptEntry],
    model: str,
) -> ChatCompletionRequest:
    """Build the request body: system prompt first, then the transcript."""
    messages = [ChatMessage(role="system", content=system_prompt)]
    messages.extend(ChatMessage(role=e.role, content=e.content) for e in transcript)
    return ChatCompletionRequest(model=model, messages=messages)


def parse_response(body: str) -> str:
    """Return ``choices[0].message.content`` from a raw response body."""
    try:
        parsed = ChatCompletionResponse.model_validate_json(body)
    except ValidationError as exc:
        raise LLMParseError(str(exc)) from exc
    return parsed.choices[0].message.content


class LLMClient:
    """Chat-completions client with timeout handling and optional retries.

    The API key is resolved once, here.  When it is missing the client is
    still constructed; every ``complete`` call then raises
    ``LLMTransportError`` without touching the network.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        *,
        model: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        http2: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key if api_key is not None else config.get_openai_api_key()
        self._model = model or config.MODEL_NAME
        self._max_retries = max(1, max_retries if max_retries is not None else config.LLM_MAX_RETRIES)
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        # httpx negotiates HTTP/2 via ALPN and falls back to HTTP/1.1 on its own.
        self._client = httpx.AsyncClient(
            base_url=base_url or config.OPENAI_BASE_URL,
            headers=headers,
            timeout=timeout if timeout is not None else config.LLM_TIMEOUT_SECONDS,
            http2=config.LLM_HTTP2 if http2 is None else http2,
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self._model

    async def __aenter__(self) -> LLMClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ── Internal helpers ─────────────────────────────────────────────

    async def _post(self, body: str) -> httpx.Response:
        """POST *body*, retrying timeouts, connection errors and 5xx."""
        last_error: Exception | None = None
        for attempt in range(1, self._max_retries + 1):
            try:
                response = await self._client.post(_COMPLETIONS_PATH, content=body)
                if response.status_code >= 500:
                    raise LLMTransportError(
                        f"Server error {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )
                if response.status_code >= 400:
                    raise LLMTransportError(
                        f"Client error {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )
                if not response.is_success:
                    raise LLMTransportError(
                        f"Unexpected status {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )
                return response

            except (httpx.TimeoutException, httpx.ConnectError) as exc:
                last_error = LLMTransportError(f"{type(exc).__name__}: {exc}")
            except LLMTransportError as exc:
                if exc.status_code is None or exc.status_code < 500:
                    raise
                last_error = exc
            except httpx.HTTPError as exc:
                raise LLMTransportError(f"{type(exc).__name__}: {exc}") from exc

            if attempt < self._max_retries:
                backoff = INITIAL_BACKOFF_SECONDS * (2 ** (attempt - 1))
                logger.warning(
                    "LLM request attempt %d/%d failed (%s). Retrying in %.1fs…",
                    attempt, self._max_retries, last_error, backoff,
                )
                await asyncio.sleep(backoff)

        raise last_error  # max_retries >= 1, so at least one attempt ran

    # ── Public API ───────────────────────────────────────────────────

    async def complete(
        self,
        system_prompt: str,
        transcript: Iterable[TranscriptEntry],
    ) -> str:
        """Send one chat-completion request and return the assistant text.

        Raises:
            LLMTransportError: no usable response (includes a missing key).
            LLMParseError: the body lacks ``choices[0].message.content``.
        """
        if not self._api_key:
            metrics.record_failure("openai", "chat_completion", error_type="MissingAPIKey")
            raise LLMTransportError("OPENAI_API_KEY is not configured")

        request = build_request(system_prompt, transcript, self._model)
        logger.debug(
            "LLM request: model=%s messages=%d", self._model, len(request.messages),
        )

        t0 = time.perf_counter()
        try:
            response = await self._post(request.model_dump_json())
            content = parse_response(response.text)
        except LLMError as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "openai", "chat_completion",
                error_type=type(exc).__name__, latency_ms=elapsed,
            )
            raise

        elapsed = (time.perf_counter() - t0) * 1000
        metrics.record_success("openai", "chat_completion", latency_ms=elapsed)
        logger.debug("LLM replied in %.0fms (%d chars)", elapsed, len(content))
        return content
