"""Centralized configuration for the appointment scheduling agent.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/appointment-agent/<VARIABLE_NAME>``.

A missing ``OPENAI_API_KEY`` is *not* a startup error: the agent still
serves ``/slots`` and ``/booked``, and every LLM call fails with a
transport error until the key is provided.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or the lookup fails.
    """
    try:
        import boto3  # noqa: PLC0415 — lazy import, only needed on AWS

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/appointment-agent/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def _optional_secret(name: str) -> str | None:
    """Return a secret from env-var or SSM, or ``None`` when it is unset."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        return _get_ssm_parameter(name)

    return None


def get_openai_api_key() -> str | None:
    """Resolve the OpenAI API key.  Called once per LLM client."""
    key = _optional_secret("OPENAI_API_KEY")
    if key is None:
        logger.warning("OPENAI_API_KEY is not set; LLM calls will fail until it is provided")
    return key


def _get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ── Availability seed ───────────────────────────────────────────────

DEFAULT_SEED_SLOTS: dict[str, tuple[str, ...]] = {
    "2025-11-05": ("10:00", "14:00", "16:00"),
    "2025-11-06": ("09:00", "11:00", "15:00"),
}


def parse_seed_slots(raw: str) -> dict[str, tuple[str, ...]]:
    """Parse ``DATE=HH:MM,HH:MM;DATE=HH:MM`` into a slot map.

    Raises ``ValueError`` on a malformed entry so a bad ``SEED_SLOTS``
    value is caught at startup rather than producing an empty calendar.
    """
    slots: dict[str, tuple[str, ...]] = {}
    for chunk in raw.split(";"):
        chunk = chunk.strip()
        if not chunk:
            continue
        date, sep, times = chunk.partition("=")
        if not sep or not date.strip():
            raise ValueError(f"Malformed SEED_SLOTS entry: {chunk!r}")
        slots[date.strip()] = tuple(t.strip() for t in times.split(",") if t.strip())
    return slots


def get_seed_slots() -> dict[str, tuple[str, ...]]:
    """Return the configured seed availability, or the built-in default."""
    raw = os.getenv("SEED_SLOTS")
    if not raw:
        return dict(DEFAULT_SEED_SLOTS)
    return parse_seed_slots(raw)


# ── LLM ─────────────────────────────────────────────────────────────
MODEL_NAME: str = os.getenv("MODEL_NAME", "gpt-4")
OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
LLM_TIMEOUT_SECONDS: float = float(os.getenv("LLM_TIMEOUT_SECONDS", "30"))
LLM_MAX_RETRIES: int = int(os.getenv("LLM_MAX_RETRIES", "1"))
LLM_HTTP2: bool = _get_bool("LLM_HTTP2", True)

# Number of transcript entries sent with each request (0 = full transcript)
LLM_HISTORY_WINDOW: int = int(os.getenv("LLM_HISTORY_WINDOW", "0"))
