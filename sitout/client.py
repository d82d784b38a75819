"""Generation client — one persona line across rotating credentials.

Call flow for generate():
  1. Render system + turn (or opening) prompts from the bounded history.
  2. Ask the RateLimiter; denied → GenerationFailed("rate_limited"), no call.
  3. No healthy credential → GenerationFailed("no_credential").
  4. Up to min(max_attempts, healthy credentials) attempts, each with a
     credential not yet tried in this call:
       success          → report success, reset backoff, return cleaned text
       rate_limited     → penalise credential, stop, GenerationFailed
       auth_or_invalid  → penalise credential, try the next one
       unknown          → note the error, try the next one
  5. Attempts used up → GenerationFailed("exhausted").

generate() never raises for provider problems; the scheduler relies on
that to keep every turn alive.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from sitout.credentials import Classification, CredentialPool, NoCredentialAvailable, mask
from sitout.llm import ProviderError, TextProvider
from sitout.models import Message, Persona
from sitout.prompts import PromptError, build_context, opening_prompt, system_prompt, turn_prompt
from sitout.ratelimit import RateLimiter

logger = logging.getLogger(__name__)

FailureReason = Literal["rate_limited", "auth_or_invalid", "unknown", "no_credential", "exhausted"]

_RATE_LIMIT_STATUSES = {429, 503}
_AUTH_STATUSES = {401, 403}
_RATE_LIMIT_MARKERS = ("429", "too many requests", "rate limit", "quota", "overloaded", "exhausted")
_AUTH_MARKERS = ("api key", "api_key", "invalid", "unauthorized", "permission", "forbidden")

PROBE_SYSTEM = "You are a test assistant."
PROBE_PROMPT = "Say only: Hello"


class GenerationFailed(BaseModel):
    """Returned instead of text when no line could be generated."""

    reason: FailureReason
    detail: str = ""
    attempts: int = 0


def classify_failure(exc: BaseException) -> Classification:
    """Map a provider exception onto the pool's failure classes.

    HTTP status wins when present; otherwise the message text decides.
    """
    status = getattr(exc, "status_code", None)
    if status in _RATE_LIMIT_STATUSES:
        return "rate_limited"
    if status in _AUTH_STATUSES:
        return "auth_or_invalid"

    msg = str(exc).lower()
    if any(marker in msg for marker in _RATE_LIMIT_MARKERS):
        return "rate_limited"
    if any(marker in msg for marker in _AUTH_MARKERS):
        return "auth_or_invalid"
    return "unknown"


def clean_line(text: str, persona: Persona) -> str:
    """Trim whitespace, wrapping quotes and an echoed "Name:" prefix."""
    text = text.strip()
    text = re.sub(rf"^\**{re.escape(persona.name)}\**\s*:\s*", "", text, flags=re.IGNORECASE)
    if len(text) >= 2 and text[0] == text[-1] and text[0] in "\"'":
        text = text[1:-1]
    return text.strip()


class GenerationClient:
    """Wraps a TextProvider with rate limiting and credential rotation.

    Args:
        provider:             Callable matching the TextProvider protocol.
        pool:                 Shared CredentialPool.
        limiter:              Shared RateLimiter.
        max_attempts:         Credentials tried per call at most. Defaults to 3.
        context_messages:     History lines included in the prompt. Defaults to 5.
        temperature:          Sampling temperature for turns.
        opening_temperature:  Sampling temperature for the opening line.
        now:                  Wall clock for time-of-day prompts.
    """

    def __init__(
        self,
        provider: TextProvider,
        pool: CredentialPool,
        limiter: RateLimiter,
        max_attempts: int = 3,
        context_messages: int = 5,
        temperature: float = 0.8,
        opening_temperature: float = 0.9,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._provider = provider
        self._pool = pool
        self._limiter = limiter
        self._max_attempts = max_attempts
        self._context_messages = context_messages
        self._temperature = temperature
        self._opening_temperature = opening_temperature
        self._now = now

    @property
    def pool(self) -> CredentialPool:
        return self._pool

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    async def generate(
        self, persona: Persona, history: Sequence[Message], *, opening: bool = False
    ) -> str | GenerationFailed:
        try:
            ctx = build_context(persona, history, self._context_messages, now=self._now())
            system = system_prompt(ctx)
            prompt = opening_prompt(ctx) if opening else turn_prompt(ctx)
        except PromptError as e:
            logger.error("prompt rendering failed for %s: %s", persona.id, e)
            return GenerationFailed(reason="unknown", detail=str(e))
        temperature = self._opening_temperature if opening else self._temperature

        if not self._limiter.try_acquire():
            return GenerationFailed(reason="rate_limited", detail="local rate limit")

        attempts = min(self._max_attempts, self._pool.available_count)
        if attempts == 0:
            return GenerationFailed(reason="no_credential", detail=f"{len(self._pool)} configured")

        self._limiter.record_attempt()
        tried: list[str] = []
        last_detail = ""
        for attempt in range(1, attempts + 1):
            try:
                secret = self._pool.acquire(exclude=tried)
            except NoCredentialAvailable as e:
                last_detail = str(e)
                break
            tried.append(secret)
            logger.debug(
                "generate persona=%s attempt=%d/%d credential=%s prompt_len=%d",
                persona.id, attempt, attempts, mask(secret), len(prompt),
            )

            try:
                raw = await self._provider(system, prompt, temperature, secret)
                text = clean_line(raw, persona)
                if not text:
                    raise ProviderError("Provider returned an empty line")
            except Exception as e:
                classification = classify_failure(e)
                last_detail = str(e)
                self._pool.report_failure(secret, classification, last_detail)
                logger.info(
                    "generation attempt %d/%d for %s failed (%s): %s",
                    attempt, attempts, persona.id, classification, last_detail,
                )
                if classification == "rate_limited":
                    self._limiter.record_failure()
                    return GenerationFailed(reason="rate_limited", detail=last_detail, attempts=attempt)
                continue

            self._pool.report_success(secret)
            self._limiter.record_success()
            logger.debug("generated line for %s len=%d", persona.id, len(text))
            return text

        self._limiter.record_failure()
        return GenerationFailed(reason="exhausted", detail=last_detail, attempts=len(tried))

    # ------------------------------------------------------------------
    # Credential probing
    # ------------------------------------------------------------------

    async def probe(self, secret: str) -> bool:
        """Send a tiny test prompt with one credential and record the outcome."""
        try:
            text = await self._provider(PROBE_SYSTEM, PROBE_PROMPT, 0.1, secret)
        except Exception as e:
            self._pool.report_failure(secret, classify_failure(e), str(e))
            logger.info("probe failed for %s: %s", mask(secret), e)
            return False
        if not text.strip():
            self._pool.report_failure(secret, "unknown", "Empty response")
            return False
        self._pool.report_success(secret)
        return True

    async def probe_all(self, delay: float = 0.0) -> list[dict]:
        """Probe every configured credential in order, pausing `delay` seconds between them."""
        results: list[dict] = []
        for i, secret in enumerate(self._pool.secrets()):
            if i and delay > 0:
                await asyncio.sleep(delay)
            ok = await self.probe(secret)
            results.append({"credential": mask(secret), "ok": ok})
        working = sum(1 for r in results if r["ok"])
        logger.info("credential probe: %d/%d working", working, len(results))
        return results
