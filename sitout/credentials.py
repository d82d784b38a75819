"""Credential pool — round-robin provider credentials with health tracking.

Failure classifications drive health:

  auth_or_invalid  unhealthy until reset()
  rate_limited     unhealthy until the cooldown has passed since the most
                   recent rate-limit report; then every rate-limited record
                   is forgiven at once
  unknown          last_error recorded, stays healthy

One pool is built at process start and shared by every turn and persona.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from typing import Any, Literal

from sitout.models import CredentialRecord

logger = logging.getLogger(__name__)

Classification = Literal["rate_limited", "auth_or_invalid", "unknown"]

DEFAULT_COOLDOWN = 300.0


class NoCredentialAvailable(LookupError):
    """Raised by acquire() when no configured credential is usable."""


def mask(secret: str) -> str:
    """Short, log-safe form of a secret."""
    if len(secret) <= 8:
        return "***"
    return f"{secret[:8]}..."


class CredentialPool:
    def __init__(
        self,
        secrets: Iterable[str],
        cooldown: float = DEFAULT_COOLDOWN,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._records: list[CredentialRecord] = []
        seen: set[str] = set()
        for secret in secrets:
            secret = secret.strip()
            if not secret or secret in seen:
                continue
            seen.add(secret)
            self._records.append(CredentialRecord(secret=secret))
        if not self._records:
            logger.warning("No provider credentials configured; every turn will use fallback lines")

        self._cooldown = cooldown
        self._clock = clock
        self._cursor = 0
        self._rate_limited_at: float | None = None

    def __len__(self) -> int:
        return len(self._records)

    @property
    def available_count(self) -> int:
        self._forgive_expired()
        return sum(1 for r in self._records if r.healthy)

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def acquire(self, exclude: Iterable[str] = ()) -> str:
        """Return the next healthy credential in round-robin order.

        Credentials in `exclude` are skipped while any other healthy one is
        left, so a multi-attempt call rotates through the pool before it
        repeats itself.
        """
        self._forgive_expired()
        excluded = set(exclude)
        record = self._next_healthy(excluded) or self._next_healthy(set())
        if record is None:
            raise NoCredentialAvailable(
                f"No healthy credential ({len(self._records)} configured)"
            )
        return record.secret

    def _next_healthy(self, excluded: set[str]) -> CredentialRecord | None:
        n = len(self._records)
        for step in range(n):
            idx = (self._cursor + step) % n
            record = self._records[idx]
            if record.healthy and record.secret not in excluded:
                self._cursor = (idx + 1) % n
                return record
        return None

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    def report_success(self, secret: str) -> None:
        record = self._find(secret)
        record.healthy = True
        record.failure = None
        record.last_error = None
        record.last_tested_at = self._clock()

    def report_failure(self, secret: str, classification: Classification, error: str = "") -> None:
        record = self._find(secret)
        now = self._clock()
        record.last_tested_at = now
        record.last_error = error or classification

        if classification == "unknown":
            logger.debug("credential %s transient failure: %s", mask(secret), error)
            return

        record.healthy = False
        record.failure = classification
        if classification == "rate_limited":
            self._rate_limited_at = now
            logger.warning("credential %s rate limited; cooling down", mask(secret))
        else:
            logger.warning(
                "credential %s rejected (%s); %d healthy left",
                mask(secret), error or classification, self.available_count,
            )

    def reset(self) -> None:
        """Mark every credential healthy again, including auth failures."""
        for record in self._records:
            record.healthy = True
            record.failure = None
            record.last_error = None
        self._rate_limited_at = None
        self._cursor = 0

    def _forgive_expired(self) -> None:
        if self._rate_limited_at is None:
            return
        if self._clock() - self._rate_limited_at < self._cooldown:
            return
        forgiven = 0
        for record in self._records:
            if record.failure == "rate_limited":
                record.healthy = True
                record.failure = None
                forgiven += 1
        self._rate_limited_at = None
        if forgiven:
            logger.info("cooldown elapsed; %d rate-limited credential(s) back in rotation", forgiven)

    def _find(self, secret: str) -> CredentialRecord:
        for record in self._records:
            if record.secret == secret:
                return record
        raise KeyError(f"Unknown credential {mask(secret)}")

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def secrets(self) -> list[str]:
        return [r.secret for r in self._records]

    def status(self) -> list[dict[str, Any]]:
        """Masked per-credential status for display."""
        self._forgive_expired()
        return [
            {
                "credential": mask(r.secret),
                "healthy": r.healthy,
                "failure": r.failure,
                "last_error": r.last_error,
                "last_tested_at": r.last_tested_at,
            }
            for r in self._records
        ]
