"""Turn scheduler — who speaks next, and when.

States (ConversationState.phase):

    idle ──start()──▶ active ◀──resume()── paused
      ▲                 │ pause() / turn limit ──▶
      └─────reset()─────┘  (reset() from any state)

A requested turn always ends in exactly one appended Message: generated
text when the client succeeds, a fallback line otherwise. The speaker index
then advances cyclically. `is_generating` keeps at most one turn in flight;
overlapping calls are no-ops, never queued.

The scheduler is timer-free. Pacing is enforced by a dwell interval checked
inside request_next_turn(); an external driver calls it periodically.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Sequence

from sitout.client import GenerationClient, GenerationFailed
from sitout.fallback import FallbackSelector
from sitout.models import (
    ConversationSnapshot,
    ConversationState,
    Message,
    MessageSource,
    Persona,
)

logger = logging.getLogger(__name__)

MessageListener = Callable[[Message], None]


class TurnScheduler:
    """Owns conversation history and turn-taking state.

    Args:
        personas:       Speaking order; persona[0] opens the conversation.
        client:         GenerationClient used for every line.
        fallback:       FallbackSelector used whenever generation fails.
        history_limit:  Messages retained; oldest dropped first. Defaults to 10.
        turn_limit:     Turns after start()/resume() before auto-pausing. Defaults to 10.
        dwell_min:      Minimum seconds between turns.
        dwell_jitter:   Extra random seconds (uniform 0..jitter) added per turn.
        clock:          Monotonic clock in seconds.
        rng:            Random source for dwell jitter.
    """

    def __init__(
        self,
        personas: Sequence[Persona],
        client: GenerationClient,
        fallback: FallbackSelector,
        history_limit: int = 10,
        turn_limit: int = 10,
        dwell_min: float = 8.0,
        dwell_jitter: float = 4.0,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        if not personas:
            raise ValueError("At least one persona is required")
        ids = [p.id for p in personas]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate persona ids: {ids}")
        if history_limit < 1 or turn_limit < 1:
            raise ValueError("history_limit and turn_limit must be positive")

        self.personas: tuple[Persona, ...] = tuple(personas)
        self.history_limit = history_limit
        self.turn_limit = turn_limit
        self.dwell_min = dwell_min
        self.dwell_jitter = dwell_jitter
        self.listeners: list[MessageListener] = []

        self._client = client
        self._fallback = fallback
        self._clock = clock
        self._rng = rng or random.Random()

        self._history: list[Message] = []
        self.state = ConversationState()
        self._next_id = 1
        self._epoch = 0  # bumped by reset(); stale in-flight turns compare against it
        self._dwell = 0.0
        self._turns_since_resume = 0

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def history(self) -> tuple[Message, ...]:
        return tuple(self._history)

    @property
    def active_speaker(self) -> Persona:
        return self.personas[self.state.active_speaker_index]

    def dwell_remaining(self) -> float:
        """Seconds until the next turn may start (0 when it may start now)."""
        last = self.state.last_turn_completed_at
        if last is None:
            return 0.0
        return max(0.0, self._dwell - (self._clock() - last))

    def snapshot(self) -> ConversationSnapshot:
        speaker = self.active_speaker
        return ConversationSnapshot(
            history=list(self._history),
            active_speaker_id=speaker.id,
            active_speaker_name=speaker.name,
            phase=self.state.phase,
            is_active=self.state.is_active,
            is_paused=self.state.is_paused,
            is_generating=self.state.is_generating,
        )

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def start(self) -> Message | None:
        """Open the conversation with persona[0]. No-op once started."""
        if self._history or self.state.is_active:
            return None

        persona = self.active_speaker
        logger.info("starting conversation with %s", persona.id)
        self.state.is_active = True
        return await self._run_turn(persona, opening=True)

    async def request_next_turn(self) -> Message | None:
        """Produce the active persona's line if the conversation may advance."""
        state = self.state
        if not state.is_active or state.is_generating or state.is_paused:
            return None
        if self.dwell_remaining() > 0:
            return None
        if self._turns_since_resume >= self.turn_limit:
            self._auto_pause()
            return None

        msg = await self._run_turn(self.active_speaker, opening=False)
        if msg is not None and self._turns_since_resume >= self.turn_limit:
            self._auto_pause()
        return msg

    def pause(self) -> None:
        self.state.is_paused = True

    def resume(self) -> None:
        """Clear the pause flag and grant a fresh turn budget. Does not start a turn."""
        self.state.is_paused = False
        self._turns_since_resume = 0

    def reset(self) -> None:
        """Drop history and state back to idle. An in-flight turn is discarded when it lands."""
        self._epoch += 1
        self._history.clear()
        self.state = ConversationState()
        self._dwell = 0.0
        self._turns_since_resume = 0
        logger.info("conversation reset")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _auto_pause(self) -> None:
        logger.info("turn limit %d reached; pausing", self.turn_limit)
        self.state.is_paused = True

    async def _run_turn(self, persona: Persona, opening: bool) -> Message | None:
        epoch = self._epoch
        self.state.is_generating = True
        try:
            text, source = await self._produce(persona, opening)
        finally:
            if epoch == self._epoch:
                self.state.is_generating = False

        if epoch != self._epoch:
            logger.info("discarding %s line that finished after a reset", persona.id)
            return None
        return self._append(persona, text, source)

    async def _produce(self, persona: Persona, opening: bool) -> tuple[str, MessageSource]:
        history = list(self._history)
        try:
            result = await self._client.generate(persona, history, opening=opening)
        except Exception:
            # generate() is not supposed to raise; keep the turn alive if it does
            logger.exception("generation raised for %s", persona.id)
            result = GenerationFailed(reason="unknown", detail="unexpected exception")

        if isinstance(result, GenerationFailed):
            logger.warning("fallback line for %s (%s)", persona.id, result.reason)
            if opening:
                return self._fallback.opener(), "fallback"
            return self._fallback.select(persona, history), "fallback"
        return result, "generated"

    def _append(self, persona: Persona, text: str, source: MessageSource) -> Message:
        msg = Message(
            id=self._next_id,
            speaker_id=persona.id,
            speaker_name=persona.name,
            text=text,
            source=source,
        )
        self._next_id += 1
        self._history.append(msg)
        overflow = len(self._history) - self.history_limit
        if overflow > 0:
            del self._history[:overflow]

        self.state.active_speaker_index = (self.state.active_speaker_index + 1) % len(self.personas)
        self.state.last_turn_completed_at = self._clock()
        self._dwell = self.dwell_min + self._rng.uniform(0, self.dwell_jitter)
        self._turns_since_resume += 1
        logger.info("turn %d: %s (%s)", msg.id, persona.id, source)

        for listener in list(self.listeners):
            try:
                listener(msg)
            except Exception:
                logger.exception("message listener failed")
        return msg
