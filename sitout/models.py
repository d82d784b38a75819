"""Core domain models.

The scheduler, generation client and HTTP routes all exchange these types.
Pydantic validates them at every boundary; personas and messages are frozen
once created.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

MessageSource = Literal["generated", "fallback"]

Phase = Literal["idle", "active", "paused"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VoiceSettings(BaseModel):
    """Speech-synthesis hints for one persona. Only the speech sink reads these."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    lang: str = "en-GB"
    pitch: float = 1.0
    rate: float = 1.0


class Persona(BaseModel):
    """A fixed conversational character."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    prompt_profile: str
    fallback_lines: tuple[str, ...] = ()
    voice: VoiceSettings = Field(default_factory=VoiceSettings)


class Message(BaseModel):
    """One line of dialogue appended to the conversation."""

    model_config = ConfigDict(frozen=True)

    id: int
    speaker_id: str
    speaker_name: str
    text: str
    created_at: datetime = Field(default_factory=utcnow)
    source: MessageSource = "generated"


class ConversationState(BaseModel):
    """Mutable turn-taking flags. Owned and mutated only by TurnScheduler."""

    active_speaker_index: int = 0
    is_active: bool = False
    is_paused: bool = False
    is_generating: bool = False
    last_turn_completed_at: float | None = None  # scheduler clock, not wall time

    @property
    def phase(self) -> Phase:
        if not self.is_active:
            return "idle"
        return "paused" if self.is_paused else "active"


class CredentialRecord(BaseModel):
    """Health bookkeeping for one provider credential."""

    secret: str
    healthy: bool = True
    last_tested_at: float | None = None
    last_error: str | None = None
    failure: str | None = None  # classification that made it unhealthy


class ConversationSnapshot(BaseModel):
    """Read-only view handed to renderers."""

    history: list[Message]
    active_speaker_id: str
    active_speaker_name: str
    phase: Phase
    is_active: bool
    is_paused: bool
    is_generating: bool
