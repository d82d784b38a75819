"""Speech playback boundary.

Playback is fire-and-forget: the conversation never waits on audio and a
failing sink never affects turns. Real synthesis lives outside this
package; anything matching SpeechSink can be plugged in.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Protocol

from sitout.models import Message, Persona

logger = logging.getLogger(__name__)


class SpeechSink(Protocol):
    async def speak(self, text: str, persona: Persona) -> None: ...


class NullSpeech:
    """Sink that only logs what would have been spoken."""

    async def speak(self, text: str, persona: Persona) -> None:
        logger.debug("speak persona=%s voice=%s len=%d", persona.id, persona.voice.name, len(text))


async def speak_message(sink: SpeechSink, message: Message, persona: Persona) -> bool:
    """Play one message; returns False instead of raising when the sink fails."""
    try:
        await sink.speak(message.text, persona)
    except Exception:
        logger.exception("speech playback failed for message %d", message.id)
        return False
    return True


class SpeechListener:
    """Scheduler listener that hands each new message to a sink in the background.

    Must be called from inside a running event loop.
    """

    def __init__(self, sink: SpeechSink, personas: Mapping[str, Persona]) -> None:
        self._sink = sink
        self._personas = dict(personas)
        self._tasks: set[asyncio.Task] = set()

    def __call__(self, message: Message) -> None:
        persona = self._personas.get(message.speaker_id)
        if persona is None:
            logger.warning("no persona %r for speech playback", message.speaker_id)
            return
        task = asyncio.get_running_loop().create_task(speak_message(self._sink, message, persona))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for playback tasks still running (used on shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))
