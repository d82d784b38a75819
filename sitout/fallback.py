"""Canned lines for when generation is unavailable.

select() picks a persona line for a regular turn:
  1. If the latest message mentions a topic (weather, family, work) and the
     persona has lines on that topic, choose among those.
  2. Otherwise, if the persona's own latest line sets a happy or thoughtful
     mood, choose among lines in that mood.
  3. Otherwise choose among all of the persona's lines.
A persona without lines gets the generic set.
Lines already said in the visible history are skipped while others remain.

opener() picks an opening line from time-of-day and general starters.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from datetime import datetime

from sitout.models import Message, Persona
from sitout.prompts import Mood, detect_mood, time_of_day

# topic → (words that trigger it in the last message, words that mark a matching line)
TOPICS: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "weather": (("weather", "rain", "sun"), ("weather", "rain", "season")),
    "family": (("family", "children", "home"), ("family", "children", "home")),
    "work": (("work", "job", "office"), ("work", "job", "office")),
}

# mood of the persona's own latest line → marks of a line that suits it
MOOD_MARKERS: dict[Mood, tuple[str, ...]] = {
    "happy": ("!", "good", "great"),
    "thoughtful": ("think", "remember", "?"),
}

GENERIC_LINES: tuple[str, ...] = (
    "That's interesting, no? Tell me more.",
    "Acha, I see your point. Very true!",
    "Hmm, that reminds me of something similar...",
    "Good point! I hadn't thought of it that way.",
    "Yes, these things happen in life, alle?",
)

OPENERS: dict[str, tuple[str, ...]] = {
    "morning": (
        "Good morning, everyone! Perfect weather for our morning chat, alle?",
        "Namaskaram! Early morning is the best time for good conversation, no?",
        "What a beautiful morning! Birds are singing, and the air is so fresh, eda!",
        "Morning time is thinking time, they say. What's on everyone's mind today?",
    ),
    "afternoon": (
        "Good afternoon, kuttikale! Perfect time to take a break and chat, no?",
        "Eda, this afternoon breeze is so nice! Come, let's sit and talk.",
        "Lunch time is over, chat time begins! How is everyone doing?",
        "Afternoon conversations are more relaxed and peaceful, alle?",
    ),
    "evening": (
        "Namaskaram! How is everyone today? Beautiful evening we're having, alle?",
        "Good evening, kuttikale! Perfect time for a nice chat, no?",
        "Eda, what a lovely evening to sit outside and talk! Come, come, sit here.",
        "Ayyo, finally some time to relax and chat with good friends!",
        "Evening time is story time! Anyone have something interesting to share?",
    ),
}

GENERAL_OPENERS: tuple[str, ...] = (
    "Eda, it's been too long since we all sat together like this! How is everyone?",
    "You know what? There's nothing better than good friends and good conversation!",
    "Sitting here reminds me of the old days when neighbours actually talked to each other, no?",
    "Community time is the best time! What's happening in everyone's world?",
)


def detect_topic(text: str) -> str | None:
    lowered = text.lower()
    for topic, (triggers, _) in TOPICS.items():
        if any(word in lowered for word in triggers):
            return topic
    return None


class FallbackSelector:
    def __init__(self, rng: random.Random | None = None) -> None:
        self._rng = rng or random.Random()

    def select(self, persona: Persona, history: Sequence[Message]) -> str:
        lines = [line for line in persona.fallback_lines if line.strip()] or list(GENERIC_LINES)

        candidates = self._on_topic(lines, history) or self._in_mood(lines, persona, history) or lines

        said = {m.text for m in history}
        fresh = [line for line in candidates if line not in said]
        return self._rng.choice(fresh or candidates)

    @staticmethod
    def _on_topic(lines: list[str], history: Sequence[Message]) -> list[str]:
        if not history:
            return []
        topic = detect_topic(history[-1].text)
        if topic is None:
            return []
        markers = TOPICS[topic][1]
        return [line for line in lines if any(m in line.lower() for m in markers)]

    @staticmethod
    def _in_mood(lines: list[str], persona: Persona, history: Sequence[Message]) -> list[str]:
        markers = MOOD_MARKERS.get(detect_mood(persona, history))
        if not markers:
            return []
        return [line for line in lines if any(m in line.lower() for m in markers)]

    def opener(self, now: datetime | None = None) -> str:
        hour = (now or datetime.now()).hour
        return self._rng.choice(OPENERS[time_of_day(hour)] + GENERAL_OPENERS)
