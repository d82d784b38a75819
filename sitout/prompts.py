"""Handlebars prompt rendering for persona turns.

Three templates are rendered per call:

  SYSTEM_TEMPLATE   persona profile + current mood + style guidelines
  TURN_TEMPLATE     last K messages as "Name: text" lines (newest last),
                    conversation stage, who is being answered, topics
  OPENING_TEMPLATE  time-of-day aware conversation starter

Mood and topics are derived from the history on every call; nothing is
remembered between calls.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, Literal

import pybars

from sitout.models import Message, Persona

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}

Mood = Literal["happy", "thoughtful", "excited", "calm"]

MOOD_LINES: dict[Mood, str] = {
    "happy": "You're feeling particularly cheerful and optimistic today.",
    "thoughtful": "You're in a reflective and contemplative mood.",
    "excited": "You're feeling energetic and enthusiastic about the conversation.",
    "calm": "You're relaxed and enjoying the peaceful conversation.",
}

_MOOD_WORDS: list[tuple[Mood, tuple[str, ...]]] = [
    ("happy", ("happy", "great", "wonderful")),
    ("thoughtful", ("think", "remember", "wisdom")),
    ("excited", ("exciting", "amazing", "wow")),
]

SYSTEM_TEMPLATE = """{{{persona.profile}}}

Current context: {{{mood_line}}}

Conversation style guidelines:
- Use the natural Malayalam-English mix of Kerala conversations
- Keep it casual and authentic to an evening on the sit-out
- Use expressions like 'alle?', 'no?', 'eda', 'machane', 'mole' naturally
- Keep responses to 1-2 sentences

You are sitting in a traditional Kerala courtyard having an evening chat with friends and neighbours."""

TURN_TEMPLATE = """{{#if msgs}}Previous conversation:
{{#last msgs context_count}}{{{speaker_name}}}: {{{text}}}
{{/last}}{{else}}Nobody has spoken yet.
{{/if}}
Response context:
- You are {{{persona.name}}}
- {{#if last_speaker}}You are responding to {{{last_speaker}}}{{else}}You are continuing the conversation{{/if}}
- {{{stage}}}
- Recent topics: {{{topics}}}
- {{#if self_reply}}Avoid repeating yourself and add a new thought{{else}}Build on what the others have said{{/if}}

Reply with only {{{persona.name}}}'s next line, 1-2 sentences."""

OPENING_TEMPLATE = """Start a casual conversation on a Kerala sit-out during the {{{time_of_day}}}.

- You are {{{persona.name}}}, greeting friends and neighbours
- Reference the time of day, the weather or the neighbourhood naturally
- Mix in Malayalam expressions like 'alle?', 'no?', 'eda', 'kuttikale'

Reply with a single, warm conversation starter of 1-2 sentences."""


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_last(this, options, items, count):
    """{{#last array N}}...{{/last}} — iterate over the last N items."""
    result = []
    count = int(count)
    if count <= 0:
        return result
    for item in list(items)[-count:]:
        result.extend(options["fn"](item))
    return result


_HELPERS: dict[str, Callable] = {
    "last": _helper_last,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Context derivation ───────────────────────────────────


def conversation_stage(length: int) -> str:
    if length < 3:
        return "This is early in the conversation - be welcoming and set a friendly tone."
    if length < 8:
        return "The conversation is warming up - build on previous topics naturally."
    return "This is an ongoing conversation - deepen the discussion or bring in a related topic."


def detect_mood(persona: Persona, history: Sequence[Message]) -> Mood:
    """Mood from the persona's own most recent line; calm when it has none."""
    own = [m for m in history if m.speaker_id == persona.id]
    if not own:
        return "calm"
    text = own[-1].text.lower()
    for mood, words in _MOOD_WORDS:
        if any(w in text for w in words):
            return mood
    return "calm"


def recent_topics(history: Sequence[Message], window: int = 5, limit: int = 3) -> list[str]:
    """Distinct longer words (5+ letters) from the last few messages, in order seen."""
    topics: list[str] = []
    for msg in history[-window:]:
        for word in re.findall(r"[a-z']+", msg.text.lower()):
            word = word.strip("'")
            if len(word) > 4 and word not in topics:
                topics.append(word)
    return topics[:limit]


def time_of_day(hour: int) -> str:
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 17:
        return "afternoon"
    return "evening"


def build_context(
    persona: Persona,
    history: Sequence[Message],
    context_count: int = 5,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Assemble template variables for one persona turn.

    Returns a dict suitable for passing to render_prompt().
    """
    msgs = [{"speaker_name": m.speaker_name, "text": m.text} for m in history]
    last_speaker = history[-1].speaker_name if history else ""
    mood = detect_mood(persona, history)
    topics = recent_topics(history)
    return {
        "persona": {"id": persona.id, "name": persona.name, "profile": persona.prompt_profile},
        "msgs": msgs,
        "context_count": context_count,
        "last_speaker": last_speaker,
        "self_reply": bool(history) and history[-1].speaker_id == persona.id,
        "stage": conversation_stage(len(history)),
        "topics": ", ".join(topics) or "general chat",
        "mood": mood,
        "mood_line": MOOD_LINES[mood],
        "time_of_day": time_of_day((now or datetime.now()).hour),
    }


def system_prompt(ctx: dict[str, Any]) -> str:
    return render_prompt(SYSTEM_TEMPLATE, ctx)


def turn_prompt(ctx: dict[str, Any]) -> str:
    return render_prompt(TURN_TEMPLATE, ctx)


def opening_prompt(ctx: dict[str, Any]) -> str:
    return render_prompt(OPENING_TEMPLATE, ctx)
