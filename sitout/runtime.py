"""Process-wide wiring: one pool, one limiter, one scheduler per process.

Both the HTTP app and the console launcher build a Runtime from Settings
and hand its parts to whoever needs them; nothing here is a module global.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable

from sitout.client import GenerationClient
from sitout.config import Settings
from sitout.credentials import CredentialPool
from sitout.driver import ConversationDriver
from sitout.fallback import FallbackSelector
from sitout.llm import TextProvider, build_provider
from sitout.personas import load_personas
from sitout.ratelimit import RateLimiter
from sitout.scheduler import TurnScheduler
from sitout.speech import NullSpeech, SpeechListener, SpeechSink


class Runtime:
    def __init__(
        self,
        settings: Settings,
        provider: TextProvider | None = None,
        speech: SpeechSink | None = None,
        auto_start: bool = False,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self.personas = load_personas(settings.personas_path)
        self.pool = CredentialPool(settings.api_keys, cooldown=settings.cooldown, clock=clock)
        self.limiter = RateLimiter(settings.rate_base, settings.rate_ceiling, clock=clock)
        self.provider = provider or build_provider(
            settings.provider_format,
            settings.provider_url,
            settings.model,
            timeout=settings.request_timeout,
        )
        self.client = GenerationClient(
            self.provider,
            self.pool,
            self.limiter,
            max_attempts=settings.max_attempts,
            context_messages=settings.context_messages,
            temperature=settings.temperature,
            opening_temperature=settings.opening_temperature,
        )
        self.scheduler = TurnScheduler(
            self.personas,
            self.client,
            FallbackSelector(rng),
            history_limit=settings.history_limit,
            turn_limit=settings.turn_limit,
            dwell_min=settings.dwell_min,
            dwell_jitter=settings.dwell_jitter,
            clock=clock,
            rng=rng,
        )
        self.speech = SpeechListener(speech or NullSpeech(), {p.id: p for p in self.personas})
        self.scheduler.listeners.append(self.speech)
        self.driver = ConversationDriver(self.scheduler, tick=settings.driver_tick, auto_start=auto_start)
