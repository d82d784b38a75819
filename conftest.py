import random

import pytest

from sitout.client import GenerationClient
from sitout.credentials import CredentialPool
from sitout.fallback import FallbackSelector
from sitout.models import Persona
from sitout.ratelimit import RateLimiter
from sitout.scheduler import TurnScheduler


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class StubProvider:
    """Scripted provider: each call consumes the next response; the last one repeats.

    A response that is an exception instance is raised instead of returned.
    """

    def __init__(self, *responses) -> None:
        self.responses = list(responses) or ["ok"]
        self.calls: list[dict] = []

    async def __call__(self, system: str, prompt: str, temperature: float, api_key: str) -> str:
        self.calls.append(
            {"system": system, "prompt": prompt, "temperature": temperature, "api_key": api_key}
        )
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return item

    @property
    def keys_used(self) -> list[str]:
        return [c["api_key"] for c in self.calls]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def stub_provider():
    """Factory for scripted providers: stub_provider("a", ProviderError("x"), "b")."""
    return StubProvider


@pytest.fixture
def personas() -> list[Persona]:
    return [
        Persona(id="babu", name="Babu", prompt_profile="A farmer.",
                fallback_lines=["The rain is good for the paddy, alle?"]),
        Persona(id="aliyamma", name="Aliyamma", prompt_profile="A grandmother.",
                fallback_lines=["Family is everything, mole."]),
        Persona(id="fathima", name="Fathima", prompt_profile="A working woman.",
                fallback_lines=["The office was busy today."]),
        Persona(id="chakko", name="Chakko", prompt_profile="A joker.",
                fallback_lines=["Adipoli!"]),
    ]


@pytest.fixture
def make_client(clock):
    """Build a GenerationClient around a provider, with a fresh pool and limiter."""

    def _make(provider, keys=("key-one-aaaaaaaa",), base=10.0, ceiling=120.0, **kwargs):
        pool = CredentialPool(keys, clock=clock)
        limiter = RateLimiter(base, ceiling, clock=clock)
        return GenerationClient(provider, pool, limiter, **kwargs)

    return _make


@pytest.fixture
def make_scheduler(clock, personas, make_client):
    """Build a TurnScheduler with no rate limiting and a fixed 5s dwell."""

    def _make(provider=None, keys=("key-one-aaaaaaaa",), **kwargs):
        client = make_client(provider or StubProvider("ok"), keys=keys, base=0.0, ceiling=0.0)
        kwargs.setdefault("dwell_min", 5.0)
        kwargs.setdefault("dwell_jitter", 0.0)
        return TurnScheduler(
            kwargs.pop("personas", personas),
            client,
            FallbackSelector(random.Random(7)),
            clock=clock,
            rng=random.Random(7),
            **kwargs,
        )

    return _make
