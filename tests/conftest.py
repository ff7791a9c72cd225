"""Shared fixtures: in-memory store, scripted collaborators, a hand-driven clock."""
import asyncio

import pytest

from busk import config
from busk.errors import GenerationError, PersistenceError
from busk.store import BookingStore, MemoryPersistence
from busk.web.state import StationState

SHOW = "Tech Talk with Neural Nancy"
START = 1_700_000_000.0


@pytest.fixture(autouse=True)
def _isolated_logs(tmp_path, monkeypatch):
    """Keep errors.log / metrics.jsonl out of the real data directory."""
    monkeypatch.setattr(config, "ERRORS_LOG", tmp_path / "errors.log")
    monkeypatch.setattr(config, "METRICS_LOG", tmp_path / "metrics.jsonl")


class FakeClock:
    def __init__(self, now: float = START):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

    def at_minute(self, minutes: float):
        self.now = START + minutes * 60


class FakeSpeaker:
    def __init__(self):
        self.spoken: list[tuple[str, bool, bool, str]] = []
        self.played: list[str] = []
        self.fail_with: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def speak(self, text, announce=True, interrupt=False, label=""):
        self.spoken.append((text, announce, interrupt, label))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with

    async def play_audio(self, locator):
        self.played.append(locator)
        if self.fail_with is not None:
            raise self.fail_with


class FakeGenerator:
    """Records calls; fails the first `failures` calls (all calls if None)."""

    def __init__(self, failures: int = 0, on_generate=None):
        self.calls: list = []
        self.failures = failures
        self.on_generate = on_generate

    async def generate(self, request, prompts, config):
        self.calls.append((request, prompts, config))
        if self.on_generate is not None:
            await self.on_generate(request)
        if self.failures is None or len(self.calls) <= self.failures:
            raise GenerationError("model exploded")
        return None


class FlakyPersistence(MemoryPersistence):
    """Memory persistence whose saves can be switched off."""

    def __init__(self):
        super().__init__()
        self.broken = False

    def save(self, key, records):
        if self.broken:
            raise PersistenceError(f"disk full while saving {key}")
        super().save(key, records)


async def instant_sleep(_seconds):
    await asyncio.sleep(0)


@pytest.fixture
def persistence():
    return FlakyPersistence()


@pytest.fixture
def store(persistence):
    return BookingStore(persistence)


@pytest.fixture
def state():
    return StationState()


@pytest.fixture
def speaker():
    return FakeSpeaker()


@pytest.fixture
def clock():
    return FakeClock()


def book(store, show=SHOW, duration=10, company="Acme", **kw):
    fields = dict(
        company_name=company,
        selected_show=show,
        ad_type="script",
        duration=duration,
        amount=50,
        brand_category=kw.pop("brand_category", None),
        ad_script=kw.pop("ad_script", f"{company} makes things."),
    )
    fields.update(kw)
    return store.add_advertisement(**fields)


