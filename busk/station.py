"""Station — the service object that owns the booking store, show timer and request queue.

Built once at startup with its collaborators injected; started and stopped
explicitly by the web app's lifespan.
"""
import logging
import time
from typing import Callable, Optional

from .availability import SlotResolver
from .config import DATA_DIR, QUEUE_CYCLE_DELAY_S, TICK_INTERVAL_S
from .generation import Generator, make_generator
from .models import AdSlot, Advertisement, MusicRequest
from .playback import PlaybackController
from .request_queue import RequestQueueProcessor
from .rotation import RotationSelector
from .schedule import PRICING, schedule_for
from .speech import Speaker, make_speaker
from .store import BookingStore, JsonFilePersistence, Persistence
from .timer import ShowTimer
from .web.state import StationState

logger = logging.getLogger(__name__)


class Station:
    def __init__(
        self,
        persistence: Persistence,
        speaker: Speaker,
        generator: Generator,
        state: Optional[StationState] = None,
        clock: Callable[[], float] = time.time,
        tick_interval: float = TICK_INTERVAL_S,
        cycle_delay: float = QUEUE_CYCLE_DELAY_S,
    ):
        self.state = state or StationState()
        self.clock = clock
        self.store = BookingStore(persistence)
        self.playback = PlaybackController(self.store, speaker, self.state)
        self.timer = ShowTimer(
            self.store, self.playback, self.state,
            rotation=RotationSelector(), clock=clock, tick_interval=tick_interval,
        )
        self.resolver = SlotResolver(self.store, self.timer)
        self.queue = RequestQueueProcessor(
            self.store, speaker, generator, self.state, cycle_delay=cycle_delay,
        )
        self._started = False

    @classmethod
    def from_config(cls, state: Optional[StationState] = None) -> "Station":
        return cls(
            persistence=JsonFilePersistence(DATA_DIR),
            speaker=make_speaker(),
            generator=make_generator(),
            state=state,
        )

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def start(self):
        if self._started:
            return
        self._started = True
        self.store.recover_interrupted()
        self.queue.start()
        logger.info("Station started")

    async def stop(self):
        """Graceful shutdown."""
        await self.timer.stop()
        await self.queue.stop()
        await self.playback.flush()
        self._started = False
        logger.info("Station stopped")

    # ── Advertising ──────────────────────────────────────────────────────────

    def book_advertisement(self, **fields) -> Advertisement:
        return self.store.add_advertisement(**fields)

    def delete_advertisement(self, ad_id: str) -> bool:
        return self.store.delete_advertisement(ad_id)

    def advertisements_for_show(self, show_name: str) -> list[Advertisement]:
        return self.store.advertisements_for_show(show_name)

    def available_slots(self, show_name: str, show_duration: float,
                        now: Optional[float] = None) -> list[AdSlot]:
        return self.resolver.available_slots(
            show_name, show_duration, self.clock() if now is None else now
        )

    @staticmethod
    def pricing() -> dict:
        return {str(d): dict(p) for d, p in PRICING.items()}

    @staticmethod
    def schedule(show_duration: float) -> dict:
        return schedule_for(show_duration).to_dict()

    # ── Live show ────────────────────────────────────────────────────────────

    async def go_live(self, show_name: str, show_duration: float):
        await self.timer.start(show_name, show_duration)

    async def end_show(self):
        await self.timer.stop()

    # ── Music requests ───────────────────────────────────────────────────────

    async def add_music_request(self, kind: str, user_name: str, message: str,
                                show_name: str, dedicated_to: Optional[str] = None) -> MusicRequest:
        return await self.queue.submit(kind, user_name, message, show_name, dedicated_to)

    def get_snapshot(self) -> dict:
        """Full state snapshot for initial WebSocket sync."""
        return {
            "onAir": self.timer.snapshot(),
            "generating": self.queue.current,
            "pendingRequests": len(self.store.pending_requests()),
            "stats": self.store.advertising_stats(),
            "pendingCompletions": self.playback.pending_completions,
        }
