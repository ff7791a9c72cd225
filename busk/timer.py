"""Show Timer — polls a live show and airs an ad when a slot comes due."""
import asyncio
import logging
import time
from typing import Callable, Optional

from .config import MIN_AD_GAP_S, TICK_INTERVAL_S, TRIGGER_WINDOW_MIN
from .models import AdSlot, Advertisement, ShowAdSchedule
from .playback import PlaybackController
from .rotation import RotationSelector, eligible_for_slot
from .schedule import schedule_for
from .store import BookingStore
from .web.state import StationState

logger = logging.getLogger(__name__)


class ShowTimer:
    """idle ⇄ running. Ticks on wall-clock time, one slot per tick at most."""

    def __init__(
        self,
        store: BookingStore,
        playback: PlaybackController,
        state: StationState,
        rotation: Optional[RotationSelector] = None,
        clock: Callable[[], float] = time.time,
        tick_interval: float = TICK_INTERVAL_S,
        trigger_window: float = TRIGGER_WINDOW_MIN,
        min_gap: float = MIN_AD_GAP_S,
    ):
        self.store = store
        self.playback = playback
        self.state = state
        self.rotation = rotation or RotationSelector()
        self.clock = clock
        self.tick_interval = tick_interval
        self.trigger_window = trigger_window
        self.min_gap = min_gap

        self.status = "idle"
        self.show_name: Optional[str] = None
        self.show_duration: Optional[float] = None
        self.schedule: Optional[ShowAdSchedule] = None
        self.started_at: float = 0.0
        self.elapsed_minutes: float = 0.0
        self.last_played_at: float = 0.0
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self.status == "running"

    # ── Control ──────────────────────────────────────────────────────────────

    async def start(self, show_name: str, show_duration: float):
        """Go live. Replaces any poll loop that is already running."""
        await self._cancel_loop()
        self.show_name = show_name
        self.show_duration = show_duration
        self.started_at = self.clock()
        self.elapsed_minutes = 0.0
        self.schedule = schedule_for(show_duration)
        self.status = "running"
        self._task = asyncio.create_task(self._run())
        await self.state.set_on_air(show_name)
        await self.state.broadcast("show_started", {
            "show": show_name,
            "duration": show_duration,
            "schedule": self.schedule.key,
        })
        logger.info("Show live: %s (%s min, %s schedule)", show_name, show_duration, self.schedule.key)

    async def stop(self):
        """Cancel the poll loop and rewind every cursor. Safe to call repeatedly."""
        was_running = self.is_running
        await self._cancel_loop()
        self.status = "idle"
        self.show_name = None
        self.show_duration = None
        self.schedule = None
        self.started_at = 0.0
        self.elapsed_minutes = 0.0
        self.last_played_at = 0.0
        self.rotation.reset()
        if was_running:
            await self.state.set_on_air(None)
            await self.state.broadcast("show_stopped", {})
            logger.info("Show stopped")

    async def _cancel_loop(self):
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ── Loop ─────────────────────────────────────────────────────────────────

    async def _run(self):
        while self.is_running:
            await asyncio.sleep(self.tick_interval)
            try:
                await self.tick()
            except Exception:
                logger.exception("Show timer tick failed")

    def due_slot(self, now: float) -> Optional[AdSlot]:
        """First slot in catalog order whose trigger window contains now."""
        if self.schedule is None:
            return None
        if now - self.last_played_at <= self.min_gap:
            return None
        elapsed = (now - self.started_at) / 60
        for slot in self.schedule.ad_slots:
            if abs(elapsed - slot.position) < self.trigger_window:
                return slot
        return None

    async def tick(self) -> Optional[Advertisement]:
        """One poll. Returns the ad that was put on air, if any."""
        if not self.is_running:
            return None

        now = self.clock()
        self.elapsed_minutes = (now - self.started_at) / 60

        slot = self.due_slot(now)
        if slot is None:
            return None

        eligible = eligible_for_slot(self.store.advertisements_for_show(self.show_name), slot)
        ad = self.rotation.select(eligible)
        if ad is None:
            logger.debug("Slot at %s min has no eligible %ss ads", slot.position, slot.duration)
            return None

        await self.state.broadcast("slot_triggered", {
            "show": self.show_name,
            "slot": slot.to_dict(),
            "ad": ad.id,
            "elapsed": round(self.elapsed_minutes, 2),
        })
        await self.playback.play(ad)
        self.last_played_at = self.clock()
        return ad

    def snapshot(self) -> dict:
        return {
            "status": self.status,
            "show": self.show_name,
            "showDuration": self.show_duration,
            "schedule": self.schedule.key if self.schedule else None,
            "elapsedMinutes": round(self.elapsed_minutes, 2),
            "rotationIndex": self.rotation.index,
            "lastPlayedAt": self.last_played_at or None,
        }
