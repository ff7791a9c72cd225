"""Playback Controller — drives one advertisement through its on-air lifecycle.

scheduled → playing → completed, with playing → scheduled when the speech/audio
collaborator or a save fails. A finished ad stays "playing" for its full booked
duration, however quickly the announcement itself ends.
"""
import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable

from .config import COMPLETION_RETRY_S
from .errors import BuskError, PersistenceError, format_error
from .metrics import append_metric
from .models import Advertisement, ScriptContent
from .speech import Speaker
from .store import BookingStore
from .web.state import StationState

logger = logging.getLogger(__name__)


def build_ad_announcement(ad: Advertisement) -> str:
    script = ad.content.text if isinstance(ad.content, ScriptContent) else ""
    if ad.package_type == "branded":
        return f"This hour is brought to you by {ad.company_name}. {script}"
    return f"A message from our sponsor, {ad.company_name}: {script}"


class PlaybackController:
    def __init__(self, store: BookingStore, speaker: Speaker, state: StationState,
                 sleep: Callable[[float], Awaitable] = asyncio.sleep,
                 retry_delay: float = COMPLETION_RETRY_S):
        self.store = store
        self.speaker = speaker
        self.state = state
        self._sleep = sleep
        self.retry_delay = retry_delay
        # ad id → deferred completion task
        self._completions: dict[str, asyncio.Task] = {}

    @property
    def pending_completions(self) -> int:
        return len(self._completions)

    async def play(self, ad: Advertisement) -> bool:
        """Air one ad. Returns True if it went out, False if it was reverted."""
        try:
            playing = self.store.transition_advertisement(ad.id, "playing")
        except BuskError as e:
            msg = format_error("ad_playback", ad.id, {"show": ad.selected_show}, str(e))
            await self.state.broadcast("error", {"message": msg, "ad": ad.id})
            return False

        await self.state.broadcast("ad_playing", playing.to_dict())
        started = time.monotonic()

        try:
            if isinstance(playing.content, ScriptContent):
                await self.speaker.speak(
                    build_ad_announcement(playing), True, False, "Advertisement"
                )
            else:
                await self.speaker.play_audio(playing.content.locator)
        except asyncio.CancelledError:
            await self._revert(playing, "playback cancelled")
            raise
        except Exception as e:
            await self._revert(playing, str(e))
            return False

        self._schedule_completion(playing)
        append_metric({
            "event": "ad_aired",
            "ad_id": playing.id,
            "company": playing.company_name,
            "show": playing.selected_show,
            "ad_type": playing.ad_type,
            "duration_s": playing.duration,
            "speech_time_s": round(time.monotonic() - started, 2),
            "timestamp": datetime.now().isoformat(),
        })
        return True

    async def _revert(self, ad: Advertisement, err: str):
        msg = format_error("ad_playback", ad.id, {"show": ad.selected_show, "type": ad.ad_type}, err)
        try:
            reverted = self.store.transition_advertisement(ad.id, "scheduled")
        except BuskError as e:
            format_error("persistence", ad.id, {"revert_to": "scheduled"}, str(e))
        else:
            await self.state.broadcast("ad_reverted", reverted.to_dict())
        await self.state.broadcast("error", {"message": msg, "ad": ad.id})

    def _schedule_completion(self, ad: Advertisement):
        task = asyncio.create_task(self._complete_after(ad))
        self._completions[ad.id] = task
        task.add_done_callback(lambda _t, ad_id=ad.id: self._completions.pop(ad_id, None))

    async def _complete_after(self, ad: Advertisement):
        await self._sleep(ad.duration)
        # Stays pending until the save goes through
        while not await self._complete(ad):
            await self._sleep(self.retry_delay)

    async def _complete(self, ad: Advertisement) -> bool:
        """Mark the ad completed. False means the save failed and should be retried."""
        try:
            done = self.store.transition_advertisement(ad.id, "completed")
        except PersistenceError as e:
            format_error("ad_completion", ad.id, {"retry_in_s": self.retry_delay}, str(e))
            return False
        except BuskError as e:
            # Deleted or already moved on; nothing left to complete
            format_error("ad_completion", ad.id, None, str(e))
            return True
        await self.state.broadcast("ad_completed", done.to_dict())
        return True

    async def flush(self):
        """Shutdown: complete every ad still inside its booked window right away."""
        pending = list(self._completions.items())
        for ad_id, task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            ad = self.store.get_advertisement(ad_id)
            if ad is not None and ad.status == "playing" and not await self._complete(ad):
                logger.warning("%s still playing at shutdown; it returns to scheduled on next start", ad_id)
