"""Request Queue Processor — one music generation at a time, oldest pending first.

Each cycle picks the first pending request in insertion order, announces it,
generates it and marks it completed. A failure puts it back to pending with
one more attempt counted; after MAX_GENERATION_ATTEMPTS it is marked failed
and the queue moves on. Cycles are spaced by a fixed delay whether or not the
previous one succeeded.
"""
import asyncio
import logging
import time
from datetime import datetime
from typing import Optional

from .config import MAX_GENERATION_ATTEMPTS, QUEUE_CYCLE_DELAY_S
from .errors import BuskError, format_error
from .generation import Generator
from .metrics import append_metric
from .models import MusicRequest
from .prompts import build_announcement, build_prompts, show_music_config
from .speech import Speaker
from .store import BookingStore
from .web.state import StationState

logger = logging.getLogger(__name__)


class RequestQueueProcessor:
    def __init__(
        self,
        store: BookingStore,
        speaker: Speaker,
        generator: Generator,
        state: StationState,
        cycle_delay: float = QUEUE_CYCLE_DELAY_S,
        max_attempts: int = MAX_GENERATION_ATTEMPTS,
    ):
        self.store = store
        self.speaker = speaker
        self.generator = generator
        self.state = state
        self.cycle_delay = cycle_delay
        self.max_attempts = max_attempts

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._wake = asyncio.Event()
        self._lock = asyncio.Lock()
        self.current: Optional[str] = None  # id of the request being generated

    @property
    def is_generating(self) -> bool:
        return self._lock.locked()

    # ── Public API ───────────────────────────────────────────────────────────

    async def submit(
        self,
        kind: str,
        user_name: str,
        message: str,
        show_name: str,
        dedicated_to: Optional[str] = None,
    ) -> MusicRequest:
        """Store a new pending request and wake the queue if it is idle."""
        request = self.store.add_music_request(kind, user_name, message, show_name, dedicated_to)
        await self.state.broadcast("request_status", request.to_dict())
        self._wake.set()
        return request

    def start(self):
        if self._task and not self._task.done():
            return
        self._running = True
        self._task = asyncio.create_task(self.run())

    async def stop(self):
        self._running = False
        self._wake.set()
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ── Loop ─────────────────────────────────────────────────────────────────

    async def run(self):
        self._running = True
        while self._running:
            try:
                processed = await self.process_next()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Request queue cycle error")
                await asyncio.sleep(self.cycle_delay)
                continue

            if processed is None:
                # Idle until a new request arrives
                self._wake.clear()
                if self.store.first_pending_request() is None and self._running:
                    await self._wake.wait()
                else:
                    # Another cycle holds the lock; let it finish
                    await asyncio.sleep(self.cycle_delay)
                continue

            await asyncio.sleep(self.cycle_delay)

    async def process_next(self) -> Optional[MusicRequest]:
        """Run one cycle. Returns the request it worked on, or None if nothing ran."""
        if self._lock.locked():
            return None
        async with self._lock:
            request = self.store.first_pending_request()
            if request is None:
                return None
            self.current = request.id
            try:
                return await self._process(request)
            finally:
                self.current = None

    async def _process(self, request: MusicRequest) -> MusicRequest:
        try:
            current = self.store.transition_request(request.id, "generating")
        except BuskError as e:
            msg = format_error("persistence", request.id, {"to": "generating"}, str(e))
            await self.state.broadcast("error", {"message": msg, "request": request.id})
            return request

        await self.state.broadcast("request_status", current.to_dict())
        started = time.monotonic()

        try:
            prompts = build_prompts(current)
            config = show_music_config(current.show_name)
            await self.speaker.speak(build_announcement(current), True, False, "Music Request")
            track = await self.generator.generate(current, prompts, config)
            done = self.store.transition_request(current.id, "completed", last_error=None)
        except asyncio.CancelledError:
            # Aborted mid-generation: back in the queue, not counted as a failure
            self._safe_transition(current, "pending")
            raise
        except Exception as e:
            return await self._handle_failure(current, e)

        await self.state.broadcast("request_status", done.to_dict())
        append_metric({
            "event": "music_generated",
            "request_id": done.id,
            "show": done.show_name,
            "type": done.kind,
            "prompts": [p.to_dict() for p in prompts],
            "track": str(track) if track else None,
            "generation_time_s": round(time.monotonic() - started, 2),
            "attempts": done.attempts + 1,
            "timestamp": datetime.now().isoformat(),
        })
        return done

    async def _handle_failure(self, request: MusicRequest, err: Exception) -> MusicRequest:
        attempts = request.attempts + 1
        status = "failed" if attempts >= self.max_attempts else "pending"
        msg = format_error(
            "music_generation", request.id,
            {"show": request.show_name, "attempts": attempts, "next": status},
            str(err),
        )
        await self.state.broadcast("error", {"message": msg, "request": request.id})

        reverted = self._safe_transition(request, status, attempts=attempts, last_error=str(err))
        if reverted is None:
            return request
        if status == "failed":
            logger.warning("Giving up on %s after %d attempts", request.id, attempts)
        await self.state.broadcast("request_status", reverted.to_dict())
        return reverted

    def _safe_transition(self, request: MusicRequest, status: str, **changes) -> Optional[MusicRequest]:
        try:
            return self.store.transition_request(request.id, status, **changes)
        except BuskError as e:
            format_error("persistence", request.id, {"to": status}, str(e))
            return None
