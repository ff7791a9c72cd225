"""Speech/audio collaborator — announcements over a TTS server or the console."""
import asyncio
import logging
from typing import Protocol

import httpx
from rich.console import Console

from .config import SPEECH_HOST, SPEECH_TIMEOUT
from .errors import SpeechError

logger = logging.getLogger(__name__)


class Speaker(Protocol):
    async def speak(self, text: str, announce: bool = True, interrupt: bool = False,
                    label: str = "") -> None: ...

    async def play_audio(self, locator: str) -> None: ...


async def check_server(host: str = SPEECH_HOST) -> bool:
    """GET /health — returns True if the speech server is up."""
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            r = await client.get(f"{host}/health")
            return r.status_code == 200
    except httpx.HTTPError:
        return False


class HttpSpeaker:
    """Talks to a speech server that blocks until the utterance has aired.

    POST /v1/speak  {"text", "announce", "interrupt", "label"}
    POST /v1/play   {"url"}
    """

    def __init__(self, host: str = SPEECH_HOST, timeout: float = SPEECH_TIMEOUT):
        self.host = host.rstrip("/")
        self.timeout = timeout

    async def speak(self, text: str, announce: bool = True, interrupt: bool = False,
                    label: str = "") -> None:
        await self._post("/v1/speak", {
            "text": text,
            "announce": announce,
            "interrupt": interrupt,
            "label": label,
        })

    async def play_audio(self, locator: str) -> None:
        await self._post("/v1/play", {"url": locator})

    async def _post(self, path: str, payload: dict):
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(f"{self.host}{path}", json=payload)
        except httpx.TimeoutException:
            raise SpeechError(f"Speech server timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            raise SpeechError(f"Speech server HTTP error: {e}")
        if r.status_code != 200:
            raise SpeechError(f"Speech server HTTP {r.status_code}: {r.text[:200]}")


class ConsoleSpeaker:
    """Prints announcements instead of voicing them. Used when no SPEECH_HOST is set."""

    def __init__(self, console: Console | None = None, pause: float = 0.0):
        self.console = console or Console()
        self.pause = pause

    async def speak(self, text: str, announce: bool = True, interrupt: bool = False,
                    label: str = "") -> None:
        tag = f"[bold magenta]{label}[/bold magenta] " if label else ""
        self.console.print(f"  🎙  {tag}{text}")
        if self.pause:
            await asyncio.sleep(self.pause)

    async def play_audio(self, locator: str) -> None:
        self.console.print(f"  🔊  [dim]{locator}[/dim]")
        if self.pause:
            await asyncio.sleep(self.pause)


def make_speaker(host: str = SPEECH_HOST) -> Speaker:
    if host:
        logger.info("Announcements via speech server at %s", host)
        return HttpSpeaker(host)
    return ConsoleSpeaker()
