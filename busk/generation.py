"""Music generation collaborators — simulated or backed by ACE-Step."""
import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol

from . import acestep
from .config import GENERATION_SIMULATE_S, MUSIC_BACKEND, TRACKS_DIR
from .errors import GenerationError
from .models import MusicRequest, WeightedPrompt

logger = logging.getLogger(__name__)


class Generator(Protocol):
    async def generate(self, request: MusicRequest, prompts: list[WeightedPrompt],
                       config: dict) -> Optional[Path]: ...


class SimulatedGenerator:
    """Stands in for a real model: waits, logs the prompts, produces no file."""

    def __init__(self, seconds: float = GENERATION_SIMULATE_S):
        self.seconds = seconds

    async def generate(self, request: MusicRequest, prompts: list[WeightedPrompt],
                       config: dict) -> Optional[Path]:
        logger.info("Generating %s with prompts: %s", request.id,
                    ", ".join(f"{p.text}×{p.weight}" for p in prompts))
        await asyncio.sleep(self.seconds)
        return None


class AceStepGenerator:
    def __init__(self, tracks_dir: Path = TRACKS_DIR, host: str = acestep.ACESTEP_HOST):
        self.tracks_dir = tracks_dir
        self.host = host

    async def generate(self, request: MusicRequest, prompts: list[WeightedPrompt],
                       config: dict) -> Optional[Path]:
        output_path = self.tracks_dir / f"{request.id}.mp3"
        ok, err = await acestep.generate_track(prompts, config, output_path, host=self.host)
        if not ok:
            raise GenerationError(err)
        return output_path


def make_generator(backend: str = MUSIC_BACKEND) -> Generator:
    if backend == "acestep":
        return AceStepGenerator()
    if backend != "simulated":
        logger.warning("Unknown MUSIC_BACKEND %r — using simulated generation", backend)
    return SimulatedGenerator()
