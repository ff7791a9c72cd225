"""ACE-Step Interface (ACE-Step 1.5 OpenRouter-style API)"""
import base64
from pathlib import Path

import httpx

from .config import ACESTEP_HOST, ACESTEP_MODEL, ACESTEP_TIMEOUT, TRACK_DURATION
from .models import WeightedPrompt


async def check_server(host: str = ACESTEP_HOST) -> bool:
    """GET /health — returns True if server is up."""
    try:
        async with httpx.AsyncClient(timeout=5) as client:
            r = await client.get(f"{host}/health")
            return r.status_code == 200
    except httpx.HTTPError:
        return False


def prompts_to_tags(prompts: list[WeightedPrompt], limit: int = 12) -> str:
    """Heaviest prompts first, duplicates dropped (case-insensitive)."""
    seen: set[str] = set()
    tags = []
    for p in sorted(prompts, key=lambda p: -p.weight):
        key = p.text.lower()
        if key in seen:
            continue
        seen.add(key)
        tags.append(p.text)
    return ", ".join(tags[:limit])


def _build_content(prompts: list[WeightedPrompt]) -> str:
    """Build message content for ACE-Step 1.5 tagged mode (always instrumental)."""
    return f"<prompt>{prompts_to_tags(prompts)}</prompt>"


async def generate_track(
    prompts: list[WeightedPrompt],
    config: dict,
    output_path: Path,
    host: str = ACESTEP_HOST,
    timeout: float = ACESTEP_TIMEOUT,
) -> tuple[bool, str]:
    """
    POST /v1/chat/completions to ACE-Step 1.5.
    Saves audio bytes to output_path.
    Returns (success, error_message).
    """
    audio_config = {
        "duration": TRACK_DURATION,
        "instrumental": True,
    }
    if config.get("bpm"):
        audio_config["bpm"] = config["bpm"]

    payload = {
        "model": ACESTEP_MODEL,
        "messages": [{"role": "user", "content": _build_content(prompts)}],
        "audio_config": audio_config,
        "temperature": config.get("temperature"),
        "guidance_scale": config.get("guidance"),
        "seed": -1,
    }

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            r = await client.post(f"{host}/v1/chat/completions", json=payload)
            if r.status_code != 200:
                return False, f"ACE-Step HTTP {r.status_code}: {r.text[:200]}"

            data = r.json()
            audio_list = data["choices"][0]["message"].get("audio") or []
            if not audio_list:
                return False, "ACE-Step returned no audio"

            audio_url = audio_list[0].get("audio_url", {}).get("url", "")
            if not audio_url or not audio_url.startswith("data:"):
                return False, f"ACE-Step returned unexpected audio format: {audio_url[:80]}"

            audio_bytes = base64.b64decode(audio_url.split(",", 1)[1])
            output_path.parent.mkdir(parents=True, exist_ok=True)
            output_path.write_bytes(audio_bytes)
            return True, ""

    except httpx.TimeoutException:
        return False, f"ACE-Step generation timed out after {timeout}s"
    except httpx.HTTPError as e:
        return False, f"ACE-Step HTTP error: {e}"
    except (KeyError, IndexError) as e:
        return False, f"ACE-Step unexpected response format: {e}"
    except OSError as e:
        return False, f"Failed to write track file: {e}"
