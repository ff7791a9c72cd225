"""Music request parsing + weighted prompt building (keyword matching, no NLP)."""
from typing import Optional

from .models import MusicRequest, WeightedPrompt

# ── Vocabularies (first match wins for genre and mood) ───────────────────────────────

GENRES = [
    "jazz", "rock", "pop", "techno", "classical", "hip hop",
    "r&b", "funk", "blues", "reggae", "country", "metal",
]

MOODS = [
    "happy", "sad", "upbeat", "chill", "energetic",
    "romantic", "peaceful", "intense", "dreamy", "dark",
]

INSTRUMENTS = [
    "piano", "guitar", "drums", "bass", "violin",
    "saxophone", "trumpet", "synth", "flute", "cello",
]

# ── Show families ─────────────────────────────────────────────────────────────

# (substring of show name, family), checked in order
_SHOW_FAMILIES = [
    ("Morning", "morning"),
    ("Tech", "tech"),
    ("Midday", "midday"),
    ("Science", "science"),
    ("Evening", "evening"),
    ("Night Owl", "night"),
    ("Overnight", "overnight"),
]

GENRE_PROMPTS: dict[str, list[WeightedPrompt]] = {
    "morning": [
        WeightedPrompt("Upbeat", 2.0),
        WeightedPrompt("Bright Tones", 1.5),
        WeightedPrompt("Acoustic Instruments", 1.0),
        WeightedPrompt("Indie Pop", 1.0),
    ],
    "tech": [
        WeightedPrompt("Minimal Techno", 2.0),
        WeightedPrompt("Synth Pads", 1.5),
        WeightedPrompt("EDM", 1.0),
        WeightedPrompt("Glitch Hop", 0.5),
    ],
    "midday": [
        WeightedPrompt("Funk", 1.5),
        WeightedPrompt("Groove", 1.5),
        WeightedPrompt("Contemporary R&B", 1.0),
        WeightedPrompt("Danceable", 1.0),
    ],
    "science": [
        WeightedPrompt("Ambient", 2.0),
        WeightedPrompt("Experimental", 1.5),
        WeightedPrompt("Ethereal Ambience", 1.0),
        WeightedPrompt("Spacey Synths", 1.0),
    ],
    "evening": [
        WeightedPrompt("Smooth Pianos", 1.5),
        WeightedPrompt("Jazz Fusion", 1.5),
        WeightedPrompt("Chill", 1.0),
        WeightedPrompt("Lo-Fi Hip Hop", 1.0),
    ],
    "night": [
        WeightedPrompt("Deep House", 2.0),
        WeightedPrompt("Trance", 1.5),
        WeightedPrompt("Dreamy", 1.0),
        WeightedPrompt("Psychedelic", 0.5),
    ],
    "overnight": [
        WeightedPrompt("Ambient", 2.0),
        WeightedPrompt("Subdued Melody", 1.5),
        WeightedPrompt("Lo-fi", 1.0),
        WeightedPrompt("Chill", 1.0),
    ],
}

# Generation settings per show family. Science shows fall back to midday.
SHOW_MUSIC_CONFIGS: dict[str, dict] = {
    "morning": {"bpm": 120, "temperature": 0.8, "guidance": 4.0, "density": 0.6,
                "brightness": 0.8, "music_generation_mode": "QUALITY"},
    "tech": {"bpm": 128, "temperature": 1.2, "guidance": 4.5, "density": 0.8,
             "brightness": 0.7, "music_generation_mode": "DIVERSITY"},
    "midday": {"bpm": 110, "temperature": 1.0, "guidance": 4.0, "density": 0.7,
               "brightness": 0.7, "music_generation_mode": "QUALITY"},
    "evening": {"bpm": 90, "temperature": 0.9, "guidance": 3.5, "density": 0.5,
                "brightness": 0.5, "music_generation_mode": "QUALITY"},
    "night": {"bpm": 125, "temperature": 1.1, "guidance": 4.0, "density": 0.9,
              "brightness": 0.6, "music_generation_mode": "DIVERSITY"},
    "overnight": {"bpm": 85, "temperature": 0.7, "guidance": 3.0, "density": 0.3,
                  "brightness": 0.3, "music_generation_mode": "QUALITY"},
}

# Prompt weights
GENRE_WEIGHT = 2.5
MOOD_WEIGHT = 2.0
INSTRUMENT_WEIGHT = 1.5
DEDICATION_BOOST = [WeightedPrompt("Emotional", 1.5), WeightedPrompt("Romantic", 1.0)]


def parse_request_message(message: str) -> dict:
    """
    Returns:
    {
        "genre":       first GENRES entry contained in the message, or None,
        "mood":        first MOODS entry contained in the message, or None,
        "instruments": every INSTRUMENTS entry contained, in vocabulary order,
                       or None when there are none,
    }
    """
    t = message.lower()
    instruments = [i for i in INSTRUMENTS if i in t]
    return {
        "genre": next((g for g in GENRES if g in t), None),
        "mood": next((m for m in MOODS if m in t), None),
        "instruments": instruments or None,
    }


def show_family(show_name: str) -> Optional[str]:
    for needle, family in _SHOW_FAMILIES:
        if needle in show_name:
            return family
    return None


def show_music_config(show_name: str) -> dict:
    family = show_family(show_name)
    return dict(SHOW_MUSIC_CONFIGS.get(family or "midday", SHOW_MUSIC_CONFIGS["midday"]))


def build_prompts(request: MusicRequest) -> list[WeightedPrompt]:
    prompts: list[WeightedPrompt] = []

    family = show_family(request.show_name)
    if family:
        prompts.extend(GENRE_PROMPTS[family])

    if request.genre:
        prompts.append(WeightedPrompt(request.genre, GENRE_WEIGHT))
    if request.mood:
        prompts.append(WeightedPrompt(request.mood, MOOD_WEIGHT))
    for instrument in request.instruments or ():
        prompts.append(WeightedPrompt(instrument, INSTRUMENT_WEIGHT))

    if request.kind == "dedication":
        prompts.extend(DEDICATION_BOOST)

    return prompts


def build_announcement(request: MusicRequest) -> str:
    if request.kind == "dedication":
        return (
            f"This next song is a special dedication from {request.user_name} to "
            f"{request.dedicated_to}. {request.user_name} says: \"{request.message}\". "
            f"Here's a beautiful AI-generated song just for you."
        )
    return (
        f"Coming up next, we have a song request from {request.user_name}. "
        f"They asked for: \"{request.message}\". "
        f"Let me generate something special based on that request."
    )
