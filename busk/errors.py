"""Error types + structured error logging — JSON to errors.log, no terminal formatting."""
import json
import logging
import sys
from datetime import datetime
from typing import Optional

from . import config

logger = logging.getLogger(__name__)

_FRIENDLY_MESSAGES = {
    "ad_playback": "Advertisement playback failed — it will air in a later slot.",
    "ad_completion": "Couldn't mark advertisement as completed.",
    "music_generation": "Music generation failed — retrying...",
    "persistence": "Couldn't save station data.",
    "show_timer": "Show timer tick failed.",
    "preflight": "Startup check failed.",
}


class BuskError(Exception):
    """Base class for every error raised by the station core."""


class ValidationError(BuskError):
    """A booking or request is missing fields or has invalid values."""


class PersistenceError(BuskError):
    """The persistence backend could not store a collection."""


class InvalidTransition(BuskError):
    """A status change that the record's lifecycle does not allow."""


class NotFound(BuskError):
    pass


class SpeechError(BuskError):
    """The speech/audio collaborator failed to deliver an announcement."""


class GenerationError(BuskError):
    """The music generator failed to produce a track."""


def format_error(
    stage: str,
    record_id: str = "",
    context: Optional[dict] = None,
    raw: str = "",
) -> str:
    entry = {
        "timestamp": datetime.now().isoformat(),
        "stage": stage,
        "record": record_id,
        "context": context,
        "error": raw,
        "python": sys.version.split()[0],
    }

    _append_to_log(entry)
    logger.error("Error at %s (%s): %s", stage, record_id or "-", raw)

    if config.DEV_MODE:
        return json.dumps(entry, indent=2)
    return _FRIENDLY_MESSAGES.get(stage, f"Something went wrong ({stage}).")


def _append_to_log(entry: dict):
    try:
        config.ERRORS_LOG.parent.mkdir(parents=True, exist_ok=True)
        with open(config.ERRORS_LOG, "a") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as e:
        logger.warning("Could not write %s: %s", config.ERRORS_LOG, e)
