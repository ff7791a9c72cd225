"""Play/generation metrics — one JSON line per event in metrics.jsonl."""
import json
import logging

from . import config

logger = logging.getLogger(__name__)


def append_metric(entry: dict):
    """Append a single JSON line to metrics.jsonl for later analysis."""
    try:
        config.METRICS_LOG.parent.mkdir(parents=True, exist_ok=True)
        with open(config.METRICS_LOG, "a") as f:
            f.write(json.dumps(entry) + "\n")
    except OSError as e:
        logger.warning("Could not write metric to %s: %s", config.METRICS_LOG, e)
