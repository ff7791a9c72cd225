"""Config & Constants"""
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root (two levels up from busk/)
_ROOT = Path(__file__).parent.parent
load_dotenv(_ROOT / ".env")

# ─── Paths ────────────────────────────────────────────────────────────────────
ROOT_DIR = _ROOT
DATA_DIR = ROOT_DIR / os.getenv("DATA_DIR", "data")
TRACKS_DIR = DATA_DIR / "tracks"
ERRORS_LOG = DATA_DIR / "errors.log"
METRICS_LOG = DATA_DIR / "metrics.jsonl"

# Persistence keys, one serialized collection per key
ADS_KEY = "busk_advertisements"
REQUESTS_KEY = "busk_music_requests"

# ─── Show timer ───────────────────────────────────────────────────────────────
TICK_INTERVAL_S = float(os.getenv("TICK_INTERVAL_S", "10"))
TRIGGER_WINDOW_MIN = 0.2   # ±12 seconds around a slot position
MIN_AD_GAP_S = 30          # no two ads closer than this
SLOT_BOOKING_CAP = 3       # max booked ads per slot duration per show
COMPLETION_RETRY_S = 5      # wait before retrying a failed "completed" save

# ─── Request queue ────────────────────────────────────────────────────────────
QUEUE_CYCLE_DELAY_S = float(os.getenv("QUEUE_CYCLE_DELAY_S", "2"))
MAX_GENERATION_ATTEMPTS = int(os.getenv("MAX_GENERATION_ATTEMPTS", "3"))

# ─── External services ────────────────────────────────────────────────────────
# "simulated" sleeps instead of generating; "acestep" talks to an ACE-Step server
MUSIC_BACKEND = os.getenv("MUSIC_BACKEND", "simulated").strip().lower()
GENERATION_SIMULATE_S = float(os.getenv("GENERATION_SIMULATE_S", "5"))

ACESTEP_HOST = os.getenv("ACESTEP_HOST", "http://localhost:8001").rstrip("/")
ACESTEP_TIMEOUT = int(os.getenv("ACESTEP_TIMEOUT", "600"))
ACESTEP_MODEL = os.getenv("ACESTEP_MODEL", "acemusic/acestep-v15-turbo")
TRACK_DURATION = int(os.getenv("TRACK_DURATION", "180"))

# Empty = announcements go to the console instead of a TTS server
SPEECH_HOST = os.getenv("SPEECH_HOST", "").rstrip("/")
SPEECH_TIMEOUT = int(os.getenv("SPEECH_TIMEOUT", "60"))

APP_VERSION = "0.1.0"

# ─── Web server ──────────────────────────────────────────────────────────────
WEB_HOST = os.getenv("WEB_HOST", "127.0.0.1")
WEB_PORT = int(os.getenv("WEB_PORT", "8888"))

# ─── Dev mode ─────────────────────────────────────────────────────────────────
DEV_MODE = os.getenv("DEV_MODE", "1").strip() in ("1", "true", "yes")
