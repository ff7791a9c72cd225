"""Booking Store — the single owner of advertisements and music requests.

Every mutation builds a new collection, persists it and only then swaps it in,
so a failed save leaves the in-memory view untouched. Each collection has its
own lock; no two transitions for the same record can interleave.
"""
import json
import logging
import math
import threading
from collections import Counter
from dataclasses import replace
from pathlib import Path
from typing import Optional, Protocol

from .config import ADS_KEY, REQUESTS_KEY, DATA_DIR
from .errors import InvalidTransition, NotFound, PersistenceError, ValidationError
from .models import (
    AD_DURATIONS,
    PACKAGE_TYPES,
    REQUEST_KINDS,
    Advertisement,
    AudioContent,
    MusicRequest,
    ScriptContent,
    new_id,
    now_iso,
)
from .prompts import parse_request_message
from .schedule import is_brand_match

logger = logging.getLogger(__name__)

AD_TRANSITIONS = {
    "scheduled": {"playing"},
    "playing": {"completed", "scheduled"},
    "completed": set(),
}

REQUEST_TRANSITIONS = {
    "pending": {"generating"},
    "generating": {"playing", "completed", "pending", "failed"},
    "playing": {"completed", "pending"},
    "completed": set(),
    "failed": set(),
}


# ── Persistence backends ──────────────────────────────────────────────────────

class Persistence(Protocol):
    def load(self, key: str) -> Optional[list[dict]]: ...
    def save(self, key: str, records: list[dict]) -> None: ...


class JsonFilePersistence:
    """One JSON file per key under a data directory."""

    def __init__(self, directory: Path = DATA_DIR):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def load(self, key: str) -> Optional[list[dict]]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Unreadable collection %s: %s", path, e)
            return None
        return data if isinstance(data, list) else None

    def save(self, key: str, records: list[dict]):
        """Atomic write — write to tmp then replace."""
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(records, indent=2))
            tmp.replace(path)
        except OSError as e:
            raise PersistenceError(f"Failed to save {key}: {e}") from e


class MemoryPersistence:
    def __init__(self, initial: Optional[dict[str, list[dict]]] = None):
        self.data: dict[str, list[dict]] = dict(initial or {})

    def load(self, key: str) -> Optional[list[dict]]:
        records = self.data.get(key)
        return list(records) if records is not None else None

    def save(self, key: str, records: list[dict]):
        self.data[key] = list(records)


# ── Store ─────────────────────────────────────────────────────────────────────

class BookingStore:
    def __init__(self, persistence: Persistence):
        self._persistence = persistence
        self._ads_lock = threading.Lock()
        self._requests_lock = threading.Lock()
        self._ads: list[Advertisement] = _load(persistence, ADS_KEY, Advertisement.from_dict)
        self._requests: list[MusicRequest] = _load(persistence, REQUESTS_KEY, MusicRequest.from_dict)

    # ── Advertisements ─────────────────────────────────────────────────────────

    def add_advertisement(
        self,
        company_name: str,
        selected_show: str,
        ad_type: str,
        duration: int,
        amount: float,
        brand_category: Optional[str] = None,
        package_type: Optional[str] = None,
        ad_script: Optional[str] = None,
        audio_url: Optional[str] = None,
    ) -> Advertisement:
        """Book a new advertisement. Raises ValidationError before any mutation."""
        package_type = package_type or "standard"
        company_name = _required_text("company name", company_name)
        selected_show = _required_text("show", selected_show)
        amount = _valid_amount(amount)
        try:
            duration = int(duration)
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid duration: {duration!r}")
        if duration not in AD_DURATIONS:
            raise ValidationError(f"Duration must be one of {AD_DURATIONS}, got {duration}")
        if package_type not in PACKAGE_TYPES:
            raise ValidationError(f"Unknown package type: {package_type}")

        if ad_type == "script":
            if not ad_script:
                raise ValidationError("Script ads need an ad script")
            content = ScriptContent(ad_script)
        elif ad_type == "audio":
            if not audio_url:
                raise ValidationError("Audio ads need an audio URL")
            content = AudioContent(audio_url)
        else:
            raise ValidationError(f"Unknown ad type: {ad_type}")

        ad = Advertisement(
            id=new_id("ad"),
            company_name=company_name,
            content=content,
            selected_show=selected_show,
            duration=duration,
            package_type=package_type,
            amount=amount,
            created_at=now_iso(),
            brand_category=brand_category or None,
        )
        with self._ads_lock:
            self._commit_ads(self._ads + [ad])
        logger.info("Booked %s for %s (%ss, %s)", ad.id, selected_show, duration, package_type)
        return ad

    def get_advertisement(self, ad_id: str) -> Optional[Advertisement]:
        return next((a for a in self._ads if a.id == ad_id), None)

    def all_advertisements(self) -> list[Advertisement]:
        return list(self._ads)

    def delete_advertisement(self, ad_id: str) -> bool:
        with self._ads_lock:
            remaining = [a for a in self._ads if a.id != ad_id]
            if len(remaining) == len(self._ads):
                return False
            self._commit_ads(remaining)
        return True

    def update_advertisement(self, ad_id: str, **changes) -> Advertisement:
        """Replace fields of a booking. Status changes go through transition_advertisement."""
        if "status" in changes or "id" in changes:
            raise ValidationError("id and status cannot be updated directly")
        changes = _checked_changes(changes)
        with self._ads_lock:
            idx = _index_of(self._ads, ad_id)
            updated = replace(self._ads[idx], **changes)
            self._commit_ads(_swap(self._ads, idx, updated))
        return updated

    def transition_advertisement(self, ad_id: str, status: str) -> Advertisement:
        with self._ads_lock:
            idx = _index_of(self._ads, ad_id)
            current = self._ads[idx]
            if status not in AD_TRANSITIONS.get(current.status, set()):
                raise InvalidTransition(f"{ad_id}: {current.status} → {status}")
            updated = current.with_status(status)
            self._commit_ads(_swap(self._ads, idx, updated))
        return updated

    def is_show_match(self, ad: Advertisement, show_name: str) -> bool:
        return ad.selected_show == show_name or is_brand_match(ad.brand_category, show_name)

    def advertisements_for_show(self, show_name: str) -> list[Advertisement]:
        """Scheduled ads booked for the show directly or through brand affinity."""
        return [
            a for a in self._ads
            if a.status == "scheduled" and self.is_show_match(a, show_name)
        ]

    def advertising_stats(self) -> dict:
        ads = list(self._ads)
        return {
            "totalAds": len(ads),
            "scheduledAds": sum(1 for a in ads if a.status == "scheduled"),
            "completedAds": sum(1 for a in ads if a.status == "completed"),
            "revenue": sum(a.amount for a in ads),
            "adsByShow": dict(Counter(a.selected_show for a in ads)),
            "adsByType": dict(Counter(a.ad_type for a in ads)),
        }

    def _commit_ads(self, ads: list[Advertisement]):
        self._persistence.save(ADS_KEY, [a.to_dict() for a in ads])
        self._ads = ads

    # ── Music requests ─────────────────────────────────────────────────────────

    def add_music_request(
        self,
        kind: str,
        user_name: str,
        message: str,
        show_name: str,
        dedicated_to: Optional[str] = None,
    ) -> MusicRequest:
        if kind not in REQUEST_KINDS:
            raise ValidationError(f"Unknown request type: {kind}")
        if kind == "dedication" and not dedicated_to:
            raise ValidationError("Dedications need a recipient")

        parsed = parse_request_message(message)
        request = MusicRequest(
            id=new_id("music"),
            kind=kind,
            user_name=user_name,
            message=message,
            show_name=show_name,
            created_at=now_iso(),
            genre=parsed["genre"],
            mood=parsed["mood"],
            instruments=tuple(parsed["instruments"]) if parsed["instruments"] else None,
            dedicated_to=dedicated_to or None,
        )
        with self._requests_lock:
            self._commit_requests(self._requests + [request])
        logger.info("Queued %s from %s (%s)", request.id, user_name, kind)
        return request

    def get_request(self, request_id: str) -> Optional[MusicRequest]:
        return next((r for r in self._requests if r.id == request_id), None)

    def all_requests(self) -> list[MusicRequest]:
        return list(self._requests)

    def pending_requests(self, show_name: Optional[str] = None) -> list[MusicRequest]:
        requests = [r for r in self._requests if r.status == "pending"]
        if show_name:
            requests = [r for r in requests if r.show_name == show_name]
        return requests

    def first_pending_request(self) -> Optional[MusicRequest]:
        return next((r for r in self._requests if r.status == "pending"), None)

    def transition_request(self, request_id: str, status: str, **changes) -> MusicRequest:
        with self._requests_lock:
            idx = _index_of(self._requests, request_id)
            current = self._requests[idx]
            if status not in REQUEST_TRANSITIONS.get(current.status, set()):
                raise InvalidTransition(f"{request_id}: {current.status} → {status}")
            updated = replace(current, status=status, **changes)
            self._commit_requests(_swap(self._requests, idx, updated))
        return updated

    def _commit_requests(self, requests: list[MusicRequest]):
        self._persistence.save(REQUESTS_KEY, [r.to_dict() for r in requests])
        self._requests = requests

    # ── Startup ────────────────────────────────────────────────────────────────

    def recover_interrupted(self) -> int:
        """Put records a previous run left in flight back into rotation."""
        recovered = 0
        with self._ads_lock:
            if any(a.status == "playing" for a in self._ads):
                ads = [a.with_status("scheduled") if a.status == "playing" else a for a in self._ads]
                recovered += sum(1 for a in self._ads if a.status == "playing")
                self._commit_ads(ads)
        with self._requests_lock:
            stuck = {"generating", "playing"}
            if any(r.status in stuck for r in self._requests):
                requests = [r.with_status("pending") if r.status in stuck else r for r in self._requests]
                recovered += sum(1 for r in self._requests if r.status in stuck)
                self._commit_requests(requests)
        if recovered:
            logger.info("Recovered %d interrupted record(s)", recovered)
        return recovered


def _load(persistence: Persistence, key: str, parse) -> list:
    records = persistence.load(key) or []
    loaded = []
    for raw in records:
        try:
            loaded.append(parse(raw))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed %s record: %s", key, e)
    return loaded


def _index_of(records: list, record_id: str) -> int:
    for i, r in enumerate(records):
        if r.id == record_id:
            return i
    raise NotFound(record_id)


def _swap(records: list, idx: int, record) -> list:
    return records[:idx] + [record] + records[idx + 1:]


# ── Field checks ──────────────────────────────────────────────────────────────

def _valid_amount(amount) -> float:
    """A finite, non-negative price paid for a booking."""
    if isinstance(amount, bool):
        raise ValidationError(f"Invalid amount: {amount!r}")
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid amount: {amount!r}")
    if not math.isfinite(value) or value < 0:
        raise ValidationError(f"Invalid amount: {amount!r}")
    return value


def _required_text(name: str, value) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"A {name} is required")
    return value


def _checked_changes(changes: dict) -> dict:
    checked = dict(changes)
    if "amount" in checked:
        checked["amount"] = _valid_amount(checked["amount"])
    if "company_name" in checked:
        checked["company_name"] = _required_text("company name", checked["company_name"])
    if "selected_show" in checked:
        checked["selected_show"] = _required_text("show", checked["selected_show"])
    if "brand_category" in checked:
        category = checked["brand_category"]
        if category is not None and not isinstance(category, str):
            raise ValidationError(f"Invalid brand category: {category!r}")
        checked["brand_category"] = category or None
    content = checked.get("content")
    if isinstance(content, ScriptContent) and not (isinstance(content.text, str) and content.text):
        raise ValidationError("Script ads need an ad script")
    if isinstance(content, AudioContent) and not (isinstance(content.locator, str) and content.locator):
        raise ValidationError("Audio ads need an audio URL")
    return checked
