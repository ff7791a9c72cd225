"""Station records — advertisements, ad slots, schedules and music requests.

Records are frozen; every change goes through ``dataclasses.replace`` in the
booking store. ``to_dict`` / ``from_dict`` use the camelCase wire shape shared
by the HTTP API and the persisted JSON collections.
"""
import secrets
import string
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Union

AD_DURATIONS = (10, 20, 30)
PACKAGE_TYPES = ("standard", "branded")
AD_STATUSES = ("scheduled", "playing", "completed")
SLOT_TYPES = ("brand", "product", "sponsor")

REQUEST_KINDS = ("request", "dedication")
# "playing" is part of the record shape but never reached by the queue, which
# goes straight from generating to completed.
REQUEST_STATUSES = ("pending", "generating", "playing", "completed", "failed")

_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_id(prefix: str) -> str:
    return f"{prefix}_" + "".join(secrets.choice(_ID_ALPHABET) for _ in range(13))


def now_iso() -> str:
    return datetime.now().isoformat()


# ── Advertisement content (script XOR audio) ─────────────────────────────────

@dataclass(frozen=True)
class ScriptContent:
    text: str
    kind = "script"


@dataclass(frozen=True)
class AudioContent:
    locator: str
    kind = "audio"


AdContent = Union[ScriptContent, AudioContent]


@dataclass(frozen=True)
class Advertisement:
    id: str
    company_name: str
    content: AdContent
    selected_show: str
    duration: int
    package_type: str
    amount: float
    created_at: str
    status: str = "scheduled"
    brand_category: Optional[str] = None

    @property
    def ad_type(self) -> str:
        return self.content.kind

    def with_status(self, status: str) -> "Advertisement":
        return replace(self, status=status)

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "companyName": self.company_name,
            "adType": self.ad_type,
            "selectedShow": self.selected_show,
            "duration": self.duration,
            "packageType": self.package_type,
            "amount": self.amount,
            "brandCategory": self.brand_category,
            "createdAt": self.created_at,
            "status": self.status,
        }
        if isinstance(self.content, ScriptContent):
            d["adScript"] = self.content.text
        else:
            d["audioUrl"] = self.content.locator
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "Advertisement":
        if d.get("adType") == "audio":
            content: AdContent = AudioContent(d["audioUrl"])
        else:
            content = ScriptContent(d.get("adScript", ""))
        return cls(
            id=d["id"],
            company_name=d["companyName"],
            content=content,
            selected_show=d["selectedShow"],
            duration=int(d["duration"]),
            package_type=d.get("packageType") or "standard",
            amount=float(d.get("amount", 0)),
            created_at=d.get("createdAt") or now_iso(),
            status=d.get("status", "scheduled"),
            brand_category=d.get("brandCategory"),
        )


# ── Schedule ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class AdSlot:
    position: int      # minutes into the show
    duration: int      # seconds
    type: str
    label: str = ""
    available: bool = True

    def to_dict(self) -> dict:
        return {
            "position": self.position,
            "duration": self.duration,
            "type": self.type,
            "label": self.label,
            "available": self.available,
        }


@dataclass(frozen=True)
class ShowAdSchedule:
    show_duration: int   # bucket, minutes
    total_ad_time: int   # minutes
    ad_slots: tuple[AdSlot, ...]

    @property
    def key(self) -> str:
        return f"{self.show_duration}min"

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "showDuration": self.show_duration,
            "totalAdTime": self.total_ad_time,
            "adSlots": [s.to_dict() for s in self.ad_slots],
        }


# ── Music requests ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class WeightedPrompt:
    text: str
    weight: float

    def to_dict(self) -> dict:
        return {"text": self.text, "weight": self.weight}


@dataclass(frozen=True)
class MusicRequest:
    id: str
    kind: str
    user_name: str
    message: str
    show_name: str
    created_at: str
    status: str = "pending"
    genre: Optional[str] = None
    mood: Optional[str] = None
    instruments: Optional[tuple[str, ...]] = None
    dedicated_to: Optional[str] = None
    attempts: int = 0
    last_error: Optional[str] = field(default=None, compare=False)

    def with_status(self, status: str) -> "MusicRequest":
        return replace(self, status=status)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.kind,
            "userName": self.user_name,
            "message": self.message,
            "genre": self.genre,
            "mood": self.mood,
            "instruments": list(self.instruments) if self.instruments else None,
            "dedicatedTo": self.dedicated_to,
            "showName": self.show_name,
            "status": self.status,
            "createdAt": self.created_at,
            "attempts": self.attempts,
            "lastError": self.last_error,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "MusicRequest":
        instruments = d.get("instruments")
        return cls(
            id=d["id"],
            kind=d.get("type", "request"),
            user_name=d["userName"],
            message=d.get("message", ""),
            show_name=d.get("showName", ""),
            created_at=d.get("createdAt") or now_iso(),
            status=d.get("status", "pending"),
            genre=d.get("genre"),
            mood=d.get("mood"),
            instruments=tuple(instruments) if instruments else None,
            dedicated_to=d.get("dedicatedTo"),
            attempts=int(d.get("attempts", 0)),
            last_error=d.get("lastError"),
        )
