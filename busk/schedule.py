"""Schedule catalog — ad slot tables per show length, brand affinity, pricing."""
from .models import AdSlot, ShowAdSchedule

# ── Slot tables (hand-authored, one per duration bucket) ──────────────────────
# The last slot of each bucket sits exactly at the show length: it airs after
# the show ends.

_SCHEDULES = {
    30: ShowAdSchedule(
        show_duration=30,
        total_ad_time=2,
        ad_slots=(
            AdSlot(5, 10, "brand"),
            AdSlot(15, 20, "product"),
            AdSlot(25, 10, "brand"),
            AdSlot(30, 30, "sponsor"),
        ),
    ),
    60: ShowAdSchedule(
        show_duration=60,
        total_ad_time=5,
        ad_slots=(
            AdSlot(5, 10, "brand"),
            AdSlot(15, 30, "product"),
            AdSlot(25, 20, "product"),
            AdSlot(35, 30, "sponsor"),
            AdSlot(45, 20, "product"),
            AdSlot(55, 10, "brand"),
            AdSlot(60, 30, "sponsor"),
        ),
    ),
    120: ShowAdSchedule(
        show_duration=120,
        total_ad_time=5,
        ad_slots=(
            AdSlot(5, 10, "brand"),
            AdSlot(20, 30, "product"),
            AdSlot(40, 20, "product"),
            AdSlot(60, 30, "sponsor"),
            AdSlot(80, 20, "product"),
            AdSlot(100, 30, "product"),
            AdSlot(115, 10, "brand"),
            AdSlot(120, 30, "sponsor"),
        ),
    ),
}

# ── Brand affinity: category → shows that fit it ─────────────────────────────────────────────────────────

BRAND_SHOW_MATCHING: dict[str, frozenset[str]] = {
    "technology": frozenset({"Tech Talk with Neural Nancy", "Science Hour with Synthetic Sam"}),
    "lifestyle": frozenset({"Morning Vibes with AI Alex", "Evening Groove with Virtual Vicky"}),
    "entertainment": frozenset({"Midday Mix with Digital Dave", "Night Owl with Algorithmic Andy"}),
    "business": frozenset({"Tech Talk with Neural Nancy", "Morning Vibes with AI Alex"}),
    "health": frozenset({"Morning Vibes with AI Alex", "Science Hour with Synthetic Sam"}),
    "food": frozenset({"Midday Mix with Digital Dave", "Evening Groove with Virtual Vicky"}),
    "automotive": frozenset({"Night Owl with Algorithmic Andy", "Midday Mix with Digital Dave"}),
    "fashion": frozenset({"Evening Groove with Virtual Vicky", "Morning Vibes with AI Alex"}),
}

# ── Pricing (duration seconds → package → price) ──────────────────────────────

PRICING: dict[int, dict[str, float]] = {
    10: {"standard": 0.05, "branded": 50},
    20: {"standard": 30, "branded": 60},
    30: {"standard": 50, "branded": 100},
}


def bucket_for(show_duration: float) -> int:
    if show_duration >= 120:
        return 120
    if show_duration >= 60:
        return 60
    return 30


def schedule_for(show_duration: float) -> ShowAdSchedule:
    """Nearest bucket at or below the show length (30-minute floor)."""
    return _SCHEDULES[bucket_for(show_duration)]


def slot_label(position: float, show_duration: float) -> str:
    if position <= 5:
        return "Beginning of show"
    if position >= show_duration:
        return "After show ends"
    if position >= show_duration - 5:
        return "End of show"
    return "Middle of show"


def is_brand_match(brand_category: str | None, show_name: str) -> bool:
    if not brand_category:
        return False
    return show_name in BRAND_SHOW_MATCHING.get(brand_category, frozenset())


def price(duration: int, package_type: str) -> float:
    """Price of an ad booking. Raises KeyError for an unknown duration/package."""
    return PRICING[int(duration)][package_type]
