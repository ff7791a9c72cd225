"""Slot Availability Resolver — which catalog slots can still be booked."""
from dataclasses import replace
from typing import Optional, Protocol

from .config import SLOT_BOOKING_CAP
from .models import AdSlot
from .schedule import schedule_for, slot_label
from .store import BookingStore


class LiveShow(Protocol):
    """What the resolver needs to know about the show currently on air."""
    show_name: str
    started_at: float

    @property
    def is_running(self) -> bool: ...


class SlotResolver:
    def __init__(self, store: BookingStore, live: Optional[LiveShow] = None,
                 booking_cap: int = SLOT_BOOKING_CAP):
        self.store = store
        self.live = live
        self.booking_cap = booking_cap

    def elapsed_minutes(self, show_name: str, now: float) -> Optional[float]:
        """Minutes since the show went live, or None if it isn't on air."""
        live = self.live
        if live is None or not live.is_running or live.show_name != show_name:
            return None
        return (now - live.started_at) / 60

    def label_slots(self, show_name: str, show_duration: float, now: float) -> list[AdSlot]:
        """Every catalog slot with its label and availability filled in."""
        schedule = schedule_for(show_duration)
        booked = self.store.advertisements_for_show(show_name)
        elapsed = self.elapsed_minutes(show_name, now)

        slots = []
        for slot in schedule.ad_slots:
            is_past = elapsed is not None and elapsed > slot.position
            booked_for_slot = sum(1 for a in booked if a.duration == slot.duration)
            is_full = booked_for_slot >= self.booking_cap
            slots.append(replace(
                slot,
                label=slot_label(slot.position, show_duration),
                available=not is_past and not is_full,
            ))
        return slots

    def available_slots(self, show_name: str, show_duration: float, now: float) -> list[AdSlot]:
        return [s for s in self.label_slots(show_name, show_duration, now) if s.available]
