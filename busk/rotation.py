"""Rotation Selector — round-robin over the ads eligible for a triggered slot."""
from typing import Optional, Sequence

from .models import AdSlot, Advertisement


def eligible_for_slot(ads: Sequence[Advertisement], slot: AdSlot) -> list[Advertisement]:
    """Filter a show's scheduled ads down to the ones that fit the slot length."""
    return [a for a in ads if a.duration == slot.duration]


class RotationSelector:
    """One monotonic index shared across slots and shows; only reset() rewinds it."""

    def __init__(self):
        self.index = 0

    def select(self, eligible: Sequence[Advertisement]) -> Optional[Advertisement]:
        if not eligible:
            return None
        ad = eligible[self.index % len(eligible)]
        self.index += 1
        return ad

    def reset(self):
        self.index = 0
