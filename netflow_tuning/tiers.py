"""
Memory tier classification.

RAM is the only sorting key: an unknown disk type or a zero core count never
blocks classification.
"""

from __future__ import annotations

from .models import HardwareFacts, Tier


def classify_ram(ram_gb: float) -> Tier:
    """Place ``ram_gb`` on the ladder of inclusive upper bounds; equality goes to the lower tier."""
    for tier in Tier:
        bound = tier.upper_bound_gb
        if bound is not None and ram_gb <= bound:
            return tier
    return Tier.GT64


def classify(facts: HardwareFacts) -> Tier:
    return classify_ram(facts.ram_gb)
