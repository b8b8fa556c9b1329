"""
Alert threshold profiles.

Small machines are expected to run hotter, so systems with at most 2 GB of RAM get
their own profile.  This is a binary choice, independent of the planner's
eight-way tier ladder.
"""

from __future__ import annotations

from .models import FACT_RAM, AlertThresholds, HardwareFacts


LOW_MEMORY_CUTOFF_GB = 2

LOW_MEMORY_PROFILE = AlertThresholds(
    memory_warning_pct=90,
    cpu_warning_pct=85,
    disk_warning_pct=85,
    disk_critical_pct=92,
)

STANDARD_PROFILE = AlertThresholds(
    memory_warning_pct=85,
    cpu_warning_pct=80,
    disk_warning_pct=80,
    disk_critical_pct=90,
)


def resolve(facts: HardwareFacts) -> AlertThresholds:
    # Undetected RAM falls back to the standard profile.
    if FACT_RAM not in facts.unknown_facts and facts.ram_gb <= LOW_MEMORY_CUTOFF_GB:
        return LOW_MEMORY_PROFILE
    return STANDARD_PROFILE
