"""
Error taxonomy for the NetFlow tuning engine.

Only :class:`InsufficientResourcesError` is meant to stop a workflow.  The
other recoverable errors are raised by individual probes and absorbed by the
collectors, which substitute conservative defaults and report the condition
as data.
"""

from __future__ import annotations


class NetflowTuningError(RuntimeError):
    """Base class for every error raised by this package."""


class InsufficientResourcesError(NetflowTuningError):
    """Raised when available disk space is below the floor needed to operate."""

    def __init__(self, available_gb: float, required_gb: float):
        self.available_gb = available_gb
        self.required_gb = required_gb
        super().__init__(
            f"Insufficient disk space: available {available_gb}GB, required {required_gb}GB"
        )


class UnknownFactError(NetflowTuningError):
    """Raised when a single hardware fact cannot be determined."""

    def __init__(self, fact: str, reason: str = ""):
        self.fact = fact
        message = f"Could not determine {fact}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MetricUnavailableError(NetflowTuningError):
    """Raised when a metric or service status cannot be sampled."""

    def __init__(self, metric: str, reason: str = ""):
        self.metric = metric
        message = f"Metric unavailable: {metric}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class PlanningInvariantError(NetflowTuningError):
    """A derived parameter set broke one of its invariants. Always a planner bug."""
