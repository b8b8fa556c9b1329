"""
Core package for the NetFlow stack tuning tools.

This package derives tuned settings for Elasticsearch, Kibana and Filebeat
from the detected hardware, and judges live metrics against thresholds that
depend on the same hardware.  The planning and evaluation functions are pure
and return structured data, so the CLI and MCP layers only marshal results.
"""

from .alerts import evaluate  # noqa: F401
from .config import Settings, configure_settings, get_settings  # noqa: F401
from .errors import (  # noqa: F401
    InsufficientResourcesError,
    MetricUnavailableError,
    NetflowTuningError,
    PlanningInvariantError,
    UnknownFactError,
)
from .models import (  # noqa: F401
    Alert,
    AlertSeverity,
    AlertThresholds,
    DiskType,
    HardwareFacts,
    HostParameters,
    MemorySize,
    MetricSnapshot,
    ParameterSet,
    ServiceStatus,
    Tier,
)
from .planner import plan  # noqa: F401
from .thresholds import resolve  # noqa: F401
from .tiers import classify  # noqa: F401
