"""
Value types shared by the planner, the threshold resolver and the evaluator.

Everything here is immutable.  A planning run builds a fresh
:class:`HardwareFacts` snapshot, and every derived structure is returned by
value, so no state survives between runs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Mapping, Optional, Tuple


MEMORY_SIZE_RE = re.compile(r"^\s*(?P<value>\d+)\s*(?P<unit>[mMgG])[bB]?\s*$")

# Names recorded in HardwareFacts.unknown_facts
FACT_RAM = "ram"
FACT_CPU = "cpu"
FACT_DISK_TYPE = "disk_type"
FACT_AVAILABLE_SPACE = "available_space"
FACT_CONTAINER = "containerized"


class DiskType(str, Enum):
    """Storage class of the device backing the data directory."""

    NVME = "nvme"
    SSD = "ssd"
    HDD = "hdd"
    UNKNOWN = "unknown"

    @property
    def is_fast(self) -> bool:
        return self in (DiskType.NVME, DiskType.SSD)


class Tier(IntEnum):
    """Memory capacity bucket. Members compare in ascending capacity order."""

    LE1 = 1
    LE2 = 2
    LE4 = 3
    LE8 = 4
    LE16 = 5
    LE32 = 6
    LE64 = 7
    GT64 = 8

    @property
    def upper_bound_gb(self) -> Optional[int]:
        """Inclusive upper RAM bound in GB, ``None`` for the open-ended tier."""
        return _TIER_BOUNDS[self]


_TIER_BOUNDS: Dict[Tier, Optional[int]] = {
    Tier.LE1: 1,
    Tier.LE2: 2,
    Tier.LE4: 4,
    Tier.LE8: 8,
    Tier.LE16: 16,
    Tier.LE32: 32,
    Tier.LE64: 64,
    Tier.GT64: None,
}


@dataclass(frozen=True, order=True)
class MemorySize:
    """A memory amount in megabytes, rendered the way JVM and Docker flags expect."""

    megabytes: int

    @classmethod
    def parse(cls, text: str) -> "MemorySize":
        match = MEMORY_SIZE_RE.match(text)
        if not match:
            raise ValueError(f"Invalid memory size: {text!r}")
        value = int(match.group("value"))
        if match.group("unit").lower() == "g":
            value *= 1024
        return cls(value)

    @classmethod
    def gigabytes(cls, value: int) -> "MemorySize":
        return cls(value * 1024)

    def __str__(self) -> str:
        if self.megabytes and self.megabytes % 1024 == 0:
            return f"{self.megabytes // 1024}g"
        return f"{self.megabytes}m"


TRUE_FLAGS = frozenset({"true", "yes", "on", "1"})
FALSE_FLAGS = frozenset({"false", "no", "off", "0", ""})


def parse_flag(value: Any) -> bool:
    """Read a boolean from JSON or text; ``"false"`` is false."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in TRUE_FLAGS:
        return True
    if text in FALSE_FLAGS:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


@dataclass(frozen=True)
class HardwareFacts:
    """Point-in-time hardware snapshot a planning run works from."""

    ram_gb: float
    ram_mb: int
    cpu_cores: int
    cpu_threads: int
    disk_type: DiskType
    available_space_gb: float
    is_containerized: bool = False
    unknown_facts: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HardwareFacts":
        """Build facts from caller-supplied values; RAM, cores and free space are required."""
        missing = [key for key in ("ram_gb", "cpu_cores", "available_space_gb") if data.get(key) is None]
        if missing:
            raise ValueError(f"Missing hardware facts: {', '.join(missing)}")
        ram_gb = float(data["ram_gb"])
        cpu_cores = int(data["cpu_cores"])
        unknown = list(data.get("unknown_facts") or ())
        disk_type = data.get("disk_type")
        if not disk_type and FACT_DISK_TYPE not in unknown:
            unknown.append(FACT_DISK_TYPE)
        return cls(
            ram_gb=ram_gb,
            ram_mb=int(data.get("ram_mb") or ram_gb * 1024),
            cpu_cores=cpu_cores,
            cpu_threads=int(data.get("cpu_threads") or cpu_cores),
            disk_type=DiskType(disk_type or DiskType.UNKNOWN.value),
            available_space_gb=float(data["available_space_gb"]),
            is_containerized=parse_flag(data.get("is_containerized", False)),
            unknown_facts=tuple(unknown),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "ram_gb": self.ram_gb,
            "ram_mb": self.ram_mb,
            "cpu_cores": self.cpu_cores,
            "cpu_threads": self.cpu_threads,
            "disk_type": self.disk_type.value,
            "available_space_gb": self.available_space_gb,
            "is_containerized": self.is_containerized,
        }
        if self.unknown_facts:
            data["unknown_facts"] = list(self.unknown_facts)
        return data


class PlanningCondition(str, Enum):
    """Non-fatal conditions noticed while planning."""

    LOW_MEMORY = "low_memory"
    HIGH_MEMORY = "high_memory"
    LOW_CPU = "low_cpu"
    LOW_DISK_SPACE = "low_disk_space"
    UNKNOWN_DISK_TYPE = "unknown_disk_type"
    UNKNOWN_CPU = "unknown_cpu"
    UNKNOWN_MEMORY = "unknown_memory"


@dataclass(frozen=True)
class SearchEngineParameters:
    heap_size: MemorySize
    memory_limit: MemorySize
    memory_reservation: MemorySize
    processor_count: int
    index_buffer_pct: int
    min_index_buffer: str
    field_data_cache_pct: int
    query_cache_pct: int
    write_queue_size: int
    search_queue_size: int
    get_queue_size: int
    refresh_interval: str
    translog_sync_interval: str
    recovery_bandwidth: str
    concurrent_recoveries: int
    disk_watermark_low_pct: int = 85
    disk_watermark_high_pct: int = 90
    disk_watermark_flood_pct: int = 95

    def to_dict(self) -> Dict[str, Any]:
        return {
            "heap_size": str(self.heap_size),
            "memory_limit": str(self.memory_limit),
            "memory_reservation": str(self.memory_reservation),
            "processor_count": self.processor_count,
            "index_buffer_pct": self.index_buffer_pct,
            "min_index_buffer": self.min_index_buffer,
            "field_data_cache_pct": self.field_data_cache_pct,
            "query_cache_pct": self.query_cache_pct,
            "write_queue_size": self.write_queue_size,
            "search_queue_size": self.search_queue_size,
            "get_queue_size": self.get_queue_size,
            "refresh_interval": self.refresh_interval,
            "translog_sync_interval": self.translog_sync_interval,
            "recovery_bandwidth": self.recovery_bandwidth,
            "concurrent_recoveries": self.concurrent_recoveries,
            "disk_watermark_low_pct": self.disk_watermark_low_pct,
            "disk_watermark_high_pct": self.disk_watermark_high_pct,
            "disk_watermark_flood_pct": self.disk_watermark_flood_pct,
        }


@dataclass(frozen=True)
class DashboardParameters:
    memory_limit: MemorySize
    memory_reservation: MemorySize
    runtime_heap_option: str
    payload_max_bytes: int
    request_timeout_ms: int
    shard_timeout_ms: int
    quiet_logging: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "memory_limit": str(self.memory_limit),
            "memory_reservation": str(self.memory_reservation),
            "runtime_heap_option": self.runtime_heap_option,
            "payload_max_bytes": self.payload_max_bytes,
            "request_timeout_ms": self.request_timeout_ms,
            "shard_timeout_ms": self.shard_timeout_ms,
            "quiet_logging": self.quiet_logging,
        }


@dataclass(frozen=True)
class ShipperParameters:
    memory_limit: MemorySize
    memory_reservation: MemorySize
    queue_events: int
    flush_min_events: int
    bulk_max_size: int
    bulk_timeout: str
    worker_count: int
    max_procs: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "memory_limit": str(self.memory_limit),
            "memory_reservation": str(self.memory_reservation),
            "queue_events": self.queue_events,
            "flush_min_events": self.flush_min_events,
            "bulk_max_size": self.bulk_max_size,
            "bulk_timeout": self.bulk_timeout,
            "worker_count": self.worker_count,
            "max_procs": self.max_procs,
        }


@dataclass(frozen=True)
class RetentionParameters:
    retention_days: int
    disk_warning_pct: int
    disk_critical_pct: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "retention_days": self.retention_days,
            "disk_warning_pct": self.disk_warning_pct,
            "disk_critical_pct": self.disk_critical_pct,
        }


@dataclass(frozen=True)
class HostParameters:
    """Kernel and resource-limit values for the machine running the stack."""

    vm_max_map_count: int
    network_buffer_bytes: int
    udp_mem: Tuple[int, int, int]
    netdev_backlog: int
    file_max: int
    nofile_limit: int
    pid_max: int
    threads_max: int
    io_scheduler: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vm_max_map_count": self.vm_max_map_count,
            "network_buffer_bytes": self.network_buffer_bytes,
            "udp_mem": list(self.udp_mem),
            "netdev_backlog": self.netdev_backlog,
            "file_max": self.file_max,
            "nofile_limit": self.nofile_limit,
            "pid_max": self.pid_max,
            "threads_max": self.threads_max,
            "io_scheduler": self.io_scheduler,
        }


@dataclass(frozen=True)
class ParameterSet:
    """The complete bundle of tuned values produced by one planning run."""

    tier: Tier
    search: SearchEngineParameters
    dashboard: DashboardParameters
    shipper: ShipperParameters
    retention: RetentionParameters
    host: HostParameters
    conditions: Tuple[PlanningCondition, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.name,
            "search_engine": self.search.to_dict(),
            "dashboard": self.dashboard.to_dict(),
            "log_shipper": self.shipper.to_dict(),
            "retention": self.retention.to_dict(),
            "host": self.host.to_dict(),
            "conditions": [condition.value for condition in self.conditions],
        }


@dataclass(frozen=True)
class AlertThresholds:
    memory_warning_pct: float
    cpu_warning_pct: float
    disk_warning_pct: float
    disk_critical_pct: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "memory_warning_pct": self.memory_warning_pct,
            "cpu_warning_pct": self.cpu_warning_pct,
            "disk_warning_pct": self.disk_warning_pct,
            "disk_critical_pct": self.disk_critical_pct,
        }


class ServiceStatus(str, Enum):
    UP = "up"
    DEGRADED = "degraded"
    DOWN = "down"

    def worst(self, other: "ServiceStatus") -> "ServiceStatus":
        order = (ServiceStatus.UP, ServiceStatus.DEGRADED, ServiceStatus.DOWN)
        return self if order.index(self) >= order.index(other) else other


@dataclass(frozen=True)
class MetricSnapshot:
    """Live metrics for one monitoring tick. ``None`` marks a metric that could not be sampled."""

    memory_used_pct: Optional[float]
    cpu_used_pct: Optional[float]
    disk_used_pct: Optional[float]
    service_statuses: Mapping[str, ServiceStatus] = field(default_factory=dict)
    # Search engine internals; ``None`` here means "not sampled" and raises nothing.
    heap_used_pct: Optional[float] = None
    index_count: Optional[int] = None
    io_wait_pct: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MetricSnapshot":
        def pct(key: str) -> Optional[float]:
            value = data.get(key)
            return None if value is None else float(value)

        statuses = data.get("service_statuses") or {}
        index_count = data.get("index_count")
        return cls(
            memory_used_pct=pct("memory_used_pct"),
            cpu_used_pct=pct("cpu_used_pct"),
            disk_used_pct=pct("disk_used_pct"),
            service_statuses={name: ServiceStatus(status) for name, status in statuses.items()},
            heap_used_pct=pct("heap_used_pct"),
            index_count=None if index_count is None else int(index_count),
            io_wait_pct=pct("io_wait_pct"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "memory_used_pct": self.memory_used_pct,
            "cpu_used_pct": self.cpu_used_pct,
            "disk_used_pct": self.disk_used_pct,
            "service_statuses": {name: status.value for name, status in self.service_statuses.items()},
            "heap_used_pct": self.heap_used_pct,
            "index_count": self.index_count,
            "io_wait_pct": self.io_wait_pct,
        }


class AlertSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class Alert:
    severity: AlertSeverity
    metric: str
    observed_value: Optional[Any]
    threshold: Optional[Any]
    subject: str
    suggest_retention_reduction: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "severity": self.severity.value,
            "metric": self.metric,
            "observed_value": self.observed_value,
            "threshold": self.threshold,
            "subject": self.subject,
        }
        if self.metric == "disk":
            data["suggest_retention_reduction"] = self.suggest_retention_reduction
        return data
