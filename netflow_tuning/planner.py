"""
Parameter planning for the search engine, the dashboard, the log shipper
and the host kernel.

A single :func:`plan` call turns a :class:`HardwareFacts` snapshot into a
complete :class:`ParameterSet`.  Base values come from fixed per-tier tables;
disk type, CPU count and free space refine them.  The heap limits are applied
as final clamps after the table lookup, so a table entry can never push the
heap above the 31 GiB ceiling or above half of the detected memory.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from .errors import InsufficientResourcesError, PlanningInvariantError
from .models import (
    FACT_RAM,
    DashboardParameters,
    DiskType,
    HardwareFacts,
    HostParameters,
    MemorySize,
    ParameterSet,
    PlanningCondition,
    RetentionParameters,
    SearchEngineParameters,
    ShipperParameters,
    Tier,
)
from .tiers import classify

logger = logging.getLogger(__name__)


DEFAULT_MINIMUM_SPACE_GB = 10

# Compressed object pointers stop working above ~32 GiB of heap.
HEAP_CEILING = MemorySize.gigabytes(31)
MAX_SEARCH_PROCESSORS = 8

# heap, limit, reservation
SEARCH_ENGINE_MEMORY: Dict[Tier, Tuple[str, str, str]] = {
    Tier.LE1: ("400m", "600m", "400m"),
    Tier.LE2: ("800m", "1200m", "800m"),
    Tier.LE4: ("1536m", "2g", "1536m"),
    Tier.LE8: ("3g", "4g", "3g"),
    Tier.LE16: ("6g", "8g", "6g"),
    Tier.LE32: ("12g", "16g", "12g"),
    Tier.LE64: ("26g", "32g", "26g"),
    Tier.GT64: ("31g", "40g", "31g"),
}

# Retention ladder on free space: (exclusive upper bound in GB, days).
RETENTION_LADDER: Tuple[Tuple[int, int], ...] = ((20, 7), (50, 15), (100, 30))
MAX_RETENTION_DAYS = 60

DISK_WARNING_PCT = 80
DISK_CRITICAL_PCT = 90

# Host kernel tuning on raw RAM: (exclusive upper bound in GB, vm.max_map_count,
# socket buffer bytes, net.ipv4.udp_mem pages, netdev backlog).
HOST_NETWORK_LADDER: Tuple[Tuple[Optional[int], int, int, Tuple[int, int, int], int], ...] = (
    (4, 65536, 64 * 1024 * 1024, (51200, 436900, 8388608), 1000),
    (8, 131072, 128 * 1024 * 1024, (102400, 873800, 16777216), 5000),
    (16, 262144, 256 * 1024 * 1024, (204800, 1747600, 33554432), 10000),
    (None, 262144, 512 * 1024 * 1024, (409600, 3495200, 67108864), 30000),
)
# kernel.pid_max cannot exceed 2^22 on 64-bit kernels.
PID_MAX_LIMIT = 4194304


def retention_days_for(available_space_gb: float) -> int:
    """Map free space onto the retention ladder, independently of the RAM tier."""
    for bound, days in RETENTION_LADDER:
        if available_space_gb < bound:
            return days
    return MAX_RETENTION_DAYS


def heap_cap(facts: HardwareFacts) -> Optional[MemorySize]:
    """
    Half of the detected memory, or ``None`` when memory could not be detected.

    Only a RAM probe failure (``FACT_RAM`` in ``unknown_facts``) lifts the
    clamp.  A host reported with zero memory is clamped to a zero heap.
    """
    if FACT_RAM in facts.unknown_facts:
        return None
    if facts.ram_gb >= 1:
        basis_mb = int(facts.ram_gb * 1024)
    else:
        basis_mb = max(facts.ram_mb, 0)
    return MemorySize(basis_mb // 2)


def plan(
    facts: HardwareFacts,
    tier: Optional[Tier] = None,
    *,
    minimum_space_gb: float = DEFAULT_MINIMUM_SPACE_GB,
) -> ParameterSet:
    """
    Derive the full parameter set for ``facts``.

    Raises :class:`InsufficientResourcesError` before anything is derived when
    free space is below ``minimum_space_gb``.  Every other shortfall is
    reported through :attr:`ParameterSet.conditions`.
    """
    if facts.available_space_gb < minimum_space_gb:
        logger.error(
            "Insufficient disk space: available %sGB, required %sGB",
            facts.available_space_gb,
            minimum_space_gb,
        )
        raise InsufficientResourcesError(facts.available_space_gb, minimum_space_gb)

    if tier is None:
        tier = classify(facts)

    conditions: List[PlanningCondition] = []

    cpu_cores = facts.cpu_cores
    if cpu_cores < 1:
        logger.warning("CPU core count unknown (%s) - planning for a single core", cpu_cores)
        conditions.append(PlanningCondition.UNKNOWN_CPU)
        cpu_cores = 1

    if tier is Tier.LE1:
        logger.warning("Very low RAM (%sGB) - using minimal heap", facts.ram_gb)
        conditions.append(PlanningCondition.LOW_MEMORY)
    elif tier is Tier.GT64:
        logger.info("High RAM detected (%sGB) - using maximum safe heap (%s)", facts.ram_gb, HEAP_CEILING)
        conditions.append(PlanningCondition.HIGH_MEMORY)

    if heap_cap(facts) is None:
        logger.warning("Detected memory is unknown - heap is limited by the tier table only")
        conditions.append(PlanningCondition.UNKNOWN_MEMORY)

    if cpu_cores <= 2:
        logger.warning("Low CPU cores (%s) - limiting processors", cpu_cores)
        conditions.append(PlanningCondition.LOW_CPU)

    if facts.disk_type is DiskType.UNKNOWN:
        logger.warning("Disk type unknown - using HDD profile")
        conditions.append(PlanningCondition.UNKNOWN_DISK_TYPE)

    retention_days = retention_days_for(facts.available_space_gb)
    if retention_days == RETENTION_LADDER[0][1]:
        logger.warning(
            "Low disk space (%sGB) - using %s days retention", facts.available_space_gb, retention_days
        )
        conditions.append(PlanningCondition.LOW_DISK_SPACE)

    parameters = ParameterSet(
        tier=tier,
        search=_plan_search_engine(facts, tier, cpu_cores),
        dashboard=_plan_dashboard(tier),
        shipper=_plan_shipper(facts, tier, cpu_cores),
        retention=RetentionParameters(
            retention_days=retention_days,
            disk_warning_pct=DISK_WARNING_PCT,
            disk_critical_pct=DISK_CRITICAL_PCT,
        ),
        host=_plan_host(facts, cpu_cores),
        conditions=tuple(conditions),
    )
    _check_invariants(facts, parameters)
    return parameters


# --- per-subsystem derivation ----------------------------------------------


def _plan_search_engine(facts: HardwareFacts, tier: Tier, cpu_cores: int) -> SearchEngineParameters:
    heap, limit, reservation = (MemorySize.parse(value) for value in SEARCH_ENGINE_MEMORY[tier])

    heap = min(heap, HEAP_CEILING)
    cap = heap_cap(facts)
    if cap is not None and heap > cap:
        logger.info("Clamping heap from %s to half of detected memory (%s)", heap, cap)
        heap = cap
    reservation = min(reservation, limit)

    if cpu_cores <= 2:
        processor_count = 1
    else:
        processor_count = min(cpu_cores, MAX_SEARCH_PROCESSORS)

    small = tier <= Tier.LE4
    if facts.disk_type.is_fast:
        interval, recovery_bandwidth, concurrent_recoveries = "5s", "100mb", 2
    else:
        interval, recovery_bandwidth, concurrent_recoveries = "30s", "50mb", 1

    return SearchEngineParameters(
        heap_size=heap,
        memory_limit=limit,
        memory_reservation=reservation,
        processor_count=processor_count,
        index_buffer_pct=10 if small else 20,
        min_index_buffer="48mb" if tier <= Tier.LE2 else "96mb",
        field_data_cache_pct=20 if small else 30,
        query_cache_pct=10 if small else 15,
        write_queue_size=cpu_cores * 200,
        search_queue_size=cpu_cores * 1000,
        get_queue_size=cpu_cores * 1000,
        refresh_interval=interval,
        translog_sync_interval=interval,
        recovery_bandwidth=recovery_bandwidth,
        concurrent_recoveries=concurrent_recoveries,
    )


def _plan_dashboard(tier: Tier) -> DashboardParameters:
    if tier <= Tier.LE2:
        limit, reservation, heap_mb = "300m", "200m", 200
    elif tier <= Tier.LE4:
        limit, reservation, heap_mb = "512m", "300m", 300
    elif tier <= Tier.LE8:
        limit, reservation, heap_mb = "1g", "512m", 512
    else:
        limit, reservation, heap_mb = "2g", "1g", 1024

    small = tier <= Tier.LE4
    timeout_ms = 60000 if small else 30000
    return DashboardParameters(
        memory_limit=MemorySize.parse(limit),
        memory_reservation=MemorySize.parse(reservation),
        runtime_heap_option=f"--max-old-space-size={heap_mb}",
        payload_max_bytes=1048576 if small else 2097152,
        request_timeout_ms=timeout_ms,
        shard_timeout_ms=timeout_ms,
        quiet_logging=tier <= Tier.LE2,
    )


def _plan_shipper(facts: HardwareFacts, tier: Tier, cpu_cores: int) -> ShipperParameters:
    if tier <= Tier.LE2:
        limit, reservation = "150m", "100m"
    elif tier <= Tier.LE4:
        limit, reservation = "256m", "150m"
    else:
        limit, reservation = "512m", "256m"

    if facts.ram_gb >= 8:
        queue_events, bulk_max_size = 10000, 1000
    elif facts.ram_gb >= 4:
        queue_events, bulk_max_size = 5000, 500
    else:
        queue_events, bulk_max_size = 1000, 100

    if cpu_cores <= 2:
        max_procs = 1
    elif cpu_cores <= 4:
        max_procs = 2
    else:
        max_procs = cpu_cores

    return ShipperParameters(
        memory_limit=MemorySize.parse(limit),
        memory_reservation=MemorySize.parse(reservation),
        queue_events=queue_events,
        flush_min_events=100 if tier <= Tier.LE2 else 512,
        bulk_max_size=bulk_max_size,
        bulk_timeout="60s" if facts.disk_type.is_fast else "120s",
        worker_count=1 if cpu_cores <= 2 else 2,
        max_procs=max_procs,
    )


def _plan_host(facts: HardwareFacts, cpu_cores: int) -> HostParameters:
    for bound, map_count, buffer_bytes, udp_mem, backlog in HOST_NETWORK_LADDER:
        if bound is None or facts.ram_gb < bound:
            break

    if facts.ram_gb < 8:
        file_max, nofile_limit = 500000, 100000
    else:
        file_max, nofile_limit = 1000000, 1000000

    return HostParameters(
        vm_max_map_count=map_count,
        network_buffer_bytes=buffer_bytes,
        udp_mem=udp_mem,
        netdev_backlog=backlog,
        file_max=file_max,
        nofile_limit=nofile_limit,
        pid_max=min(cpu_cores * 32768, PID_MAX_LIMIT),
        threads_max=cpu_cores * 65536,
        io_scheduler="none" if facts.disk_type.is_fast else "mq-deadline",
    )


def _check_invariants(facts: HardwareFacts, parameters: ParameterSet) -> None:
    search = parameters.search
    # A core count below one was planned as a single core.
    max_processors = min(max(facts.cpu_cores, 1), MAX_SEARCH_PROCESSORS)
    violations: List[str] = []

    for name, record in (
        ("search_engine", search),
        ("dashboard", parameters.dashboard),
        ("log_shipper", parameters.shipper),
    ):
        if record.memory_reservation > record.memory_limit:
            violations.append(f"{name} reservation {record.memory_reservation} exceeds limit {record.memory_limit}")

    if search.heap_size > search.memory_limit:
        violations.append(f"heap {search.heap_size} exceeds limit {search.memory_limit}")
    if search.heap_size > HEAP_CEILING:
        violations.append(f"heap {search.heap_size} exceeds ceiling {HEAP_CEILING}")
    cap = heap_cap(facts)
    if cap is not None and search.heap_size > cap:
        violations.append(f"heap {search.heap_size} exceeds half of detected memory {cap}")
    if search.processor_count > max_processors:
        violations.append(f"processor count {search.processor_count} exceeds {max_processors}")

    if violations:
        logger.error("Planner produced an inconsistent parameter set: %s", "; ".join(violations))
        raise PlanningInvariantError("; ".join(violations))
