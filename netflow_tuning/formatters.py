"""
Formatting helpers for human readable summaries.
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from .models import Alert, AlertThresholds, HardwareFacts, ParameterSet


def format_facts(facts: HardwareFacts) -> str:
    lines = [
        f"RAM: {facts.ram_gb}GB ({facts.ram_mb}MB)",
        f"CPU: {facts.cpu_cores} cores / {facts.cpu_threads} threads",
        f"Disk: {facts.disk_type.value} storage",
        f"Available Space: {facts.available_space_gb}GB",
        f"Container Environment: {str(facts.is_containerized).lower()}",
    ]
    if facts.unknown_facts:
        lines.append(f"Undetected: {', '.join(facts.unknown_facts)}")
    return "\n".join(lines)


def format_plan(facts: HardwareFacts, params: ParameterSet) -> str:
    """Render a planned parameter set into a sectioned summary."""
    search, dashboard, shipper = params.search, params.dashboard, params.shipper
    lines: List[str] = []
    lines.append("=" * 80)
    lines.append(f"SYSTEM ({params.tier.name})")
    lines.append("=" * 80)
    lines.append(format_facts(facts))
    lines.append("")
    lines.append("Elasticsearch:")
    lines.append(f"  Heap Size: {search.heap_size}")
    lines.append(f"  Memory Limit: {search.memory_limit} (reservation {search.memory_reservation})")
    lines.append(f"  Processors: {search.processor_count}")
    lines.append(f"  Index Refresh: {search.refresh_interval}")
    lines.append(f"  Recovery: {search.recovery_bandwidth} x{search.concurrent_recoveries}")
    lines.append("Kibana:")
    lines.append(f"  Memory Limit: {dashboard.memory_limit} (reservation {dashboard.memory_reservation})")
    lines.append(f"  Node Options: {dashboard.runtime_heap_option}")
    lines.append("Filebeat:")
    lines.append(f"  Memory Limit: {shipper.memory_limit} (reservation {shipper.memory_reservation})")
    lines.append(f"  Queue Size: {shipper.queue_events}  Bulk Size: {shipper.bulk_max_size}")
    lines.append(f"  Workers: {shipper.worker_count}  GOMAXPROCS: {shipper.max_procs}")
    lines.append("Host:")
    lines.append(f"  vm.max_map_count: {params.host.vm_max_map_count}  I/O Scheduler: {params.host.io_scheduler}")
    lines.append(f"  Network Buffer: {params.host.network_buffer_bytes // (1024 * 1024)}MB  nofile: {params.host.nofile_limit}")
    lines.append(f"Retention: {params.retention.retention_days} days")

    if params.conditions:
        lines.append("")
        lines.append("Conditions:")
        for condition in params.conditions:
            lines.append(f"  - {condition.value}")

    return "\n".join(lines)


def format_thresholds(thresholds: AlertThresholds) -> str:
    return (
        f"Memory warning: {thresholds.memory_warning_pct}%  "
        f"CPU warning: {thresholds.cpu_warning_pct}%  "
        f"Disk warning/critical: {thresholds.disk_warning_pct}%/{thresholds.disk_critical_pct}%"
    )


def format_alerts(alerts: Iterable[Alert], count: Optional[int] = None) -> str:
    """Render evaluated alerts, one line per alert."""
    alerts = list(alerts)
    count = len(alerts) if count is None else count
    if not alerts:
        return "No system alerts - all metrics within thresholds."

    lines: List[str] = []
    for idx, alert in enumerate(alerts, start=1):
        observed = "n/a" if alert.observed_value is None else alert.observed_value
        line = f"  {idx}. [{alert.severity.value.upper()}] {alert.metric} :: {alert.subject} = {observed}"
        if alert.threshold is not None:
            line += f" (threshold: {alert.threshold})"
        if alert.suggest_retention_reduction:
            line += " [retention-reduction]"
        lines.append(line)
    lines.append(f"Total system alerts: {count}")
    return "\n".join(lines)
