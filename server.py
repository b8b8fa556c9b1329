#!/usr/bin/env python3
"""
NetFlow tuning MCP server entrypoint.

This module wires the planning and alerting helpers into MCP tools.  Each tool
returns structured dictionaries so the MCP client can present concise,
actionable information instead of raw command output.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import anyio
from mcp.server.fastmcp import FastMCP

from netflow_tuning.alerts import evaluate
from netflow_tuning.config import get_settings
from netflow_tuning.emitters import write_artifacts
from netflow_tuning.errors import NetflowTuningError
from netflow_tuning.facts import collect_facts
from netflow_tuning.formatters import format_alerts, format_facts, format_plan
from netflow_tuning.metrics import sample_metrics
from netflow_tuning.models import HardwareFacts, MetricSnapshot
from netflow_tuning.planner import plan, retention_days_for
from netflow_tuning.thresholds import resolve
from netflow_tuning.tiers import classify


mcp = FastMCP(
    name="NetFlow Tuning",
    instructions=(
        "Plan Elasticsearch, Kibana and Filebeat settings from detected hardware and "
        "evaluate live health metrics against hardware-dependent thresholds."
    ),
    streamable_http_path="/mcp",
    sse_path="/sse",
)


def _failure(exc: Exception, **extra: Any) -> Dict[str, Any]:
    return {
        "status": "failed",
        "error": str(exc),
        "details": {"error": str(exc), **extra},
        "output": str(exc),
    }


def _resolve_facts(facts: Optional[Dict[str, Any]]) -> HardwareFacts:
    if facts:
        return HardwareFacts.from_dict(facts)
    return collect_facts()


@mcp.tool()
def get_settings_info() -> dict:
    """Expose the resolved settings for debugging."""
    return get_settings().to_dict()


@mcp.tool()
async def detect_hardware() -> dict:
    """Detect RAM, CPU, disk type and free space on the server host."""
    facts = await anyio.to_thread.run_sync(collect_facts)
    return {
        "status": "completed",
        "tier": classify(facts).name,
        "facts": facts.to_dict(),
        "output": format_facts(facts),
    }


@mcp.tool()
def plan_configuration(facts: Optional[Dict[str, Any]] = None, write: bool = False) -> dict:
    """
    Derive tuned settings for the whole stack.

    Pass ``facts`` (ram_gb, cpu_cores, available_space_gb, optionally ram_mb,
    cpu_threads, disk_type) to plan for another machine; omit it to plan for
    this host.  ``write`` also writes the env manifest and service configs.
    """
    settings = get_settings()
    try:
        hardware = _resolve_facts(facts)
        tier = classify(hardware)
        params = plan(hardware, tier, minimum_space_gb=settings.minimum_space_gb)
    except (NetflowTuningError, ValueError) as exc:
        return _failure(exc)

    result: Dict[str, Any] = {
        "status": "completed",
        "tier": tier.name,
        "facts": hardware.to_dict(),
        "parameters": params.to_dict(),
        "output": format_plan(hardware, params),
    }
    if write:
        try:
            result["artifacts"] = write_artifacts(hardware, params, settings.output_dir).to_dict()
        except OSError as exc:
            return _failure(exc, parameters=params.to_dict())
    return result


@mcp.tool()
def get_alert_thresholds(facts: Optional[Dict[str, Any]] = None) -> dict:
    """Return the alert thresholds for the given (or detected) hardware."""
    try:
        hardware = _resolve_facts(facts)
    except ValueError as exc:
        return _failure(exc)
    return {
        "status": "completed",
        "facts": hardware.to_dict(),
        "thresholds": resolve(hardware).to_dict(),
    }


def _evaluation(hardware: HardwareFacts, snapshot: MetricSnapshot, retention_days: Optional[int]) -> dict:
    thresholds = resolve(hardware)
    if retention_days is None:
        retention_days = retention_days_for(hardware.available_space_gb)
    alerts, count = evaluate(snapshot, thresholds, retention_days)
    return {
        "status": "completed",
        "alert_count": count,
        "alerts": [alert.to_dict() for alert in alerts],
        "thresholds": thresholds.to_dict(),
        "metrics": snapshot.to_dict(),
        "retention_days": retention_days,
        "output": format_alerts(alerts, count),
    }


@mcp.tool()
async def evaluate_health(retention_days: Optional[int] = None) -> dict:
    """Sample live metrics on this host and evaluate them against its thresholds."""
    hardware = await anyio.to_thread.run_sync(collect_facts)
    snapshot = await anyio.to_thread.run_sync(sample_metrics)
    return _evaluation(hardware, snapshot, retention_days)


@mcp.tool()
def evaluate_snapshot(
    metrics: Dict[str, Any],
    facts: Dict[str, Any],
    retention_days: Optional[int] = None,
) -> dict:
    """Evaluate a caller-supplied metric snapshot for the given hardware."""
    try:
        hardware = HardwareFacts.from_dict(facts)
        snapshot = MetricSnapshot.from_dict(metrics)
    except ValueError as exc:
        return _failure(exc)
    return _evaluation(hardware, snapshot, retention_days)


if __name__ == "__main__":
    mcp.run()
