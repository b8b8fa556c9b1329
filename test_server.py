#!/usr/bin/env python3
"""Smoke tests for the MCP tools."""

from __future__ import annotations

from pathlib import Path

import anyio
import pytest

import server
from netflow_tuning.models import DiskType, HardwareFacts, MetricSnapshot, ServiceStatus


pytestmark = pytest.mark.usefixtures("isolated_settings")


SSD_HOST = {"ram_gb": 8, "cpu_cores": 4, "disk_type": "ssd", "available_space_gb": 120}


def test_settings_info() -> None:
    info = server.get_settings_info()
    assert "project_root" in info
    assert Path(info["project_root"]).exists()
    assert info["minimum_space_gb"] == 10


def test_plan_configuration_for_supplied_facts() -> None:
    result = server.plan_configuration(facts=SSD_HOST)

    assert result["status"] == "completed"
    assert result["tier"] == "LE8"
    search = result["parameters"]["search_engine"]
    assert search["heap_size"] == "3g"
    assert search["memory_limit"] == "4g"
    assert search["processor_count"] == 4
    assert result["parameters"]["retention"]["retention_days"] == 60
    assert result["parameters"]["host"]["udp_mem"] == [204800, 1747600, 33554432]
    assert "I/O Scheduler: none" in result["output"]
    assert "Heap Size: 3g" in result["output"]
    assert "artifacts" not in result


def test_plan_configuration_failure_returns_output() -> None:
    result = server.plan_configuration(facts={**SSD_HOST, "available_space_gb": 4})

    assert result["status"] == "failed"
    assert result["output"]
    assert "details" in result

    result = server.plan_configuration(facts={"ram_gb": 8})
    assert result["status"] == "failed"
    assert "cpu_cores" in result["error"]


def test_plan_configuration_writes_artifacts(isolated_settings) -> None:
    result = server.plan_configuration(facts=SSD_HOST, write=True)

    assert result["status"] == "completed"
    assert ".env" in result["artifacts"]["files"]
    assert (isolated_settings.output_dir / ".env").is_file()
    assert (isolated_settings.output_dir / "configs" / "filebeat" / "filebeat.yml").is_file()
    assert (isolated_settings.output_dir / "host" / "sysctl.d" / "99-elasticsearch.conf").is_file()


def test_thresholds_for_small_host() -> None:
    result = server.get_alert_thresholds(facts={**SSD_HOST, "ram_gb": 1})
    assert result["thresholds"]["memory_warning_pct"] == 90


def test_evaluate_snapshot_for_small_host() -> None:
    result = server.evaluate_snapshot(
        metrics={"memory_used_pct": 91, "cpu_used_pct": 50, "disk_used_pct": 70},
        facts={**SSD_HOST, "ram_gb": 1},
    )

    assert result["status"] == "completed"
    assert result["alert_count"] == 1
    assert result["alerts"][0]["severity"] == "warning"
    assert result["alerts"][0]["metric"] == "memory"
    assert result["retention_days"] == 60


def test_evaluate_snapshot_rejects_bad_status() -> None:
    result = server.evaluate_snapshot(
        metrics={"memory_used_pct": 1, "service_statuses": {"kibana": "sleeping"}},
        facts=SSD_HOST,
    )
    assert result["status"] == "failed"


def test_evaluate_health_uses_live_samples(monkeypatch) -> None:
    facts = HardwareFacts(
        ram_gb=16,
        ram_mb=16384,
        cpu_cores=4,
        cpu_threads=8,
        disk_type=DiskType.SSD,
        available_space_gb=30,
    )
    snapshot = MetricSnapshot(
        memory_used_pct=20,
        cpu_used_pct=20,
        disk_used_pct=85,
        service_statuses={"elasticsearch": ServiceStatus.UP, "kibana": ServiceStatus.DOWN},
    )
    monkeypatch.setattr(server, "collect_facts", lambda: facts)
    monkeypatch.setattr(server, "sample_metrics", lambda: snapshot)

    result = anyio.run(server.evaluate_health)

    assert result["retention_days"] == 15
    assert result["alert_count"] == 2
    assert [alert["metric"] for alert in result["alerts"]] == ["disk", "service"]
    assert result["alerts"][0]["suggest_retention_reduction"] is True
    assert result["alerts"][1]["severity"] == "critical"
    assert "Total system alerts: 2" in result["output"]
