"""Threshold profiles and alert evaluation."""

from __future__ import annotations

import pytest

from netflow_tuning.alerts import HEAP_CRITICAL_PCT, HEAP_WARNING_PCT, evaluate
from netflow_tuning.models import (
    FACT_RAM,
    AlertSeverity,
    MetricSnapshot,
    ServiceStatus,
)
from netflow_tuning.thresholds import LOW_MEMORY_PROFILE, STANDARD_PROFILE, resolve


def snapshot(memory=50.0, cpu=50.0, disk=50.0, **services) -> MetricSnapshot:
    return MetricSnapshot(
        memory_used_pct=memory,
        cpu_used_pct=cpu,
        disk_used_pct=disk,
        service_statuses={name: ServiceStatus(status) for name, status in services.items()},
    )


@pytest.mark.parametrize("ram_gb, profile", [(1, LOW_MEMORY_PROFILE), (2, LOW_MEMORY_PROFILE), (2.5, STANDARD_PROFILE), (128, STANDARD_PROFILE)])
def test_profile_selection_depends_only_on_two_gig_cutoff(make_facts, ram_gb, profile) -> None:
    assert resolve(make_facts(ram_gb=ram_gb)) == profile


def test_profiles_match_documented_levels() -> None:
    assert LOW_MEMORY_PROFILE.to_dict() == {
        "memory_warning_pct": 90,
        "cpu_warning_pct": 85,
        "disk_warning_pct": 85,
        "disk_critical_pct": 92,
    }
    assert STANDARD_PROFILE.to_dict() == {
        "memory_warning_pct": 85,
        "cpu_warning_pct": 80,
        "disk_warning_pct": 80,
        "disk_critical_pct": 90,
    }


def test_undetected_ram_uses_standard_profile(make_facts) -> None:
    facts = make_facts(ram_gb=0, ram_mb=0, unknown_facts=(FACT_RAM,))
    assert resolve(facts) == STANDARD_PROFILE


def test_low_ram_memory_breach_raises_single_warning(make_facts) -> None:
    thresholds = resolve(make_facts(ram_gb=1))
    alerts, count = evaluate(snapshot(memory=91, cpu=50, disk=70), thresholds, retention_days=7)

    assert count == 1
    assert len(alerts) == 1
    assert alerts[0].severity is AlertSeverity.WARNING
    assert alerts[0].metric == "memory"
    assert alerts[0].observed_value == 91
    assert alerts[0].threshold == 90


def test_down_service_is_always_critical() -> None:
    alerts, count = evaluate(snapshot(memory=1, cpu=1, disk=1, kibana="down"), STANDARD_PROFILE, 30)

    assert count == 1
    assert alerts[0].severity is AlertSeverity.CRITICAL
    assert alerts[0].metric == "service"
    assert alerts[0].subject == "kibana"
    assert alerts[0].observed_value == "down"


def test_degraded_service_is_a_warning_and_up_is_silent() -> None:
    alerts, count = evaluate(
        snapshot(elasticsearch="degraded", kibana="up", filebeat="up"), STANDARD_PROFILE, 30
    )

    assert count == 1
    assert alerts[0].severity is AlertSeverity.WARNING
    assert alerts[0].subject == "elasticsearch"


def test_threshold_equality_is_not_a_breach() -> None:
    alerts, count = evaluate(snapshot(memory=85, cpu=80, disk=80), STANDARD_PROFILE, 30)
    assert alerts == []
    assert count == 0


def test_critical_disk_suppresses_warning_and_flags_retention() -> None:
    alerts, count = evaluate(snapshot(disk=95), STANDARD_PROFILE, 30)

    assert count == 1
    assert alerts[0].severity is AlertSeverity.CRITICAL
    assert alerts[0].threshold == 90
    assert alerts[0].suggest_retention_reduction is True


def test_disk_warning_does_not_suggest_reduction_at_minimum_retention() -> None:
    alerts, _ = evaluate(snapshot(disk=85), STANDARD_PROFILE, 7)

    assert alerts[0].severity is AlertSeverity.WARNING
    assert alerts[0].suggest_retention_reduction is False
    assert alerts[0].to_dict()["suggest_retention_reduction"] is False

    alerts, _ = evaluate(snapshot(disk=85), STANDARD_PROFILE, 8)
    assert alerts[0].suggest_retention_reduction is True


def test_alerts_follow_fixed_order() -> None:
    alerts, count = evaluate(
        snapshot(memory=99, cpu=99, disk=99, elasticsearch="down", kibana="degraded", filebeat="down"),
        STANDARD_PROFILE,
        30,
    )

    assert count == 6
    assert [(alert.metric, alert.subject) for alert in alerts] == [
        ("memory", "system"),
        ("cpu", "system"),
        ("disk", "/"),
        ("service", "elasticsearch"),
        ("service", "kibana"),
        ("service", "filebeat"),
    ]


def test_missing_metric_is_reported_without_hiding_others() -> None:
    metrics = MetricSnapshot(memory_used_pct=None, cpu_used_pct=95, disk_used_pct=None)
    alerts, count = evaluate(metrics, STANDARD_PROFILE, 30)

    assert count == 3
    assert [alert.metric for alert in alerts] == ["memory", "cpu", "disk"]
    assert alerts[0].observed_value is None
    assert alerts[0].subject == "unavailable"
    assert alerts[1].observed_value == 95
    assert alerts[2].observed_value is None
    assert alerts[2].suggest_retention_reduction is False


def test_evaluation_is_stateless() -> None:
    metrics = snapshot(memory=99, kibana="down")
    assert evaluate(metrics, STANDARD_PROFILE, 30) == evaluate(metrics, STANDARD_PROFILE, 30)


def test_snapshot_from_dict_accepts_plain_values() -> None:
    metrics = MetricSnapshot.from_dict(
        {"memory_used_pct": "91", "cpu_used_pct": 10, "service_statuses": {"filebeat": "down"}}
    )

    assert metrics.memory_used_pct == 91.0
    assert metrics.disk_used_pct is None
    assert metrics.service_statuses["filebeat"] is ServiceStatus.DOWN


def test_heap_usage_levels() -> None:
    warning, _ = evaluate(MetricSnapshot(50, 50, 50, heap_used_pct=80), STANDARD_PROFILE, 30)
    critical, _ = evaluate(MetricSnapshot(50, 50, 50, heap_used_pct=95), STANDARD_PROFILE, 30)
    _, count = evaluate(MetricSnapshot(50, 50, 50, heap_used_pct=75), STANDARD_PROFILE, 30)

    assert warning[0].metric == "heap"
    assert warning[0].severity is AlertSeverity.WARNING
    assert warning[0].threshold == HEAP_WARNING_PCT
    assert critical[0].severity is AlertSeverity.CRITICAL
    assert critical[0].threshold == HEAP_CRITICAL_PCT
    assert count == 0


def test_index_count_above_retention_warns() -> None:
    alerts, count = evaluate(MetricSnapshot(50, 50, 50, index_count=16), STANDARD_PROFILE, 15)

    assert count == 1
    assert alerts[0].metric == "index_count"
    assert alerts[0].threshold == 15
    assert evaluate(MetricSnapshot(50, 50, 50, index_count=15), STANDARD_PROFILE, 15)[1] == 0


def test_io_wait_above_ten_percent_warns() -> None:
    alerts, count = evaluate(MetricSnapshot(50, 50, 50, io_wait_pct=12.5), STANDARD_PROFILE, 30)

    assert count == 1
    assert alerts[0].metric == "io_wait"
    assert alerts[0].severity is AlertSeverity.WARNING


def test_search_engine_alerts_follow_services() -> None:
    metrics = MetricSnapshot(
        memory_used_pct=99,
        cpu_used_pct=10,
        disk_used_pct=10,
        service_statuses={"kibana": ServiceStatus.DOWN},
        heap_used_pct=91,
        index_count=40,
        io_wait_pct=30,
    )
    alerts, count = evaluate(metrics, STANDARD_PROFILE, 30)

    assert count == 5
    assert [alert.metric for alert in alerts] == ["memory", "service", "heap", "index_count", "io_wait"]


def test_unsampled_search_engine_metrics_raise_nothing() -> None:
    assert evaluate(snapshot(), STANDARD_PROFILE, 30) == ([], 0)
