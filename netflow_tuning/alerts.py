"""
Threshold-relative alert evaluation for one monitoring tick.

The evaluator is stateless: each snapshot is judged on its own, with no alert
history and no hysteresis.  Alerts are emitted in a fixed order (memory, CPU,
disk, services in the snapshot's mapping order, then search engine heap,
index count and I/O wait) and none is ever dropped or deduplicated.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from .models import Alert, AlertSeverity, AlertThresholds, MetricSnapshot, ServiceStatus

logger = logging.getLogger(__name__)


MIN_RETENTION_DAYS = 7

HEAP_WARNING_PCT = 75
HEAP_CRITICAL_PCT = 90
IO_WAIT_WARNING_PCT = 10


def _warning_alert(metric: str, observed: Optional[float], threshold: float) -> Optional[Alert]:
    if observed is None:
        logger.warning("%s usage unavailable - reporting as unknown", metric)
        return Alert(
            severity=AlertSeverity.WARNING,
            metric=metric,
            observed_value=None,
            threshold=threshold,
            subject="unavailable",
        )
    if observed > threshold:
        return Alert(
            severity=AlertSeverity.WARNING,
            metric=metric,
            observed_value=observed,
            threshold=threshold,
            subject="system",
        )
    return None


def _disk_alert(observed: Optional[float], thresholds: AlertThresholds, retention_days: int) -> Optional[Alert]:
    if observed is None:
        return _warning_alert("disk", None, thresholds.disk_warning_pct)

    if observed > thresholds.disk_critical_pct:
        severity, threshold = AlertSeverity.CRITICAL, thresholds.disk_critical_pct
    elif observed > thresholds.disk_warning_pct:
        severity, threshold = AlertSeverity.WARNING, thresholds.disk_warning_pct
    else:
        return None

    return Alert(
        severity=severity,
        metric="disk",
        observed_value=observed,
        threshold=threshold,
        subject="/",
        suggest_retention_reduction=(
            observed > thresholds.disk_warning_pct and retention_days > MIN_RETENTION_DAYS
        ),
    )


def evaluate(
    metrics: MetricSnapshot,
    thresholds: AlertThresholds,
    retention_days: int,
) -> Tuple[List[Alert], int]:
    """Judge ``metrics`` against ``thresholds`` and return the alerts with their count."""
    alerts: List[Alert] = []

    candidates = (
        _warning_alert("memory", metrics.memory_used_pct, thresholds.memory_warning_pct),
        _warning_alert("cpu", metrics.cpu_used_pct, thresholds.cpu_warning_pct),
        _disk_alert(metrics.disk_used_pct, thresholds, retention_days),
    )
    alerts.extend(alert for alert in candidates if alert is not None)

    for service, raw_status in metrics.service_statuses.items():
        status = ServiceStatus(raw_status)
        if status is ServiceStatus.DOWN:
            severity = AlertSeverity.CRITICAL
        elif status is ServiceStatus.DEGRADED:
            severity = AlertSeverity.WARNING
        else:
            continue
        alerts.append(
            Alert(
                severity=severity,
                metric="service",
                observed_value=status.value,
                threshold=ServiceStatus.UP.value,
                subject=service,
            )
        )

    alerts.extend(_search_engine_alerts(metrics, retention_days))

    return alerts, len(alerts)


def _search_engine_alerts(metrics: MetricSnapshot, retention_days: int) -> List[Alert]:
    """Heap, index count and I/O wait; each is skipped when it was not sampled."""
    alerts: List[Alert] = []

    heap = metrics.heap_used_pct
    if heap is not None and heap > HEAP_WARNING_PCT:
        critical = heap > HEAP_CRITICAL_PCT
        alerts.append(
            Alert(
                severity=AlertSeverity.CRITICAL if critical else AlertSeverity.WARNING,
                metric="heap",
                observed_value=heap,
                threshold=HEAP_CRITICAL_PCT if critical else HEAP_WARNING_PCT,
                subject="elasticsearch",
            )
        )

    if metrics.index_count is not None and metrics.index_count > retention_days:
        alerts.append(
            Alert(
                severity=AlertSeverity.WARNING,
                metric="index_count",
                observed_value=metrics.index_count,
                threshold=retention_days,
                subject="netflow-*",
            )
        )

    if metrics.io_wait_pct is not None and metrics.io_wait_pct > IO_WAIT_WARNING_PCT:
        alerts.append(
            Alert(
                severity=AlertSeverity.WARNING,
                metric="io_wait",
                observed_value=metrics.io_wait_pct,
                threshold=IO_WAIT_WARNING_PCT,
                subject="system",
            )
        )

    return alerts
