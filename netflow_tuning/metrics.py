"""
Live metric sampling for the monitoring tick.

Numeric metrics come from psutil, service health from the Docker CLI and the
services' status endpoints, heap usage and index count from the search
engine's node stats and cat APIs.  A probe that cannot answer raises
:class:`MetricUnavailableError`; :func:`sample_metrics` records the metric as
``None`` (numeric) or ``down`` (service) and carries on with the others.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Callable, Dict, Optional

import httpx
import psutil

from .config import Settings, get_settings
from .errors import MetricUnavailableError
from .models import MetricSnapshot, ServiceStatus

logger = logging.getLogger(__name__)


CLUSTER_HEALTH_STATUS = {
    "green": ServiceStatus.UP,
    "yellow": ServiceStatus.DEGRADED,
    "red": ServiceStatus.DOWN,
}


def probe_memory_pct() -> float:
    try:
        return float(psutil.virtual_memory().percent)
    except (OSError, RuntimeError) as exc:
        raise MetricUnavailableError("memory", str(exc)) from exc


def probe_cpu_pct(interval: float = 1.0) -> float:
    try:
        return float(psutil.cpu_percent(interval=interval))
    except (OSError, RuntimeError) as exc:
        raise MetricUnavailableError("cpu", str(exc)) from exc


def probe_disk_pct(root: str = "/") -> float:
    try:
        return float(psutil.disk_usage(root).percent)
    except OSError as exc:
        raise MetricUnavailableError("disk", str(exc)) from exc


def probe_container(container: str, timeout: float = 10.0) -> ServiceStatus:
    """Map ``docker inspect`` state and health onto a :class:`ServiceStatus`."""
    cmd = [
        "docker",
        "inspect",
        "--format",
        "{{.State.Status}} {{if .State.Health}}{{.State.Health.Status}}{{else}}none{{end}}",
        container,
    ]
    try:
        proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, text=True, timeout=timeout)
    except FileNotFoundError as exc:
        raise MetricUnavailableError(container, "docker CLI not available") from exc
    except subprocess.TimeoutExpired as exc:
        raise MetricUnavailableError(container, "docker inspect timed out") from exc

    if proc.returncode != 0:
        # Missing containers are reported by docker as an error, which means not running.
        logger.debug("docker inspect %s failed: %s", container, proc.stderr.strip())
        return ServiceStatus.DOWN

    state, _, health = proc.stdout.strip().partition(" ")
    if state != "running":
        return ServiceStatus.DOWN
    if health == "unhealthy":
        return ServiceStatus.DEGRADED
    return ServiceStatus.UP


def probe_cluster_health(base_url: str, timeout: float = 10.0) -> ServiceStatus:
    try:
        response = httpx.get(f"{base_url}/_cluster/health", timeout=timeout)
        response.raise_for_status()
        status = response.json().get("status")
    except (httpx.HTTPError, ValueError) as exc:
        raise MetricUnavailableError("elasticsearch", str(exc)) from exc

    if status not in CLUSTER_HEALTH_STATUS:
        raise MetricUnavailableError("elasticsearch", f"unexpected cluster status {status!r}")
    return CLUSTER_HEALTH_STATUS[status]


def probe_dashboard_status(base_url: str, timeout: float = 10.0) -> ServiceStatus:
    try:
        response = httpx.get(f"{base_url}/api/status", timeout=timeout)
        response.raise_for_status()
        overall = (response.json().get("status") or {}).get("overall") or {}
    except (httpx.HTTPError, ValueError, AttributeError) as exc:
        raise MetricUnavailableError("kibana", str(exc)) from exc

    if overall.get("level") == "available":
        return ServiceStatus.UP
    return ServiceStatus.DEGRADED


def probe_io_wait_pct(interval: float = 1.0) -> float:
    try:
        times = psutil.cpu_times_percent(interval=interval)
    except (OSError, RuntimeError) as exc:
        raise MetricUnavailableError("io_wait", str(exc)) from exc
    # iowait is only reported on Linux.
    if not hasattr(times, "iowait"):
        raise MetricUnavailableError("io_wait", "not reported on this platform")
    return float(times.iowait)


def probe_heap_pct(base_url: str, timeout: float = 10.0) -> float:
    """Highest JVM heap usage across the cluster's nodes."""
    try:
        response = httpx.get(f"{base_url}/_nodes/stats/jvm", timeout=timeout)
        response.raise_for_status()
        nodes = response.json().get("nodes") or {}
        usages = [node["jvm"]["mem"]["heap_used_percent"] for node in nodes.values()]
    except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as exc:
        raise MetricUnavailableError("heap", str(exc)) from exc

    if not usages:
        raise MetricUnavailableError("heap", "no nodes reported")
    return float(max(usages))


def probe_index_count(base_url: str, pattern: str = "netflow-*", timeout: float = 10.0) -> int:
    try:
        response = httpx.get(
            f"{base_url}/_cat/indices/{pattern}",
            params={"format": "json", "h": "index"},
            timeout=timeout,
        )
        response.raise_for_status()
        indices = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise MetricUnavailableError("index_count", str(exc)) from exc

    if not isinstance(indices, list):
        raise MetricUnavailableError("index_count", "unexpected response shape")
    return len(indices)


def _numeric(probe: Callable[[], float]) -> Optional[float]:
    try:
        return probe()
    except MetricUnavailableError as exc:
        logger.warning("%s", exc)
        return None


def _service(probe: Callable[[], ServiceStatus]) -> ServiceStatus:
    try:
        return probe()
    except MetricUnavailableError as exc:
        logger.warning("%s - treating service as down", exc)
        return ServiceStatus.DOWN


def sample_metrics(settings: Optional[Settings] = None, root: str = "/", cpu_interval: float = 1.0) -> MetricSnapshot:
    """Take one :class:`MetricSnapshot` of this machine and its services."""
    settings = settings or get_settings()

    endpoints: Dict[str, Callable[[], ServiceStatus]] = {
        "elasticsearch": lambda: probe_cluster_health(settings.elasticsearch_url, settings.probe_timeout),
        "kibana": lambda: probe_dashboard_status(settings.kibana_url, settings.probe_timeout),
    }

    statuses: Dict[str, ServiceStatus] = {}
    for service, container in settings.containers.items():
        status = _service(lambda: probe_container(container, settings.probe_timeout))
        # The worse of container state and API health wins.
        if service in endpoints and status is not ServiceStatus.DOWN:
            status = status.worst(_service(endpoints[service]))
        statuses[service] = status

    return MetricSnapshot(
        memory_used_pct=_numeric(probe_memory_pct),
        cpu_used_pct=_numeric(lambda: probe_cpu_pct(cpu_interval)),
        disk_used_pct=_numeric(lambda: probe_disk_pct(root)),
        service_statuses=statuses,
        heap_used_pct=_numeric(lambda: probe_heap_pct(settings.elasticsearch_url, settings.probe_timeout)),
        index_count=_numeric(lambda: probe_index_count(settings.elasticsearch_url, timeout=settings.probe_timeout)),
        io_wait_pct=_numeric(lambda: probe_io_wait_pct(cpu_interval)),
    )
