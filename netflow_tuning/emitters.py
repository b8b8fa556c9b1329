"""
Serialisation of a :class:`ParameterSet` into the stack's configuration files.

The renderers are pure and deterministic; :func:`write_artifacts` is the only
function touching the filesystem and holds an exclusive lock on the output
directory so two planning runs never interleave their writes.
"""

from __future__ import annotations

import fcntl
import logging
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List

import yaml

from .models import HardwareFacts, ParameterSet

logger = logging.getLogger(__name__)


ELASTIC_VERSION = "8.15.0"
ELASTICSEARCH_PORT = 9200
KIBANA_PORT = 5601
NETFLOW_PORT = 2055
INTERNAL_NETWORKS = ["private", "10.0.0.0/8", "172.16.0.0/12", "192.168.0.0/16"]
LOCK_NAME = ".netflow-tuning.lock"


@dataclass
class ArtifactWrite:
    """Files written by one :func:`write_artifacts` call."""

    output_dir: Path
    files: List[Path] = field(default_factory=list)

    def to_dict(self) -> Dict[str, object]:
        return {
            "output_dir": str(self.output_dir),
            "files": [str(path.relative_to(self.output_dir)) for path in self.files],
        }


def render_env_manifest(facts: HardwareFacts, params: ParameterSet) -> str:
    """Render the flat ``KEY=value`` manifest consumed by docker compose."""
    search, dashboard, shipper = params.search, params.dashboard, params.shipper
    entries = [
        ("ELASTIC_VERSION", ELASTIC_VERSION),
        ("ELASTICSEARCH_PORT", ELASTICSEARCH_PORT),
        ("KIBANA_PORT", KIBANA_PORT),
        ("NETFLOW_PORT", NETFLOW_PORT),
        ("TOTAL_RAM_GB", facts.ram_gb),
        ("TOTAL_RAM_MB", facts.ram_mb),
        ("CPU_CORES", facts.cpu_cores),
        ("DISK_TYPE", facts.disk_type.value),
        ("ES_HEAP_SIZE", search.heap_size),
        ("ES_MEMORY_LIMIT", search.memory_limit),
        ("ES_MEMORY_RESERVATION", search.memory_reservation),
        ("ES_PROCESSORS", search.processor_count),
        ("KIBANA_MEMORY_LIMIT", dashboard.memory_limit),
        ("KIBANA_MEMORY_RESERVATION", dashboard.memory_reservation),
        ("KIBANA_NODE_OPTIONS", dashboard.runtime_heap_option),
        ("FILEBEAT_MEMORY_LIMIT", shipper.memory_limit),
        ("FILEBEAT_MEMORY_RESERVATION", shipper.memory_reservation),
        ("GOMAXPROCS", shipper.max_procs),
        ("INDEX_REFRESH_INTERVAL", search.refresh_interval),
        ("INDEX_TRANSLOG_SYNC_INTERVAL", search.translog_sync_interval),
        ("BULK_TIMEOUT", shipper.bulk_timeout),
        ("NETFLOW_QUEUE_SIZE", shipper.queue_events),
        ("BULK_SIZE", shipper.bulk_max_size),
        ("RETENTION_DAYS", params.retention.retention_days),
        ("DISK_THRESHOLD_WARNING", params.retention.disk_warning_pct),
        ("DISK_THRESHOLD_CRITICAL", params.retention.disk_critical_pct),
        ("IO_SCHEDULER", params.host.io_scheduler),
        ("INTERNAL_NETWORKS", "private"),
    ]
    lines = [
        "# NetFlow ELK Stack Configuration",
        f"# System: {facts.ram_gb}GB RAM, {facts.cpu_cores} cores, {facts.disk_type.value} storage",
    ]
    lines.extend(f"{key}={value}" for key, value in entries)
    return "\n".join(lines) + "\n"


def render_elasticsearch_config(params: ParameterSet) -> Dict[str, Any]:
    search = params.search
    return {
        "cluster.name": "netflow-cluster",
        "node.name": "netflow-node-01",
        "network.host": "0.0.0.0",
        "http.port": ELASTICSEARCH_PORT,
        "discovery.type": "single-node",
        "xpack.security.enabled": False,
        "xpack.security.enrollment.enabled": False,
        "xpack.ml.enabled": False,
        "xpack.monitoring.enabled": False,
        "xpack.watcher.enabled": False,
        "bootstrap.memory_lock": False,
        "indices.memory.index_buffer_size": f"{search.index_buffer_pct}%",
        "indices.memory.min_index_buffer_size": search.min_index_buffer,
        "indices.fielddata.cache.size": f"{search.field_data_cache_pct}%",
        "indices.queries.cache.size": f"{search.query_cache_pct}%",
        "thread_pool.write.queue_size": search.write_queue_size,
        "thread_pool.search.queue_size": search.search_queue_size,
        "thread_pool.get.queue_size": search.get_queue_size,
        "action.auto_create_index": True,
        "action.destructive_requires_name": True,
        "cluster.routing.allocation.disk.threshold_enabled": True,
        "cluster.routing.allocation.disk.watermark.low": f"{search.disk_watermark_low_pct}%",
        "cluster.routing.allocation.disk.watermark.high": f"{search.disk_watermark_high_pct}%",
        "cluster.routing.allocation.disk.watermark.flood_stage": f"{search.disk_watermark_flood_pct}%",
        "cluster.routing.allocation.node_concurrent_recoveries": search.concurrent_recoveries,
        "indices.recovery.max_bytes_per_sec": search.recovery_bandwidth,
        "processors": search.processor_count,
    }


def render_kibana_config(params: ParameterSet) -> Dict[str, Any]:
    dashboard = params.dashboard
    return {
        "server.host": "0.0.0.0",
        "server.port": KIBANA_PORT,
        "server.name": "netflow-kibana",
        "elasticsearch.hosts": [f"http://elasticsearch:{ELASTICSEARCH_PORT}"],
        "xpack.security.enabled": False,
        "server.maxPayload": dashboard.payload_max_bytes,
        "elasticsearch.requestTimeout": dashboard.request_timeout_ms,
        "elasticsearch.shardTimeout": dashboard.shard_timeout_ms,
        "logging.quiet": dashboard.quiet_logging,
    }


def render_filebeat_config(params: ParameterSet) -> Dict[str, Any]:
    shipper = params.shipper
    return {
        "filebeat.modules": [
            {
                "module": "netflow",
                "log": {
                    "enabled": True,
                    "var.netflow_host": "0.0.0.0",
                    "var.netflow_port": NETFLOW_PORT,
                    "var.internal_networks": list(INTERNAL_NETWORKS),
                },
            }
        ],
        "output.elasticsearch": {
            "hosts": [f"elasticsearch:{ELASTICSEARCH_PORT}"],
            "index": "netflow-%{+yyyy.MM.dd}",
            "bulk_max_size": shipper.bulk_max_size,
            "timeout": shipper.bulk_timeout,
            "worker": shipper.worker_count,
        },
        "setup.kibana": {"host": f"kibana:{KIBANA_PORT}"},
        "setup.template.settings": {
            "index.number_of_shards": 1,
            "index.number_of_replicas": 0,
            "index.refresh_interval": params.search.refresh_interval,
            "index.codec": "best_compression",
        },
        "setup.ilm.enabled": True,
        "setup.ilm.rollover_alias": "netflow",
        "setup.ilm.pattern": "netflow-*",
        "setup.ilm.policy": "netflow-policy",
        "logging.level": "info",
        "logging.to_files": True,
        "logging.files": {
            "path": "/usr/share/filebeat/logs",
            "name": "filebeat",
            "keepfiles": 7,
            "permissions": "0644",
        },
        "processors": [
            {"add_host_metadata": {"when.not.contains.tags": "forwarded"}},
            {
                "drop_fields": {
                    "fields": ["agent", "ecs", "host.architecture", "host.os.family"],
                    "ignore_missing": True,
                }
            },
        ],
        "queue.mem": {
            "events": shipper.queue_events,
            "flush.min_events": shipper.flush_min_events,
            "flush.timeout": "5s",
        },
    }


def render_netflow_module() -> List[Dict[str, Any]]:
    """The ``modules.d/netflow.yml`` entry; it does not depend on the hardware."""
    return [
        {
            "module": "netflow",
            "log": {
                "enabled": True,
                "var": {
                    "netflow_host": "0.0.0.0",
                    "netflow_port": NETFLOW_PORT,
                    "internal_networks": list(INTERNAL_NETWORKS),
                },
            },
        }
    ]


def render_sysctl_config(facts: HardwareFacts, params: ParameterSet) -> str:
    """Render ``/etc/sysctl.d/99-elasticsearch.conf``; applying it is left to the operator."""
    host = params.host
    lines = [
        "# Elasticsearch optimizations",
        f"# System: {facts.ram_gb}GB RAM, {facts.cpu_cores} CPU cores, {facts.disk_type.value} storage",
        f"# Recommended I/O scheduler: {host.io_scheduler}",
        f"vm.max_map_count={host.vm_max_map_count}",
        "vm.swappiness=1",
        "vm.dirty_ratio=15",
        "vm.dirty_background_ratio=5",
        "",
        "# Network optimizations for NetFlow",
        f"net.core.rmem_max={host.network_buffer_bytes}",
        "net.core.rmem_default=65536",
        f"net.core.wmem_max={host.network_buffer_bytes}",
        "net.core.wmem_default=65536",
        f"net.core.netdev_max_backlog={host.netdev_backlog}",
        "net.ipv4.udp_mem={} {} {}".format(*host.udp_mem),
        "net.ipv4.udp_rmem_min=8192",
        "net.ipv4.udp_wmem_min=8192",
        "",
        "# File system",
        f"fs.file-max={host.file_max}",
        f"fs.nr_open={host.file_max}",
        "",
        "# Process limits",
        f"kernel.pid_max={host.pid_max}",
        f"kernel.threads-max={host.threads_max}",
    ]
    return "\n".join(lines) + "\n"


def render_limits_config(params: ParameterSet) -> str:
    """Render ``/etc/security/limits.d/99-elasticsearch.conf``."""
    nofile = params.host.nofile_limit
    lines = ["# Limits for the elasticsearch user and for root (Docker)"]
    for user in ("elasticsearch", "root"):
        lines.extend(
            [
                f"{user} soft memlock unlimited",
                f"{user} hard memlock unlimited",
                f"{user} soft nofile {nofile}",
                f"{user} hard nofile {nofile}",
            ]
        )
    lines.extend(["elasticsearch soft nproc 4096", "elasticsearch hard nproc 4096"])
    return "\n".join(lines) + "\n"


def dump_yaml(data: Any) -> str:
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False)


@contextmanager
def _exclusive_lock(directory: Path) -> Iterator[None]:
    with open(directory / LOCK_NAME, "w") as handle:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def _atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True, mode=0o755)
    with tempfile.NamedTemporaryFile("w", dir=path.parent, prefix=f".{path.name}.", delete=False) as handle:
        handle.write(content)
        tmp_path = Path(handle.name)
    os.replace(tmp_path, path)


def write_artifacts(facts: HardwareFacts, params: ParameterSet, output_dir: Path) -> ArtifactWrite:
    """Write the env manifest, the service configs and the host tuning files under ``output_dir``."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True, mode=0o755)

    artifacts = {
        output_dir / ".env": render_env_manifest(facts, params),
        output_dir / "configs" / "elasticsearch" / "elasticsearch.yml": dump_yaml(render_elasticsearch_config(params)),
        output_dir / "configs" / "kibana" / "kibana.yml": dump_yaml(render_kibana_config(params)),
        output_dir / "configs" / "filebeat" / "filebeat.yml": dump_yaml(render_filebeat_config(params)),
        output_dir / "configs" / "filebeat" / "modules.d" / "netflow.yml": dump_yaml(render_netflow_module()),
        output_dir / "host" / "sysctl.d" / "99-elasticsearch.conf": render_sysctl_config(facts, params),
        output_dir / "host" / "limits.d" / "99-elasticsearch.conf": render_limits_config(params),
    }

    written = ArtifactWrite(output_dir=output_dir)
    with _exclusive_lock(output_dir):
        for path, content in artifacts.items():
            _atomic_write(path, content)
            written.files.append(path)
            logger.info("Wrote %s", path)
    return written
