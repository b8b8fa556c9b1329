"""Rendering and writing of the env manifest and service configs."""

from __future__ import annotations

import yaml

from netflow_tuning.emitters import (
    LOCK_NAME,
    render_elasticsearch_config,
    render_env_manifest,
    render_filebeat_config,
    render_kibana_config,
    render_limits_config,
    render_netflow_module,
    render_sysctl_config,
    write_artifacts,
)
from netflow_tuning.models import DiskType
from netflow_tuning.planner import plan


def _manifest(text: str) -> dict:
    return dict(line.split("=", 1) for line in text.splitlines() if line and not line.startswith("#"))


def test_env_manifest_carries_planned_values(make_facts) -> None:
    facts = make_facts(ram_gb=8, cpu_cores=4, disk_type=DiskType.SSD, available_space_gb=120)
    entries = _manifest(render_env_manifest(facts, plan(facts)))

    assert entries["ES_HEAP_SIZE"] == "3g"
    assert entries["ES_MEMORY_LIMIT"] == "4g"
    assert entries["ES_PROCESSORS"] == "4"
    assert entries["DISK_TYPE"] == "ssd"
    assert entries["RETENTION_DAYS"] == "60"
    assert entries["DISK_THRESHOLD_WARNING"] == "80"
    assert entries["DISK_THRESHOLD_CRITICAL"] == "90"
    assert entries["INDEX_REFRESH_INTERVAL"] == "5s"
    assert entries["IO_SCHEDULER"] == "none"


def test_service_configs_reflect_parameters(make_facts) -> None:
    params = plan(make_facts(ram_gb=100, cpu_cores=16, disk_type=DiskType.HDD, available_space_gb=500))

    search = render_elasticsearch_config(params)
    assert search["processors"] == 8
    assert search["discovery.type"] == "single-node"
    assert search["indices.recovery.max_bytes_per_sec"] == "50mb"
    assert search["cluster.routing.allocation.disk.watermark.flood_stage"] == "95%"

    dashboard = render_kibana_config(params)
    assert dashboard["elasticsearch.requestTimeout"] == params.dashboard.request_timeout_ms

    shipper = render_filebeat_config(params)
    assert shipper["output.elasticsearch"]["timeout"] == "120s"
    assert shipper["queue.mem"]["events"] == params.shipper.queue_events
    assert shipper["setup.template.settings"]["index.refresh_interval"] == "30s"


def test_write_artifacts_creates_all_files(tmp_path, make_facts) -> None:
    facts = make_facts()
    params = plan(facts)

    written = write_artifacts(facts, params, tmp_path / "out")

    assert written.to_dict()["files"] == [
        ".env",
        "configs/elasticsearch/elasticsearch.yml",
        "configs/kibana/kibana.yml",
        "configs/filebeat/filebeat.yml",
        "configs/filebeat/modules.d/netflow.yml",
        "host/sysctl.d/99-elasticsearch.conf",
        "host/limits.d/99-elasticsearch.conf",
    ]
    for path in written.files:
        assert path.is_file()
    assert (tmp_path / "out" / LOCK_NAME).exists()

    loaded = yaml.safe_load((tmp_path / "out" / "configs" / "elasticsearch" / "elasticsearch.yml").read_text())
    assert loaded == render_elasticsearch_config(params)
    assert (tmp_path / "out" / ".env").read_text() == render_env_manifest(facts, params)


def test_rewriting_replaces_previous_artifacts(tmp_path, make_facts) -> None:
    small = make_facts(ram_gb=4)
    large = make_facts(ram_gb=32)

    write_artifacts(small, plan(small), tmp_path)
    write_artifacts(large, plan(large), tmp_path)

    entries = _manifest((tmp_path / ".env").read_text())
    assert entries["TOTAL_RAM_GB"] == "32"
    assert not [path for path in tmp_path.rglob(".*.yml.*")]


def test_filebeat_config_keeps_logging_and_processors(make_facts) -> None:
    shipper = render_filebeat_config(plan(make_facts()))

    assert shipper["logging.level"] == "info"
    assert shipper["logging.files"]["keepfiles"] == 7
    assert [list(processor) for processor in shipper["processors"]] == [["add_host_metadata"], ["drop_fields"]]
    assert shipper["processors"][1]["drop_fields"]["ignore_missing"] is True


def test_netflow_module_file(tmp_path, make_facts) -> None:
    facts = make_facts()
    write_artifacts(facts, plan(facts), tmp_path)

    loaded = yaml.safe_load((tmp_path / "configs" / "filebeat" / "modules.d" / "netflow.yml").read_text())
    assert loaded == render_netflow_module()
    assert loaded[0]["module"] == "netflow"
    assert loaded[0]["log"]["var"]["netflow_port"] == 2055


def _sysctl(text: str) -> dict:
    return dict(line.split("=", 1) for line in text.splitlines() if line and not line.startswith("#"))


def test_sysctl_config_for_mid_sized_ssd_host(make_facts) -> None:
    facts = make_facts(ram_gb=8, cpu_cores=4, disk_type=DiskType.SSD)
    text = render_sysctl_config(facts, plan(facts))
    entries = _sysctl(text)

    assert entries["vm.max_map_count"] == "262144"
    assert entries["vm.swappiness"] == "1"
    assert entries["net.core.rmem_max"] == str(256 * 1024 * 1024)
    assert entries["net.core.netdev_max_backlog"] == "10000"
    assert entries["net.ipv4.udp_mem"] == "204800 1747600 33554432"
    assert entries["fs.file-max"] == "1000000"
    assert entries["kernel.pid_max"] == "131072"
    assert entries["kernel.threads-max"] == "262144"
    assert "# Recommended I/O scheduler: none" in text


def test_sysctl_config_for_small_hdd_host(make_facts) -> None:
    facts = make_facts(ram_gb=2, cpu_cores=2, disk_type=DiskType.HDD, available_space_gb=40)
    text = render_sysctl_config(facts, plan(facts))
    entries = _sysctl(text)

    assert entries["vm.max_map_count"] == "65536"
    assert entries["net.ipv4.udp_mem"] == "51200 436900 8388608"
    assert entries["fs.file-max"] == "500000"
    assert "# Recommended I/O scheduler: mq-deadline" in text


def test_limits_config_covers_elasticsearch_and_root(make_facts) -> None:
    lines = render_limits_config(plan(make_facts(ram_gb=4))).splitlines()

    assert "elasticsearch soft nofile 100000" in lines
    assert "root hard nofile 100000" in lines
    assert "elasticsearch hard memlock unlimited" in lines
    assert "elasticsearch soft nproc 4096" in lines
