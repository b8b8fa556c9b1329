"""
Configuration helpers for the NetFlow tuning tools.

All environment lookups are centralised here.  Use :func:`get_settings` to
obtain a cached :class:`Settings` object, and :func:`configure_settings` to
apply explicit overrides (the CLI does this from its options).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from .planner import DEFAULT_MINIMUM_SPACE_GB

ENV_PREFIX = "NETFLOW_TUNING_"

DEFAULT_CONTAINERS = "elasticsearch=netflow-elasticsearch,kibana=netflow-kibana,filebeat=netflow-filebeat"


def _parse_containers(value: str) -> Dict[str, str]:
    """Parse ``service=container`` pairs, keeping their order."""
    containers: Dict[str, str] = {}
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        service, _, container = item.partition("=")
        service = service.strip()
        containers[service] = container.strip() or service
    return containers


def _env(name: str) -> Optional[str]:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


@dataclass(frozen=True)
class Settings:
    """Resolved settings for planning, artifact output and monitoring."""

    project_root: Path
    output_dir: Path
    elasticsearch_url: str = "http://localhost:9200"
    kibana_url: str = "http://localhost:5601"
    minimum_space_gb: float = DEFAULT_MINIMUM_SPACE_GB
    probe_timeout: float = 10.0
    log_level: str = "INFO"
    containers: Dict[str, str] = field(default_factory=lambda: _parse_containers(DEFAULT_CONTAINERS))

    @classmethod
    def load(cls) -> "Settings":
        project_root = Path(_env("ROOT") or Path.cwd()).expanduser().resolve()
        output_dir = Path(_env("OUTPUT_DIR") or project_root).expanduser().resolve()

        try:
            minimum_space_gb = float(_env("MIN_FREE_SPACE_GB") or DEFAULT_MINIMUM_SPACE_GB)
            probe_timeout = float(_env("PROBE_TIMEOUT") or 10.0)
        except ValueError as exc:
            raise ValueError(f"Invalid numeric setting: {exc}") from exc

        log_level = (_env("LOG_LEVEL") or "INFO").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"Unknown log level: {log_level}")

        return cls(
            project_root=project_root,
            output_dir=output_dir,
            elasticsearch_url=(_env("ELASTICSEARCH_URL") or "http://localhost:9200").rstrip("/"),
            kibana_url=(_env("KIBANA_URL") or "http://localhost:5601").rstrip("/"),
            minimum_space_gb=minimum_space_gb,
            probe_timeout=probe_timeout,
            log_level=log_level,
            containers=_parse_containers(_env("CONTAINERS") or DEFAULT_CONTAINERS),
        )

    def to_dict(self) -> Dict[str, object]:
        return {
            "project_root": str(self.project_root),
            "output_dir": str(self.output_dir),
            "elasticsearch_url": self.elasticsearch_url,
            "kibana_url": self.kibana_url,
            "minimum_space_gb": self.minimum_space_gb,
            "probe_timeout": self.probe_timeout,
            "log_level": self.log_level,
            "containers": dict(self.containers),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.load()


def configure_settings(
    project_root: str | Path | None = None,
    output_dir: str | Path | None = None,
    elasticsearch_url: str | None = None,
    kibana_url: str | None = None,
    log_level: str | None = None,
) -> Settings:
    overrides = {
        "ROOT": project_root,
        "OUTPUT_DIR": output_dir,
        "ELASTICSEARCH_URL": elasticsearch_url,
        "KIBANA_URL": kibana_url,
        "LOG_LEVEL": log_level,
    }
    for name, value in overrides.items():
        if value is not None:
            os.environ[ENV_PREFIX + name] = str(value)
    get_settings.cache_clear()
    return get_settings()
