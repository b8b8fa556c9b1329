from __future__ import annotations

from typing import Callable

import pytest

from netflow_tuning.config import get_settings
from netflow_tuning.models import DiskType, HardwareFacts


@pytest.fixture
def isolated_settings(tmp_path, monkeypatch):
    """Point settings at a scratch directory and drop the cached instance."""
    monkeypatch.setenv("NETFLOW_TUNING_ROOT", str(tmp_path))
    monkeypatch.setenv("NETFLOW_TUNING_OUTPUT_DIR", str(tmp_path / "out"))
    monkeypatch.delenv("NETFLOW_TUNING_LOG_LEVEL", raising=False)
    monkeypatch.delenv("NETFLOW_TUNING_MIN_FREE_SPACE_GB", raising=False)
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest.fixture
def make_facts() -> Callable[..., HardwareFacts]:
    def factory(
        ram_gb: float = 8,
        cpu_cores: int = 4,
        disk_type: DiskType = DiskType.SSD,
        available_space_gb: float = 120,
        **extra,
    ) -> HardwareFacts:
        extra.setdefault("ram_mb", int(ram_gb * 1024))
        extra.setdefault("cpu_threads", cpu_cores)
        return HardwareFacts(
            ram_gb=ram_gb,
            cpu_cores=cpu_cores,
            disk_type=disk_type,
            available_space_gb=available_space_gb,
            **extra,
        )

    return factory
