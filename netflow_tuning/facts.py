"""
Hardware fact collection.

Each probe raises :class:`UnknownFactError` when it cannot determine its
fact.  :func:`collect_facts` absorbs those errors, substitutes a conservative
default and records the fact name, so collection never fails as a whole.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Tuple

import psutil

from .errors import UnknownFactError
from .models import (
    FACT_AVAILABLE_SPACE,
    FACT_CONTAINER,
    FACT_CPU,
    FACT_DISK_TYPE,
    FACT_RAM,
    DiskType,
    HardwareFacts,
)

logger = logging.getLogger(__name__)


GIB = 1024 ** 3
MIB = 1024 ** 2

SYS_BLOCK = Path("/sys/block")
PARTITION_SUFFIX_RE = re.compile(r"(?<=[a-z])\d+$")
NVME_PARTITION_RE = re.compile(r"p\d+$")


def probe_memory() -> Tuple[int, int]:
    """Return total RAM as whole ``(gigabytes, megabytes)``."""
    try:
        total = psutil.virtual_memory().total
    except (OSError, RuntimeError) as exc:
        raise UnknownFactError(FACT_RAM, str(exc)) from exc
    if not total:
        raise UnknownFactError(FACT_RAM, "reported total is zero")
    return total // GIB, total // MIB


def probe_cpu() -> Tuple[int, int]:
    """Return ``(cores, threads)``; cores fall back to the logical count."""
    threads = psutil.cpu_count(logical=True)
    cores = psutil.cpu_count(logical=False) or threads
    if not cores or not threads:
        raise UnknownFactError(FACT_CPU, "cpu count unavailable")
    return cores, threads


def _root_device(root: str) -> str:
    for partition in psutil.disk_partitions(all=False):
        if partition.mountpoint == root:
            return partition.device
    raise UnknownFactError(FACT_DISK_TYPE, f"no block device mounted at {root}")


def probe_disk_type(root: str = "/", sys_block: Path = SYS_BLOCK) -> DiskType:
    """Classify the device behind ``root`` from its name and rotational flag."""
    device = Path(_root_device(root)).name
    if device.startswith("nvme"):
        return DiskType.NVME

    base = NVME_PARTITION_RE.sub("", device) if device.startswith("mmcblk") else PARTITION_SUFFIX_RE.sub("", device)
    rotational = sys_block / base / "queue" / "rotational"
    try:
        flag = rotational.read_text().strip()
    except OSError as exc:
        raise UnknownFactError(FACT_DISK_TYPE, f"cannot read {rotational}") from exc

    if flag == "0":
        return DiskType.SSD
    if flag == "1":
        return DiskType.HDD
    raise UnknownFactError(FACT_DISK_TYPE, f"unexpected rotational flag {flag!r}")


def probe_available_space(root: str = "/") -> int:
    try:
        return psutil.disk_usage(root).free // GIB
    except OSError as exc:
        raise UnknownFactError(FACT_AVAILABLE_SPACE, str(exc)) from exc


def probe_containerized(dockerenv: Path = Path("/.dockerenv"), cgroup: Path = Path("/proc/1/cgroup")) -> bool:
    if dockerenv.exists():
        return True
    try:
        return "docker" in cgroup.read_text()
    except OSError as exc:
        raise UnknownFactError(FACT_CONTAINER, str(exc)) from exc


def collect_facts(root: str = "/", sys_block: Path = SYS_BLOCK) -> HardwareFacts:
    """Take a :class:`HardwareFacts` snapshot of the local machine."""
    unknown: List[str] = []

    def substitute(exc: UnknownFactError) -> None:
        logger.warning("%s - using a conservative default", exc)
        unknown.append(exc.fact)

    try:
        ram_gb, ram_mb = probe_memory()
    except UnknownFactError as exc:
        substitute(exc)
        ram_gb, ram_mb = 0, 0

    try:
        cpu_cores, cpu_threads = probe_cpu()
    except UnknownFactError as exc:
        substitute(exc)
        cpu_cores, cpu_threads = 1, 1

    try:
        disk_type = probe_disk_type(root, sys_block)
    except UnknownFactError as exc:
        substitute(exc)
        disk_type = DiskType.UNKNOWN

    try:
        available_space_gb = probe_available_space(root)
    except UnknownFactError as exc:
        substitute(exc)
        available_space_gb = 0

    try:
        is_containerized = probe_containerized()
    except UnknownFactError as exc:
        substitute(exc)
        is_containerized = False

    facts = HardwareFacts(
        ram_gb=ram_gb,
        ram_mb=ram_mb,
        cpu_cores=cpu_cores,
        cpu_threads=cpu_threads,
        disk_type=disk_type,
        available_space_gb=available_space_gb,
        is_containerized=is_containerized,
        unknown_facts=tuple(unknown),
    )
    logger.info(
        "Detected %sGB RAM (%sMB), %s cores / %s threads, %s storage, %sGB free, container=%s",
        ram_gb,
        ram_mb,
        cpu_cores,
        cpu_threads,
        disk_type.value,
        available_space_gb,
        is_containerized,
    )
    return facts
