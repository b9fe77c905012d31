"""Collect a best-effort inventory of the host for the aichat role document."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
import locale
import logging
import os
import platform
import re
import shutil
import socket
from typing import Callable, List, Optional, TypeVar

import psutil

from .commands import run_command

logger = logging.getLogger(__name__)

T = TypeVar("T")

_VIRT_HINTS = ("virtualbox", "vmware", "kvm", "qemu", "hyper-v", "virtual machine", "xen", "parallels", "bochs")


@dataclass
class DiskInfo:
    mount_point: str
    filesystem: str
    total_bytes: int
    used_bytes: int
    percent: float


@dataclass
class NetworkAdapter:
    name: str
    ipv4: List[str] = field(default_factory=list)


@dataclass
class SystemInventory:
    timestamp: datetime
    hostname: Optional[str] = None
    os_name: Optional[str] = None
    os_version: Optional[str] = None
    os_build: Optional[str] = None
    architecture: Optional[str] = None
    cpu_model: Optional[str] = None
    cpu_cores: Optional[int] = None
    cpu_threads: Optional[int] = None
    cpu_clock_mhz: Optional[float] = None
    gpus: Optional[List[str]] = None
    memory_total: Optional[int] = None
    memory_available: Optional[int] = None
    disks: List[DiskInfo] = field(default_factory=list)
    network: List[NetworkAdapter] = field(default_factory=list)
    timezone: Optional[str] = None
    locale: Optional[str] = None
    virtualization: Optional[str] = None
    package_manager: Optional[str] = None


def gather_inventory(package_manager: Optional[str] = None) -> SystemInventory:
    """Collect the inventory; a failing probe only blanks its own fields."""
    memory = _probe("memory", psutil.virtual_memory, None)
    cpu_freq = _probe("cpu frequency", psutil.cpu_freq, None)
    os_name, os_version, os_build = _probe("os release", _os_release, (None, None, None))

    return SystemInventory(
        timestamp=datetime.now().astimezone(),
        hostname=_probe("hostname", socket.gethostname, None),
        os_name=os_name,
        os_version=os_version,
        os_build=os_build,
        architecture=_probe("architecture", normalize_arch, None),
        cpu_model=_probe("cpu model", _cpu_model, None),
        cpu_cores=_probe("cpu cores", lambda: psutil.cpu_count(logical=False), None),
        cpu_threads=_probe("cpu threads", lambda: psutil.cpu_count(logical=True), None),
        cpu_clock_mhz=round(cpu_freq.max or cpu_freq.current, 0) if cpu_freq else None,
        gpus=_probe("gpu enumeration", _gpu_names, None),
        memory_total=memory.total if memory else None,
        memory_available=memory.available if memory else None,
        disks=_probe("disks", _disks, []),
        network=_probe("network adapters", _network_adapters, []),
        timezone=_probe("timezone", lambda: datetime.now().astimezone().tzname(), None),
        locale=_probe("locale", _locale_name, None),
        virtualization=_probe("virtualization", _virtualization, None),
        package_manager=package_manager,
    )


def normalize_arch(machine: Optional[str] = None) -> str:
    machine = (machine if machine is not None else platform.machine()).lower()
    aliases = {"amd64": "x86_64", "x64": "x86_64", "aarch64": "arm64", "armv8l": "arm64", "i686": "x86", "i386": "x86"}
    return aliases.get(machine, machine or "unknown")


def _probe(name: str, func: Callable[[], T], default: T) -> T:
    try:
        value = func()
    except Exception as exc:  # noqa: BLE001
        logger.warning("could not collect %s: %s", name, exc)
        return default
    return default if value is None else value


def _os_release() -> tuple[Optional[str], Optional[str], Optional[str]]:
    system = platform.system()
    if system == "Windows":
        release, version, _, _ = platform.win32_ver()
        return f"Windows {release}".strip(), release or None, version or None
    if system == "Darwin":
        mac_version = platform.mac_ver()[0]
        build = run_command(["sw_vers", "-buildVersion"])
        return "macOS", mac_version or None, build.stdout.strip() if build.ok else None
    if system == "Linux":
        info = platform.freedesktop_os_release()
        return info.get("NAME", "Linux"), info.get("VERSION_ID") or info.get("VERSION"), platform.release()
    return system or None, platform.release() or None, platform.version() or None


def _cpu_model() -> Optional[str]:
    system = platform.system()
    if system == "Linux":
        with open("/proc/cpuinfo", encoding="utf-8") as handle:
            for line in handle:
                if line.lower().startswith(("model name", "hardware")):
                    return line.split(":", 1)[1].strip()
    elif system == "Darwin":
        result = run_command(["sysctl", "-n", "machdep.cpu.brand_string"])
        if result.ok and result.stdout.strip():
            return result.stdout.strip()
    elif system == "Windows":
        result = _powershell("(Get-CimInstance Win32_Processor | Select-Object -First 1).Name")
        if result:
            return result[0]
    return platform.processor() or None


def _gpu_names() -> List[str]:
    system = platform.system()
    if system == "Windows":
        return _powershell("Get-CimInstance Win32_VideoController | ForEach-Object { $_.Name }")
    if system == "Darwin":
        result = run_command(["system_profiler", "SPDisplaysDataType"], timeout=20)
        if not result.ok:
            raise RuntimeError(result.error_summary())
        return [
            line.split(":", 1)[1].strip()
            for line in result.stdout.splitlines()
            if line.strip().startswith("Chipset Model:")
        ]
    if not shutil.which("lspci"):
        raise RuntimeError("lspci is not installed")
    result = run_command(["lspci"])
    if not result.ok:
        raise RuntimeError(result.error_summary())
    gpus: List[str] = []
    for line in result.stdout.splitlines():
        if "VGA" in line or "3D controller" in line or "Display controller" in line:
            # "01:00.0 VGA compatible controller: NVIDIA Corporation AD102 [GeForce RTX 4090] (rev a1)"
            parts = line.split(":", 2)
            model = parts[2].strip() if len(parts) >= 3 else line.strip()
            gpus.append(re.sub(r"\s*\(rev [0-9a-f]+\)$", "", model))
    return gpus


def _disks() -> List[DiskInfo]:
    disks: List[DiskInfo] = []
    for partition in psutil.disk_partitions(all=False):
        if "cdrom" in partition.opts or partition.fstype in ("", "squashfs"):
            continue
        try:
            usage = psutil.disk_usage(partition.mountpoint)
        except (PermissionError, OSError):
            continue
        disks.append(
            DiskInfo(
                mount_point=partition.mountpoint,
                filesystem=partition.fstype,
                total_bytes=usage.total,
                used_bytes=usage.used,
                percent=usage.percent,
            )
        )
    return disks


def _network_adapters() -> List[NetworkAdapter]:
    stats = psutil.net_if_stats()
    adapters: List[NetworkAdapter] = []
    for name, addresses in sorted(psutil.net_if_addrs().items()):
        stat = stats.get(name)
        if stat is None or not stat.isup:
            continue
        ipv4 = [addr.address for addr in addresses if addr.family == socket.AF_INET]
        if not ipv4 or all(ip.startswith("127.") for ip in ipv4):
            continue
        adapters.append(NetworkAdapter(name=name, ipv4=ipv4))
    return adapters


def _locale_name() -> Optional[str]:
    name = locale.getlocale()[0]
    return name or os.environ.get("LC_ALL") or os.environ.get("LANG") or None


def _virtualization() -> str:
    system = platform.system()
    if system == "Linux":
        if shutil.which("systemd-detect-virt"):
            result = run_command(["systemd-detect-virt"])
            # Exits non-zero and prints "none" on bare metal.
            if result.stdout.strip():
                return result.stdout.strip()
        product = _read_first_line("/sys/class/dmi/id/product_name")
        if product and any(hint in product.lower() for hint in _VIRT_HINTS):
            return product
        with open("/proc/cpuinfo", encoding="utf-8") as handle:
            if any(line.startswith("flags") and " hypervisor" in line for line in handle):
                return "unknown hypervisor"
        return "none"
    if system == "Windows":
        model = _powershell("(Get-CimInstance Win32_ComputerSystem).Model")
        if model and any(hint in model[0].lower() for hint in _VIRT_HINTS):
            return model[0]
        return "none"
    if system == "Darwin":
        result = run_command(["sysctl", "-n", "kern.hv_vmm_present"])
        return "virtual machine" if result.stdout.strip() == "1" else "none"
    raise RuntimeError(f"no virtualization probe for {system}")


def _read_first_line(path: str) -> Optional[str]:
    try:
        with open(path, encoding="utf-8") as handle:
            return handle.readline().strip() or None
    except OSError:
        return None


def _powershell(command: str) -> List[str]:
    executable = shutil.which("pwsh") or shutil.which("powershell")
    if not executable:
        raise RuntimeError("PowerShell is not available")
    result = run_command([executable, "-NoProfile", "-NonInteractive", "-Command", command], timeout=20)
    if not result.ok:
        raise RuntimeError(result.error_summary())
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]
