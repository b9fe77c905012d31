"""Render the ``local`` aichat role from a system inventory."""

from __future__ import annotations

import logging
from pathlib import Path
import platform
import sys
from typing import Any, Dict, List, Optional

import yaml

from .formatting import PLACEHOLDER, format_bytes, or_placeholder
from .system_state import SystemInventory, gather_inventory

logger = logging.getLogger(__name__)

ROLE_NAME = "local"
NONE_DETECTED = "None detected"

_PREAMBLE = """\
You are a command line assistant running directly on the user's computer.
Prefer answers that work on this exact machine: use its operating system,
shell conventions and package manager, and take its hardware into account
when suggesting workloads. The facts below were collected automatically and
may be slightly out of date; say so when a question depends on live state.
"""


def render_role(inventory: SystemInventory) -> str:
    """Format the inventory into the role document text."""
    front_matter = yaml.safe_dump(
        {"description": "Local system context generated by aichat-setup"},
        sort_keys=False,
    )
    facts = yaml.safe_dump(_facts(inventory), sort_keys=False, allow_unicode=True, default_flow_style=False)
    return (
        f"---\n{front_matter}---\n"
        f"{_PREAMBLE}\n"
        f"## {ROLE_NAME}\n\n"
        f"```yaml\n{facts}```\n"
    )


def write_role(path: Path, inventory: Optional[SystemInventory] = None) -> Path:
    """Regenerate the role document at ``path``, replacing any previous content."""
    if inventory is None:
        inventory = gather_inventory()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_role(inventory), encoding="utf-8")
    logger.info("wrote role document %s", path)
    return path


def _facts(inventory: SystemInventory) -> Dict[str, Any]:
    return {
        "generated": inventory.timestamp.isoformat(timespec="seconds"),
        "host": {
            "hostname": or_placeholder(inventory.hostname),
            "timezone": or_placeholder(inventory.timezone),
            "locale": or_placeholder(inventory.locale),
            "virtualization": or_placeholder(inventory.virtualization),
            "package_manager": or_placeholder(inventory.package_manager, "none detected"),
        },
        "os": {
            "name": or_placeholder(inventory.os_name),
            "version": or_placeholder(inventory.os_version),
            "build": or_placeholder(inventory.os_build),
            "architecture": or_placeholder(inventory.architecture),
        },
        "cpu": {
            "model": or_placeholder(inventory.cpu_model),
            "cores": or_placeholder(inventory.cpu_cores),
            "threads": or_placeholder(inventory.cpu_threads),
            "clock": f"{inventory.cpu_clock_mhz:.0f} MHz" if inventory.cpu_clock_mhz else PLACEHOLDER,
        },
        "gpu": list(inventory.gpus) if inventory.gpus else [NONE_DETECTED],
        "memory": {
            "total": format_bytes(inventory.memory_total),
            "available": format_bytes(inventory.memory_available),
        },
        "disks": [
            {
                "mount": disk.mount_point,
                "filesystem": or_placeholder(disk.filesystem),
                "size": format_bytes(disk.total_bytes),
                "used": f"{format_bytes(disk.used_bytes)} ({disk.percent:.0f}%)",
            }
            for disk in inventory.disks
        ]
        or [NONE_DETECTED],
        "network": _network(inventory),
    }


def _network(inventory: SystemInventory) -> List[Any]:
    if not inventory.network:
        return [NONE_DETECTED]
    return [{"adapter": adapter.name, "ipv4": list(adapter.ipv4)} for adapter in inventory.network]


def launcher_path(config_dir: Path, system: Optional[str] = None) -> Path:
    """Location of the small script that regenerates the role on demand."""
    system = system or platform.system()
    name = "aichat-role.cmd" if system == "Windows" else "aichat-role"
    return config_dir / "bin" / name


def write_launcher(path: Path, role_file: Path, python: Optional[str] = None, system: Optional[str] = None) -> Path:
    """Write the launcher that runs ``python -m aichat_setup role`` for ``role_file``."""
    system = system or platform.system()
    python = python or sys.executable
    if system == "Windows":
        script = f'@echo off\r\n"{python}" -m aichat_setup role --output "{role_file}" %*\r\n'
    else:
        script = (
            "#!/bin/sh\n"
            f"# Regenerates the aichat '{ROLE_NAME}' role. Created by aichat-setup.\n"
            f'exec "{python}" -m aichat_setup role --output "{role_file}" "$@"\n'
        )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(script, encoding="utf-8", newline="")
    if system != "Windows":
        path.chmod(0o755)
    logger.info("wrote role launcher %s", path)
    return path
