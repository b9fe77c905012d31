"""Package managers that can install aichat, and the installed-version probe."""

from __future__ import annotations

import logging
import platform
import re
import shutil
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from .commands import CommandResult, run_command
from .errors import PackageManagerError

logger = logging.getLogger(__name__)

LATEST = "latest"
INSTALL_TIMEOUT = 1800

_VERSION_RE = re.compile(r"aichat\s+v?(\d+\.\d+\.\d+\S*)", re.IGNORECASE)


@dataclass(frozen=True)
class PackageManager:
    name: str
    package_id: str
    pinnable: bool = True

    @property
    def executable(self) -> Optional[str]:
        return shutil.which(self.name)


MANAGERS: Dict[str, PackageManager] = {
    "winget": PackageManager("winget", "sigoden.AIChat"),
    "scoop": PackageManager("scoop", "aichat"),
    "brew": PackageManager("brew", "aichat", pinnable=False),
    "pacman": PackageManager("pacman", "aichat", pinnable=False),
    "cargo": PackageManager("cargo", "aichat"),
}

_SEARCH_ORDER: Dict[str, Tuple[str, ...]] = {
    "Windows": ("winget", "scoop", "cargo"),
    "Darwin": ("brew", "cargo"),
    "Linux": ("pacman", "brew", "cargo"),
}


def detect_manager(
    system: Optional[str] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> Optional[PackageManager]:
    """First supported package manager found on PATH for this platform."""
    system = system or platform.system()
    for name in _SEARCH_ORDER.get(system, ("brew", "cargo")):
        if which(name):
            return MANAGERS[name]
    return None


def install_command(manager: PackageManager, version: Optional[str] = None, assume_yes: bool = False) -> List[str]:
    """argv that installs aichat (at ``version`` when the manager can pin it)."""
    pin = version if version and version != LATEST else None
    if pin and not manager.pinnable:
        logger.warning("%s cannot pin versions; installing its current aichat instead of %s", manager.name, pin)
        pin = None

    if manager.name == "winget":
        args = ["winget", "install", "--id", manager.package_id, "--exact", "--source", "winget"]
        if pin:
            args += ["--version", pin]
        if assume_yes:
            args += ["--silent", "--accept-package-agreements", "--accept-source-agreements"]
        return args
    if manager.name == "scoop":
        return ["scoop", "install", f"{manager.package_id}@{pin}" if pin else manager.package_id]
    if manager.name == "brew":
        return ["brew", "install", manager.package_id]
    if manager.name == "pacman":
        args = ["sudo", "pacman", "-S", "--needed", manager.package_id]
        if assume_yes:
            args.append("--noconfirm")
        return args
    if manager.name == "cargo":
        args = ["cargo", "install", "--locked", manager.package_id]
        if pin:
            args += ["--version", pin]
        return args
    raise PackageManagerError(f"unsupported package manager: {manager.name}")


def install_aichat(manager: PackageManager, version: Optional[str] = None, assume_yes: bool = False) -> CommandResult:
    if not manager.executable:
        raise PackageManagerError(f"{manager.name} was not found on PATH")
    args = install_command(manager, version, assume_yes)
    logger.info("installing aichat: %s", " ".join(args))
    # Output streams to the terminal so the user sees progress and prompts.
    result = run_command(args, timeout=INSTALL_TIMEOUT, capture=False)
    if not result.ok:
        raise PackageManagerError(f"{' '.join(args[:3])} failed: {result.error_summary()}")
    return result


def installed_version() -> Optional[str]:
    """Version of the aichat binary on PATH, ``None`` when not installed."""
    if not shutil.which("aichat"):
        return None
    result = run_command(["aichat", "--version"])
    if not result.ok:
        logger.warning("aichat --version failed: %s", result.error_summary())
        return None
    return parse_version(result.stdout)


def parse_version(output: str) -> Optional[str]:
    match = _VERSION_RE.search(output)
    return match.group(1) if match else None
