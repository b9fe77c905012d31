"""Gather the host facts the planner works from."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from . import aichat_config, package_manager, shells
from .plan import DetectedFacts
from .system_state import normalize_arch

logger = logging.getLogger(__name__)


def detect_facts(profile_override: Optional[Path] = None) -> DetectedFacts:
    """Probe the host once; everything downstream works from the returned value."""
    manager = package_manager.detect_manager()
    config = aichat_config.config_path()
    shell = shells.detect(profile_override=profile_override)
    facts = DetectedFacts(
        architecture=normalize_arch(),
        current_version=package_manager.installed_version(),
        package_manager=manager.name if manager else None,
        package_id=manager.package_id if manager else None,
        config_path=str(config),
        config_exists=config.exists(),
        config_keys=aichat_config.existing_keys(config),
        shell=shell.kind,
        shell_version=shell.version,
        profile_path=str(shell.profile) if shell.profile else None,
    )
    logger.debug("detected facts: %s", facts)
    return facts
