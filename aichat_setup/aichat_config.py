"""Locations and default contents of the aichat configuration."""

from __future__ import annotations

import logging
import os
import platform
from pathlib import Path
from typing import Any, Dict, FrozenSet, Mapping, Optional

import yaml

from .role import ROLE_NAME

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"
DEFAULT_MODEL = "openai:gpt-4o-mini"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "model": DEFAULT_MODEL,
    "stream": True,
    "save": True,
    "function_calling": True,
    "prelude": f"role:{ROLE_NAME}",
}

# Keys written only when a role document will exist to back them.
ROLE_KEYS = frozenset({"prelude"})


def config_dir(env: Optional[Mapping[str, str]] = None, system: Optional[str] = None) -> Path:
    """Directory aichat reads its configuration and roles from."""
    env = os.environ if env is None else env
    system = system or platform.system()
    override = env.get("AICHAT_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    if system == "Windows":
        appdata = env.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
        return base / "aichat"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "aichat"
    xdg = env.get("XDG_CONFIG_HOME")
    base = Path(xdg).expanduser() if xdg else Path.home() / ".config"
    return base / "aichat"


def config_path(env: Optional[Mapping[str, str]] = None, system: Optional[str] = None) -> Path:
    return config_dir(env, system) / CONFIG_FILENAME


def role_path(env: Optional[Mapping[str, str]] = None, system: Optional[str] = None) -> Path:
    return config_dir(env, system) / "roles" / f"{ROLE_NAME}.md"


def existing_keys(path: Path) -> FrozenSet[str]:
    """Top-level keys of an existing config; empty when missing or unreadable."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return frozenset()
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("could not read %s: %s", path, exc)
        return frozenset()
    if not isinstance(data, dict):
        return frozenset()
    return frozenset(str(key) for key in data)


def default_settings(with_prelude: bool = True) -> Dict[str, Any]:
    return {key: value for key, value in DEFAULT_SETTINGS.items() if with_prelude or key not in ROLE_KEYS}


def ensure_config(path: Path, with_prelude: bool = True) -> str:
    """Create the config if absent, or append missing role keys to an existing one.

    Existing values are never rewritten. Returns ``created``, ``augmented`` or
    ``unchanged``.
    """
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(
            "# Created by aichat-setup\n" + yaml.safe_dump(default_settings(with_prelude), sort_keys=False),
            encoding="utf-8",
        )
        logger.info("created %s", path)
        return "created"

    if not with_prelude:
        return "unchanged"

    present = existing_keys(path)
    missing = {key: DEFAULT_SETTINGS[key] for key in sorted(ROLE_KEYS - present)}
    if not missing:
        return "unchanged"

    text = path.read_text(encoding="utf-8")
    if text and not text.endswith("\n"):
        text += "\n"
    path.write_text(text + yaml.safe_dump(missing, sort_keys=False), encoding="utf-8")
    logger.info("added %s to %s", ", ".join(missing), path)
    return "augmented"
