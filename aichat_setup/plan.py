"""Dry-run planning: what an install would do, as plain data.

``build_plan`` only looks at the flags and the facts handed to it, so the same
inputs always produce the same plan and nothing on the host is touched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from .errors import FlagError
from .formatting import render_table
from .package_manager import LATEST
from .shells import KEYBINDING, SUPPORTED_SHELLS

NO_WRAPPER_REASON = "--no-wrapper flag set"
SKIP_ROLE_REASON = "--skip-role flag set"
PRELUDE_KEY = "prelude"


@dataclass(frozen=True)
class InstallFlags:
    version: Optional[str] = None
    dry_run: bool = False
    json: bool = False
    no_wrapper: bool = False
    skip_role: bool = False
    assume_yes: bool = False
    force: bool = False

    def __post_init__(self) -> None:
        if self.json and not self.dry_run:
            raise FlagError("--json is only supported together with --dry-run")


@dataclass(frozen=True)
class DetectedFacts:
    architecture: str
    current_version: Optional[str] = None
    package_manager: Optional[str] = None
    package_id: Optional[str] = None
    config_path: str = ""
    config_exists: bool = False
    config_keys: FrozenSet[str] = frozenset()
    shell: Optional[str] = None
    shell_version: str = "unknown"
    profile_path: Optional[str] = None


@dataclass(frozen=True)
class PlannedAction:
    planned: bool
    skip_reason: Optional[str] = None


@dataclass(frozen=True)
class ShellIntegration:
    detected: Optional[str]
    version: str
    keybinding: str
    integration_planned: bool
    profile_path: Optional[str] = None


@dataclass(frozen=True)
class ConfigAction:
    path: str
    action: str


@dataclass(frozen=True)
class InstallPlan:
    target_version: str
    current_version: Optional[str]
    architecture: str
    package_manager: str
    package_id: str
    config_path: str
    wrapper: PlannedAction
    role_generator: PlannedAction
    shell: ShellIntegration
    config: ConfigAction
    flags: InstallFlags
    completions: Tuple[str, ...] = field(default_factory=tuple)


def unsupported_shell_reason(shell: str) -> str:
    return f"shell '{shell}' has no integration support"


def build_plan(flags: InstallFlags, facts: DetectedFacts) -> InstallPlan:
    # A shell of None means nothing was detected; only a detected, unsupported
    # shell is a reason to skip the wrapper.
    shell_supported = facts.shell in SUPPORTED_SHELLS
    shell_unsupported = facts.shell is not None and not shell_supported

    if flags.skip_role:
        role_generator = PlannedAction(False, SKIP_ROLE_REASON)
    else:
        role_generator = PlannedAction(True)

    if flags.no_wrapper:
        wrapper = PlannedAction(False, NO_WRAPPER_REASON)
    elif shell_unsupported:
        wrapper = PlannedAction(False, unsupported_shell_reason(facts.shell))
    else:
        wrapper = PlannedAction(True)

    if not facts.config_exists:
        config_action = "create"
    elif role_generator.planned and PRELUDE_KEY not in facts.config_keys:
        config_action = "augment"
    else:
        config_action = "none"

    return InstallPlan(
        target_version=flags.version or LATEST,
        current_version=facts.current_version,
        architecture=facts.architecture,
        package_manager=facts.package_manager or "none",
        package_id=facts.package_id or "",
        config_path=facts.config_path,
        wrapper=wrapper,
        role_generator=role_generator,
        shell=ShellIntegration(
            detected=facts.shell,
            version=facts.shell_version,
            keybinding=KEYBINDING,
            integration_planned=shell_supported,
            profile_path=facts.profile_path,
        ),
        completions=(facts.shell,) if shell_supported else (),
        config=ConfigAction(path=facts.config_path, action=config_action),
        flags=flags,
    )


def plan_to_dict(plan: InstallPlan) -> Dict[str, Any]:
    """The fixed dry-run schema consumed by external tooling."""
    return {
        "mode": "dry-run",
        "target_version": plan.target_version,
        "current_version": plan.current_version,
        "architecture": plan.architecture,
        "package_manager": plan.package_manager,
        "package_id": plan.package_id,
        "config_path": plan.config_path,
        "wrapper": {"planned": plan.wrapper.planned, "skip_reason": plan.wrapper.skip_reason},
        "role_generator": {"planned": plan.role_generator.planned, "skip_reason": plan.role_generator.skip_reason},
        "shell": {
            "detected": plan.shell.detected,
            "version": plan.shell.version,
            "integration_planned": plan.shell.integration_planned,
        },
        "completions": list(plan.completions),
        "config": {"path": plan.config.path, "action": plan.config.action},
        "flags": {
            "dry_run": plan.flags.dry_run,
            "json": plan.flags.json,
            "no_wrapper": plan.flags.no_wrapper,
            "skip_role": plan.flags.skip_role,
            "assume_yes": plan.flags.assume_yes,
        },
    }


def plan_to_json(plan: InstallPlan) -> str:
    return json.dumps(plan_to_dict(plan), ensure_ascii=False, indent=2)


def format_plan(plan: InstallPlan) -> str:
    installed = plan.current_version or "not installed"
    rows: List[List[str]] = [
        ["aichat", f"{installed} -> {plan.target_version}"],
        ["architecture", plan.architecture],
        ["package manager", f"{plan.package_manager} ({plan.package_id or '-'})"],
        ["config", f"{plan.config.action}: {plan.config.path}"],
        ["role generator", _describe(plan.role_generator)],
        ["shell", f"{plan.shell.detected or 'not detected'} {plan.shell.version}"],
        ["keybinding", plan.shell.keybinding if plan.shell.integration_planned else "skipped"],
        ["completions", ", ".join(plan.completions) or "none"],
        ["wrapper", _describe(plan.wrapper)],
    ]
    if plan.shell.profile_path:
        rows.append(["profile", plan.shell.profile_path])
    return "Dry run, nothing will be changed:\n" + render_table(["step", "plan"], rows)


def _describe(action: PlannedAction) -> str:
    if action.planned:
        return "install"
    return f"skip ({action.skip_reason})"
