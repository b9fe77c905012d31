"""Run an install plan step by step.

Only the package step can abort the run. Every later step is best-effort: a
failure becomes a ``warning`` result and the next step still runs.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from . import aichat_config, package_manager, role, shells
from .errors import PackageManagerError
from .plan import InstallPlan
from .profile_blocks import BlockAction, NamedTextBlock, has_block, install_block, read_profile
from .system_state import gather_inventory

logger = logging.getLogger(__name__)

Confirm = Callable[[str], bool]


class StepStatus(str, enum.Enum):
    OK = "ok"
    SKIPPED = "skipped"
    WARNING = "warning"
    FATAL = "fatal"
    CANCELLED = "cancelled"


@dataclass
class StepResult:
    name: str
    status: StepStatus
    message: str


@dataclass
class InstallReport:
    steps: List[StepResult] = field(default_factory=list)

    def add(self, result: StepResult) -> StepResult:
        level = logging.WARNING if result.status in (StepStatus.WARNING, StepStatus.FATAL) else logging.INFO
        logger.log(level, "%s: %s (%s)", result.name, result.message, result.status.value)
        self.steps.append(result)
        return result

    @property
    def fatal(self) -> bool:
        return any(step.status is StepStatus.FATAL for step in self.steps)

    @property
    def cancelled(self) -> bool:
        return any(step.status is StepStatus.CANCELLED for step in self.steps)

    @property
    def warnings(self) -> List[StepResult]:
        return [step for step in self.steps if step.status is StepStatus.WARNING]

    @property
    def exit_code(self) -> int:
        return 1 if self.fatal else 0


class Installer:
    """Carries out an ``InstallPlan`` against the real system."""

    def __init__(
        self,
        plan: InstallPlan,
        confirm: Confirm,
        config_dir: Optional[Path] = None,
        python: Optional[str] = None,
    ) -> None:
        self.plan = plan
        self.confirm = confirm
        self.config_path = Path(plan.config_path)
        self.config_dir = config_dir or self.config_path.parent
        self.role_file = self.config_dir / "roles" / f"{role.ROLE_NAME}.md"
        self.launcher = role.launcher_path(self.config_dir)
        self.python = python
        self.profile = Path(plan.shell.profile_path) if plan.shell.profile_path else None
        self.profile_encoding = shells.profile_encoding(plan.shell.detected)

    def run(self) -> InstallReport:
        report = InstallReport()
        package = report.add(self._package_step())
        if package.status in (StepStatus.FATAL, StepStatus.CANCELLED):
            return report

        report.add(self._best_effort("config", self._config_step))
        report.add(self._best_effort("role", self._role_step))
        report.add(self._best_effort("keybinding", self._keybinding_step))
        report.add(self._best_effort("completion", self._completion_step))
        report.add(self._best_effort("wrapper", self._wrapper_step))
        return report

    def _best_effort(self, name: str, step: Callable[[], StepResult]) -> StepResult:
        try:
            return step()
        except Exception as exc:  # noqa: BLE001
            logger.debug("%s step failed", name, exc_info=True)
            return StepResult(name, StepStatus.WARNING, str(exc) or exc.__class__.__name__)

    def _package_step(self) -> StepResult:
        plan = self.plan
        current = plan.current_version
        if current and not plan.flags.force and plan.target_version in (package_manager.LATEST, current):
            return StepResult("package", StepStatus.SKIPPED, f"aichat {current} is already installed")

        manager = package_manager.MANAGERS.get(plan.package_manager)
        if manager is None:
            supported = ", ".join(package_manager.MANAGERS)
            return StepResult("package", StepStatus.FATAL, f"no supported package manager found ({supported})")

        question = f"Install aichat {plan.target_version} using {manager.name}?"
        if not plan.flags.assume_yes and not self.confirm(question):
            return StepResult("package", StepStatus.CANCELLED, "installation declined")

        try:
            package_manager.install_aichat(manager, plan.target_version, assume_yes=plan.flags.assume_yes)
        except PackageManagerError as exc:
            return StepResult("package", StepStatus.FATAL, str(exc))
        return StepResult("package", StepStatus.OK, f"installed aichat {plan.target_version} with {manager.name}")

    def _config_step(self) -> StepResult:
        outcome = aichat_config.ensure_config(self.config_path, with_prelude=self.plan.role_generator.planned)
        status = StepStatus.SKIPPED if outcome == "unchanged" else StepStatus.OK
        return StepResult("config", status, f"{outcome} {self.config_path}")

    def _role_step(self) -> StepResult:
        if not self.plan.role_generator.planned:
            return StepResult("role", StepStatus.SKIPPED, self.plan.role_generator.skip_reason or "not planned")
        role.write_launcher(self.launcher, self.role_file, python=self.python)
        inventory = gather_inventory(package_manager=self.plan.package_manager)
        role.write_role(self.role_file, inventory)
        return StepResult("role", StepStatus.OK, f"wrote {self.role_file}")

    def _keybinding_step(self) -> StepResult:
        if self.plan.shell.detected is None:
            return StepResult("keybinding", StepStatus.SKIPPED, "no shell detected")
        if not self.plan.shell.integration_planned:
            return StepResult("keybinding", StepStatus.SKIPPED, f"shell '{self.plan.shell.detected}' is not supported")
        return self._install("keybinding", shells.keybinding_block(self.plan.shell.detected))

    def _completion_step(self) -> StepResult:
        if not self.plan.completions:
            return StepResult("completion", StepStatus.SKIPPED, "no completion targets")
        return self._install("completion", shells.completion_block(self.plan.completions[0]))

    def _wrapper_step(self) -> StepResult:
        if not self.plan.wrapper.planned:
            return StepResult("wrapper", StepStatus.SKIPPED, self.plan.wrapper.skip_reason or "not planned")
        if self.plan.shell.detected is None:
            return StepResult("wrapper", StepStatus.SKIPPED, "no shell detected")
        return self._install("wrapper", shells.wrapper_block(self.plan.shell.detected, self.launcher))

    def _install(self, name: str, block: NamedTextBlock) -> StepResult:
        if self.profile is None:
            return StepResult(name, StepStatus.SKIPPED, "no profile file for this shell")

        replace = False
        if has_block(read_profile(self.profile, self.profile_encoding), block.tag):
            flags = self.plan.flags
            question = f"{self.profile} already contains the '{block.tag}' block. Replace it?"
            replace = flags.force or flags.assume_yes or self.confirm(question)
            if not replace:
                return StepResult(name, StepStatus.SKIPPED, f"kept existing '{block.tag}' block")

        action = install_block(self.profile, block, replace=replace, encoding=self.profile_encoding)
        status = StepStatus.SKIPPED if action is BlockAction.NO_OP else StepStatus.OK
        return StepResult(name, status, f"{action.value}: {self.profile}")
