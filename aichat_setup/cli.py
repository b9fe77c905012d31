"""Entry point for the aichat-setup command line tool."""

from __future__ import annotations

import argparse
import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from . import __version__, aichat_config
from .detection import detect_facts
from .errors import FlagError
from .formatting import format_bytes, or_placeholder
from .installer import Installer, InstallReport, StepStatus
from .logging_config import level_from_verbosity, setup_logging
from .package_manager import detect_manager
from .plan import InstallFlags, build_plan, format_plan, plan_to_json
from .role import NONE_DETECTED, render_role, write_role
from .system_state import SystemInventory, gather_inventory

_STATUS_STYLES = {
    StepStatus.OK: "green",
    StepStatus.SKIPPED: "dim",
    StepStatus.WARNING: "yellow",
    StepStatus.FATAL: "bold red",
    StepStatus.CANCELLED: "yellow",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="aichat-setup",
        description="Install aichat, write its config and hook it into your shell.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="more logging (-vv for debug)")
    parser.add_argument("--log-file", help="also write a detailed log to this file")
    commands = parser.add_subparsers(dest="command", required=True)

    install = commands.add_parser("install", help="install and configure aichat")
    install.add_argument("--version", dest="target_version", metavar="V", help="aichat version to install (default: latest)")
    install.add_argument("--dry-run", action="store_true", help="show what would be done without changing anything")
    install.add_argument("--json", action="store_true", help="with --dry-run, print the plan as JSON")
    install.add_argument("--no-wrapper", action="store_true", help="do not add the aichat wrapper function")
    install.add_argument("--skip-role", action="store_true", help="do not generate the 'local' role")
    install.add_argument("-y", "--assume-yes", action="store_true", help="answer yes to every prompt")
    install.add_argument("--force", action="store_true", help="reinstall aichat and replace existing profile blocks")
    install.add_argument("--profile", type=Path, help="shell startup file to edit instead of the detected one")

    role_cmd = commands.add_parser("role", help="regenerate the 'local' role document")
    role_cmd.add_argument("--output", type=Path, help="role file to write (default: aichat roles directory)")
    role_cmd.add_argument("--print", dest="print_only", action="store_true", help="print the document instead of writing it")

    inventory = commands.add_parser("inventory", help="show the collected system inventory")
    inventory.add_argument("--json", action="store_true", help="print the inventory as JSON")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(level_from_verbosity(args.verbose), args.log_file)

    try:
        if args.command == "install":
            return _install(parser, args)
        if args.command == "role":
            return _role(args)
        return _inventory(args)
    except KeyboardInterrupt:
        Console(stderr=True).print("[yellow]Interrupted.[/yellow]")
        return 130


def _install(parser: argparse.ArgumentParser, args: argparse.Namespace) -> int:
    try:
        flags = InstallFlags(
            version=args.target_version,
            dry_run=args.dry_run,
            json=args.json,
            no_wrapper=args.no_wrapper,
            skip_role=args.skip_role,
            assume_yes=args.assume_yes,
            force=args.force,
        )
    except FlagError as exc:
        parser.error(str(exc))

    plan = build_plan(flags, detect_facts(profile_override=args.profile))
    if flags.dry_run:
        print(plan_to_json(plan) if flags.json else format_plan(plan))
        return 0

    report = Installer(plan, confirm=_confirm).run()
    _render_report(report)
    return report.exit_code


def _role(args: argparse.Namespace) -> int:
    inventory = _gather()
    if args.print_only:
        print(render_role(inventory), end="")
        return 0
    output = args.output or aichat_config.role_path()
    try:
        write_role(output, inventory)
    except OSError as exc:
        Console(stderr=True).print(f"[red]Could not write {escape(str(output))}:[/red] {escape(str(exc))}")
        return 1
    return 0


def _inventory(args: argparse.Namespace) -> int:
    inventory = _gather()
    if args.json:
        print(_to_json(inventory))
    else:
        _render_inventory(inventory)
    return 0


def _gather() -> SystemInventory:
    manager = detect_manager()
    return gather_inventory(package_manager=manager.name if manager else None)


def _confirm(question: str) -> bool:
    try:
        return Confirm.ask(question, default=False)
    except EOFError:
        return False


def _to_json(inventory: SystemInventory) -> str:
    payload: Dict[str, Any] = asdict(inventory)
    payload["timestamp"] = inventory.timestamp.isoformat()
    return json.dumps(payload, ensure_ascii=False, indent=2)


def _render_report(report: InstallReport) -> None:
    console = Console()
    table = Table(title="aichat-setup", box=box.SIMPLE_HEAD)
    table.add_column("Step", style="bold")
    table.add_column("Result")
    table.add_column("Details")
    for step in report.steps:
        style = _STATUS_STYLES[step.status]
        table.add_row(step.name, f"[{style}]{step.status.value}[/{style}]", escape(step.message))
    console.print(table)

    if report.fatal:
        console.print(Panel("Setup failed, see the details above.", style="bold red"))
    elif report.cancelled:
        console.print(Panel("Setup cancelled, nothing else was changed.", style="yellow"))
    elif report.warnings:
        console.print(Panel("aichat is installed; some optional steps need attention.", style="yellow"))
    else:
        console.print(Panel("Done. Open a new shell and press Alt+E to try it.", style="bold green"))


def _render_inventory(inventory: SystemInventory) -> None:
    console = Console()
    console.print(Panel(f"System inventory - {inventory.timestamp:%Y-%m-%d %H:%M:%S}", style="bold cyan"))

    summary = Table(show_header=False, box=box.ROUNDED)
    summary.add_row("Host", or_placeholder(inventory.hostname))
    summary.add_row("OS", f"{or_placeholder(inventory.os_name)} {or_placeholder(inventory.os_version, '')} ({or_placeholder(inventory.architecture)})")
    summary.add_row(
        "CPU",
        f"{or_placeholder(inventory.cpu_model)} | {or_placeholder(inventory.cpu_cores)} cores / {or_placeholder(inventory.cpu_threads)} threads",
    )
    summary.add_row("GPU", "\n".join(inventory.gpus) if inventory.gpus else NONE_DETECTED)
    summary.add_row("Memory", f"{format_bytes(inventory.memory_available)} free / {format_bytes(inventory.memory_total)}")
    summary.add_row("Virtualization", or_placeholder(inventory.virtualization))
    summary.add_row("Timezone / locale", f"{or_placeholder(inventory.timezone)} / {or_placeholder(inventory.locale)}")
    console.print(summary)

    if inventory.disks:
        disk_table = Table(title="Disks", box=box.SIMPLE_HEAD)
        disk_table.add_column("Mount", style="bold")
        disk_table.add_column("Filesystem")
        disk_table.add_column("Used / Total")
        disk_table.add_column("Usage", justify="right")
        for disk in inventory.disks:
            disk_table.add_row(
                disk.mount_point,
                disk.filesystem,
                f"{format_bytes(disk.used_bytes)} / {format_bytes(disk.total_bytes)}",
                f"{disk.percent:.0f}%",
            )
        console.print(disk_table)

    network = Table(title="Network", box=box.SIMPLE_HEAD)
    network.add_column("Adapter", style="bold")
    network.add_column("IPv4")
    if not inventory.network:
        network.add_row("-", NONE_DETECTED)
    for adapter in inventory.network:
        network.add_row(adapter.name, ", ".join(adapter.ipv4))
    console.print(network)


if __name__ == "__main__":
    raise SystemExit(main())
