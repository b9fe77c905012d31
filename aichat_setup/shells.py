"""Shell detection, startup profile locations and integration snippets."""

from __future__ import annotations

import logging
import os
import platform
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

from .commands import run_command
from .profile_blocks import NamedTextBlock

logger = logging.getLogger(__name__)

KEYBINDING = "Alt+E"

KEYBINDING_TAG = "aichat keybinding"
COMPLETION_TAG = "aichat completion"
WRAPPER_TAG = "aichat wrapper"

SUPPORTED_SHELLS = ("bash", "zsh", "fish", "pwsh", "powershell")

_VERSION_RE = re.compile(r"(\d+\.\d+(?:\.\d+)?)")

# Flags shown by ``aichat --help``; used for the static completions.
AICHAT_OPTIONS = (
    "--model", "--prompt", "--role", "--session", "--empty-session", "--save-session",
    "--agent", "--agent-variable", "--rag", "--rebuild-rag", "--macro", "--serve",
    "--execute", "--code", "--file", "--no-stream", "--dry-run", "--info",
    "--sync-models", "--list-models", "--list-roles", "--list-sessions", "--list-agents",
    "--list-rags", "--list-macros", "--help", "--version",
)


@dataclass(frozen=True)
class ShellInfo:
    kind: str
    version: str
    profile: Optional[Path]


def profile_encoding(kind: Optional[str]) -> str:
    """Windows PowerShell 5.1 reads BOM-less profiles as ANSI, so its profile gets a BOM."""
    return "utf-8-sig" if kind == "powershell" else "utf-8"


def detect_shell(env: Optional[Mapping[str, str]] = None, system: Optional[str] = None) -> str:
    """Name of the user's interactive shell (``bash``, ``zsh``, ``pwsh`` ...)."""
    env = os.environ if env is None else env
    system = system or platform.system()
    shell = env.get("SHELL", "")
    if shell:
        name = shell.replace("\\", "/").rsplit("/", 1)[-1].lower()
        return name[:-4] if name.endswith(".exe") else name
    if system == "Windows":
        if shutil.which("pwsh"):
            return "pwsh"
        return "powershell" if env.get("PSModulePath") else "cmd"
    return "sh"


def shell_version(kind: str) -> str:
    """Version reported by the shell binary, or ``unknown``."""
    executable = shutil.which(kind)
    if not executable:
        return "unknown"
    if kind in ("pwsh", "powershell"):
        args = [executable, "-NoProfile", "-Command", "$PSVersionTable.PSVersion.ToString()"]
    else:
        args = [executable, "--version"]
    result = run_command(args)
    match = _VERSION_RE.search(result.stdout) if result.ok else None
    return match.group(1) if match else "unknown"


def profile_path(kind: str, env: Optional[Mapping[str, str]] = None, system: Optional[str] = None) -> Optional[Path]:
    """Startup file sourced by interactive ``kind`` shells; ``None`` when unsupported."""
    env = os.environ if env is None else env
    system = system or platform.system()
    home = Path(env.get("HOME") or env.get("USERPROFILE") or Path.home())
    if kind == "bash":
        return home / ".bashrc"
    if kind == "zsh":
        return Path(env.get("ZDOTDIR") or home) / ".zshrc"
    if kind == "fish":
        config_home = Path(env["XDG_CONFIG_HOME"]) if env.get("XDG_CONFIG_HOME") else home / ".config"
        return config_home / "fish" / "config.fish"
    if kind == "pwsh":
        if system == "Windows":
            return home / "Documents" / "PowerShell" / "Microsoft.PowerShell_profile.ps1"
        return home / ".config" / "powershell" / "Microsoft.PowerShell_profile.ps1"
    if kind == "powershell":
        return home / "Documents" / "WindowsPowerShell" / "Microsoft.PowerShell_profile.ps1"
    return None


def detect(
    env: Optional[Mapping[str, str]] = None,
    system: Optional[str] = None,
    profile_override: Optional[Path] = None,
) -> ShellInfo:
    kind = detect_shell(env, system)
    profile = profile_override or profile_path(kind, env, system)
    info = ShellInfo(kind=kind, version=shell_version(kind), profile=profile)
    logger.debug("detected shell %s %s (profile %s)", info.kind, info.version, info.profile)
    return info


def keybinding_block(kind: str) -> NamedTextBlock:
    return NamedTextBlock(KEYBINDING_TAG, _KEYBINDINGS[_family(kind)])


def completion_block(kind: str) -> NamedTextBlock:
    family = _family(kind)
    if family == "fish":
        body = "\n".join(f"complete -c aichat -l {option[2:]}" for option in AICHAT_OPTIONS)
    elif family == "powershell":
        body = _COMPLETIONS[family].replace("@OPTIONS@", ", ".join(f"'{option}'" for option in AICHAT_OPTIONS))
    else:
        body = _COMPLETIONS[family].replace("@OPTIONS@", " ".join(AICHAT_OPTIONS))
    return NamedTextBlock(COMPLETION_TAG, body)


def wrapper_block(kind: str, launcher: Path) -> NamedTextBlock:
    body = _WRAPPERS[_family(kind)].replace("@LAUNCHER@", str(launcher))
    return NamedTextBlock(WRAPPER_TAG, body)


def _family(kind: str) -> str:
    if kind in ("bash", "zsh", "fish"):
        return kind
    if kind in ("pwsh", "powershell"):
        return "powershell"
    raise ValueError(f"shell '{kind}' has no integration support")


_BASH_KEYBINDING = """\
_aichat_bash() {
    if [[ -n "$READLINE_LINE" ]]; then
        READLINE_LINE=$(aichat -e "$READLINE_LINE")
        READLINE_POINT=${#READLINE_LINE}
    fi
}
bind -x '"\\ee": _aichat_bash'"""

_ZSH_KEYBINDING = """\
_aichat_zsh() {
    if [[ -n "$BUFFER" ]]; then
        local _old=$BUFFER
        BUFFER+="⌛"
        zle -I && zle redisplay
        BUFFER=$(aichat -e "$_old")
        zle end-of-line
    fi
}
zle -N _aichat_zsh
bindkey '\\ee' _aichat_zsh"""

_FISH_KEYBINDING = """\
function _aichat_fish
    set -l _old (commandline)
    if test -n "$_old"
        echo -n "⌛"
        commandline -f repaint
        commandline (aichat -e $_old)
    end
end
bind \\ee _aichat_fish"""

_PWSH_KEYBINDING = """\
Set-PSReadLineKeyHandler -Chord "alt+e" -ScriptBlock {
    $_old = $null
    [Microsoft.PowerShell.PSConsoleReadLine]::GetBufferState([ref]$_old, [ref]$null)
    if ($_old) {
        [Microsoft.PowerShell.PSConsoleReadLine]::Insert('⌛')
        $_new = (aichat -e $_old)
        [Microsoft.PowerShell.PSConsoleReadLine]::DeleteLine()
        [Microsoft.PowerShell.PSConsoleReadLine]::Insert($_new)
    }
}"""

_KEYBINDINGS: Dict[str, str] = {
    "bash": _BASH_KEYBINDING,
    "zsh": _ZSH_KEYBINDING,
    "fish": _FISH_KEYBINDING,
    "powershell": _PWSH_KEYBINDING,
}

_COMPLETIONS: Dict[str, str] = {
    "bash": """\
_aichat_complete() {
    local cur="${COMP_WORDS[COMP_CWORD]}"
    local prev="${COMP_WORDS[COMP_CWORD-1]}"
    case "$prev" in
        -r|--role) COMPREPLY=($(compgen -W "$(aichat --list-roles 2>/dev/null)" -- "$cur")); return ;;
        -m|--model) COMPREPLY=($(compgen -W "$(aichat --list-models 2>/dev/null)" -- "$cur")); return ;;
        -s|--session) COMPREPLY=($(compgen -W "$(aichat --list-sessions 2>/dev/null)" -- "$cur")); return ;;
    esac
    COMPREPLY=($(compgen -W "@OPTIONS@" -- "$cur"))
}
complete -o default -F _aichat_complete aichat""",
    "zsh": """\
_aichat_complete() {
    local -a options
    options=(@OPTIONS@)
    case "${words[CURRENT-1]}" in
        -r|--role) compadd -- ${(f)"$(aichat --list-roles 2>/dev/null)"}; return ;;
        -m|--model) compadd -- ${(f)"$(aichat --list-models 2>/dev/null)"}; return ;;
    esac
    compadd -- $options
}
if (( $+functions[compdef] )); then
    compdef _aichat_complete aichat
fi""",
    "powershell": """\
Register-ArgumentCompleter -Native -CommandName aichat -ScriptBlock {
    param($wordToComplete, $commandAst, $cursorPosition)
    @(@OPTIONS@) | Where-Object { $_ -like "$wordToComplete*" } | ForEach-Object {
        [System.Management.Automation.CompletionResult]::new($_, $_, 'ParameterName', $_)
    }
}""",
}

_POSIX_WRAPPER = """\
aichat() {
    if [ -x "@LAUNCHER@" ]; then
        "@LAUNCHER@" >/dev/null 2>&1
    fi
    command aichat "$@"
}"""

_WRAPPERS: Dict[str, str] = {
    "bash": _POSIX_WRAPPER,
    "zsh": _POSIX_WRAPPER,
    "fish": """\
function aichat --wraps aichat
    if test -x "@LAUNCHER@"
        "@LAUNCHER@" >/dev/null 2>&1
    end
    command aichat $argv
end""",
    "powershell": """\
function aichat {
    if (Test-Path "@LAUNCHER@") {
        & "@LAUNCHER@" *> $null
    }
    $exe = Get-Command aichat -CommandType Application -ErrorAction SilentlyContinue | Select-Object -First 1
    & $exe.Source @args
}""",
}
