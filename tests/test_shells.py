from pathlib import Path

import pytest

from aichat_setup import shells
from aichat_setup.package_manager import MANAGERS, detect_manager, install_command, parse_version


def test_detect_shell_from_environment():
    assert shells.detect_shell({"SHELL": "/usr/bin/zsh"}, system="Linux") == "zsh"
    assert shells.detect_shell({"SHELL": "C:\\Program Files\\PowerShell\\7\\pwsh.exe"}, system="Linux") == "pwsh"
    assert shells.detect_shell({}, system="Linux") == "sh"


def test_profile_paths_follow_shell_conventions():
    env = {"HOME": "/home/ada"}
    assert shells.profile_path("bash", env, "Linux") == Path("/home/ada/.bashrc")
    assert shells.profile_path("zsh", {**env, "ZDOTDIR": "/home/ada/.zsh"}, "Linux") == Path("/home/ada/.zsh/.zshrc")
    assert shells.profile_path("fish", env, "Linux") == Path("/home/ada/.config/fish/config.fish")
    assert shells.profile_path("pwsh", env, "Linux") == Path("/home/ada/.config/powershell/Microsoft.PowerShell_profile.ps1")
    assert shells.profile_path("powershell", env, "Windows") == Path(
        "/home/ada/Documents/WindowsPowerShell/Microsoft.PowerShell_profile.ps1"
    )
    assert shells.profile_path("cmd", env, "Windows") is None


@pytest.mark.parametrize("kind", shells.SUPPORTED_SHELLS)
def test_every_supported_shell_has_all_blocks(kind):
    launcher = Path("/home/ada/.config/aichat/bin/aichat-role")
    assert shells.keybinding_block(kind).tag == shells.KEYBINDING_TAG
    assert "aichat -e" in shells.keybinding_block(kind).body
    assert "list-roles" in shells.completion_block(kind).body
    wrapper = shells.wrapper_block(kind, launcher)
    assert wrapper.tag == shells.WRAPPER_TAG
    assert str(launcher) in wrapper.body
    assert "@LAUNCHER@" not in wrapper.body
    assert "@OPTIONS@" not in shells.completion_block(kind).body


def test_bash_keybinding_binds_alt_e():
    assert "bind -x '\"\\ee\": _aichat_bash'" in shells.keybinding_block("bash").body


def test_unsupported_shell_has_no_blocks():
    with pytest.raises(ValueError):
        shells.keybinding_block("cmd")


def test_only_windows_powershell_profile_gets_a_bom():
    assert shells.profile_encoding("powershell") == "utf-8-sig"
    assert shells.profile_encoding("pwsh") == "utf-8"
    assert shells.profile_encoding("bash") == "utf-8"
    assert shells.profile_encoding(None) == "utf-8"


def test_manager_detection_order():
    available = {"cargo", "brew"}
    found = detect_manager("Linux", which=lambda name: f"/usr/bin/{name}" if name in available else None)
    assert found is MANAGERS["brew"]
    assert detect_manager("Windows", which=lambda name: None) is None


def test_winget_command_pins_version_and_accepts_agreements():
    args = install_command(MANAGERS["winget"], "0.21.1", assume_yes=True)
    assert args[:5] == ["winget", "install", "--id", "sigoden.AIChat", "--exact"]
    assert args[args.index("--version") + 1] == "0.21.1"
    assert "--accept-package-agreements" in args


def test_latest_is_not_pinned():
    assert "--version" not in install_command(MANAGERS["cargo"], "latest")
    assert install_command(MANAGERS["scoop"], None) == ["scoop", "install", "aichat"]


def test_brew_ignores_pin():
    assert install_command(MANAGERS["brew"], "0.21.1") == ["brew", "install", "aichat"]


def test_parse_version():
    assert parse_version("aichat 0.21.1\n") == "0.21.1"
    assert parse_version("something else") is None
