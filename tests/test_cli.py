import json

import pytest

from aichat_setup import cli
from aichat_setup.installer import InstallReport, StepResult, StepStatus
from aichat_setup.plan import DetectedFacts


def fake_facts(profile_override=None):
    return DetectedFacts(
        architecture="x86_64",
        package_manager="brew",
        package_id="aichat",
        config_path="/Users/ada/Library/Application Support/aichat/config.yaml",
        shell="zsh",
        shell_version="5.9",
        profile_path=str(profile_override) if profile_override else "/Users/ada/.zshrc",
    )


def test_dry_run_json_output(monkeypatch, capsys):
    monkeypatch.setattr(cli, "detect_facts", fake_facts)

    exit_code = cli.main(["install", "--dry-run", "--json", "--no-wrapper", "--skip-role"])

    assert exit_code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["wrapper"]["planned"] is False
    assert payload["role_generator"]["planned"] is False
    assert payload["flags"] == {
        "dry_run": True,
        "json": True,
        "no_wrapper": True,
        "skip_role": True,
        "assume_yes": False,
    }
    assert payload["shell"] == {"detected": "zsh", "version": "5.9", "integration_planned": True}
    assert payload["completions"] == ["zsh"]


def test_dry_run_text_uses_profile_override(monkeypatch, capsys, tmp_path):
    monkeypatch.setattr(cli, "detect_facts", fake_facts)

    exit_code = cli.main(["install", "--dry-run", "--version", "0.21.1", "--profile", str(tmp_path / "rc")])

    out = capsys.readouterr().out
    assert exit_code == 0
    assert "not installed -> 0.21.1" in out
    assert str(tmp_path / "rc") in out
    assert not (tmp_path / "rc").exists()


def test_json_without_dry_run_is_a_usage_error(monkeypatch, capsys):
    monkeypatch.setattr(cli, "detect_facts", fake_facts)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["install", "--json"])

    assert excinfo.value.code == 2
    assert "--dry-run" in capsys.readouterr().err


def test_role_print_writes_nothing(monkeypatch, capsys, tmp_path):
    monkeypatch.setenv("AICHAT_CONFIG_DIR", str(tmp_path))

    assert cli.main(["role", "--print"]) == 0

    assert "## local" in capsys.readouterr().out
    assert not (tmp_path / "roles").exists()


def test_role_writes_to_output(tmp_path):
    output = tmp_path / "roles" / "local.md"

    assert cli.main(["role", "--output", str(output)]) == 0

    assert output.read_text(encoding="utf-8").startswith("---\n")


def test_inventory_json(capsys):
    assert cli.main(["inventory", "--json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert "hostname" in payload
    assert "timestamp" in payload


def test_report_prints_messages_verbatim(capsys):
    report = InstallReport()
    report.add(StepResult("package", StepStatus.FATAL, "brew failed: Error: [/x] bad [bold]tap"))

    cli._render_report(report)

    out = capsys.readouterr().out
    assert "[/x] bad [bold]tap" in out
    assert "Setup failed" in out
