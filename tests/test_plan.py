import json

import pytest

from aichat_setup.errors import FlagError
from aichat_setup.plan import (
    NO_WRAPPER_REASON,
    SKIP_ROLE_REASON,
    DetectedFacts,
    InstallFlags,
    build_plan,
    format_plan,
    plan_to_dict,
    plan_to_json,
)

SCHEMA_KEYS = {
    "mode",
    "target_version",
    "current_version",
    "architecture",
    "package_manager",
    "package_id",
    "config_path",
    "wrapper",
    "role_generator",
    "shell",
    "completions",
    "config",
    "flags",
}


def make_facts(**overrides) -> DetectedFacts:
    values = dict(
        architecture="x86_64",
        current_version=None,
        package_manager="winget",
        package_id="sigoden.AIChat",
        config_path="/home/ada/.config/aichat/config.yaml",
        config_exists=False,
        config_keys=frozenset(),
        shell="bash",
        shell_version="5.2.21",
        profile_path="/home/ada/.bashrc",
    )
    values.update(overrides)
    return DetectedFacts(**values)


def test_default_flags_plan_everything():
    plan = build_plan(InstallFlags(dry_run=True), make_facts())
    assert plan.wrapper.planned is True
    assert plan.wrapper.skip_reason is None
    assert plan.role_generator.planned is True
    assert plan.role_generator.skip_reason is None
    assert plan.target_version == "latest"
    assert plan.completions == ("bash",)
    assert plan.config.action == "create"


def test_same_inputs_give_identical_plans():
    flags = InstallFlags(dry_run=True, json=True, version="0.21.1")
    assert build_plan(flags, make_facts()) == build_plan(flags, make_facts())
    assert plan_to_json(build_plan(flags, make_facts())) == plan_to_json(build_plan(flags, make_facts()))


def test_no_wrapper_flag_skips_wrapper_with_fixed_reason():
    plan = build_plan(InstallFlags(no_wrapper=True), make_facts())
    assert plan.wrapper.planned is False
    assert plan.wrapper.skip_reason == NO_WRAPPER_REASON
    assert "--no-wrapper" in plan.wrapper.skip_reason
    assert plan.role_generator.planned is True


def test_skip_role_flag_skips_role_generator():
    plan = build_plan(InstallFlags(skip_role=True), make_facts())
    assert plan.role_generator.planned is False
    assert plan.role_generator.skip_reason == SKIP_ROLE_REASON


def test_unsupported_shell_disables_integration_and_wrapper():
    plan = build_plan(InstallFlags(), make_facts(shell="cmd", profile_path=None))
    assert plan.shell.integration_planned is False
    assert plan.completions == ()
    assert plan.wrapper.planned is False
    assert plan.wrapper.skip_reason == "shell 'cmd' has no integration support"


def test_existing_config_without_prelude_is_augmented():
    facts = make_facts(config_exists=True, config_keys=frozenset({"model", "stream"}))
    assert build_plan(InstallFlags(), facts).config.action == "augment"
    assert build_plan(InstallFlags(skip_role=True), facts).config.action == "none"


def test_existing_config_with_prelude_is_left_alone():
    facts = make_facts(config_exists=True, config_keys=frozenset({"model", "prelude"}))
    assert build_plan(InstallFlags(), facts).config.action == "none"


def test_json_requires_dry_run():
    with pytest.raises(FlagError):
        InstallFlags(json=True)


def test_json_round_trip_exposes_exactly_the_schema_keys():
    plan = build_plan(InstallFlags(dry_run=True, json=True), make_facts(current_version="0.20.0"))
    parsed = json.loads(plan_to_json(plan))
    assert set(parsed) == SCHEMA_KEYS
    assert set(parsed["wrapper"]) == {"planned", "skip_reason"}
    assert set(parsed["role_generator"]) == {"planned", "skip_reason"}
    assert set(parsed["shell"]) == {"detected", "version", "integration_planned"}
    assert set(parsed["config"]) == {"path", "action"}
    assert set(parsed["flags"]) == {"dry_run", "json", "no_wrapper", "skip_role", "assume_yes"}
    assert parsed["mode"] == "dry-run"
    assert parsed["current_version"] == "0.20.0"
    assert parsed == plan_to_dict(plan)


def test_dry_run_json_with_skips():
    flags = InstallFlags(dry_run=True, json=True, no_wrapper=True, skip_role=True)
    parsed = json.loads(plan_to_json(build_plan(flags, make_facts())))
    assert parsed["wrapper"]["planned"] is False
    assert parsed["role_generator"]["planned"] is False
    assert parsed["flags"]["no_wrapper"] is True
    assert parsed["flags"]["skip_role"] is True
    assert parsed["current_version"] is None


def test_missing_package_manager_is_reported_as_none():
    plan = build_plan(InstallFlags(), make_facts(package_manager=None, package_id=None))
    assert plan.package_manager == "none"
    assert plan.package_id == ""


def test_text_summary_mentions_skip_reasons():
    summary = format_plan(build_plan(InstallFlags(dry_run=True, no_wrapper=True), make_facts()))
    assert summary.startswith("Dry run")
    assert NO_WRAPPER_REASON in summary
    assert "Alt+E" in summary
    assert "/home/ada/.bashrc" in summary


def test_minimal_facts_still_plan_wrapper_and_role():
    plan = build_plan(InstallFlags(), DetectedFacts(architecture="x86_64", current_version=None))
    assert plan.wrapper.planned is True
    assert plan.wrapper.skip_reason is None
    assert plan.role_generator.planned is True
    assert plan.role_generator.skip_reason is None
    assert plan.shell.detected is None
    assert plan.completions == ()
    assert "not detected" in format_plan(plan)
