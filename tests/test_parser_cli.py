"""Tests for config file parsing, settings loading and the command line."""

import json

import pytest
import yaml

import cli
from parser import ConfigParser, parse_assignments


@pytest.fixture
def ci_env(monkeypatch, workspace):
    monkeypatch.setenv("REGISTRY_HOST", "r.io")
    monkeypatch.setenv("JOB_NAME", "p")
    monkeypatch.setenv("BUILD_NUMBER", "42")
    monkeypatch.setenv("WORKSPACE", str(workspace))
    for name in ("BUILDX_STEPS_MAX_ATTEMPTS", "BUILDX_STEPS_BACKOFF", "BUILDX_STEPS_PRUNE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(workspace)
    return workspace


def test_yaml_section_is_selected(tmp_path):
    path = tmp_path / "steps.yaml"
    path.write_text("build:\n  name: app\nhelm:\n  name: chart\n")
    assert ConfigParser().parse_file(str(path)) == {"name": "app"}
    assert ConfigParser(section="helm").parse_file(str(path)) == {"name": "chart"}


def test_top_level_block_without_section(tmp_path):
    path = tmp_path / "steps.yml"
    path.write_text("name: app\nenableCache: false\n")
    assert ConfigParser().parse_file(str(path)) == {"name": "app", "enableCache": False}


def test_json_config(tmp_path):
    path = tmp_path / "steps.json"
    path.write_text(json.dumps({"build": {"name": "app", "buildArgs": ["A=1"]}}))
    assert ConfigParser().parse_file(str(path)) == {"name": "app", "buildArgs": ["A=1"]}


def test_empty_file_is_empty_config(tmp_path):
    path = tmp_path / "steps.yaml"
    path.write_text("")
    assert ConfigParser().parse_file(str(path)) == {}


def test_non_mapping_is_rejected(tmp_path):
    path = tmp_path / "steps.yaml"
    path.write_text("- a\n- b\n")
    with pytest.raises(ValueError, match="mapping"):
        ConfigParser().parse_file(str(path))


def test_unsupported_extension():
    with pytest.raises(ValueError, match="Unsupported"):
        ConfigParser().parse_file("steps.toml")


def test_parse_assignments_keeps_strings_by_default():
    values = parse_assignments(["tag=010", "name=app", "host=r.io:5000", "EMPTY="])
    assert values == {"tag": "010", "name": "app", "host": "r.io:5000", "EMPTY": ""}


def test_parse_assignments_types_only_listed_keys():
    values = parse_assignments(
        ["tag=7", "enableCache=false", "buildArgs=[A=1, B=2]"],
        typed_keys=cli.TYPED_CONFIG_KEYS,
    )
    assert values == {"tag": "7", "enableCache": False, "buildArgs": ["A=1", "B=2"]}


@pytest.mark.parametrize("pair", ["novalue", "=x"])
def test_parse_assignments_rejects_malformed(pair):
    with pytest.raises(ValueError):
        parse_assignments([pair])


def test_load_settings_file_then_env(tmp_path, monkeypatch):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"max_attempts": 5, "backoff_unit": 1.5}))
    monkeypatch.setenv("BUILDX_STEPS_MAX_ATTEMPTS", "2")
    monkeypatch.setenv("BUILDX_STEPS_PRUNE", "no")
    monkeypatch.delenv("BUILDX_STEPS_BACKOFF", raising=False)

    settings = cli.load_settings(str(path))

    assert settings.max_attempts == 2
    assert settings.backoff_unit == 1.5
    assert settings.prune_on_failure is False


def test_load_settings_rejects_unknown_keys(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"colour": "blue"}))
    with pytest.raises(ValueError, match="colour"):
        cli.load_settings(str(path))


def test_build_dry_run_prints_command(ci_env, capsys):
    (ci_env / "steps.yaml").write_text("build:\n  name: app\n  enableCache: false\n")

    code = cli.main(["build", "-c", "steps.yaml", "--set", "tag=7", "--dry-run"])

    assert code == 0
    out = capsys.readouterr().out
    summary = json.loads(out[out.index("{"):])
    assert summary["command"] == (
        "docker buildx --builder default build --progress=auto --platform=linux/amd64 "
        "-t r.io/p/app:7 -t r.io/p/app:latest --push -f ./Dockerfile ."
    )
    assert summary["executed"] is False


def test_set_tag_keeps_leading_zero(ci_env, capsys):
    (ci_env / "steps.yaml").write_text("name: app\nenableCache: false\n")

    assert cli.main(["build", "-c", "steps.yaml", "--set", "tag=010", "--dry-run"]) == 0

    out = capsys.readouterr().out
    summary = json.loads(out[out.index("{"):])
    assert "-t r.io/p/app:010 -t r.io/p/app:latest" in summary["command"]


def test_set_enable_cache_is_typed(ci_env, capsys):
    (ci_env / "steps.yaml").write_text("name: app\n")

    assert cli.main(["build", "-c", "steps.yaml", "--set", "enableCache=false", "--dry-run"]) == 0

    out = capsys.readouterr().out
    assert "--cache-to" not in json.loads(out[out.index("{"):])["command"]


def test_numeric_tag_in_config_file_is_rejected(ci_env, capsys):
    (ci_env / "steps.yaml").write_text("name: app\ntag: 010\n")

    assert cli.main(["build", "-c", "steps.yaml", "--dry-run"]) == 1
    out = capsys.readouterr().out
    assert "ConfigurationError" in out
    assert "Quote 'tag'" in out


def test_empty_set_tag_is_rejected(ci_env, capsys):
    (ci_env / "steps.yaml").write_text("name: app\n")

    assert cli.main(["build", "-c", "steps.yaml", "--set", "tag=", "--dry-run"]) == 1
    out = capsys.readouterr().out
    assert "ConfigurationError" in out
    assert "r.io/p/app:" not in out


def test_build_with_bad_config_exits_with_suggestions(ci_env, capsys):
    (ci_env / "steps.yaml").write_text("name: app\ntag: ${BUILD_NUMBER}\n")

    assert cli.main(["build", "-c", "steps.yaml", "--dry-run"]) == 1
    out = capsys.readouterr().out
    assert "ConfigurationError" in out
    assert "--set tag=<value>" in out


def test_missing_config_file(ci_env, capsys):
    assert cli.main(["build", "-c", "nope.yaml", "--dry-run"]) == 1
    assert "not found" in capsys.readouterr().out


def test_validate_reports_and_sets_exit_code(ci_env, capsys):
    (ci_env / "good.yaml").write_text("name: app\n")
    (ci_env / "bad.yaml").write_text("tag: BUILD_NUMBER\n")

    assert cli.main(["validate", "-c", "good.yaml"]) == 0
    report = yaml.safe_load(capsys.readouterr().out.split("\n", 1)[1])
    assert report["errors"] == []

    assert cli.main(["validate", "-c", "bad.yaml"]) == 1


def test_syntax_command(ci_env, capsys):
    assert cli.main(["syntax", "--param", "PLATFORM=linux/amd64"]) == 0
    assert "Common Configuration Issues" in capsys.readouterr().out


def test_init_writes_loadable_example(tmp_path):
    output = tmp_path / "example.yaml"
    assert cli.main(["init", "-o", str(output)]) == 0

    build = ConfigParser().parse_file(str(output))
    helm = ConfigParser(section="helm").parse_file(str(output))
    assert build["name"] == "my-app"
    assert helm["namespace"] == "my-namespace"


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out
