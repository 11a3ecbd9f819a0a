"""Tests for the build, login, helm and syntax-check steps."""

import logging

import pytest

from build_docker_image import build_docker_image, prepare_build, describe
from command_builder import parse_docker_command
from deploy_steps import login_docker_registry, helm_deploy
from exceptions import ConfigurationError, ExecutionError, PreconditionError
from pipeline_syntax import validate_pipeline_syntax


def test_build_runs_rendered_command(context, executor):
    result = build_docker_image({"name": "app", "tag": "7", "enableCache": False}, context)

    assert result.executed
    assert executor.commands == [
        "docker buildx --builder default build --progress=auto --platform=linux/amd64 "
        "-t r.io/p/app:7 -t r.io/p/app:latest --push -f ./Dockerfile ."
    ]
    assert result.images == ["r.io/p/app:7", "r.io/p/app:latest"]


def test_build_uses_environment_fallbacks(context, executor):
    build_docker_image({"name": "app"}, context)
    parsed = parse_docker_command(executor.commands[0])
    assert (parsed["host"], parsed["project"], parsed["tag"]) == ("r.io", "p", "42")
    assert parsed["enable_cache"] is True


def test_dry_run_does_not_execute(context, executor):
    result = build_docker_image({"name": "app", "platform": "linux/amd64,linux/arm64"}, context, dry_run=True)
    assert executor.commands == []
    assert not result.executed
    summary = describe(result)
    assert summary["builder"] == "multi-platform"
    assert summary["command"].startswith("docker buildx --builder multi-platform build")


def test_validation_errors_stop_before_any_command(context, executor):
    with pytest.raises(ConfigurationError, match="1 error") as excinfo:
        build_docker_image({"name": "app", "tag": "${BUILD_NUMBER}"}, context)
    assert executor.commands == []
    assert excinfo.value.report.errors
    assert excinfo.value.suggestions


def test_missing_name_is_fatal(context, executor):
    with pytest.raises(ConfigurationError):
        build_docker_image({"host": "r.io"}, context)
    assert executor.commands == []


def test_missing_registry_is_fatal(context, executor):
    del context.env["REGISTRY_HOST"]
    with pytest.raises(ConfigurationError, match="REGISTRY_HOST"):
        build_docker_image({"name": "app"}, context)
    assert executor.commands == []


def test_missing_dockerfile_is_a_precondition_error(context, executor):
    with pytest.raises(PreconditionError, match="docker/Dockerfile"):
        prepare_build({"name": "app", "path": "./docker/Dockerfile"}, context)
    assert executor.commands == []


def test_transient_failure_is_retried(context, executor, sleeps):
    executor.failures["docker buildx"] = 1
    result = build_docker_image({"name": "app"}, context)
    assert result.executed
    assert len(executor.commands) == 2
    assert sleeps == [2]


def test_final_failure_carries_suggestions_and_context(context, executor, caplog):
    caplog.set_level(logging.INFO)
    executor.failures["docker buildx"] = -1

    with pytest.raises(ExecutionError) as excinfo:
        build_docker_image({"name": "app"}, context)

    error = excinfo.value
    assert "fallback error" in error.message
    assert "Check that the Docker daemon is running" in error.suggestions
    assert error.context["job_name"] == "p"
    assert error.context["config_keys"] == "name"
    # three attempts, two prune commands, one last-chance build
    assert len(executor.commands) == 6
    assert "Debug commands" in caplog.text


def test_login_sends_password_on_stdin(context, executor, caplog):
    caplog.set_level(logging.DEBUG)
    cmd = login_docker_registry("r.io", "ci", "s3cret", context)
    assert cmd == "docker login r.io -u ci --password-stdin"
    assert executor.commands == [cmd]
    assert executor.inputs == ["s3cret"]
    assert "s3cret" not in caplog.text


def test_login_failure_propagates(context, executor):
    executor.failures["docker login"] = -1
    with pytest.raises(ExecutionError):
        login_docker_registry("r.io", "ci", "s3cret", context)


def test_helm_deploy(context, executor):
    helm_deploy("app", "./chart", "ns", context, sets=["image.tag=7"])
    assert executor.commands == [
        "helm upgrade -i app ./chart --namespace ns --create-namespace --set image.tag=7 --wait --timeout 1h0s"
    ]


def test_helm_failure_keeps_description(context, executor):
    executor.failures["helm"] = -1
    with pytest.raises(ExecutionError, match="helm deploy app failed"):
        helm_deploy("app", "./chart", "ns", context)


def test_pipeline_syntax_reports_env_and_params(context, caplog):
    caplog.set_level(logging.INFO)
    context.params = {"PLATFORM": "linux/amd64"}

    check = validate_pipeline_syntax(context)

    assert check.present == {"REGISTRY_HOST": "r.io", "JOB_NAME": "p", "BUILD_NUMBER": "42"}
    assert check.missing == ["BUILDER"]
    assert check.params == {"PLATFORM": "linux/amd64"}
    assert "Common Configuration Issues" in check.guidance
    assert "Missing environment variables: BUILDER" in caplog.text


def test_pipeline_syntax_checks_can_be_skipped(context):
    check = validate_pipeline_syntax(context, check_environment_variables=False,
                                     check_parameters=False, suggest_fixes=False)
    assert check.present == {}
    assert check.missing == []
    assert check.guidance == ""
