"""
BuildDockerImage step: validate the config block, render the buildx command
and run it with retries.

Example config block (YAML)::

    host: 192.168.1.1:5000         # registry, falls back to REGISTRY_HOST
    project: projectName           # falls back to JOB_NAME
    name: appname                  # required
    tag: 1.0.0                     # falls back to BUILD_NUMBER, then latest
    platform: linux/amd64,linux/arm64
    path: ./Dockerfile
    enableCache: true
    buildArgs: [ARG1=value1]
    progress: plain
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping

from command_builder import build_docker_command, render_command
from config import BuildConfig
from config_validator import (
    ValidationReport,
    validate_build_config,
    resolve_build_config,
    generate_config_report,
)
from env_manager import PipelineContext
from error_recovery import analyze_and_suggest, create_recovery_context, safe_docker_execution
from exceptions import ExecutionError
from utils import validate_file_exists, ICON_WHALE, ICON_LIST, ICON_OK

logger = logging.getLogger(__name__)


@dataclass
class BuildResult:
    config: BuildConfig
    command: List[str]
    report: ValidationReport
    executed: bool = True

    @property
    def command_line(self) -> str:
        return render_command(self.command)

    @property
    def images(self) -> List[str]:
        return [self.config.get_image_tag(), self.config.get_image_tag("latest")]


def prepare_build(config: Mapping[str, Any], context: PipelineContext) -> BuildResult:
    """Validate and resolve the config and render the command without running it"""
    report = validate_build_config(config, context.env)
    report.raise_for_errors()

    build_config = resolve_build_config(config, context.env)
    validate_file_exists(context.file_exists, build_config.path, "Dockerfile")
    generate_config_report(build_config)

    return BuildResult(config=build_config, command=build_docker_command(build_config),
                       report=report, executed=False)


def build_docker_image(config: Mapping[str, Any], context: PipelineContext, dry_run: bool = False) -> BuildResult:
    result = prepare_build(config, context)
    cmd = result.command_line

    logger.info("%s Building Docker image...", ICON_WHALE)
    logger.info("%s Build command: %s", ICON_LIST, cmd)
    if dry_run:
        return result

    try:
        safe_docker_execution(context, cmd, f"docker build {result.config.name}")
    except ExecutionError as e:
        recovery_context = create_recovery_context(context, config)
        analysis = analyze_and_suggest(e, recovery_context)
        e.suggestions.extend(analysis.suggestions)
        e.context.update(recovery_context)
        raise

    result.executed = True
    logger.info("%s Pushed %s", ICON_OK, ", ".join(result.images))
    return result


def describe(result: BuildResult) -> Dict[str, Any]:
    summary = result.config.to_dict()
    summary["builder"] = result.config.builder_name
    summary["command"] = result.command_line
    summary["executed"] = result.executed
    return summary
