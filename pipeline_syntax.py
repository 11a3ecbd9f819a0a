"""
ValidatePipelineSyntax step: report the pipeline environment and parameters
and print guidance on common configuration mistakes.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from config import REQUIRED_ENV_VARS, OPTIONAL_ENV_VARS
from env_manager import EnvironmentManager, PipelineContext
from utils import ICON_OK, ICON_WARN

logger = logging.getLogger(__name__)

COMMON_ENV_VARS = REQUIRED_ENV_VARS + OPTIONAL_ENV_VARS

SYNTAX_GUIDANCE = """
=== Common Configuration Issues and Fixes ===

WRONG: host: ${REGISTRY_HOST}
RIGHT: leave 'host' unset (REGISTRY_HOST is used) or write the registry literally

WRONG: tag: ${BUILD_NUMBER}
RIGHT: leave 'tag' unset (BUILD_NUMBER is used, then latest)

WRONG: tag: BUILD_NUMBER
RIGHT: leave 'tag' unset, or pass --set tag=<value>

WRONG: tag: 010
RIGHT: tag: "010"

WRONG: enableCache: "false"
RIGHT: enableCache: false

WRONG: buildArgs: ARG1=value1
RIGHT: buildArgs: [ARG1=value1]

=== Rules ===
1. Environment fallbacks: leave host/project/tag unset
2. Pipeline parameters: --param NAME=value, overrides: --set key=value
3. Strings: plain or quoted YAML scalars
4. Booleans: true or false (no quotes)
5. Lists: [item1, item2] or one '- item' per line

=== Example ===
name: my-app
platform: linux/amd64,linux/arm64
path: ./Dockerfile
enableCache: true
buildArgs:
  - ARG1=value1
"""


@dataclass
class SyntaxCheck:
    present: Dict[str, str] = field(default_factory=dict)
    missing: List[str] = field(default_factory=list)
    params: Dict[str, Any] = field(default_factory=dict)
    guidance: str = ""


def validate_environment_variables(context: PipelineContext, check: SyntaxCheck):
    logger.info("Checking common environment variables...")
    present, missing = EnvironmentManager(context).split_present(COMMON_ENV_VARS)
    for name, value in present.items():
        logger.info("%s %s = %s", ICON_OK, name, value)
    if missing:
        logger.warning("%s Missing environment variables: %s", ICON_WARN, ", ".join(missing))
        logger.warning("These may make build_docker_image fail unless provided in the config.")
    check.present.update(present)
    check.missing.extend(missing)


def validate_parameters(context: PipelineContext, check: SyntaxCheck):
    logger.info("Checking pipeline parameters...")
    if not context.params:
        logger.info("No pipeline parameters defined")
        return
    for key, value in context.params.items():
        logger.info("%s Parameter: %s = %s", ICON_OK, key, value)
    check.params.update(context.params)


def validate_pipeline_syntax(context: PipelineContext, check_environment_variables: bool = True,
                             check_parameters: bool = True, suggest_fixes: bool = True) -> SyntaxCheck:
    check = SyntaxCheck()
    logger.info("=== Pipeline Syntax Validation ===")
    if check_environment_variables:
        validate_environment_variables(context, check)
    if check_parameters:
        validate_parameters(context, check)
    if suggest_fixes:
        check.guidance = SYNTAX_GUIDANCE
        logger.info(SYNTAX_GUIDANCE)
    logger.info("=== Validation Complete ===")
    return check
