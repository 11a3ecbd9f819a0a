"""
Registry login and Helm release steps.
"""

import logging
from typing import List

from command_builder import build_login_command, build_helm_command
from env_manager import PipelineContext
from exceptions import ExecutionError
from utils import safe_shell_execution, ICON_OK, ICON_FAIL

logger = logging.getLogger(__name__)


def login_docker_registry(host: str, username: str, password: str, context: PipelineContext) -> str:
    """LoginDockerRegistry step; the password goes over stdin, never onto the command line"""
    cmd = build_login_command(host, username)
    logger.info("Logging in to %s as %s", host, username)
    try:
        context.executor.sh(cmd, input_text=password)
    except ExecutionError as e:
        logger.error("%s Registry login failed: %s", ICON_FAIL, e.message)
        raise
    logger.info("%s Logged in to %s", ICON_OK, host)
    return cmd


def helm_deploy(name: str, path: str, namespace: str, context: PipelineContext, sets: List[str] = None) -> str:
    cmd = build_helm_command(name, path, namespace, sets)
    safe_shell_execution(context.executor, cmd, f"helm deploy {name}")
    return cmd
