"""
Bounded retry with an optional fallback, plus keyword-based error diagnosis.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, TypeVar

from command_builder import prune_commands
from config import INFO_ENV_VARS
from env_manager import PipelineContext
from exceptions import ConfigurationError, ExecutionError, PreconditionError
from utils import ICON_START, ICON_OK, ICON_FAIL, ICON_WARN, ICON_WAIT, ICON_FIX, ICON_HINT, ICON_LIST, ICON_FIND

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Static misconfiguration does not change between attempts
NON_RETRYABLE = (ConfigurationError, PreconditionError)

DEBUG_COMMANDS = [
    "Check environment variables: env | grep -E '(REGISTRY|JOB|BUILD)'",
    "Check Docker status: docker info",
    "Check disk space: df -h",
    "Check the full job console log",
]

NULL_SUGGESTIONS = [
    "Check that the required environment variables are set",
    "Verify the pipeline context is complete",
    "Make sure every required parameter is provided",
]
REGISTRY_HOST_SUGGESTION = "Export REGISTRY_HOST or set 'host' in the configuration"
JOB_NAME_SUGGESTION = "Export JOB_NAME or set 'project' in the configuration"
BUILD_NUMBER_SUGGESTION = "Export BUILD_NUMBER or set 'tag' in the configuration"
SYNTAX_SUGGESTIONS = [
    "Check the configuration file syntax",
    "Reference environment variables by leaving the field unset, not with ${...}",
    "Quote string values that contain special characters",
]
DOCKER_SUGGESTIONS = [
    "Check that the Docker daemon is running",
    "Verify the connection to the image registry",
    "Make sure the Dockerfile path is correct",
    "Check that there is enough free disk space",
]
PERMISSION_SUGGESTIONS = [
    "Check file and directory permissions",
    "Verify the permissions of the CI user",
    "Make sure the CI user is in the docker group",
]
NETWORK_SUGGESTIONS = [
    "Check network connectivity",
    "Verify firewall settings",
    "Check the proxy configuration",
    "Check DNS resolution",
]


@dataclass
class ErrorAnalysis:
    message: str
    categories: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)
    debug_commands: List[str] = field(default_factory=lambda: list(DEBUG_COMMANDS))
    context: Dict[str, Any] = field(default_factory=dict)


def analyze_and_suggest(error: BaseException, context: Optional[Mapping[str, Any]] = None) -> ErrorAnalysis:
    """Match keywords in the error text and log fix suggestions.

    Advisory only: the caller's control flow is unchanged.
    """
    message = str(error)
    text = message.lower()
    analysis = ErrorAnalysis(message=message, context=dict(context or {}))

    logger.info("%s Error analysis: %s", ICON_FIND, message)

    is_none_error = isinstance(error, (AttributeError, TypeError)) and "nonetype" in text
    if is_none_error or "null" in text or "nonetype" in text:
        analysis.categories.append("null")
        analysis.suggestions.extend(NULL_SUGGESTIONS)
    if "registry_host" in text:
        analysis.categories.append("registry_host")
        analysis.suggestions.append(REGISTRY_HOST_SUGGESTION)
    if "job_name" in text:
        analysis.categories.append("job_name")
        analysis.suggestions.append(JOB_NAME_SUGGESTION)
    if "build_number" in text:
        analysis.categories.append("build_number")
        analysis.suggestions.append(BUILD_NUMBER_SUGGESTION)
    if "compilation" in text or "syntax" in text:
        analysis.categories.append("syntax")
        analysis.suggestions.extend(SYNTAX_SUGGESTIONS)
    if "docker" in text:
        analysis.categories.append("docker")
        analysis.suggestions.extend(DOCKER_SUGGESTIONS)
    if "permission" in text or "access" in text:
        analysis.categories.append("permission")
        analysis.suggestions.extend(PERMISSION_SUGGESTIONS)
    if "network" in text or "connection" in text or "timeout" in text:
        analysis.categories.append("network")
        analysis.suggestions.extend(NETWORK_SUGGESTIONS)

    if analysis.suggestions:
        logger.info("%s Suggested fixes:", ICON_HINT)
        for suggestion in analysis.suggestions:
            logger.info("   - %s", suggestion)

    if analysis.context:
        logger.info("%s Error context:", ICON_LIST)
        for key, value in analysis.context.items():
            logger.info("   %s: %s", key, value)

    logger.info("%s Debug commands:", ICON_FIX)
    for command in analysis.debug_commands:
        logger.info("   - %s", command)

    return analysis


class ErrorRecovery:
    """Retries pipeline actions with linear backoff and an optional fallback"""

    def __init__(self, sleep: Callable[[float], None] = time.sleep, backoff_unit: float = 2.0):
        self.sleep = sleep
        self.backoff_unit = backoff_unit

    @classmethod
    def for_context(cls, context: PipelineContext) -> "ErrorRecovery":
        return cls(sleep=context.sleep, backoff_unit=context.settings.backoff_unit)

    def execute(self, operation: str, action: Callable[[], T],
                fallback: Optional[Callable[[], T]] = None, max_attempts: int = 3) -> T:
        """Run ``action`` up to ``max_attempts`` times.

        After failed attempt N (except the last) waits N * backoff_unit
        seconds. When every attempt fails the fallback, if any, runs once.
        Raises ExecutionError when nothing succeeded.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        last_error: Optional[Exception] = None
        for attempt in range(1, max_attempts + 1):
            logger.info("%s Running %s (attempt %d/%d)", ICON_START, operation, attempt, max_attempts)
            try:
                result = action()
            except NON_RETRYABLE:
                raise
            except Exception as e:
                last_error = e
                logger.warning("%s %s failed (attempt %d/%d): %s", ICON_FAIL, operation, attempt, max_attempts, e)
                if attempt < max_attempts:
                    delay = attempt * self.backoff_unit
                    logger.info("%s Waiting %s seconds before retrying...", ICON_WAIT, delay)
                    self.sleep(delay)
                continue
            logger.info("%s %s succeeded (attempt %d/%d)", ICON_OK, operation, attempt, max_attempts)
            return result

        if fallback is not None:
            logger.info("%s Trying fallback for %s...", ICON_FIX, operation)
            try:
                result = fallback()
            except Exception as fallback_error:
                logger.error("%s Fallback for %s failed: %s", ICON_FAIL, operation, fallback_error)
                raise ExecutionError(
                    f"{operation} failed, primary error: {last_error}, fallback error: {fallback_error}",
                    command=getattr(fallback_error, "command", None),
                    returncode=getattr(fallback_error, "returncode", None),
                ) from fallback_error
            logger.info("%s Fallback for %s succeeded", ICON_OK, operation)
            return result

        raise ExecutionError(
            f"{operation} still failing after {max_attempts} attempt(s): {last_error}",
            command=getattr(last_error, "command", None),
            returncode=getattr(last_error, "returncode", None),
        ) from last_error


def safe_docker_execution(context: PipelineContext, command: str, operation: str) -> str:
    """Run a docker command with retries; the fallback prunes caches and runs it once more"""
    executor = context.executor

    def prune_and_retry():
        logger.info("%s Pruning Docker caches before the last attempt...", ICON_FIX)
        for prune in prune_commands():
            try:
                executor.sh(prune)
            except ExecutionError as e:
                logger.warning("%s Docker prune failed: %s", ICON_WARN, e.message)
        return executor.sh(command)

    recovery = ErrorRecovery.for_context(context)
    fallback = prune_and_retry if context.settings.prune_on_failure else None
    return recovery.execute(
        operation,
        lambda: executor.sh(command),
        fallback,
        max_attempts=context.settings.max_attempts,
    )


def create_recovery_context(context: PipelineContext, config: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Snapshot of the CI environment attached to a final failure"""
    env = context.env
    recovery = {name.lower(): env.get(name) or "unknown" for name in INFO_ENV_VARS}
    recovery["config_keys"] = ", ".join(config.keys()) if config else "none"
    recovery["env_available"] = bool(env)
    return recovery
