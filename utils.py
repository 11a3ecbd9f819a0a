from typing import Dict, Optional
import logging
import os
import shutil
import subprocess

from exceptions import ExecutionError, PreconditionError

logger = logging.getLogger(__name__)

# Plain ASCII tags by default; set BUILDX_STEPS_LOG_PLAIN=0 to enable emojis
PLAIN_LOG = os.getenv('BUILDX_STEPS_LOG_PLAIN', '1').lower() in ('1', 'true', 'yes')
ICON_START = '🔄' if not PLAIN_LOG else '[RUN]'
ICON_OK = '✅' if not PLAIN_LOG else '[OK]'
ICON_FAIL = '❌' if not PLAIN_LOG else '[FAIL]'
ICON_WARN = '⚠️' if not PLAIN_LOG else '[WARN]'
ICON_WAIT = '⏳' if not PLAIN_LOG else '[WAIT]'
ICON_FIX = '🔧' if not PLAIN_LOG else '[FIX]'
ICON_HINT = '💡' if not PLAIN_LOG else '[HINT]'
ICON_LIST = '📋' if not PLAIN_LOG else '[LIST]'
ICON_FIND = '🔍' if not PLAIN_LOG else '[FIND]'
ICON_WHALE = '🐳' if not PLAIN_LOG else '[DOCKER]'


def _can_run(cmd: list) -> bool:
    try:
        # Use a short timeout to avoid hanging
        r = subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, timeout=5)
        return r.returncode == 0
    except (OSError, subprocess.SubprocessError):
        return False


def docker_available() -> bool:
    """Check that the docker CLI exists, the daemon answers and buildx is installed"""
    if not shutil.which("docker"):
        return False
    return _can_run(["docker", "info"]) and _can_run(["docker", "buildx", "version"])


class ShellExecutor:
    """Runs single shell command lines, the way a CI ``sh`` step does.

    Output streams straight to the console unless ``capture_output`` is set.
    A non-zero exit status raises ExecutionError.
    """

    def __init__(self, cwd: Optional[str] = None, env: Optional[Dict[str, str]] = None):
        self.cwd = cwd
        self.env = env

    def _build_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        if self.env:
            env.update({k: str(v) for k, v in self.env.items() if v is not None})
        env.setdefault('DOCKER_BUILDKIT', '1')
        return env

    def sh(self, command: str, capture_output: bool = False, input_text: Optional[str] = None) -> str:
        logger.debug("Running shell command: %s", command)
        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=self.cwd,
                env=self._build_env(),
                text=True,
                capture_output=capture_output,
                input=input_text,
            )
        except OSError as e:
            raise ExecutionError(f"Could not start command '{command}': {e}", command=command) from e

        if result.returncode != 0:
            message = f"Command '{command}' exited with status {result.returncode}"
            stderr = (result.stderr or '').strip() if capture_output else ''
            if stderr:
                message += f": {stderr}"
            raise ExecutionError(message, command=command, returncode=result.returncode)

        return (result.stdout or '').strip() if capture_output else ''


def validate_file_exists(file_exists, file_path: str, description: str = "File") -> bool:
    if not file_exists(file_path):
        raise PreconditionError(
            f"{description} not found: {file_path}",
            suggestions=[f"Check that {file_path} exists relative to the workspace"],
        )
    return True


def safe_shell_execution(executor: ShellExecutor, command: str, description: str = "command") -> str:
    """Run a command with start/finish log lines; failures keep the description"""
    logger.info("%s Starting %s...", ICON_START, description)
    try:
        output = executor.sh(command)
    except ExecutionError as e:
        logger.error("%s %s failed: %s", ICON_FAIL, description, e.message)
        raise ExecutionError(
            f"{description} failed: {e.message}", command=command, returncode=e.returncode
        ) from e
    logger.info("%s %s completed", ICON_OK, description)
    return output
