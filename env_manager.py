import os
import re
import time
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass

from config import StepSettings
from exceptions import ConfigurationError, ExecutionError
from utils import ShellExecutor, ICON_OK, ICON_WARN, ICON_FAIL

logger = logging.getLogger(__name__)

ENV_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass
class PipelineContext:
    """Everything a step needs from the surrounding pipeline.

    env          -- pipeline environment (what a CI job exports to its steps)
    params       -- pipeline parameters
    executor     -- runs shell command lines
    get_property -- optional accessor provided by the hosting CI platform
    sleep        -- used for retry backoff
    file_exists  -- existence check relative to the workspace
    """
    env: Dict[str, str] = None
    params: Dict[str, Any] = None
    executor: ShellExecutor = None
    get_property: Optional[Callable[[str], Optional[str]]] = None
    sleep: Callable[[float], None] = time.sleep
    file_exists: Optional[Callable[[str], bool]] = None
    workspace: Optional[str] = None
    settings: StepSettings = None

    def __post_init__(self):
        if self.env is None:
            self.env = {}
        if self.params is None:
            self.params = {}
        if self.workspace is None:
            self.workspace = self.env.get("WORKSPACE") or os.getcwd()
        if self.executor is None:
            self.executor = ShellExecutor(cwd=self.workspace, env=self.env)
        if self.file_exists is None:
            self.file_exists = self._file_in_workspace
        if self.settings is None:
            self.settings = StepSettings()

    def _file_in_workspace(self, path: str) -> bool:
        return os.path.isfile(os.path.join(self.workspace, path))

    @classmethod
    def from_environment(cls, params: Dict[str, Any] = None, settings: StepSettings = None) -> "PipelineContext":
        """Context for running inside a CI job: the process environment is the pipeline env"""
        return cls(env=dict(os.environ), params=params, settings=settings)


class EnvironmentManager:
    """Resolves environment variables from every source a pipeline offers"""

    def __init__(self, context: PipelineContext):
        self.context = context

    def _from_pipeline_env(self, name: str) -> Optional[str]:
        return self.context.env.get(name) or None

    def _from_property_accessor(self, name: str) -> Optional[str]:
        if self.context.get_property is None:
            return None
        try:
            value = self.context.get_property(name)
        except (KeyError, AttributeError, LookupError) as e:
            logger.warning("%s Property accessor could not read %s: %s", ICON_WARN, name, e)
            return None
        return str(value) if value else None

    def _from_process_env(self, name: str) -> Optional[str]:
        return os.environ.get(name) or None

    def _from_shell(self, name: str) -> Optional[str]:
        if not ENV_NAME_RE.match(name):
            return None
        try:
            value = self.context.executor.sh(f"printf '%s' \"${name}\"", capture_output=True)
        except ExecutionError as e:
            logger.warning("%s Shell lookup of %s failed: %s", ICON_WARN, name, e.message)
            return None
        if value and value != f"${name}":
            return value
        return None

    def lookups(self) -> List[Tuple[str, Callable[[str], Optional[str]]]]:
        return [
            ("pipeline env", self._from_pipeline_env),
            ("platform property", self._from_property_accessor),
            ("process environment", self._from_process_env),
            ("shell environment", self._from_shell),
        ]

    def get(self, name: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
        """First non-empty value across the sources, then the default.

        Raises ConfigurationError when nothing is found, no default is given
        and the variable is required.
        """
        for source, lookup in self.lookups():
            value = lookup(name)
            if value:
                logger.info("%s Read %s from %s", ICON_OK, name, source)
                return value

        if default is not None:
            logger.info("Using default value for %s: %s", name, default)
            return default

        if required:
            message = f"Required environment variable {name} is not set and has no default"
            logger.error("%s %s", ICON_FAIL, message)
            raise ConfigurationError(message, suggestions=[f"Export {name} in the pipeline environment"])

        logger.warning("%s Environment variable %s is not set", ICON_WARN, name)
        return None

    def split_present(self, names: List[str]) -> Tuple[Dict[str, str], List[str]]:
        """Partition names into (set variables with values, missing names) using the pipeline env"""
        present = {}
        missing = []
        for name in names:
            value = self.context.env.get(name)
            if value:
                present[name] = value
            else:
                missing.append(name)
        return present, missing


def safe_get_env_var(context: PipelineContext, name: str, default: Optional[str] = None,
                     required: bool = False) -> Optional[str]:
    return EnvironmentManager(context).get(name, default=default, required=required)
