"""Shared test fixtures."""

import pytest

from env_manager import PipelineContext
from exceptions import ExecutionError


class FakeExecutor:
    """Records shell commands instead of running them.

    ``failures`` maps a command substring to how many times matching commands
    fail (-1 fails forever); ``outputs`` maps a substring to captured stdout.
    """

    def __init__(self, failures=None, outputs=None):
        self.commands = []
        self.inputs = []
        self.failures = dict(failures or {})
        self.outputs = dict(outputs or {})

    def sh(self, command, capture_output=False, input_text=None):
        self.commands.append(command)
        self.inputs.append(input_text)
        for pattern, remaining in self.failures.items():
            if pattern in command and remaining != 0:
                if remaining > 0:
                    self.failures[pattern] = remaining - 1
                raise ExecutionError(f"Command '{command}' exited with status 1", command=command, returncode=1)
        for pattern, output in self.outputs.items():
            if pattern in command:
                return output
        return ""


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def pipeline_env():
    return {"REGISTRY_HOST": "r.io", "JOB_NAME": "p", "BUILD_NUMBER": "42"}


@pytest.fixture
def workspace(tmp_path):
    (tmp_path / "Dockerfile").write_text("FROM scratch\n")
    return tmp_path


@pytest.fixture
def context(executor, sleeps, pipeline_env, workspace):
    return PipelineContext(
        env=pipeline_env,
        executor=executor,
        sleep=sleeps.append,
        workspace=str(workspace),
    )
