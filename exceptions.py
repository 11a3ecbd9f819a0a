from typing import Any, Dict, List, Optional


class StepError(Exception):
    """Base error raised by pipeline steps.

    Carries actionable suggestions and free-form diagnostic context so the
    caller can print them next to the message.
    """

    def __init__(self, message: str, suggestions: List[str] = None, context: Dict[str, Any] = None):
        super().__init__(message)
        self.message = message
        self.suggestions = list(suggestions or [])
        self.context = dict(context or {})


class ConfigurationError(StepError):
    """Missing required field, unresolved required env var or a syntax smell"""

    def __init__(self, message: str, report: Optional[Any] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.report = report


class PreconditionError(StepError):
    """A file the step depends on does not exist"""


class ExecutionError(StepError):
    """An external command returned a non-zero exit status"""

    def __init__(self, message: str, command: Optional[str] = None, returncode: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.command = command
        self.returncode = returncode
