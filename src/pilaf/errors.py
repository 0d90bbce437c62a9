from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    from .actions import Action
    from .results import ActionResult


class PilafError(Exception):
    """Base class for story execution errors."""


class ParameterError(PilafError):
    """A required action parameter is missing or empty."""

    def __init__(self, parameter: str, kind: str | None = None, *, message: str | None = None) -> None:
        self.parameter = parameter
        self.kind = kind
        if message is None:
            if kind:
                message = f"Missing '{parameter}' parameter for {kind}"
            else:
                message = f"Missing '{parameter}' parameter"
        super().__init__(message)


class BackendError(PilafError):
    """The backend rejected or failed a command."""


class UnsupportedActionError(PilafError):
    """No executor is registered for an action kind."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Unsupported action type: {kind}")


class CorrelationTimeout(PilafError):
    """No confirmation event arrived before the deadline."""

    def __init__(self, pattern: str, timeout: float) -> None:
        self.pattern = pattern
        self.timeout = timeout
        super().__init__(
            f"Timed out after {int(timeout * 1000)}ms waiting for event matching '{pattern}'"
        )


class StoryValidationError(PilafError):
    """A story document is structurally valid but semantically wrong."""


class StoryAbortedError(PilafError):
    """Raised inside the orchestrator to stop the remaining setup and steps."""


class BackendInitializationError(StoryAbortedError):
    def __init__(self, backend_name: str, cause: BaseException) -> None:
        self.backend_name = backend_name
        super().__init__(f"Backend '{backend_name}' failed to initialize: {cause}")


class ActionFailedError(StoryAbortedError):
    def __init__(self, action: Action, result: ActionResult) -> None:
        self.action = action
        self.result = result
        kind = getattr(action.kind, "value", action.kind)
        super().__init__(f"Action failed: {kind}: {result.error}")
