"""Custom exceptions for the pagepilot step engine."""

from typing import Optional, Any, Dict


class PilotError(Exception):
    """Base exception for all pagepilot errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotStartedError(PilotError):
    """Raised when steps are scheduled before the session has started."""

    def __init__(self, message: str = "Session not started; please use Session.start()"):
        super().__init__(message)


class NoStepsError(PilotError):
    """Raised when a suite is run without any step defined."""

    def __init__(self, message: str = "No steps defined, aborting"):
        super().__init__(message)


class InvalidStepError(PilotError, TypeError):
    """Raised when a step definition is not callable."""

    def __init__(self, step: Any, message: Optional[str] = None):
        super().__init__(
            message or f"A step must be callable, got {type(step).__name__}",
            {"type": type(step).__name__},
        )
        self.step = step


class StepExecutionError(PilotError):
    """Raised in strict mode when a step body fails."""

    def __init__(self, step_number: int, original_error: BaseException):
        super().__init__(
            f"Step {step_number} failed: {original_error}",
            {"step": step_number, "error_type": type(original_error).__name__},
        )
        self.step_number = step_number
        self.original_error = original_error


class RemoteEvaluationError(PilotError):
    """Raised when an expression cannot be evaluated in the remote context."""

    def __init__(self, message: str, expression: Optional[str] = None):
        super().__init__(message)
        self.expression = expression


class SurfaceError(PilotError):
    """Raised when the host navigation surface is misused or unavailable."""

    def __init__(self, message: str, surface: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.surface = surface
