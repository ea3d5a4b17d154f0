"""pagepilot: step-based scripted navigation of web pages."""

from pagepilot.errors import (
    PilotError,
    NotStartedError,
    NoStepsError,
    InvalidStepError,
    StepExecutionError,
    RemoteEvaluationError,
    SurfaceError,
)
from pagepilot.types import (
    ClipRect,
    LogEntry,
    PageSettings,
    Resource,
    RunResult,
    SessionOptions,
    Viewport,
)
from pagepilot.session import Session
from pagepilot.scheduler import Phase, Scheduler
from pagepilot.waiter import CancellationToken, ConditionWaiter

__all__ = [
    "Session",
    "SessionOptions",
    "PageSettings",
    "Viewport",
    "ClipRect",
    "Resource",
    "LogEntry",
    "RunResult",
    "Scheduler",
    "Phase",
    "ConditionWaiter",
    "CancellationToken",
    "PilotError",
    "NotStartedError",
    "NoStepsError",
    "InvalidStepError",
    "StepExecutionError",
    "RemoteEvaluationError",
    "SurfaceError",
]
