"""
Types used throughout the pagepilot package.
"""

import json
from datetime import datetime
from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator

LogLevel = Literal["debug", "info", "warning", "error"]

LOG_LEVELS: List[str] = ["debug", "info", "warning", "error"]


class LogEntry(BaseModel):
    """One line of the session run log."""

    level: LogLevel
    origin: str = "pilot"
    message: str
    timestamp: datetime = Field(default_factory=datetime.now)


class RunResult(BaseModel):
    """Summary of a session run"""

    status: Literal["success", "error"] = "success"
    time_ms: int = 0
    log: List[LogEntry] = Field(default_factory=list)


class Viewport(BaseModel):
    """Viewport size of the navigated surface, in pixels"""

    width: int
    height: int

    @field_validator("width", "height")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("viewport dimensions must be positive")
        return value


class ClipRect(BaseModel):
    """A region of the surface to capture"""

    top: float = 0
    left: float = 0
    width: float
    height: float


class Resource(BaseModel):
    """A resource received by the surface"""

    url: str
    status: Optional[int] = None


class PageSettings(BaseModel):
    """Settings applied to the surface when the session starts"""

    user_agent: Optional[str] = None
    viewport: Optional[Viewport] = None
    clip_rect: Optional[ClipRect] = None


class RemoteCallEnvelope(BaseModel):
    """Parameters attached to one remote evaluation.

    Only JSON-representable values are accepted: primitives, lists and
    string-keyed mappings.
    """

    params: Dict[str, JsonValue] = Field(default_factory=dict)

    def serialize(self) -> str:
        return json.dumps(self.params)

    def literal(self, name: str) -> str:
        """Source literal form of one parameter."""
        return json.dumps(self.params[name])


SessionHook = Callable[..., Any]


class SessionOptions(BaseModel):
    """Options recognized by a session"""

    fault_tolerant: bool = True
    log_level: str = "error"
    timeout_ms: Optional[int] = None
    verbose: bool = False
    wait_timeout_ms: int = 5000
    wait_poll_interval_ms: int = 100
    step_poll_interval_ms: int = 250
    capture_dir: Optional[str] = None
    client_scripts: List[str] = Field(default_factory=list)
    page_settings: PageSettings = Field(default_factory=PageSettings)
    on_die: Optional[SessionHook] = None
    on_error: Optional[SessionHook] = None
    on_load_error: Optional[SessionHook] = None
    on_page_initialized: Optional[SessionHook] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @classmethod
    def from_environment(cls, **overrides: Any) -> "SessionOptions":
        """Build options from the configured environment settings.

        Explicit keyword overrides win over environment values.
        """
        from pagepilot.config import env

        values: Dict[str, Any] = {
            "fault_tolerant": env.get_setting("fault_tolerant"),
            "log_level": env.get_setting("log_level"),
            "verbose": env.get_setting("verbose"),
            "wait_timeout_ms": env.get_setting("wait_timeout_ms"),
            "wait_poll_interval_ms": env.get_setting("wait_poll_interval_ms"),
            "step_poll_interval_ms": env.get_setting("step_poll_interval_ms"),
            "capture_dir": env.get_setting("capture_dir"),
        }
        timeout_ms = env.get_setting("timeout_ms")
        if timeout_ms:
            values["timeout_ms"] = timeout_ms
        user_agent = env.get_setting("user_agent")
        if user_agent:
            values["page_settings"] = PageSettings(user_agent=user_agent)
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
