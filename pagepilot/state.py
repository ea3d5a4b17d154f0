"""Mutable state shared by the scheduler, the waiter and the lifecycle observer."""

import time as time_module
from dataclasses import dataclass, field
from typing import List, Optional

from pagepilot.types import RunResult


@dataclass
class SessionState:
    """State of one session.

    Owned by a single ``Session`` and mutated only from its event loop.
    """

    started: bool = False
    cursor: int = 0
    idle: bool = True
    delayed_execution: bool = False
    current_url: str = "about:blank"
    request_url: str = "about:blank"
    http_status: Optional[int] = 200
    history: List[str] = field(default_factory=list)
    result: RunResult = field(default_factory=RunResult)
    terminated: bool = False
    exit_code: Optional[int] = None
    start_time: Optional[float] = None

    def mark_started(self) -> None:
        self.started = True
        self.cursor = 0
        self.start_time = time_module.monotonic()

    def elapsed_ms(self) -> int:
        """Milliseconds since the session started."""
        if self.start_time is None:
            return 0
        return int((time_module.monotonic() - self.start_time) * 1000)

    def advance(self) -> None:
        self.cursor += 1
