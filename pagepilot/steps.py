"""Ordered queue of step closures."""

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional

from pagepilot.errors import InvalidStepError, NotStartedError
from pagepilot.state import SessionState

logger = logging.getLogger(__name__)

StepFn = Callable[[Any], Any]


async def maybe_await(value: Any) -> Any:
    """Await ``value`` if it is awaitable, so callbacks may be sync or async."""
    if inspect.isawaitable(value):
        return await value
    return value


@dataclass(frozen=True)
class Step:
    """A queued unit of work, identified by its insertion position."""

    fn: StepFn
    index: int


class StepQueue:
    """Append-only list of steps consumed in FIFO order by the scheduler.

    The queue may grow while it is being consumed: a step body can append
    further steps, which run after every step already queued.
    """

    def __init__(self, state: SessionState):
        self._state = state
        self._steps: List[Step] = []

    def append(self, fn: StepFn) -> Step:
        """Add a step to the end of the queue.

        Raises:
            NotStartedError: If the session has not started yet
            InvalidStepError: If ``fn`` is not callable
        """
        if not self._state.started:
            raise NotStartedError()
        if not callable(fn):
            raise InvalidStepError(fn)
        step = Step(fn=fn, index=len(self._steps))
        self._steps.append(step)
        logger.debug(f"Queued step {step.index + 1}: {getattr(fn, '__name__', repr(fn))}")
        return step

    def peek(self, position: int) -> Optional[Step]:
        """Return the step at ``position`` without consuming it."""
        if 0 <= position < len(self._steps):
            return self._steps[position]
        return None

    def clear(self) -> None:
        self._steps = []

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[Step]:
        return iter(list(self._steps))
