"""Step scheduler.

A recurring poll that runs the next queued step whenever the surface is idle
and no wait is pending, until the queue is exhausted.
"""

import asyncio
import logging
import time as time_module
from enum import Enum
from typing import Any, Callable, Optional, TYPE_CHECKING

from pagepilot.errors import NoStepsError, StepExecutionError
from pagepilot.steps import Step, maybe_await

if TYPE_CHECKING:
    from pagepilot.session import Session

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[Any], Any]


class Phase(Enum):
    IDLE = "idle"
    POLLING = "polling"
    STEP_EXECUTING = "step_executing"
    WAITING = "waiting"
    DONE = "done"
    FAILED = "failed"


class Scheduler:
    """Drives the step queue of one session."""

    DEFAULT_POLL_INTERVAL_MS = 250

    def __init__(self, session: "Session"):
        self.session = session
        self.phase = Phase.IDLE
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def reset(self) -> None:
        self.phase = Phase.IDLE

    def cancel(self) -> None:
        """Stop polling, interrupting the step in flight if any."""
        if self.running:
            self._task.cancel()

    async def run(
        self,
        on_complete: Optional[CompletionCallback] = None,
        poll_interval_ms: Optional[int] = None,
    ) -> Optional[int]:
        """Run the queued steps until the queue is exhausted or the session ends.

        Args:
            on_complete: Called with the session once every step has run;
                the session exits with status 0 when omitted
            poll_interval_ms: Interval between two polls

        Returns:
            The session exit code, or None if the session is still alive

        Raises:
            StepExecutionError: If a step fails while fault tolerance is disabled
        """
        session = self.session
        try:
            queue_size = self._check_steps()
        except NoStepsError as e:
            session.log(e.message, "error")
            return session.state.exit_code
        if self.running:
            session.log("run() ignored: the suite is already running", "warning")
            return session.state.exit_code

        interval = (poll_interval_ms or self.DEFAULT_POLL_INTERVAL_MS) / 1000
        session.log(f"Running suite: {queue_size} step{'s' if queue_size > 1 else ''}", "info")
        self.phase = Phase.POLLING
        self._task = asyncio.ensure_future(self._poll_loop(interval))
        try:
            exhausted = await self._task
        except asyncio.CancelledError:
            # Termination cancels the poll task, possibly mid-step
            if not session.state.terminated:
                raise
            return session.state.exit_code
        except StepExecutionError as e:
            self.phase = Phase.FAILED
            session.die(f"Step error: {e.original_error}")
            raise
        finally:
            self._task = None
        # Completion runs outside the poll task so on_complete may run() again
        if exhausted:
            await self._complete(on_complete)
        return session.state.exit_code

    def _check_steps(self) -> int:
        queue_size = len(self.session.queue)
        if queue_size < 1:
            raise NoStepsError()
        return queue_size

    async def _poll_loop(self, interval: float) -> bool:
        """Poll until the queue is exhausted (True) or the session ends (False)."""
        while not self.session.state.terminated:
            if await self.tick():
                return not self.session.state.terminated
            await asyncio.sleep(interval)
        return False

    async def tick(self) -> bool:
        """Perform one poll.

        Returns:
            True when polling must stop
        """
        state = self.session.state
        if state.terminated:
            return True

        if not state.idle or state.delayed_execution:
            # A load in progress or a pending wait may still append steps
            self.phase = Phase.WAITING
            return False

        step = self.session.queue.peek(state.cursor)
        if step is None:
            return True
        await self._execute(step)
        return state.terminated

    async def _execute(self, step: Step) -> None:
        session = self.session
        state = session.state
        step_number = state.cursor + 1
        step_info = f"Step {step_number}/{len(session.queue)}: "
        location = await session.get_current_url()
        session.log(f"{step_info}{location} (HTTP {state.http_status})", "info")

        self.phase = Phase.STEP_EXECUTING
        started = time_module.monotonic()
        try:
            await maybe_await(step.fn(session))
        except Exception as e:
            if not session.options.fault_tolerant:
                raise StepExecutionError(step_number, e) from e
            session.log(f"Step error: {e}", "error")
            logger.debug(f"Step {step_number} raised", exc_info=True)
        elapsed_ms = int((time_module.monotonic() - started) * 1000)
        if state.terminated:
            return
        session.log(f"{step_info}done in {elapsed_ms}ms.", "info")
        state.advance()
        self.phase = Phase.POLLING

    async def _complete(self, on_complete: Optional[CompletionCallback]) -> None:
        session = self.session
        state = session.state
        self.phase = Phase.DONE
        state.result.time_ms = state.elapsed_ms()
        session.log(f"Done {len(session.queue)} steps in {state.result.time_ms}ms.", "info")
        if on_complete is None:
            session.exit()
            return
        try:
            await maybe_await(on_complete(session))
        except Exception as e:
            session.log(f"could not complete final step: {e}", "error")
