"""Delayed and conditional continuation of a step sequence.

A wait is a step that, when executed, suspends the scheduler instead of
blocking it: it raises the session's ``delayed_execution`` flag and starts a
sub-poll task. When the wait resolves, the flag is cleared and the
continuation step, if any, is appended to the queue.

Each wait owns a ``CancellationToken``; terminating the session cancels all
of them.
"""

import asyncio
import logging
import time as time_module
from typing import Any, Awaitable, Callable, Optional, Set, TYPE_CHECKING

from pagepilot.steps import StepFn, maybe_await

if TYPE_CHECKING:
    from pagepilot.session import Session

logger = logging.getLogger(__name__)

Predicate = Callable[[Any], Any]


class CancellationToken:
    """Cooperative cancellation flag for one pending wait."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep for ``seconds``.

        Returns:
            True if the token was cancelled before the delay elapsed
        """
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
            return True
        except asyncio.TimeoutError:
            return False


class ConditionWaiter:
    """Builds wait steps and drives their sub-polls."""

    def __init__(self, session: "Session"):
        self.session = session
        self._tokens: Set[CancellationToken] = set()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def poll_interval(self) -> float:
        return self.session.options.wait_poll_interval_ms / 1000

    @property
    def pending(self) -> int:
        """Number of waits not yet resolved."""
        return len(self._tasks)

    def wait(self, duration_ms: int, then: Optional[StepFn] = None) -> Optional[StepFn]:
        """Build a step waiting ``duration_ms`` before appending ``then``.

        Invalid arguments terminate the session; None is returned then.
        """
        if isinstance(duration_ms, bool) or not isinstance(duration_ms, int) or duration_ms < 1:
            self.session.die("wait() only accepts a positive integer > 0 as a timeout value")
            return None
        if then is not None and not callable(then):
            self.session.die("wait() a step definition must be a function")
            return None

        def _wait_step(session: "Session") -> None:
            self._begin(lambda token: self._sleep(token, duration_ms, then))

        _wait_step.__name__ = f"wait({duration_ms})"
        return _wait_step

    def wait_for(
        self,
        predicate: Predicate,
        then: Optional[StepFn] = None,
        on_timeout: Optional[StepFn] = None,
        timeout_ms: Optional[int] = None,
    ) -> Optional[StepFn]:
        """Build a step waiting until ``predicate(session)`` is truthy.

        The predicate is sampled once per sub-poll tick. On success ``then``
        is appended; after ``timeout_ms`` without success ``on_timeout`` is
        called, or the session dies when no handler is given.
        """
        timeout_ms = timeout_ms or self.session.options.wait_timeout_ms
        if not callable(predicate):
            self.session.die("waitFor() needs a test function")
            return None
        if then is not None and not callable(then):
            self.session.die("waitFor() next step definition must be a function")
            return None
        if on_timeout is not None and not callable(on_timeout):
            self.session.die("waitFor() timeout handler must be a function")
            return None

        def _wait_for_step(session: "Session") -> None:
            self._begin(lambda token: self._poll(token, predicate, then, on_timeout, timeout_ms))

        _wait_for_step.__name__ = f"wait_for({getattr(predicate, '__name__', 'predicate')})"
        return _wait_for_step

    def _begin(self, factory: Callable[[CancellationToken], Awaitable[None]]) -> None:
        token = CancellationToken()
        self.session.state.delayed_execution = True
        self._tokens.add(token)
        task = asyncio.ensure_future(factory(token))
        self._tasks.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._tasks.discard(finished)
            self._tokens.discard(token)
            if not finished.cancelled() and finished.exception() is not None:
                logger.error(f"Wait task failed: {finished.exception()}")

        task.add_done_callback(_done)

    def _resolve(self) -> None:
        self.session.state.delayed_execution = False

    async def _sleep(self, token: CancellationToken, duration_ms: int, then: Optional[StepFn]) -> None:
        start = time_module.monotonic()
        while not token.cancelled:
            if await token.sleep(self.poll_interval):
                return
            elapsed_ms = (time_module.monotonic() - start) * 1000
            if elapsed_ms >= duration_ms:
                self._resolve()
                self.session.log(f"wait() finished waiting for {duration_ms}ms.", "info")
                if then is not None:
                    self.session.then(then)
                return

    async def _poll(
        self,
        token: CancellationToken,
        predicate: Predicate,
        then: Optional[StepFn],
        on_timeout: Optional[StepFn],
        timeout_ms: int,
    ) -> None:
        session = self.session
        start = time_module.monotonic()
        while not token.cancelled:
            if await token.sleep(self.poll_interval):
                return
            elapsed_ms = int((time_module.monotonic() - start) * 1000)
            if elapsed_ms < timeout_ms:
                if await self._test(predicate):
                    # The predicate may have terminated the session
                    if token.cancelled:
                        return
                    self._resolve()
                    session.log(f"waitFor() finished in {elapsed_ms}ms.", "info")
                    if then is not None:
                        session.then(then)
                    return
                continue

            self._resolve()
            session.log("waitFor() timeout", "warning")
            if on_timeout is None:
                session.die("Expired timeout, exiting.")
                return
            try:
                await maybe_await(on_timeout(session))
            except Exception as e:
                session.log(f"waitFor() timeout handler error: {e}", "error")
            return

    async def _test(self, predicate: Predicate) -> bool:
        try:
            return bool(await maybe_await(predicate(self.session)))
        except Exception as e:
            self.session.log(f"waitFor() predicate error: {e}", "error")
            return False

    def cancel_all(self) -> None:
        """Cancel every pending wait, including a predicate or handler in flight."""
        for token in list(self._tokens):
            token.cancel()
        self._tokens.clear()
        for task in list(self._tasks):
            task.cancel()
