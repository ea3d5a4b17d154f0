"""Session: the authoring API of the step engine.

A session owns its state, its step queue and the navigation surface it
drives. Steps are queued with ``then`` and friends, then executed in order by
``run``::

    async with Session(options, surface) as session:
        await session.start("https://example.com")
        session.then(lambda s: s.echo("loaded"))
        session.wait_for_selector("#results")
        await session.run()
"""

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Set

import click

from pagepilot.bridge import RemoteBridge
from pagepilot.errors import RemoteEvaluationError, SurfaceError
from pagepilot.lifecycle import LifecycleObserver
from pagepilot.scheduler import Scheduler
from pagepilot.state import SessionState
from pagepilot.steps import StepFn, StepQueue, maybe_await
from pagepilot.surface.interface import ISurface
from pagepilot.types import LOG_LEVELS, ClipRect, LogEntry, SessionOptions, Viewport
from pagepilot.waiter import ConditionWaiter, Predicate

logger = logging.getLogger(__name__)

DEFAULT_DIE_MESSAGE = "Suite explicitly interrupted without any message given."

_PYTHON_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

_LOG_STYLES: Dict[str, Dict[str, Any]] = {
    "debug": {"fg": "green"},
    "info": {"fg": "cyan"},
    "warning": {"fg": "yellow"},
    "error": {"fg": "red", "bold": True},
}


class Session:
    """Coordinates state, the step queue and the navigated surface."""

    def __init__(self, options: Optional[SessionOptions] = None, surface: Optional[ISurface] = None):
        """
        Args:
            options: Session options; read from the environment when omitted
            surface: Surface to drive; created by SurfaceFactory when omitted
        """
        self.options = options or SessionOptions.from_environment()
        self._surface = surface
        self.state = SessionState()
        self.queue = StepQueue(self.state)
        self.scheduler = Scheduler(self)
        self.waiter = ConditionWaiter(self)
        self.bridge = RemoteBridge(self)
        self.observer = LifecycleObserver(self)
        self._watchdog: Optional[asyncio.TimerHandle] = None
        self._surface_started = False
        self._hook_tasks: Set[asyncio.Task] = set()

    async def __aenter__(self):
        """Support for async context manager."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Ensure resources are cleaned up when exiting context."""
        await self.close()

    @property
    def surface(self) -> ISurface:
        if self._surface is None:
            from pagepilot.surface.factory import SurfaceFactory

            self._surface = SurfaceFactory.create_surface()
        return self._surface

    @property
    def result(self):
        return self.state.result

    @property
    def exit_code(self) -> Optional[int]:
        return self.state.exit_code

    @property
    def history(self):
        return self.state.history

    # ------------------------------------------------------------------
    # Lifecycle

    async def start(self, location: Optional[str] = None, then: Optional[StepFn] = None) -> "Session":
        """Configure the surface and start the session.

        Args:
            location: Optional location to open on start
            then: Optional first step to run once the location is loaded
        """
        if self.state.started:
            self.log("start failed: the session has already started!", "error")
        self.log("Starting...", "info")
        self.queue.clear()
        self.scheduler.reset()
        self.state.mark_started()

        if self.options.log_level not in LOG_LEVELS:
            self.log(f"Unknown log level '{self.options.log_level}', defaulting to 'warning'", "warning")
            self.options.log_level = "warning"

        surface = self.surface
        surface.subscribe(self.observer)
        if not self._surface_started:
            await surface.start(self.options.page_settings)
            self._surface_started = True
        if self.options.page_settings.clip_rect:
            surface.clip_rect = self.options.page_settings.clip_rect

        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None
        if self.options.timeout_ms and self.options.timeout_ms > 0:
            self.log(f"execution timeout set to {self.options.timeout_ms}ms", "info")
            self._watchdog = asyncio.get_running_loop().call_later(
                self.options.timeout_ms / 1000, self._on_watchdog
            )

        if self.options.on_page_initialized:
            self.log("Post-configuring surface instance", "debug")
            await maybe_await(self.options.on_page_initialized(surface))

        if location:
            await self.open(location)
            if then is not None:
                self.then(then)
        return self

    def _on_watchdog(self) -> None:
        self._watchdog = None
        if not self.state.terminated:
            self.die(f"timeout of {self.options.timeout_ms}ms exceeded")

    async def run(
        self, on_complete: Optional[Callable[["Session"], Any]] = None, poll_interval_ms: Optional[int] = None
    ) -> Optional[int]:
        """Run the whole suite of steps.

        Args:
            on_complete: Optional callback invoked once every step has run
            poll_interval_ms: Interval between two scheduler polls

        Returns:
            The exit code once the session terminated, None otherwise
        """
        return await self.scheduler.run(
            on_complete, poll_interval_ms or self.options.step_poll_interval_ms
        )

    def die(self, message: Optional[str] = None, status: Optional[int] = None) -> "Session":
        """Terminate the session on failure, with a logged error message.

        Args:
            message: An optional error message
            status: An optional exit status code (must be > 0)
        """
        if self.state.terminated:
            return self
        self.state.result.status = "error"
        self.state.result.time_ms = self.state.elapsed_ms()
        message = message if isinstance(message, str) and message else DEFAULT_DIE_MESSAGE
        self.log(message, "error")
        if self.options.on_die:
            self._call_hook("onDie", self.options.on_die, self, message, status)
        code = status if isinstance(status, int) and not isinstance(status, bool) and status > 0 else 1
        return self.exit(code)

    def exit(self, status: int = 0) -> "Session":
        """Terminate the session; no further step or poll runs afterwards."""
        if self.state.terminated:
            return self
        self.state.terminated = True
        self.state.exit_code = status
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None
        self.waiter.cancel_all()
        self.scheduler.cancel()
        logger.debug(f"Session terminated with status {status}")
        return self

    def _call_hook(self, name: str, hook: Callable[..., Any], *args: Any) -> None:
        """Call a hook from synchronous code; awaitable results are scheduled."""
        try:
            result = hook(*args)
        except Exception as e:
            logger.error(f"{name} hook failed: {e}")
            return
        if not inspect.isawaitable(result):
            return
        task = asyncio.ensure_future(result)
        self._hook_tasks.add(task)

        def _done(finished: asyncio.Task) -> None:
            self._hook_tasks.discard(finished)
            if not finished.cancelled() and finished.exception() is not None:
                logger.error(f"{name} hook failed: {finished.exception()}")

        task.add_done_callback(_done)

    async def close(self) -> None:
        """Terminate the session if needed and close the surface."""
        if not self.state.terminated and self.state.started:
            self.exit(self.state.exit_code or 0)
        if self._hook_tasks:
            await asyncio.gather(*self._hook_tasks, return_exceptions=True)
        if self._surface is not None and self._surface_started:
            await self._surface.close()
            self._surface_started = False

    # ------------------------------------------------------------------
    # Logging

    def log(self, message: str, level: str = "debug", origin: str = "pilot") -> "Session":
        """Log a message.

        Args:
            message: The message to log
            level: One of debug, info, warning, error
            origin: Where the event occurred ("pilot" or "remote")
        """
        level = level if level in LOG_LEVELS else "debug"
        logging.getLogger(f"{__name__}.{origin}").log(_PYTHON_LOG_LEVELS[level], message)
        if level == "error" and self.options.on_error:
            self._call_hook("onError", self.options.on_error, self, message, origin)
        threshold = self.options.log_level if self.options.log_level in LOG_LEVELS else "warning"
        if LOG_LEVELS.index(level) < LOG_LEVELS.index(threshold):
            return self
        if self.options.verbose:
            level_str = click.style(f"[{level}]", **_LOG_STYLES[level])
            self.echo(f"{level_str} [{origin}] {message}")
        self.state.result.log.append(LogEntry(level=level, origin=origin, message=message))
        return self

    def echo(self, text: Any, style: Optional[str] = None) -> "Session":
        """Print something to stdout, optionally styled like a log level."""
        text = "" if text is None else str(text)
        if style in _LOG_STYLES:
            text = click.style(text, **_LOG_STYLES[style])
        click.echo(text)
        return self

    # ------------------------------------------------------------------
    # Step authoring

    def then(self, step: StepFn) -> "Session":
        """Schedule the next step of the navigation process."""
        self.queue.append(step)
        return self

    def then_open(self, location: str, then: Optional[StepFn] = None) -> "Session":
        async def _open_step(session: "Session") -> None:
            await session.open(location)

        self.then(_open_step)
        return self.then(then) if then is not None else self

    def then_click(self, selector: str, then: Optional[StepFn] = None, fallback_to_href: bool = True) -> "Session":
        async def _click_step(session: "Session") -> None:
            await session.click(selector, fallback_to_href)

        self.then(_click_step)
        return self.then(then) if then is not None else self

    def then_evaluate(self, fn: str, params: Optional[Dict[str, Any]] = None) -> "Session":
        async def _evaluate_step(session: "Session") -> None:
            await session.evaluate(fn, params)

        return self.then(_evaluate_step)

    def then_open_and_evaluate(
        self, location: str, fn: str, params: Optional[Dict[str, Any]] = None
    ) -> "Session":
        return self.then_open(location).then_evaluate(fn, params)

    def repeat(self, times: int, step: StepFn) -> "Session":
        """Queue the same step ``times`` times."""
        for _ in range(times):
            self.then(step)
        return self

    def each(self, items: Iterable[Any], fn: Callable[["Session", Any, int], Any]) -> "Session":
        """Call ``fn(session, item, index)`` for every item, at authoring time."""
        for index, item in enumerate(items):
            fn(self, item, index)
        return self

    def back(self) -> "Session":
        return self.then_evaluate("() => { history.back(); }")

    def forward(self) -> "Session":
        return self.then_evaluate("() => { history.forward(); }")

    def wait(self, duration_ms: int, then: Optional[StepFn] = None) -> "Session":
        """Queue a step waiting ``duration_ms`` before processing ``then``."""
        step = self.waiter.wait(duration_ms, then)
        return self.then(step) if step is not None else self

    def wait_for(
        self,
        predicate: Predicate,
        then: Optional[StepFn] = None,
        on_timeout: Optional[StepFn] = None,
        timeout_ms: Optional[int] = None,
    ) -> "Session":
        """Queue a step waiting until ``predicate(session)`` is truthy."""
        step = self.waiter.wait_for(predicate, then, on_timeout, timeout_ms)
        return self.then(step) if step is not None else self

    def wait_for_selector(
        self,
        selector: str,
        then: Optional[StepFn] = None,
        on_timeout: Optional[StepFn] = None,
        timeout_ms: Optional[int] = None,
    ) -> "Session":
        """Queue a step waiting until ``selector`` matches in the remote DOM."""

        async def _selector_exists(session: "Session") -> bool:
            return await session.exists(selector)

        _selector_exists.__name__ = f"exists({selector})"
        return self.wait_for(_selector_exists, then, on_timeout, timeout_ms)

    # ------------------------------------------------------------------
    # Surface operations

    async def open(self, location: str) -> "Session":
        """Start loading ``location``; completion is tracked by the observer."""
        self.state.request_url = location
        await self.surface.open(location)
        return self

    async def evaluate(self, fn: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Evaluate ``fn`` in the remote context.

        ``params`` are available remotely as ``__pilot_params__`` and through
        ``%name%`` placeholders in ``fn``.
        """
        return await self.bridge.evaluate(fn, params)

    async def evaluate_or_die(
        self, fn: str, message: Optional[str] = None, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Evaluate ``fn`` and die if the result is falsy."""
        result = await self.evaluate(fn, params)
        if not result:
            self.die(message)
        return result

    async def exists(self, selector: str) -> bool:
        return bool(
            await self.evaluate(
                "() => { try { return document.querySelectorAll(%selector%).length > 0; } catch (e) { return false; } }",
                {"selector": selector},
            )
        )

    async def click(self, selector: str, fallback_to_href: bool = True) -> bool:
        self.log(f"click on selector: {selector}", "debug")
        return bool(
            await self.evaluate(
                "() => __utils__.click(__pilot_params__.selector, __pilot_params__.fallbackToHref)",
                {"selector": selector, "fallbackToHref": fallback_to_href},
            )
        )

    async def fetch_text(self, selector: str) -> str:
        text = await self.evaluate(
            "() => __utils__.fetchText(__pilot_params__.selector)", {"selector": selector}
        )
        return text or ""

    async def get_current_url(self) -> str:
        """Current document URL, falling back to the last known one."""
        try:
            href = await self.surface.evaluate("() => document.location.href")
        except (RemoteEvaluationError, SurfaceError) as e:
            logger.debug(f"Unable to read the document location: {e}")
            href = None
        return href or self.state.current_url

    async def get_title(self) -> Optional[str]:
        return await self.evaluate("() => document.title")

    async def get_global(self, name: str) -> Any:
        return await self.evaluate("() => window[__pilot_params__.name]", {"name": name})

    async def debug_html(self) -> "Session":
        self.echo(await self.evaluate("() => document.body.innerHTML"))
        return self

    async def debug_page(self) -> "Session":
        self.echo(await self.evaluate("() => document.body.innerText"))
        return self

    async def capture(self, target_file: str, clip_rect: Optional[ClipRect] = None) -> "Session":
        """Render the surface to ``target_file``, optionally clipped.

        Relative paths are resolved against the configured capture directory.
        """
        if self.options.capture_dir and not Path(target_file).is_absolute():
            target_file = str(Path(self.options.capture_dir) / target_file)
        if clip_rect:
            self.log(f"Capturing page to {target_file} with clip {clip_rect.model_dump()}", "debug")
        else:
            self.log(f"Capturing page to {target_file}", "debug")
        try:
            Path(target_file).parent.mkdir(parents=True, exist_ok=True)
            await self.surface.capture(target_file, clip_rect)
        except (OSError, SurfaceError) as e:
            self.log(f"Failed to capture screenshot as {target_file}: {e}", "error")
        return self

    async def capture_selector(self, target_file: str, selector: str) -> "Session":
        """Capture the area of the element matching ``selector``."""
        bounds = await self.evaluate(
            """() => {
                try {
                    var rect = document.querySelector(__pilot_params__.selector).getBoundingClientRect();
                    return {top: rect.top, left: rect.left, width: rect.width, height: rect.height};
                } catch (e) {
                    console.log("[pilot:warning] Unable to fetch bounds for element " + __pilot_params__.selector);
                    return null;
                }
            }""",
            {"selector": selector},
        )
        if not bounds:
            self.log(f"Unable to capture {selector}: element not found", "warning")
            return self
        return await self.capture(target_file, ClipRect(**bounds))

    async def upload_file(self, selector: str, path: str) -> "Session":
        await self.surface.upload_file(selector, path)
        return self

    async def viewport(self, width: int, height: int) -> "Session":
        """Change the current viewport size.

        Raises:
            ValueError: If the width or height is not a positive number
        """
        await self.surface.set_viewport(Viewport(width=width, height=height))
        return self
