"""Lifecycle observer.

Translates the surface's navigation notifications into session state: the
idle flag that gates step execution, the current URL and HTTP status, and the
navigation history.
"""

import logging
import re
from pathlib import Path
from typing import TYPE_CHECKING

from pagepilot.errors import RemoteEvaluationError, SurfaceError
from pagepilot.steps import maybe_await
from pagepilot.surface.interface import ILifecycleListener
from pagepilot.types import LOG_LEVELS, Resource

if TYPE_CHECKING:
    from pagepilot.session import Session

logger = logging.getLogger(__name__)

CLIENT_UTILS_PATH = Path(__file__).parent / "js" / "client_utils.js"

CONSOLE_LEVEL_PATTERN = re.compile(r"^\[pilot:(\w+)\]\s?(.*)", re.DOTALL)


class LifecycleObserver(ILifecycleListener):
    def __init__(self, session: "Session"):
        self.session = session
        self._client_utils = None

    @property
    def client_utils(self) -> str:
        """Source of the in-page helper library, read once."""
        if self._client_utils is None:
            self._client_utils = CLIENT_UTILS_PATH.read_text(encoding="utf-8")
        return self._client_utils

    def on_load_started(self) -> None:
        self.session.state.idle = False

    async def on_load_finished(self, status: str) -> None:
        session = self.session
        state = session.state
        try:
            if status != "success":
                message = f"Loading resource failed with status={status}"
                if state.http_status:
                    message += f" (HTTP {state.http_status})"
                message += f": {state.request_url}"
                session.log(message, "warning")
                if session.options.on_load_error:
                    try:
                        await maybe_await(
                            session.options.on_load_error(session, state.request_url, status)
                        )
                    except Exception as e:
                        session.log(f"onLoadError hook failed: {e}", "error")
            if not state.terminated:
                await self._inject_client_scripts()
                await self._inject_client_utils()
                state.history.append(await session.get_current_url())
        finally:
            state.idle = True

    def on_resource_received(self, resource: Resource) -> None:
        state = self.session.state
        if resource.url == state.request_url:
            if resource.status is not None:
                state.http_status = resource.status
            state.current_url = resource.url

    def on_console_message(self, message: str) -> None:
        level = "info"
        match = CONSOLE_LEVEL_PATTERN.match(message)
        if match and match.group(1) in LOG_LEVELS:
            level, message = match.group(1), match.group(2)
        self.session.log(message, level, "remote")

    async def _inject_client_scripts(self) -> None:
        for script in self.session.options.client_scripts:
            if await self.session.surface.inject_script(script):
                self.session.log(f"Automatically injected {script} client side", "debug")
            else:
                self.session.log(f"Failed injecting {script} client side", "warning")

    async def _inject_client_utils(self) -> None:
        try:
            injected = await self.session.surface.evaluate(self.client_utils)
        except (RemoteEvaluationError, SurfaceError) as e:
            logger.debug(f"Client utilities injection raised: {e}")
            injected = False
        if injected:
            self.session.log("Successfully injected client-side utilities", "debug")
        else:
            self.session.log("Failed to inject client-side utilities!", "warning")
