"""Playwright-based navigation surface.

This module provides a surface implementation using the Playwright async API.
"""

import asyncio
import logging
from typing import Any, Optional, Set

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    ConsoleMessage,
    Error as PlaywrightError,
    Page,
    Playwright,
    Request,
    Response,
)

from pagepilot.errors import RemoteEvaluationError, SurfaceError
from pagepilot.surface.interface import ISurface
from pagepilot.types import ClipRect, PageSettings, Resource, Viewport

logger = logging.getLogger(__name__)


class PlaywrightSurface(ISurface):
    DEFAULT_NAVIGATION_TIMEOUT = 30  # seconds

    def __init__(
        self,
        browser_type: str = "chromium",
        headless: bool = True,
        user_data_dir: Optional[str] = None,
        channel: Optional[str] = None,
    ):
        """
        Args:
            browser_type: Browser type string (e.g., 'chromium', 'firefox', 'webkit').
                For Chrome, use 'chrome' and for Edge, use 'edge'.
            headless: Whether to run browser in headless mode.
            user_data_dir: Optional path for persistent context.
            channel: Optional browser channel (e.g., 'chrome', 'msedge').
        """
        super().__init__()
        # Both Chrome and Edge use the Chromium engine
        if browser_type in ["chrome", "edge"]:
            self.browser_type = "chromium"
        else:
            self.browser_type = browser_type

        if browser_type == "chrome":
            self.channel = "chrome"
        elif browser_type == "edge":
            self.channel = "msedge"
        else:
            self.channel = channel

        self.headless = headless
        self.user_data_dir = user_data_dir
        self.playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None
        self._pending: Set[asyncio.Task] = set()

    async def start(self, settings: PageSettings) -> None:
        self.playwright = await async_playwright().start()
        browser_launcher = getattr(self.playwright, self.browser_type)

        launch_options: dict = {"headless": self.headless}
        if self.channel:
            launch_options["channel"] = self.channel

        context_options: dict = {}
        if settings.user_agent:
            context_options["user_agent"] = settings.user_agent
        if settings.viewport:
            context_options["viewport"] = settings.viewport.model_dump()

        if self.user_data_dir:
            self.context = await browser_launcher.launch_persistent_context(
                user_data_dir=self.user_data_dir, **launch_options, **context_options
            )
        else:
            self.browser = await browser_launcher.launch(**launch_options)
            self.context = await self.browser.new_context(**context_options)

        self.page = await self.context.new_page()
        self.clip_rect = settings.clip_rect
        self._wire_events(self.page)
        logger.debug(f"Started {self.browser_type} surface (headless={self.headless})")

    def _wire_events(self, page: Page) -> None:
        page.on("request", self._handle_request)
        page.on("requestfailed", self._handle_request_failed)
        page.on("response", self._handle_response)
        page.on("load", self._handle_load)
        page.on("console", self._handle_console)

    def _is_main_navigation(self, request: Request) -> bool:
        try:
            return request.is_navigation_request() and request.frame == self.page.main_frame
        except PlaywrightError:
            return False

    def _spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _handle_request(self, request: Request) -> None:
        if self._is_main_navigation(request):
            self.emit_load_started()

    def _handle_request_failed(self, request: Request) -> None:
        if self._is_main_navigation(request):
            logger.warning(f"Navigation to {request.url} failed: {request.failure}")
            self._spawn(self.emit_load_finished("fail"))

    def _handle_response(self, response: Response) -> None:
        self.emit_resource_received(Resource(url=response.url, status=response.status))

    def _handle_load(self, page: Page) -> None:
        self._spawn(self.emit_load_finished("success"))

    def _handle_console(self, message: ConsoleMessage) -> None:
        self.emit_console_message(message.text)

    def _require_page(self) -> Page:
        if not self.page:
            raise SurfaceError("Page not initialized. Call start first.", surface="playwright")
        return self.page

    async def open(self, url: str) -> None:
        page = self._require_page()
        try:
            # Only wait for the response to commit; the load is reported by events
            await page.goto(
                url, wait_until="commit", timeout=self.DEFAULT_NAVIGATION_TIMEOUT * 1000
            )
        except PlaywrightError as e:
            logger.warning(f"Error opening {url}: {e}")

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        page = self._require_page()
        try:
            return await page.evaluate(expression, arg)
        except PlaywrightError as e:
            raise RemoteEvaluationError(str(e), expression=expression) from e

    async def inject_script(self, path: str) -> bool:
        page = self._require_page()
        try:
            await page.add_script_tag(path=path)
            return True
        except (PlaywrightError, OSError) as e:
            logger.warning(f"Failed injecting {path}: {e}")
            return False

    async def capture(self, path: str, clip: Optional[ClipRect] = None) -> None:
        page = self._require_page()
        clip = clip or self.clip_rect
        try:
            if clip:
                await page.screenshot(
                    path=path,
                    clip={"x": clip.left, "y": clip.top, "width": clip.width, "height": clip.height},
                )
            else:
                await page.screenshot(path=path, full_page=True)
        except PlaywrightError as e:
            raise SurfaceError(f"Screenshot to {path} failed: {e}", surface="playwright") from e

    async def upload_file(self, selector: str, path: str) -> None:
        page = self._require_page()
        try:
            await page.set_input_files(selector, path)
        except PlaywrightError as e:
            raise SurfaceError(
                f"Upload of {path} to {selector} failed: {e}", surface="playwright", details={"selector": selector}
            ) from e

    async def set_viewport(self, viewport: Viewport) -> None:
        page = self._require_page()
        try:
            await page.set_viewport_size({"width": viewport.width, "height": viewport.height})
        except PlaywrightError as e:
            raise SurfaceError(f"Unable to resize the viewport: {e}", surface="playwright") from e

    async def close(self) -> None:
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        if self.page:
            try:
                await self.page.close()
            except PlaywrightError:
                pass
            self.page = None
        if self.context:
            await self.context.close()
            self.context = None
        if self.browser:
            await self.browser.close()
            self.browser = None
        if self.playwright:
            await self.playwright.stop()
            self.playwright = None
