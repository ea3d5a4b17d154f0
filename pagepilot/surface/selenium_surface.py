"""Selenium-based navigation surface.

This module provides a surface implementation using Selenium WebDriver. The
driver is blocking, so every call runs on a single-worker executor and
lifecycle notifications are delivered back on the event loop.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Literal, Optional, Union

from selenium import webdriver
from selenium.common.exceptions import JavascriptException, WebDriverException
from selenium.webdriver.chrome.options import Options as ChromeOptions
from selenium.webdriver.common.by import By
from selenium.webdriver.edge.options import Options as EdgeOptions

from pagepilot.errors import RemoteEvaluationError, SurfaceError
from pagepilot.surface.interface import ISurface
from pagepilot.types import ClipRect, PageSettings, Resource, Viewport

logger = logging.getLogger(__name__)

# Calls the evaluated function with the marshalled argument, or returns the
# value of a plain expression.
_EVALUATE_WRAPPER = """var __pilot_fn__ = ({expression});
return typeof __pilot_fn__ === 'function' ? __pilot_fn__(arguments[0]) : __pilot_fn__;"""


class SeleniumSurface(ISurface):
    """Selenium-based surface implementation.

    Supports Chrome and Edge browsers.
    """

    DEFAULT_BROWSER_TYPE: Literal["chrome", "edge"] = "chrome"

    def __init__(
        self,
        browser_type: Optional[Literal["chrome", "edge"]] = None,
        headless: bool = True,
        user_data_dir: Optional[str] = None,
    ):
        """Initialize the Selenium surface.

        Args:
            browser_type: Type of browser to use ('chrome' or 'edge').
                         If None, uses DEFAULT_BROWSER_TYPE.
            headless: Whether to run browser in headless mode
            user_data_dir: Optional path to a browser profile directory
        """
        super().__init__()
        self.browser_type = browser_type or self.DEFAULT_BROWSER_TYPE
        self.headless = headless
        self.user_data_dir = user_data_dir
        self.driver: Optional[Union[webdriver.Chrome, webdriver.Edge]] = None
        self._executor = ThreadPoolExecutor(max_workers=1)
        self._navigation: Optional[asyncio.Task] = None

    async def _call(self, fn, *args) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)

    def _require_driver(self):
        if not self.driver:
            raise SurfaceError("Driver not initialized. Call start first.", surface="selenium")
        return self.driver

    def _setup_browser(self, settings: PageSettings) -> Union[webdriver.Chrome, webdriver.Edge]:
        """Set up and return a WebDriver instance for Chrome or Edge.

        Raises:
            ValueError: If the browser type is not supported
        """
        if self.browser_type == "chrome":
            options = ChromeOptions()
        elif self.browser_type == "edge":
            options = EdgeOptions()
        else:
            raise ValueError(f"Unsupported browser type: {self.browser_type}")

        # Default options for better stability and compatibility
        options.add_argument("--no-sandbox")
        options.add_argument("--disable-dev-shm-usage")
        options.add_argument("--disable-gpu")
        if settings.user_agent:
            options.add_argument(f"--user-agent={settings.user_agent}")
        if self.user_data_dir:
            options.add_argument(f"--user-data-dir={self.user_data_dir}")
        if self.headless:
            options.add_argument("--headless=new")

        logger.info(f"Setting up {self.browser_type.capitalize()} browser...")
        if self.browser_type == "chrome":
            driver = webdriver.Chrome(options=options)
        else:
            driver = webdriver.Edge(options=options)
        if settings.viewport:
            driver.set_window_size(settings.viewport.width, settings.viewport.height)
        return driver

    async def start(self, settings: PageSettings) -> None:
        self.driver = await self._call(self._setup_browser, settings)
        self.clip_rect = settings.clip_rect

    async def open(self, url: str) -> None:
        self._require_driver()
        self.emit_load_started()
        self._navigation = asyncio.ensure_future(self._navigate(url))

    async def _navigate(self, url: str) -> None:
        driver = self._require_driver()
        status = "success"
        try:
            await self._call(driver.get, url)
        except WebDriverException as e:
            logger.warning(f"Error opening {url}: {e}")
            status = "fail"
        # WebDriver does not expose HTTP status codes
        self.emit_resource_received(Resource(url=url))
        await self.emit_load_finished(status)

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        driver = self._require_driver()
        script = _EVALUATE_WRAPPER.format(expression=expression)
        try:
            return await self._call(driver.execute_script, script, arg)
        except JavascriptException as e:
            raise RemoteEvaluationError(e.msg or str(e), expression=expression) from e

    async def inject_script(self, path: str) -> bool:
        driver = self._require_driver()
        try:
            source = Path(path).read_text(encoding="utf-8")
            await self._call(driver.execute_script, source)
            return True
        except (OSError, WebDriverException) as e:
            logger.warning(f"Failed injecting {path}: {e}")
            return False

    async def capture(self, path: str, clip: Optional[ClipRect] = None) -> None:
        driver = self._require_driver()
        if clip or self.clip_rect:
            logger.warning("Clip regions are not supported by SeleniumSurface; capturing the viewport")
        try:
            saved = await self._call(driver.save_screenshot, path)
        except WebDriverException as e:
            raise SurfaceError(f"Screenshot to {path} failed: {e.msg}", surface="selenium") from e
        if not saved:
            raise SurfaceError(f"Screenshot to {path} failed", surface="selenium")

    async def upload_file(self, selector: str, path: str) -> None:
        driver = self._require_driver()

        def _upload():
            driver.find_element(By.CSS_SELECTOR, selector).send_keys(path)

        try:
            await self._call(_upload)
        except WebDriverException as e:
            raise SurfaceError(
                f"Upload of {path} to {selector} failed: {e.msg}", surface="selenium", details={"selector": selector}
            ) from e

    async def set_viewport(self, viewport: Viewport) -> None:
        driver = self._require_driver()
        try:
            await self._call(driver.set_window_size, viewport.width, viewport.height)
        except WebDriverException as e:
            raise SurfaceError(f"Unable to resize the window: {e.msg}", surface="selenium") from e

    async def close(self) -> None:
        if self._navigation and not self._navigation.done():
            self._navigation.cancel()
            try:
                await self._navigation
            except asyncio.CancelledError:
                pass
        self._navigation = None
        if self.driver:
            await self._call(self.driver.quit)
            self.driver = None
        self._executor.shutdown(wait=False)
