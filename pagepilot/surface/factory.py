"""Surface factory.

This module provides a factory for creating navigation surfaces.
"""

from typing import Optional

from pagepilot.config import env
from pagepilot.surface.interface import ISurface
from pagepilot.surface.playwright_surface import PlaywrightSurface
from pagepilot.surface.selenium_surface import SeleniumSurface


class SurfaceFactory:
    """Factory for creating navigation surfaces."""

    @staticmethod
    def create_surface(
        surface_type: Optional[str] = None,
        browser_type: Optional[str] = None,
        headless: Optional[bool] = None,
        user_data_dir: Optional[str] = None,
    ) -> ISurface:
        """Create a surface of the specified type.

        Unspecified arguments fall back to the configured settings.

        Args:
            surface_type: Type of surface to create ('playwright' or 'selenium')
            browser_type: Type of browser to use:
                        - For selenium: 'chrome' or 'edge'
                        - For playwright: 'chromium', 'firefox', 'webkit', 'chrome' or 'edge'
            headless: Whether to run the browser in headless mode
            user_data_dir: Path to user data directory for browser profiles

        Returns:
            Surface instance

        Raises:
            ValueError: If an unsupported surface or browser type is specified
        """
        surface_type = (surface_type or env.get_setting("surface_type", "playwright")).lower()
        if browser_type is None:
            browser_type = env.get_setting("browser_type")
        if headless is None:
            headless = env.get_setting("headless", True)
        if user_data_dir is None:
            user_data_dir = env.get_setting("browser_profile_path")

        if surface_type == "selenium":
            if browser_type not in [None, "chrome", "edge"]:
                raise ValueError(f"Unsupported browser type for Selenium: {browser_type}")
            return SeleniumSurface(browser_type or "chrome", headless=headless, user_data_dir=user_data_dir)
        elif surface_type == "playwright":
            if browser_type not in [None, "chromium", "firefox", "webkit", "chrome", "edge"]:
                raise ValueError(f"Unsupported browser type for Playwright: {browser_type}")
            return PlaywrightSurface(
                browser_type or "chromium", headless=headless, user_data_dir=user_data_dir
            )
        else:
            raise ValueError(f"Unsupported surface type: {surface_type}")
