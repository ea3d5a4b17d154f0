"""Navigation surfaces.

This module provides the hosts the step engine can drive.
"""

from pagepilot.surface.interface import ISurface, ILifecycleListener
from pagepilot.surface.playwright_surface import PlaywrightSurface
from pagepilot.surface.selenium_surface import SeleniumSurface
from pagepilot.surface.factory import SurfaceFactory

__all__ = [
    "ISurface",
    "ILifecycleListener",
    "PlaywrightSurface",
    "SeleniumSurface",
    "SurfaceFactory",
]
