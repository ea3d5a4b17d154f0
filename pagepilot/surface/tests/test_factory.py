import pytest

from pagepilot.errors import SurfaceError
from pagepilot.surface import PlaywrightSurface, SeleniumSurface, SurfaceFactory


def test_create_playwright_surface():
    surface = SurfaceFactory.create_surface("playwright", "edge", headless=True)
    assert isinstance(surface, PlaywrightSurface)
    # Edge runs on the chromium engine through the msedge channel
    assert surface.browser_type == "chromium"
    assert surface.channel == "msedge"


def test_create_playwright_surface_with_profile(tmp_path):
    surface = SurfaceFactory.create_surface("Playwright", "firefox", headless=False, user_data_dir=str(tmp_path))
    assert isinstance(surface, PlaywrightSurface)
    assert surface.browser_type == "firefox"
    assert surface.channel is None
    assert surface.headless is False
    assert surface.user_data_dir == str(tmp_path)


def test_create_selenium_surface():
    surface = SurfaceFactory.create_surface("selenium", headless=True)
    assert isinstance(surface, SeleniumSurface)
    assert surface.browser_type == "chrome"
    assert surface.driver is None


@pytest.mark.parametrize(
    "surface_type, browser_type",
    [("selenium", "firefox"), ("playwright", "netscape"), ("puppeteer", None)],
)
def test_unsupported_combinations(surface_type, browser_type):
    with pytest.raises(ValueError):
        SurfaceFactory.create_surface(surface_type, browser_type)


@pytest.mark.asyncio
async def test_operations_require_start():
    surface = PlaywrightSurface()
    with pytest.raises(SurfaceError) as exc_info:
        await surface.evaluate("() => 1")
    assert exc_info.value.surface == "playwright"
