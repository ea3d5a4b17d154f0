import subprocess
import sys

import pytest


def pytest_configure(config):
    """Register the marker for tests driving a real browser."""
    config.addinivalue_line(
        "markers", "playwright: mark test as requiring Playwright and browser"
    )


def check_playwright_browser_installed():
    """Check if the Playwright chromium build can be launched."""
    try:
        result = subprocess.run(
            [sys.executable, "-c",
             "from playwright.sync_api import sync_playwright; "
             "p = sync_playwright().start(); "
             "p.chromium.launch(headless=True).close(); "
             "p.stop()"],
            capture_output=True,
            text=True,
            timeout=30
        )
        return result.returncode == 0
    except subprocess.TimeoutExpired:
        return False


@pytest.fixture(scope="session")
def ensure_playwright_browser():
    """Ensure Playwright browsers are available, skip tests if not."""
    if not check_playwright_browser_installed():
        pytest.skip("Playwright chromium is not installed. Install with: playwright install chromium")
    return True
