import pytest
import pytest_asyncio

from pagepilot.session import Session
from pagepilot.types import SessionOptions
from pagepilot.tests.fixtures.fake_surface import FakeSurface


def make_options(**overrides) -> SessionOptions:
    """Session options with short intervals so suites finish quickly."""
    values = {
        "log_level": "debug",
        "wait_poll_interval_ms": 5,
        "step_poll_interval_ms": 5,
        "wait_timeout_ms": 200,
    }
    values.update(overrides)
    return SessionOptions(**values)


@pytest.fixture
def surface():
    return FakeSurface()


@pytest.fixture
def options():
    return make_options()


@pytest_asyncio.fixture
async def session(options, surface):
    """A session bound to an in-memory surface, not yet started."""
    async with Session(options, surface) as s:
        yield s


def messages(session, level=None, origin=None):
    """Messages recorded in the session log, optionally filtered."""
    return [
        entry.message
        for entry in session.result.log
        if (level is None or entry.level == level) and (origin is None or entry.origin == origin)
    ]
