import pytest

from pagepilot.errors import InvalidStepError, NotStartedError
from pagepilot.state import SessionState
from pagepilot.steps import StepQueue, maybe_await


@pytest.fixture
def state():
    s = SessionState()
    s.mark_started()
    return s


def test_append_before_start_raises():
    queue = StepQueue(SessionState())
    with pytest.raises(NotStartedError):
        queue.append(lambda s: None)
    assert len(queue) == 0


def test_append_rejects_non_callable(state):
    queue = StepQueue(state)
    with pytest.raises(InvalidStepError) as exc_info:
        queue.append("not a step")
    # Invalid steps are type errors as well
    assert isinstance(exc_info.value, TypeError)
    assert exc_info.value.details["type"] == "str"
    assert len(queue) == 0


def test_steps_keep_insertion_order(state):
    queue = StepQueue(state)
    first = queue.append(lambda s: "first")
    second = queue.append(lambda s: "second")

    assert len(queue) == 2
    assert (first.index, second.index) == (0, 1)
    assert queue.peek(0) is first
    assert queue.peek(1) is second
    assert queue.peek(2) is None
    assert queue.peek(-1) is None


def test_iteration_is_a_snapshot(state):
    queue = StepQueue(state)
    queue.append(lambda s: None)
    seen = []
    for step in queue:
        seen.append(step.index)
        if len(queue) < 3:
            queue.append(lambda s: None)
    assert seen == [0]
    assert len(queue) == 2


def test_clear(state):
    queue = StepQueue(state)
    queue.append(lambda s: None)
    queue.clear()
    assert len(queue) == 0
    assert queue.peek(0) is None


def test_state_cursor(state):
    assert state.cursor == 0
    state.advance()
    state.advance()
    assert state.cursor == 2
    state.mark_started()
    assert state.cursor == 0
    assert state.elapsed_ms() >= 0


@pytest.mark.asyncio
async def test_maybe_await_accepts_sync_and_async_values():
    async def coro():
        return 42

    assert await maybe_await(7) == 7
    assert await maybe_await(coro()) == 42
