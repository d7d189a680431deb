"""Unit tests for Debouncer."""
import sys
sys.path.insert(0, 'backend')

import asyncio
import pytest
from services.debounce import Debouncer

DELAY = 0.05


@pytest.mark.asyncio
async def test_rapid_triggers_fire_once_with_last_args():
    """Test only the last trigger inside the quiet window reaches the callback."""
    calls = []
    debouncer = Debouncer(DELAY, lambda value: calls.append(value))

    debouncer.trigger("d")
    debouncer.trigger("di")
    debouncer.trigger("dia")
    assert debouncer.pending

    await asyncio.sleep(DELAY * 3)

    assert calls == ["dia"]
    assert not debouncer.pending


@pytest.mark.asyncio
async def test_nothing_fires_before_delay():
    """Test the callback waits for the full quiet period."""
    calls = []
    debouncer = Debouncer(DELAY * 4, lambda: calls.append(True))

    debouncer.trigger()
    await asyncio.sleep(DELAY)

    assert calls == []
    await debouncer.wait()
    assert calls == [True]


@pytest.mark.asyncio
async def test_spaced_triggers_fire_each_time():
    """Test triggers separated by more than the delay each fire."""
    calls = []
    debouncer = Debouncer(DELAY, lambda value: calls.append(value))

    debouncer.trigger(1)
    await debouncer.wait()
    debouncer.trigger(2)
    await debouncer.wait()

    assert calls == [1, 2]


@pytest.mark.asyncio
async def test_cancel_drops_pending_call_and_runs_hook():
    """Test cancel() prevents the call and reports through on_cancel."""
    calls = []
    cancellations = []
    debouncer = Debouncer(DELAY, lambda: calls.append(True), on_cancel=lambda: cancellations.append(True))

    debouncer.trigger()
    assert debouncer.cancel() is True
    assert debouncer.cancel() is False

    await asyncio.sleep(DELAY * 3)

    assert calls == []
    assert cancellations == [True]


@pytest.mark.asyncio
async def test_superseded_trigger_runs_cancel_hook():
    """Test every superseded timer is reported."""
    cancellations = []
    debouncer = Debouncer(DELAY, lambda: None, on_cancel=lambda: cancellations.append(True))

    debouncer.trigger()
    debouncer.trigger()
    debouncer.trigger()
    await debouncer.wait()

    assert len(cancellations) == 2


@pytest.mark.asyncio
async def test_coroutine_callback_is_awaited_by_wait():
    """Test wait() covers coroutine callbacks started by the timer."""
    done = []

    async def callback(value):
        await asyncio.sleep(DELAY)
        done.append(value)

    debouncer = Debouncer(DELAY, callback)
    debouncer.trigger("x")
    await debouncer.wait()

    assert done == ["x"]


def test_negative_delay_rejected():
    """Test construction with a negative delay fails."""
    with pytest.raises(ValueError):
        Debouncer(-1, lambda: None)
