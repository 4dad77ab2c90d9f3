import asyncio
import pytest
from utils.clock import ManualClock, SystemClock

def test_manual_clock_fires_timers_in_due_order():
    clock = ManualClock(start=100)
    fired = []
    clock.call_later(50, lambda: fired.append(("b", clock.now())))
    clock.call_later(10, lambda: fired.append(("a", clock.now())))
    clock.call_later(50, lambda: fired.append(("c", clock.now())))
    assert clock.pending == 3

    clock.advance(49)
    assert fired == [("a", 110)]

    clock.advance(1)
    assert fired == [("a", 110), ("b", 150), ("c", 150)]
    assert clock.now() == 150
    assert clock.pending == 0

def test_manual_clock_timer_scheduled_from_callback():
    clock = ManualClock()
    fired = []
    clock.call_later(10, lambda: clock.call_later(10, lambda: fired.append(clock.now())))
    clock.advance(100)
    assert fired == [20]

def test_manual_clock_rejects_going_backwards():
    clock = ManualClock(start=10)
    with pytest.raises(ValueError):
        clock.set(5)

def test_system_clock_without_loop_skips_timer():
    assert SystemClock().call_later(10, lambda: None) is None

@pytest.mark.asyncio
async def test_system_clock_schedules_on_running_loop():
    clock = SystemClock()
    done = asyncio.Event()
    handle = clock.call_later(1, done.set)
    assert handle is not None
    await asyncio.wait_for(done.wait(), timeout=1)
    assert clock.now() > 0
