import pytest

from serverkit.time_wheel import SLOTS, TimeWheel


def test_negative_timeout_rejected():
    wheel = TimeWheel()
    with pytest.raises(ValueError):
        wheel.add_timer(-1)
    assert len(wheel) == 0


def test_zero_timeout_goes_to_next_slot():
    wheel = TimeWheel()
    timer = wheel.add_timer(0)
    assert timer.time_slot == wheel.cur_slot + 1
    assert timer.rotation == 0


def test_timer_fires_when_its_slot_is_reached():
    calls = []
    wheel = TimeWheel()
    wheel.add_timer(3, calls.append, "x")
    for _ in range(3):
        assert wheel.tick() == []
    fired = wheel.tick()
    assert [t.user_data for t in fired] == ["x"]
    assert calls == ["x"]
    assert len(wheel) == 0


def test_long_timeout_waits_full_rotations():
    calls = []
    wheel = TimeWheel()
    timer = wheel.add_timer(2 * SLOTS, calls.append, "late")
    assert timer.rotation == 2
    assert timer.time_slot == wheel.cur_slot
    for _ in range(2 * SLOTS):
        wheel.tick()
    assert calls == []
    wheel.tick()
    assert calls == ["late"]


def test_cur_slot_wraps_around():
    wheel = TimeWheel()
    for _ in range(SLOTS):
        wheel.tick()
    assert wheel.cur_slot == 0


def test_deleted_timer_never_fires():
    calls = []
    wheel = TimeWheel()
    keep = wheel.add_timer(2, calls.append, "keep")
    drop = wheel.add_timer(2, calls.append, "drop")
    wheel.del_timer(drop)
    assert len(wheel) == 1
    for _ in range(SLOTS):
        wheel.tick()
    assert calls == ["keep"]
    assert keep.rotation == 0


def test_newest_timer_in_slot_fires_first():
    calls = []
    wheel = TimeWheel()
    wheel.add_timer(1, calls.append, "first")
    wheel.add_timer(1, calls.append, "second")
    wheel.tick()
    wheel.tick()
    assert calls == ["second", "first"]


def test_del_unknown_timer_raises():
    wheel = TimeWheel()
    timer = wheel.add_timer(1)
    wheel.del_timer(timer)
    with pytest.raises(ValueError):
        wheel.del_timer(timer)


def test_del_none_is_ignored():
    wheel = TimeWheel()
    wheel.add_timer(1)
    wheel.del_timer(None)
    assert len(wheel) == 1