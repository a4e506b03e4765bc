import threading
from datetime import datetime, timedelta

from meshnet.timeout_system import SystemTimerWheel

SECOND = timedelta(seconds=1)


def test_new_system_timer_wheel():
    tw = SystemTimerWheel(SECOND, SECOND * 10)
    assert tw.wheel_len == 11
    assert tw.current == 0
    assert tw.last_tick is None
    assert tw.tick_duration == SECOND
    assert tw.wheel_duration == SECOND * 10
    assert len(tw.wheel) == 11

    assert SystemTimerWheel(SECOND * 3, SECOND * 10).wheel_len == 4
    assert SystemTimerWheel(SECOND * 120, timedelta(minutes=10)).wheel_len == 6


def test_find_wheel():
    tw = SystemTimerWheel(SECOND, SECOND * 10)
    assert len(tw.wheel) == 11

    assert tw.find_wheel(SECOND) == 2
    assert tw.find_wheel(timedelta(milliseconds=1)) == 2
    assert tw.find_wheel(SECOND * 10) == 0
    assert tw.find_wheel(SECOND * 11) == 0

    tw.current = 1
    assert tw.find_wheel(SECOND) == 3
    assert tw.find_wheel(SECOND * 10) == 1


def test_add_prepends_to_head():
    tw = SystemTimerWheel(SECOND, SECOND * 10)
    fp1 = 16909060  # 1.2.3.4
    fp2 = 16909061  # 1.2.3.5

    assert tw.add(fp1, SECOND) == 2
    assert list(tw.wheel[2]) == [fp1]

    assert tw.add(fp2, SECOND) == 2
    assert list(tw.wheel[2]) == [fp2, fp1]


def test_add_does_not_advance():
    tw = SystemTimerWheel(SECOND, SECOND * 10)
    tw.add(9, SECOND)
    assert tw.last_tick is None
    assert tw.purge() is None


def test_purge():
    tw = SystemTimerWheel(SECOND, SECOND * 10)
    assert tw.last_tick is None
    tw.advance(datetime.now())
    assert tw.last_tick is not None
    assert tw.current == 0

    fps = [9, 10, 11, 12]
    tw.add(fps[0], SECOND)
    tw.add(fps[1], SECOND)
    tw.add(fps[2], SECOND * 2)
    tw.add(fps[3], SECOND * 2)

    ta = datetime.now() + SECOND * 3
    last_tick = tw.last_tick
    tw.advance(ta)
    assert tw.current == 3
    assert tw.last_tick > last_tick
    assert tw.last_tick == ta

    purged = [tw.purge() for _ in range(4)]
    assert sorted(purged) == fps
    # Newest first within a tick, earlier ticks first overall.
    assert purged == [10, 9, 12, 11]

    assert tw.purge() is None
    assert len(tw.expired) == 0

    ta = ta + SECOND * 5
    tw.advance(ta)
    assert tw.current == 8

    ta = ta + SECOND * 2
    tw.advance(ta)
    assert tw.current == 10

    ta = ta + SECOND
    tw.advance(ta)
    assert tw.current == 0


def test_last_tick_unchanged_without_whole_tick():
    tw = SystemTimerWheel(SECOND, SECOND * 10)
    start = datetime.now()
    tw.advance(start)
    tw.advance(start + timedelta(milliseconds=500))
    assert tw.last_tick == start
    assert tw.current == 0


def test_concurrent_adds_are_all_kept():
    tw = SystemTimerWheel(SECOND, SECOND * 10)

    def worker(base):
        for i in range(100):
            tw.add(base + i, SECOND)

    threads = [threading.Thread(target=worker, args=(n * 1000,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(tw.wheel[2]) == 400