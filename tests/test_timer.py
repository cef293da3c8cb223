import threading

import pytest

from engine.timer import Countdown, SessionTicker


def test_countdown_formats_minutes_and_hours() -> None:
    assert Countdown(60).format() == "01:00"
    assert Countdown(5).format() == "00:05"
    assert Countdown(3725).format() == "01:02:05"


def test_countdown_stops_at_zero() -> None:
    countdown = Countdown(2)
    assert countdown.tick() == 1
    assert countdown.tick() == 0
    assert countdown.tick() == 0
    assert countdown.expired is True


def test_countdown_rejects_negative_duration() -> None:
    with pytest.raises(ValueError):
        Countdown(-1)


def test_ticker_calls_until_stopped() -> None:
    ticked = threading.Event()
    calls = []

    def _on_tick() -> None:
        calls.append(1)
        if len(calls) >= 3:
            ticked.set()

    ticker = SessionTicker(_on_tick, interval=0.005)
    ticker.start()
    assert ticked.wait(5)
    ticker.stop()

    assert ticker.running is False
    count = len(calls)
    ticked.clear()
    assert not ticked.wait(0.05)
    assert len(calls) == count


def test_ticker_survives_failing_callback() -> None:
    calls = []
    done = threading.Event()

    def _on_tick() -> None:
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("boom")
        done.set()

    ticker = SessionTicker(_on_tick, interval=0.005)
    ticker.start()
    assert done.wait(5)
    ticker.stop()
