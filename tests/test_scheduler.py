from pathlib import Path
import sys
import threading

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from services.scheduler import ThreadingScheduler, cancel


def test_after_runs_once():
    fired = threading.Event()
    ThreadingScheduler().after(0.01, fired.set)
    assert fired.wait(2.0)


def test_every_repeats_until_cancelled():
    calls = []
    enough = threading.Event()

    def tick():
        calls.append(1)
        if len(calls) >= 3:
            enough.set()

    handle = ThreadingScheduler().every(0.01, tick)
    assert enough.wait(2.0)
    cancel(handle)


def test_cancelled_timer_never_fires():
    fired = threading.Event()
    handle = ThreadingScheduler().after(0.2, fired.set)
    handle.cancel()
    assert not fired.wait(0.4)


def test_cancel_accepts_none():
    cancel(None)
