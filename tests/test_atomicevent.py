import threading
from dataclasses import dataclass

from hallwayleds.atomicevent import AtomicEvent


def test_new_event_has_no_notification():
    ae = AtomicEvent()
    assert ae.wait(0) is False
    assert ae.value() is None


def test_send_and_value():
    ae = AtomicEvent()
    ae.send(123)
    assert ae.value() == 123
    ae2 = AtomicEvent()
    ae2.send("hello")
    assert ae2.value() == "hello"

    @dataclass
    class TestStruct:
        field: int

    ts = TestStruct(42)
    ae3 = AtomicEvent()
    ae3.send(ts)
    assert ae3.value() == ts


def test_notification_channel():
    ae = AtomicEvent()
    ae.send("event1")
    assert ae.wait(0) is True
    assert ae.wait(0) is False
    ae.send("event2")
    ae.send("event3")
    assert ae.wait(0) is True
    assert ae.wait(0) is False
    assert ae.value() == "event3"


def test_concurrency():
    ae = AtomicEvent()
    done = threading.Event()
    stale = []

    def writer():
        for i in range(1000):
            ae.send(i)
        done.set()

    def reader():
        last = -1
        while True:
            if ae.wait(0.01):
                val = ae.value()
                if val < last:
                    stale.append((val, last))
                last = val
            elif done.is_set():
                return

    r = threading.Thread(target=reader)
    w = threading.Thread(target=writer)
    r.start()
    w.start()
    w.join()
    r.join()
    assert stale == []
    assert ae.value() == 999