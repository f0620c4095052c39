import threading
import pytest
from pathlib import Path
from vcc.infrastructure.event_bus import EventBus
from vcc.domain.events import Event, FileStarted, InterruptRequested
from vcc.domain.models import VideoFile

class MockEvent(Event):
    message: str

def test_event_bus_subscribe_publish():
    bus = EventBus()
    received_events = []

    def callback(event: MockEvent):
        received_events.append(event)

    bus.subscribe(MockEvent, callback)

    event = MockEvent(message="hello")
    bus.publish(event)

    assert len(received_events) == 1
    assert received_events[0].message == "hello"

def test_event_bus_multiple_subscribers():
    bus = EventBus()
    results = {"a": False, "b": False}

    bus.subscribe(MockEvent, lambda e: results.update({"a": True}))
    bus.subscribe(MockEvent, lambda e: results.update({"b": True}))

    bus.publish(MockEvent(message="test"))

    assert results["a"] is True
    assert results["b"] is True

def test_event_bus_decorator_subscribe():
    bus = EventBus()
    received = []

    @bus.subscribe(MockEvent)
    def on_event(event: MockEvent):
        received.append(event.message)

    bus.publish(MockEvent(message="decorated"))

    assert received == ["decorated"]
    assert on_event is not None

def test_event_bus_dispatches_by_exact_type():
    bus = EventBus()
    received = []
    bus.subscribe(InterruptRequested, received.append)

    bus.publish(FileStarted(file=VideoFile(path=Path("a.mp4"), size_bytes=1)))
    bus.publish(MockEvent(message="other"))
    assert received == []

    bus.publish(InterruptRequested())
    assert len(received) == 1

def test_event_bus_publish_without_subscribers():
    EventBus().publish(MockEvent(message="nobody listens"))

def test_event_bus_publish_from_threads():
    bus = EventBus()
    received = []
    lock = threading.Lock()

    def on_event(event):
        with lock:
            received.append(event.message)

    bus.subscribe(MockEvent, on_event)
    threads = [
        threading.Thread(target=bus.publish, args=(MockEvent(message=str(i)),))
        for i in range(20)
    ]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(received, key=int) == [str(i) for i in range(20)]
