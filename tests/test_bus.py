"""Test event bus and dispatcher."""

from irccore.events import Dispatcher, channel_message
from irccore.gateway.bus import Bus
from irccore.gateway.targets import LogTarget


class MockTarget:
    """Mock event target for testing."""

    def __init__(self, accept_filter=None):
        self.received_events = []
        self.accept_filter = accept_filter or (lambda s, e: True)

    def accept_event(self, source: str, evt: object) -> bool:
        return self.accept_filter(source, evt)

    def push_event(self, source: str, evt: object) -> None:
        self.received_events.append((source, evt))


def _message(text: str = "Hello"):
    _, evt = channel_message("Alice@srv:6667", "#room", "bob", text)
    return evt


class TestDispatcher:
    """Test event dispatcher."""

    def test_register_target(self):
        dispatcher = Dispatcher()
        target = MockTarget()
        dispatcher.register(target)
        assert target in dispatcher._targets

    def test_unregister_target(self):
        dispatcher = Dispatcher()
        target = MockTarget()
        dispatcher.register(target)
        dispatcher.unregister(target)
        assert target not in dispatcher._targets

    def test_unregister_nonexistent_target_is_safe(self):
        dispatcher = Dispatcher()
        dispatcher.unregister(MockTarget())

    def test_dispatch_not_to_rejecting_target(self):
        dispatcher = Dispatcher()
        target = MockTarget(accept_filter=lambda s, e: False)
        dispatcher.register(target)
        dispatcher.dispatch("Alice@srv:6667", _message())
        assert target.received_events == []

    def test_dispatch_handles_push_event_exception(self):
        class FailingTarget:
            def accept_event(self, source, evt):
                return True

            def push_event(self, source, evt):
                raise RuntimeError("push failed")

        dispatcher = Dispatcher()
        working = MockTarget()
        dispatcher.register(FailingTarget())
        dispatcher.register(working)
        dispatcher.dispatch("Alice@srv:6667", _message())
        assert len(working.received_events) == 1

    def test_dispatch_handles_accept_event_exception(self):
        """accept_event raising should not prevent other targets from receiving."""

        class ExplodingTarget:
            def accept_event(self, source, evt):
                raise RuntimeError("accept failed")

            def push_event(self, source, evt):
                pass

        dispatcher = Dispatcher()
        working = MockTarget()
        dispatcher.register(ExplodingTarget())
        dispatcher.register(working)
        dispatcher.dispatch("Alice@srv:6667", _message())
        assert len(working.received_events) == 1

    def test_dispatch_multiple_events_received_in_order(self):
        dispatcher = Dispatcher()
        target = MockTarget()
        dispatcher.register(target)
        events = [_message(f"msg {i}") for i in range(5)]
        for evt in events:
            dispatcher.dispatch("Alice@srv:6667", evt)
        assert [e for _, e in target.received_events] == events


class TestBus:
    """Test event bus."""

    def test_bus_wraps_dispatcher(self):
        bus = Bus()
        target = MockTarget()
        bus.register(target)
        bus.publish("Alice@srv:6667", _message())
        assert len(target.received_events) == 1

    def test_bus_unregister(self):
        bus = Bus()
        target = MockTarget()
        bus.register(target)
        bus.unregister(target)
        bus.publish("Alice@srv:6667", _message())
        assert target.received_events == []

    def test_bus_publishes_to_every_registered_target(self):
        bus = Bus()
        t1, t2 = MockTarget(), MockTarget()
        bus.register(t1)
        bus.register(t2)
        bus.publish("Alice@srv:6667", _message())
        assert len(t1.received_events) == 1
        assert len(t2.received_events) == 1

    def test_bus_publish_passes_source_correctly(self):
        bus = Bus()
        target = MockTarget()
        bus.register(target)
        bus.publish("Bob@other:6697", _message())
        source, _ = target.received_events[0]
        assert source == "Bob@other:6697"

    def test_log_target_accepts_everything(self):
        bus = Bus()
        log_target = LogTarget()
        bus.register(log_target)
        assert log_target.accept_event("x", object())
        bus.publish("Alice@srv:6667", _message())
