"""
Tests for Signals and the Event Bus
====================================
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.events import Signal, EventBus, Events


class TestSignal:
    """Test suite for ordered listener collections."""

    def test_emit_in_subscription_order(self):
        signal = Signal("test")
        calls = []
        signal.subscribe(lambda x: calls.append(("a", x)))
        signal.subscribe(lambda x: calls.append(("b", x)))
        assert signal.emit(1) == 2
        assert calls == [("a", 1), ("b", 1)]

    def test_priority(self):
        signal = Signal("test")
        calls = []
        signal.subscribe(lambda: calls.append("low"), priority=-1)
        signal.subscribe(lambda: calls.append("normal"))
        signal.subscribe(lambda: calls.append("high"), priority=5)
        signal.emit()
        assert calls == ["high", "normal", "low"]

    def test_faulty_listener_is_isolated(self):
        signal = Signal("test")
        calls = []

        def broken():
            raise ValueError("listener")

        signal.subscribe(broken)
        signal.subscribe(lambda: calls.append("ok"))
        assert signal.emit() == 1
        assert calls == ["ok"]

    def test_dispose(self):
        signal = Signal("test")
        calls = []
        subscription = signal.subscribe(lambda: calls.append(1))
        assert subscription.active
        subscription()
        assert not subscription.active
        subscription.dispose()
        signal.emit()
        assert calls == []
        assert len(signal) == 0

    def test_dispose_only_removes_own_listener(self):
        """Disposing twice never removes another listener."""
        signal = Signal("test")
        calls = []
        first = signal.subscribe(lambda: calls.append("first"))
        signal.subscribe(lambda: calls.append("second"))
        first.dispose()
        first.dispose()
        signal.emit()
        assert calls == ["second"]

    def test_same_callback_twice(self):
        signal = Signal("test")
        calls = []
        callback = lambda: calls.append(1)
        first = signal.subscribe(callback)
        signal.subscribe(callback)
        first.dispose()
        signal.emit()
        assert calls == [1]

    def test_context_manager(self):
        signal = Signal("test")
        calls = []
        with signal.subscribe(lambda: calls.append(1)):
            signal.emit()
        signal.emit()
        assert calls == [1]

    def test_unsubscribe_during_emit(self):
        signal = Signal("test")
        calls = []
        holder = {}

        def once():
            calls.append("once")
            holder["sub"].dispose()

        holder["sub"] = signal.subscribe(once)
        signal.subscribe(lambda: calls.append("other"))
        signal.emit()
        signal.emit()
        assert calls == ["once", "other", "other"]


class TestEventBus:
    """Test suite for the named-channel bus."""

    @pytest.fixture
    def bus(self):
        return EventBus(max_history=3)

    def test_subscribe_and_emit(self, bus):
        received = []
        bus.subscribe(Events.ACTION_DISPATCHED, lambda **kw: received.append(kw))
        assert bus.emit(Events.ACTION_DISPATCHED, action="click") == 1
        assert received == [{"action": "click"}]

    def test_emit_without_listeners(self, bus):
        assert bus.emit(Events.HAND_LOST, hand_id=1) == 0

    def test_instances_are_independent(self):
        first, second = EventBus(), EventBus()
        first.subscribe(Events.HAND_LOST, lambda **kw: None)
        assert first.listener_count == 1
        assert second.listener_count == 0

    def test_disabled_bus(self, bus):
        received = []
        bus.subscribe(Events.HAND_LOST, lambda **kw: received.append(kw))
        bus.set_enabled(False)
        bus.emit(Events.HAND_LOST, hand_id=1)
        assert received == []

    def test_history_is_bounded(self, bus):
        for i in range(5):
            bus.emit(Events.GESTURE_DETECTED, index=i)
        history = bus.get_history(last_n=10)
        assert len(history) == 3
        assert history[-1]["data_keys"] == ["index"]

    def test_registered_events_and_clear(self, bus):
        subscription = bus.subscribe(Events.SESSION_STARTED, lambda **kw: None)
        bus.subscribe(Events.SESSION_ENDED, lambda **kw: None)
        assert set(bus.registered_events) == {Events.SESSION_STARTED, Events.SESSION_ENDED}
        subscription.dispose()
        assert bus.registered_events == [Events.SESSION_ENDED]
        bus.clear()
        assert bus.listener_count == 0
