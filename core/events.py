"""
Lightweight listener registry and event bus for decoupled communication.

Components expose ``Signal`` objects for their own notifications and share
one ``EventBus`` (owned by the RuntimeContext) for system-wide events.

Usage:
    bus = EventBus()
    sub = bus.subscribe(Events.ACTION_DISPATCHED, my_handler)
    bus.emit(Events.ACTION_DISPATCHED, action="drag", event=gesture_event)
    sub.dispose()
"""

import time
import logging
from collections import deque
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def _callback_name(callback: Callable) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)


class Subscription:
    """Disposer token returned by ``Signal.subscribe``."""

    __slots__ = ("_signal", "_entry", "_active")

    def __init__(self, signal: "Signal", entry):
        self._signal = signal
        self._entry = entry
        self._active = True

    def dispose(self):
        """Remove the listener. Safe to call more than once."""
        if self._active:
            self._signal._remove(self._entry)
            self._active = False

    # Allows ``unsubscribe = layer.on_gesture_event(cb); unsubscribe()``
    __call__ = dispose

    @property
    def active(self) -> bool:
        return self._active

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.dispose()


class Signal:
    """Ordered listener collection with isolated fan-out.

    A listener that raises is logged and skipped; remaining listeners
    still run and the exception never reaches the emitter.
    """

    def __init__(self, name: str = "signal"):
        self.name = name
        self._listeners = []  # [(priority, seq, callback)]
        self._seq = 0

    def subscribe(self, callback: Callable, priority: int = 0) -> Subscription:
        """Register a listener. Higher priority runs first, ties keep insertion order."""
        entry = (priority, self._seq, callback)
        self._seq += 1
        self._listeners.append(entry)
        self._listeners.sort(key=lambda e: (-e[0], e[1]))
        logger.debug("Subscribed to '%s': %s (priority=%d)",
                     self.name, _callback_name(callback), priority)
        return Subscription(self, entry)

    def _remove(self, entry):
        try:
            self._listeners.remove(entry)
        except ValueError:
            pass

    def emit(self, *args, **kwargs) -> int:
        """Call every listener. Returns the number that completed without error."""
        delivered = 0
        for _, _, callback in list(self._listeners):
            try:
                callback(*args, **kwargs)
                delivered += 1
            except Exception as e:
                logger.error("Listener error [%s -> %s]: %s",
                             self.name, _callback_name(callback), e)
        return delivered

    def clear(self):
        self._listeners.clear()

    def __len__(self):
        return len(self._listeners)


class EventBus:
    """Named-channel publish/subscribe bus.

    One instance per RuntimeContext; there is no global bus.
    """

    def __init__(self, max_history: int = 100):
        self._channels = {}
        self._history = deque(maxlen=max_history)
        self._enabled = True

    def _channel(self, event_name: str) -> Signal:
        channel = self._channels.get(event_name)
        if channel is None:
            channel = Signal(event_name)
            self._channels[event_name] = channel
        return channel

    def subscribe(self, event_name: str, callback: Callable, priority: int = 0) -> Subscription:
        """Register a listener for an event. Receives **kwargs from emit()."""
        return self._channel(event_name).subscribe(callback, priority)

    def emit(self, event_name: str, **kwargs) -> int:
        """Emit an event to all registered listeners."""
        if not self._enabled:
            return 0

        self._history.append({
            "event": event_name,
            "time": time.time(),
            "data_keys": list(kwargs.keys()),
        })

        channel = self._channels.get(event_name)
        if channel is None:
            return 0
        return channel.emit(**kwargs)

    def clear(self, event_name: Optional[str] = None):
        """Remove all listeners, optionally for a specific event."""
        if event_name:
            channel = self._channels.pop(event_name, None)
            if channel is not None:
                channel.clear()
        else:
            for channel in self._channels.values():
                channel.clear()
            self._channels.clear()

    def set_enabled(self, enabled: bool):
        self._enabled = enabled

    @property
    def registered_events(self) -> list:
        """List all events with registered listeners."""
        return [name for name, channel in self._channels.items() if len(channel)]

    @property
    def listener_count(self) -> int:
        return sum(len(channel) for channel in self._channels.values())

    def get_history(self, last_n: int = 10) -> list:
        """Get recent event history."""
        return list(self._history)[-last_n:]


# =============================================================================
# Standard Event Names (constants to avoid typos)
# =============================================================================

class Events:
    """Standard event names used throughout the system."""

    # Recognition
    GESTURE_DETECTED = "gesture_detected"
    GESTURE_ENDED = "gesture_ended"
    HAND_LOST = "hand_lost"

    # Mapping / actions
    ACTION_DISPATCHED = "action_dispatched"
    ACTION_REJECTED = "action_rejected"
    ACTION_FAILED = "action_failed"

    # Drag sessions
    SESSION_STARTED = "session_started"
    SESSION_ENDED = "session_ended"

    # System
    CONFIG_CHANGED = "config_changed"
    FOCUS_CHANGED = "focus_changed"
