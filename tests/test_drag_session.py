"""
Tests for Drag Sessions and the Frame Scheduler
================================================
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.events import EventBus, Events
from core.types import GestureType, GestureEnded, EndReason, Handedness
from modules.control.drag_session import DragSessionController
from modules.control.scheduler import FrameScheduler
from modules.control.window_host import VirtualDesktop
from mock_hands import make_event


def drag_event(x, y, timestamp=0.0, identity_id="d1"):
    return make_event(GestureType.PINCH, timestamp=timestamp, identity_id=identity_id,
                      position=(x, y))


@pytest.fixture
def desktop():
    desktop = VirtualDesktop(width=1000, height=800)
    desktop.open_window("Editor", x=100, y=100, width=400, height=300)
    return desktop


@pytest.fixture
def scheduler():
    return FrameScheduler()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def controller(desktop, scheduler, bus):
    return DragSessionController(desktop, scheduler, bus=bus)


class TestFrameScheduler:
    """Test suite for frame-clock timers."""

    def test_fires_when_due(self, scheduler):
        fired = []
        scheduler.call_later(100, lambda: fired.append(scheduler.now))
        assert scheduler.advance(99) == 0
        assert scheduler.advance(100) == 1
        assert fired == [100]

    def test_cancelled_timer_does_not_fire(self, scheduler):
        fired = []
        handle = scheduler.call_later(100, lambda: fired.append(1))
        handle.cancel()
        scheduler.advance(500)
        assert fired == []
        assert handle.cancelled and not handle.pending

    def test_clock_is_monotonic(self, scheduler):
        scheduler.advance(300)
        scheduler.advance(100)
        assert scheduler.now == 300

    def test_failing_callback_is_contained(self, scheduler):
        fired = []

        def broken():
            raise RuntimeError("timer")

        scheduler.call_later(10, broken)
        scheduler.call_later(20, lambda: fired.append(1))
        assert scheduler.advance(50) == 2
        assert fired == [1]

    def test_pending_count(self, scheduler):
        scheduler.call_later(10, lambda: None)
        handle = scheduler.call_later(20, lambda: None)
        handle.cancel()
        assert scheduler.pending_count == 1
        scheduler.clear()
        assert scheduler.pending_count == 0


class TestDragSession:
    """Test suite for session start, continuation and termination."""

    def test_start_anchors_focused_window(self, controller, desktop):
        """The first event records the cursor offset without moving the window."""
        session = controller.handle_drag(drag_event(0.2, 0.2))
        window = desktop.get_focused_window()
        assert session.window_id == window.window_id
        assert session.anchor_offset == pytest.approx((100.0, 60.0))
        assert window.position == (100.0, 100.0)

    def test_continuation_preserves_anchor(self, controller, desktop):
        controller.handle_drag(drag_event(0.2, 0.2))
        controller.handle_drag(drag_event(0.3, 0.25, timestamp=30))
        window = desktop.get_focused_window()
        assert window.position == pytest.approx((200.0, 140.0))

        cursor = (0.3 * 1000, 0.25 * 800)
        offset = controller.active_session.anchor_offset
        assert (cursor[0] - window.x, cursor[1] - window.y) == pytest.approx(offset)
        assert controller.active_session.updates == 1

    def test_clamped_to_screen(self, controller, desktop):
        """At least 200 px horizontally and 50 px vertically stay visible."""
        controller.handle_drag(drag_event(0.2, 0.2))
        controller.handle_drag(drag_event(1.0, 1.0, timestamp=30))
        window = desktop.get_focused_window()
        assert window.position == pytest.approx((800.0, 740.0))

        controller.handle_drag(drag_event(1.0, 1.2, timestamp=60))
        assert window.position == pytest.approx((800.0, 750.0))

        controller.handle_drag(drag_event(0.0, 0.0, timestamp=90))
        assert window.position == (0.0, 0.0)

    def test_no_focused_window_is_noop(self, controller, desktop):
        desktop.clear_focus()
        assert controller.handle_drag(drag_event(0.2, 0.2)) is None
        assert controller.active_session is None

    def test_inactivity_timeout(self, controller, scheduler):
        controller.handle_drag(drag_event(0.2, 0.2))
        scheduler.advance(199)
        assert controller.active_session is not None
        scheduler.advance(200)
        assert controller.active_session is None

    def test_each_event_reschedules_timer(self, controller, scheduler):
        """Continuations cancel the previous timer instead of stacking."""
        controller.handle_drag(drag_event(0.2, 0.2))
        scheduler.advance(150)
        controller.handle_drag(drag_event(0.25, 0.2, timestamp=150))
        assert scheduler.pending_count == 1

        scheduler.advance(300)
        assert controller.active_session is not None
        scheduler.advance(350)
        assert controller.active_session is None

    def test_new_identity_supersedes(self, controller, bus):
        ended = []
        bus.subscribe(Events.SESSION_ENDED, lambda **kw: ended.append(kw["reason"]))
        first = controller.handle_drag(drag_event(0.2, 0.2, identity_id="a"))
        second = controller.handle_drag(drag_event(0.4, 0.4, identity_id="b"))
        assert second is not first
        assert second.active_identity_id == "b"
        assert ended == ["superseded"]

    def test_gesture_end_terminates_session(self, controller):
        controller.handle_drag(drag_event(0.2, 0.2, identity_id="a"))
        other = GestureEnded("z", GestureType.PINCH, 0, Handedness.RIGHT, 50, EndReason.RELEASED)
        controller.handle_gesture_end(other)
        assert controller.active_session is not None

        own = GestureEnded("a", GestureType.PINCH, 0, Handedness.RIGHT, 50, EndReason.RELEASED)
        controller.handle_gesture_end(own)
        assert controller.active_session is None

    def test_focus_change_terminates_session(self, controller, desktop):
        session = controller.handle_drag(drag_event(0.2, 0.2))
        controller.handle_focus_change(session.window_id)
        assert controller.active_session is not None
        controller.handle_focus_change("window-99")
        assert controller.active_session is None

    def test_closed_window_ends_session(self, controller, desktop):
        session = controller.handle_drag(drag_event(0.2, 0.2))
        desktop.close_window(session.window_id)
        assert controller.handle_drag(drag_event(0.3, 0.3, timestamp=30)) is None
        assert controller.active_session is None

    def test_session_events_on_bus(self, controller, bus, scheduler):
        seen = []
        bus.subscribe(Events.SESSION_STARTED, lambda **kw: seen.append("started"))
        bus.subscribe(Events.SESSION_ENDED, lambda **kw: seen.append(kw["reason"]))
        controller.handle_drag(drag_event(0.2, 0.2))
        scheduler.advance(200)
        assert seen == ["started", "timeout"]
        assert controller.completed_sessions == 1

    def test_stream_then_silence_then_new_identity(self, controller, desktop, scheduler):
        """Five continuation frames, 250 ms of silence, then a fresh session."""
        window = desktop.get_focused_window()
        for i in range(5):
            t = i * 30
            scheduler.advance(t)
            controller.handle_drag(drag_event(0.2 + 0.01 * i, 0.2, timestamp=t, identity_id="a"))
        assert controller.active_session.updates == 4
        moved_to = window.position

        scheduler.advance(120 + 250)
        assert controller.active_session is None

        session = controller.handle_drag(drag_event(0.5, 0.5, timestamp=370, identity_id="b"))
        assert session.active_identity_id == "b"
        assert session.anchor_offset == pytest.approx((500.0 - moved_to[0], 400.0 - moved_to[1]))
