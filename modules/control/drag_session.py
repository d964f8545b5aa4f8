"""
Drag session controller.

Turns a stream of ``drag`` actions into a window move. The first event of
a gesture identity anchors the focused window under the cursor; later
events with the same identity move it so the anchor offset is preserved.
A session ends on inactivity, on an explicit gesture end, on a focus change
or when another identity takes over.
"""

import logging
from typing import Optional, Tuple

from core.events import EventBus, Events
from core.types import DragSession, GestureEnded, GestureEvent
from modules.control.scheduler import FrameScheduler
from modules.control.window_host import WindowHost

logger = logging.getLogger(__name__)


class DragSessionController:
    """Owns at most one active drag session."""

    def __init__(self, host: WindowHost, scheduler: FrameScheduler,
                 config: dict = None, bus: EventBus = None):
        """
        Args:
            host: window host the session moves windows on
            scheduler: timer source for the inactivity timeout
            config: session section (drag_timeout_ms, min_visible_width,
                    title_bar_height)
            bus: optional event bus for session start/end notifications
        """
        config = config or {}
        self._host = host
        self._scheduler = scheduler
        self._bus = bus
        self.timeout_ms = config.get("drag_timeout_ms", 200)
        self.min_visible_width = config.get("min_visible_width", 200)
        self.title_bar_height = config.get("title_bar_height", 50)

        self._session: Optional[DragSession] = None
        self._completed = 0

    @property
    def active_session(self) -> Optional[DragSession]:
        return self._session

    @property
    def completed_sessions(self) -> int:
        return self._completed

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    def handle_drag(self, event: GestureEvent) -> Optional[DragSession]:
        """Start or continue a drag for a dispatched ``drag`` action.

        Returns:
            The active session, or None when no window could be dragged
        """
        cursor = self._to_screen(event.normalized_position)
        session = self._session

        if session is not None and session.active_identity_id == event.identity_id:
            if self._host.get_window(session.window_id) is None:
                self.end_session("window_closed")
                return None
            self._move(session, cursor)
            self._arm_timer(session)
            return session

        if session is not None:
            self.end_session("superseded")

        window = self._host.get_focused_window()
        if window is None:
            logger.debug("Drag ignored: no focused window")
            return None

        offset = (cursor[0] - window.x, cursor[1] - window.y)
        session = DragSession(
            window_id=window.window_id,
            anchor_offset=offset,
            active_identity_id=event.identity_id,
            started_at=event.timestamp,
        )
        self._session = session
        self._arm_timer(session)

        logger.debug("Drag started on %s (offset=%.0f,%.0f)",
                     window.window_id, offset[0], offset[1])
        if self._bus is not None:
            self._bus.emit(Events.SESSION_STARTED, session=session)
        return session

    def handle_gesture_end(self, ended: GestureEnded):
        """End the session early when its gesture identity ends."""
        session = self._session
        if session is not None and session.active_identity_id == ended.identity_id:
            self.end_session("gesture_ended")

    def handle_focus_change(self, window_id: Optional[str]):
        session = self._session
        if session is not None and window_id != session.window_id:
            self.end_session("focus_changed")

    def end_session(self, reason: str = "ended") -> Optional[DragSession]:
        session = self._session
        if session is None:
            return None
        if session.timer is not None:
            session.timer.cancel()
            session.timer = None
        self._session = None
        self._completed += 1

        logger.debug("Drag on %s ended (%s, %d updates)",
                     session.window_id, reason, session.updates)
        if self._bus is not None:
            self._bus.emit(Events.SESSION_ENDED, session=session, reason=reason)
        return session

    # ------------------------------------------------------------------

    def _to_screen(self, position) -> Tuple[float, float]:
        width, height = self._host.screen_size
        return (position[0] * width, position[1] * height)

    def _move(self, session: DragSession, cursor: Tuple[float, float]):
        width, height = self._host.screen_size
        x = cursor[0] - session.anchor_offset[0]
        y = cursor[1] - session.anchor_offset[1]
        # Keep the title bar reachable
        x = min(max(0.0, x), max(0.0, width - self.min_visible_width))
        y = min(max(0.0, y), max(0.0, height - self.title_bar_height))
        self._host.move_window(session.window_id, x, y)
        session.updates += 1

    def _arm_timer(self, session: DragSession):
        if session.timer is not None:
            session.timer.cancel()

        def expire():
            if self._session is session:
                self.end_session("timeout")

        session.timer = self._scheduler.call_later(self.timeout_ms, expire)
