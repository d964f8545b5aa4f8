"""
System action executor.

Routes dispatched actions to their handlers: window operations on the
focused window, desktop switching, hit-tested clicks and the drag session.
Actions with no handler are forwarded to the focused window's app.
"""

import logging
from typing import Callable, Dict, Optional

from core.events import EventBus, Events, Signal, Subscription
from core.types import GestureEvent
from modules.control.drag_session import DragSessionController
from modules.control.window_host import WindowHost

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Executes system actions against a window host."""

    def __init__(self, host: WindowHost, drag_controller: DragSessionController = None,
                 bus: EventBus = None):
        self._host = host
        self._drag = drag_controller
        self._bus = bus

        self._handlers: Dict[str, Callable[[GestureEvent], None]] = {
            "open-launcher": self._open_launcher,
            "click": self._click,
            "minimize": self._minimize,
            "maximize": self._maximize,
            "prev-desktop": lambda event: self._host.switch_desktop(-1),
            "next-desktop": lambda event: self._host.switch_desktop(1),
        }
        if drag_controller is not None:
            self._handlers["drag"] = self._drag_window

        self._executed = Signal("action_executed")
        self._last_action = None
        self._action_count = 0

        logger.info("ActionExecutor initialized (%d handlers)", len(self._handlers))

    def execute(self, action_name: str, event: GestureEvent) -> bool:
        """Run the handler for an action.

        Args:
            action_name: action from the gesture mapping
            event: the gesture event that triggered it

        Returns:
            True if a handler ran (or the event was forwarded) without error.
            A handler that returns False did not act, so the action is not
            recorded.
        """
        handler = self._handlers.get(action_name)
        if handler is None:
            return self._forward(action_name, event)

        try:
            result = handler(event)
        except Exception as e:
            logger.error("Action '%s' failed: %s", action_name, e)
            if self._bus is not None:
                self._bus.emit(Events.ACTION_FAILED, action=action_name, event=event, error=e)
            return False

        if result is False:
            logger.debug("Action '%s' had nothing to act on", action_name)
            return False
        self._record_action(action_name, event)
        return True

    def register(self, action_name: str, handler: Callable[[GestureEvent], None]):
        """Install or replace the handler for an action.

        A handler may return False to report that it did nothing.
        """
        self._handlers[action_name] = handler
        logger.debug("Handler registered for action: %s", action_name)

    def unregister(self, action_name: str) -> bool:
        return self._handlers.pop(action_name, None) is not None

    def has_handler(self, action_name: str) -> bool:
        return action_name in self._handlers

    def on_action(self, callback: Callable[[str, GestureEvent], None]) -> Subscription:
        """Register callback for executed actions.

        callback(action_name: str, event: GestureEvent)
        """
        return self._executed.subscribe(callback)

    def _record_action(self, action_name: str, event: GestureEvent):
        self._last_action = action_name
        self._action_count += 1
        self._executed.emit(action_name, event)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _forward(self, action_name: str, event: GestureEvent) -> bool:
        window_id = self._host.focused_window_id
        if window_id is None:
            logger.debug("No handler for '%s' and no focused window", action_name)
            return False
        try:
            self._host.forward_gesture(window_id, action_name, event)
        except Exception as e:
            logger.error("Forwarding '%s' to %s failed: %s", action_name, window_id, e)
            return False
        self._record_action(action_name, event)
        return True

    def _drag_window(self, event: GestureEvent) -> bool:
        return self._drag.handle_drag(event) is not None

    def _open_launcher(self, event: GestureEvent):
        self._host.open_launcher()

    def _click(self, event: GestureEvent):
        width, height = self._host.screen_size
        x = event.normalized_position[0] * width
        y = event.normalized_position[1] * height

        element = self._host.element_at(x, y)
        if element is None:
            logger.debug("Click at (%.0f, %.0f) hit nothing", x, y)
            return
        target = element.closest_interactive() or element
        logger.debug("Click at (%.0f, %.0f) -> %s", x, y, target.node_id)
        self._host.activate(target)

    def _minimize(self, event: GestureEvent) -> bool:
        window_id = self._host.focused_window_id
        if window_id is None:
            return False
        self._host.minimize_window(window_id)
        return True

    def _maximize(self, event: GestureEvent) -> bool:
        window_id = self._host.focused_window_id
        if window_id is None:
            return False
        self._host.maximize_window(window_id)
        return True

    # ------------------------------------------------------------------

    @property
    def last_action(self) -> Optional[str]:
        return self._last_action

    @property
    def action_count(self) -> int:
        return self._action_count
