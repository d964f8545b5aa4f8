"""
Host-side collaborator the action handlers operate on.

``WindowHost`` is the interface the core needs from the shell: focus,
window geometry, a few window-management operations and hit testing.
``VirtualDesktop`` is an in-memory implementation used by the replay tool
and the test-suite.
"""

import itertools
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from core.events import Signal, Subscription

logger = logging.getLogger(__name__)


@dataclass
class Window:
    window_id: str
    title: str
    x: float
    y: float
    width: float = 800
    height: float = 600
    z_index: int = 0
    minimized: bool = False
    maximized: bool = False
    app_id: Optional[str] = None
    restore_bounds: Optional[Tuple[float, float, float, float]] = None

    @property
    def position(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def contains(self, px: float, py: float) -> bool:
        return self.x <= px < self.x + self.width and self.y <= py < self.y + self.height


@dataclass(eq=False)
class UiNode:
    """Element of a window's UI tree. Bounds are relative to the parent."""
    node_id: str
    x: float = 0
    y: float = 0
    width: float = 0
    height: float = 0
    interactive: bool = False
    parent: Optional["UiNode"] = field(default=None, repr=False)
    children: List["UiNode"] = field(default_factory=list, repr=False)
    window: Optional[Window] = field(default=None, repr=False)
    on_activate: Optional[Callable[["UiNode"], None]] = field(default=None, repr=False)
    activations: int = 0

    def add_child(self, child: "UiNode") -> "UiNode":
        child.parent = self
        self.children.append(child)
        return child

    def origin(self) -> Tuple[float, float]:
        if self.window is not None:
            return (self.window.x + self.x, self.window.y + self.y)
        if self.parent is None:
            return (self.x, self.y)
        px, py = self.parent.origin()
        return (px + self.x, py + self.y)

    def contains(self, px: float, py: float) -> bool:
        ox, oy = self.origin()
        return ox <= px < ox + self.width and oy <= py < oy + self.height

    def deepest_at(self, px: float, py: float) -> Optional["UiNode"]:
        if not self.contains(px, py):
            return None
        # Later children are painted above earlier ones
        for child in reversed(self.children):
            hit = child.deepest_at(px, py)
            if hit is not None:
                return hit
        return self

    def closest_interactive(self) -> Optional["UiNode"]:
        node = self
        while node is not None:
            if node.interactive:
                return node
            node = node.parent
        return None


class WindowHost:
    """Interface the action handlers and the drag session use."""

    @property
    def screen_size(self) -> Tuple[float, float]:
        raise NotImplementedError

    @property
    def focused_window_id(self) -> Optional[str]:
        raise NotImplementedError

    def get_window(self, window_id: str) -> Optional[Window]:
        raise NotImplementedError

    def move_window(self, window_id: str, x: float, y: float):
        raise NotImplementedError

    def minimize_window(self, window_id: str):
        raise NotImplementedError

    def maximize_window(self, window_id: str):
        raise NotImplementedError

    def open_launcher(self):
        raise NotImplementedError

    def switch_desktop(self, delta: int):
        raise NotImplementedError

    def element_at(self, x: float, y: float) -> Optional[UiNode]:
        raise NotImplementedError

    def activate(self, node: UiNode):
        raise NotImplementedError

    def forward_gesture(self, window_id: str, action: str, event):
        raise NotImplementedError

    def on_focus_change(self, callback: Callable[[Optional[str]], None]) -> Subscription:
        raise NotImplementedError

    def get_focused_window(self) -> Optional[Window]:
        window_id = self.focused_window_id
        return self.get_window(window_id) if window_id else None


class VirtualDesktop(WindowHost):
    """In-memory window host."""

    LAUNCHER_TITLE = "App Launcher"

    def __init__(self, width: float = 1920, height: float = 1080, desktops: int = 4,
                 forward_history: int = 100):
        self._size = (float(width), float(height))
        self._windows = {}
        self._roots = {}
        self._focused = None
        self._next_z = 1000
        self._ids = itertools.count(1)
        self._desktop_count = max(1, desktops)
        self.current_desktop = 0
        self.forwarded = deque(maxlen=forward_history)  # (window_id, action, event)
        self._focus_signal = Signal("focus_change")

    # ------------------------------------------------------------------
    # Window lifecycle
    # ------------------------------------------------------------------

    def open_window(self, title: str, x: float = None, y: float = None,
                    width: float = 800, height: float = 600, app_id: str = None) -> str:
        window_id = f"window-{next(self._ids)}"
        if x is None or y is None:
            # Cascade new windows
            offset = (len(self._windows) % 10) * 30
            x, y = 100 + offset, 100 + offset
        window = Window(window_id, title, float(x), float(y), float(width), float(height),
                        z_index=self._next_z, app_id=app_id)
        self._next_z += 1
        self._windows[window_id] = window
        self._roots[window_id] = UiNode(f"{window_id}-root", 0, 0, width, height, window=window)
        logger.debug("Window opened: %s (%s)", window_id, title)
        self.focus_window(window_id)
        return window_id

    def close_window(self, window_id: str):
        if self._windows.pop(window_id, None) is None:
            return
        self._roots.pop(window_id, None)
        if self._focused == window_id:
            self._focus_topmost()

    def focus_window(self, window_id: str):
        window = self._windows.get(window_id)
        if window is None:
            return
        window.z_index = self._next_z
        self._next_z += 1
        window.minimized = False
        self._set_focus(window_id)

    def clear_focus(self):
        self._set_focus(None)

    def _set_focus(self, window_id: Optional[str]):
        if window_id == self._focused:
            return
        self._focused = window_id
        self._focus_signal.emit(window_id)

    def _focus_topmost(self, exclude: str = None):
        candidates = [w for w in self._windows.values()
                      if not w.minimized and w.window_id != exclude]
        if candidates:
            top = max(candidates, key=lambda w: w.z_index)
            self.focus_window(top.window_id)
        else:
            self._set_focus(None)

    def root_node(self, window_id: str) -> Optional[UiNode]:
        return self._roots.get(window_id)

    @property
    def windows(self) -> list:
        return list(self._windows.values())

    # ------------------------------------------------------------------
    # WindowHost
    # ------------------------------------------------------------------

    @property
    def screen_size(self) -> Tuple[float, float]:
        return self._size

    @property
    def focused_window_id(self) -> Optional[str]:
        return self._focused

    def get_window(self, window_id: str) -> Optional[Window]:
        return self._windows.get(window_id)

    def move_window(self, window_id: str, x: float, y: float):
        window = self._windows.get(window_id)
        if window is not None:
            window.x, window.y = float(x), float(y)

    def minimize_window(self, window_id: str):
        window = self._windows.get(window_id)
        if window is None:
            return
        window.minimized = True
        if self._focused == window_id:
            self._focus_topmost(exclude=window_id)

    def maximize_window(self, window_id: str):
        window = self._windows.get(window_id)
        if window is None:
            return
        if window.maximized:
            if window.restore_bounds:
                window.x, window.y, window.width, window.height = window.restore_bounds
            window.maximized = False
        else:
            window.restore_bounds = (window.x, window.y, window.width, window.height)
            window.x, window.y = 0.0, 0.0
            window.width, window.height = self._size
            window.maximized = True
        root = self._roots.get(window_id)
        if root is not None:
            root.width, root.height = window.width, window.height

    def open_launcher(self):
        for window in self._windows.values():
            if window.title == self.LAUNCHER_TITLE:
                self.focus_window(window.window_id)
                return
        self.open_window(self.LAUNCHER_TITLE, app_id="launcher")

    def switch_desktop(self, delta: int):
        self.current_desktop = (self.current_desktop + delta) % self._desktop_count

    def element_at(self, x: float, y: float) -> Optional[UiNode]:
        ordered = sorted(
            (w for w in self._windows.values() if not w.minimized),
            key=lambda w: w.z_index, reverse=True,
        )
        for window in ordered:
            if window.contains(x, y):
                return self._roots[window.window_id].deepest_at(x, y)
        return None

    def activate(self, node: UiNode):
        node.activations += 1
        if node.on_activate is not None:
            node.on_activate(node)

    def forward_gesture(self, window_id: str, action: str, event):
        self.forwarded.append((window_id, action, event))

    def on_focus_change(self, callback: Callable[[Optional[str]], None]) -> Subscription:
        return self._focus_signal.subscribe(callback)
