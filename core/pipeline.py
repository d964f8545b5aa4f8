"""
Core pipeline orchestrator for the gesture input system.

Architecture:
    LandmarkFrames -> HandTracker -> GestureClassifier + TemporalFilter
    -> GestureMapper (policies) -> ActionExecutor -> WindowHost
                                        \\-> DragSessionController

Everything runs synchronously inside process_frame(), which is called once
per incoming sensor frame. The frame timestamp is the clock for the hold
gate, the rate limiter and the drag inactivity timer.
"""

import logging
import math
from typing import Callable, Iterable, List, Optional

from core.context import RuntimeContext
from core.events import Events, Subscription
from core.types import GestureEnded, GestureEvent, LandmarkFrame
from modules.control.action_executor import ActionExecutor
from modules.control.drag_session import DragSessionController
from modules.control.gesture_mapper import GestureMapper
from modules.recognition.input_layer import GestureInputLayer
from modules.utils.logger import log_timing

logger = logging.getLogger(__name__)


def _check_range(name: str, value, low: float, high: Optional[float] = None):
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if value < low or (high is not None and value > high):
        bounds = f"[{low}, {high}]" if high is not None else f">= {low}"
        raise ValueError(f"{name} must be {bounds}, got {value}")


class GesturePipeline:
    """Frame-driven gesture input pipeline.

    Wires the input layer, the mapper, the action executor and the drag
    session controller around one RuntimeContext.
    """

    def __init__(self, context: RuntimeContext = None,
                 identity_factory: Callable[[], str] = None):
        self._context = context or RuntimeContext()
        config = self._context.config
        host = self._context.host
        self._bus = self._context.bus
        self._scheduler = self._context.scheduler

        self._mapper = GestureMapper(config.mapping,
                                     focus_provider=lambda: host.focused_window_id)
        if config.mappings:
            self._mapper.add_mappings(config.mappings)

        self._input = GestureInputLayer(
            config.recognition,
            config.tracking,
            identity_factory=identity_factory,
            hold_resolver=self._mapper.hold_millis_for,
        )
        self._drag = DragSessionController(host, self._scheduler, config.session, self._bus)
        self._executor = ActionExecutor(host, self._drag, self._bus)

        # Internal wiring; these subscriptions live as long as the pipeline
        self._wiring = [
            self._mapper.on_action(self._dispatch),
            self._input.on_gesture_event(self._on_gesture),
            self._input.on_gesture_end(self._on_gesture_end),
            self._input.on_hand_lost(self._on_hand_lost),
            host.on_focus_change(self._on_focus_change),
        ]

        self._frame_count = 0
        logger.info("GesturePipeline initialized (%d mappings)",
                    len(self._mapper.get_mappings()))

    # ------------------------------------------------------------------
    # Frame entry point
    # ------------------------------------------------------------------

    @log_timing
    def process_frame(self, frames: Iterable[LandmarkFrame],
                      timestamp: Optional[float] = None) -> List[GestureEvent]:
        """Run one pipeline iteration.

        Args:
            frames: hand observations for this frame (a single LandmarkFrame
                    is accepted too)
            timestamp: frame time in ms; defaults to the newest frame timestamp

        Returns:
            Gesture events emitted for this frame
        """
        if isinstance(frames, LandmarkFrame):
            frames = [frames]
        frames = list(frames or [])

        if timestamp is None:
            timestamp = max((f.timestamp for f in frames), default=self._scheduler.now)

        self._frame_count += 1
        # Expire timers before new events can continue a session
        self._scheduler.advance(timestamp)
        return self._input.process_frames(frames, timestamp)

    # ------------------------------------------------------------------
    # Internal wiring
    # ------------------------------------------------------------------

    def _on_gesture(self, event: GestureEvent):
        self._bus.emit(Events.GESTURE_DETECTED, event=event)
        action = self._mapper.process_gesture(event)
        if action is None and self._mapper.get_mapping(event.type) is not None:
            self._bus.emit(Events.ACTION_REJECTED, event=event)

    def _dispatch(self, action: str, event: GestureEvent):
        executed = self._executor.execute(action, event)
        if executed:
            self._bus.emit(Events.ACTION_DISPATCHED, action=action, event=event)

    def _on_gesture_end(self, ended: GestureEnded):
        self._drag.handle_gesture_end(ended)
        self._bus.emit(Events.GESTURE_ENDED, ended=ended)

    def _on_hand_lost(self, hand_id: int):
        self._bus.emit(Events.HAND_LOST, hand_id=hand_id)

    def _on_focus_change(self, window_id):
        self._drag.handle_focus_change(window_id)
        self._bus.emit(Events.FOCUS_CHANGED, window_id=window_id)

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on_action(self, callback: Callable[[str, GestureEvent], None]) -> Subscription:
        """Subscribe to dispatched ``(action, event)`` pairs."""
        return self._mapper.on_action(callback)

    def on_gesture_event(self, callback: Callable[[GestureEvent], None]) -> Subscription:
        return self._input.on_gesture_event(callback)

    def on_gesture_end(self, callback: Callable[[GestureEnded], None]) -> Subscription:
        return self._input.on_gesture_end(callback)

    # ------------------------------------------------------------------
    # Mapping and policy pass-through
    # ------------------------------------------------------------------

    def add_mapping(self, gesture, action: str = None, **options):
        return self._mapper.add_mapping(gesture, action, **options)

    def update_mapping(self, gesture, **updates):
        return self._mapper.update_mapping(gesture, **updates)

    def remove_mapping(self, gesture) -> bool:
        return self._mapper.remove_mapping(gesture)

    def add_mappings(self, mappings: dict):
        self._mapper.add_mappings(mappings)

    def add_policy(self, policy, predicate: Callable = None):
        return self._mapper.add_policy(policy, predicate)

    def remove_policy(self, name: str) -> bool:
        return self._mapper.remove_policy(name)

    def register_action(self, action_name: str, handler: Callable[[GestureEvent], None]):
        self._executor.register(action_name, handler)

    # ------------------------------------------------------------------
    # Runtime configuration
    # ------------------------------------------------------------------

    def update_config(self, smoothing: float = None, confidence_threshold: float = None,
                      hold_ms: float = None, rate_limit_ms: float = None,
                      mapping_threshold: float = None, mirrored: bool = None,
                      mappings: dict = None) -> dict:
        """Change the runtime-mutable settings without a restart.

        All values are validated before any of them is applied.

        Raises:
            ValueError: if a value has the wrong type or is out of range, or a
                mapping entry is invalid
        """
        if smoothing is not None:
            _check_range("smoothing", smoothing, 0.0, 1.0)
        if confidence_threshold is not None:
            _check_range("confidence_threshold", confidence_threshold, 0.0, 1.0)
        if mapping_threshold is not None:
            _check_range("mapping_threshold", mapping_threshold, 0.0, 1.0)
        if hold_ms is not None:
            _check_range("hold_ms", hold_ms, 0.0)
        if rate_limit_ms is not None:
            _check_range("rate_limit_ms", rate_limit_ms, 0.0)
        if mirrored is not None and not isinstance(mirrored, bool):
            raise ValueError(f"mirrored must be a bool, got {mirrored!r}")
        parsed = None
        if mappings is not None:
            parsed = self._mapper.parse_mappings(mappings)

        config = self._context.config
        changes = {}

        self._input.update_config(smoothing=smoothing,
                                  confidence_threshold=confidence_threshold,
                                  hold_ms=hold_ms, mirrored=mirrored)
        for key, value in (("smoothing", smoothing),
                           ("confidence_threshold", confidence_threshold),
                           ("hold_ms", hold_ms), ("mirrored", mirrored)):
            if value is not None:
                config.set(f"recognition.{key}", value)
                changes[key] = value

        if rate_limit_ms is not None:
            self._mapper.set_rate_limit(rate_limit_ms)
            config.set("mapping.rate_limit_ms", rate_limit_ms)
            changes["rate_limit_ms"] = rate_limit_ms
        if mapping_threshold is not None:
            self._mapper.set_default_threshold(mapping_threshold)
            config.set("mapping.confidence_threshold", mapping_threshold)
            changes["mapping_threshold"] = mapping_threshold
        if parsed:
            for mapping in parsed.values():
                self._mapper.add_mapping(mapping)
            changes["mappings"] = sorted(gesture.value for gesture in parsed)

        if changes:
            logger.info("Runtime config updated: %s", ", ".join(sorted(changes)))
            self._bus.emit(Events.CONFIG_CHANGED, changes=changes)
        return changes

    def get_config(self) -> dict:
        config = self._input.get_config()
        config["rate_limit_ms"] = self._mapper.rate_limit_ms
        config["mapping_threshold"] = self._mapper.default_threshold
        return config

    # ------------------------------------------------------------------

    @property
    def context(self) -> RuntimeContext:
        return self._context

    @property
    def input_layer(self) -> GestureInputLayer:
        return self._input

    @property
    def mapper(self) -> GestureMapper:
        return self._mapper

    @property
    def executor(self) -> ActionExecutor:
        return self._executor

    @property
    def drag_controller(self) -> DragSessionController:
        return self._drag

    @property
    def frame_count(self) -> int:
        return self._frame_count

    def reset(self):
        """Clear recognition state, policy bookkeeping and any active drag."""
        self._drag.end_session("reset")
        self._input.reset()
        self._mapper.reset()

    def close(self):
        self.reset()
        for subscription in self._wiring:
            subscription.dispose()
        self._wiring.clear()
