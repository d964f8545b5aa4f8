"""
Per-hand temporal state: position smoothing, gesture identity, confidence
accumulation and the hold-time emission gate.

A classified gesture only becomes a GestureEvent once its running
confidence reaches the threshold AND it has persisted for the hold time.
Identities that emitted at least one event produce an explicit
GestureEnded transition when they stop.
"""

import uuid
import logging
from dataclasses import dataclass, field
from typing import Optional, Dict, Callable

import numpy as np

from core.types import GestureType, GestureEvent, GestureEnded, EndReason, Handedness

logger = logging.getLogger(__name__)

CONFIDENCE_DECAY = 0.8  # weight of the running confidence in the EMA


def _new_identity_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class HandTrackingState:
    """Temporal state for one tracked hand."""
    last_gesture_type: Optional[GestureType] = None
    gesture_start_time: float = 0.0
    gesture_identity_id: Optional[str] = None
    confidence: float = 0.0
    smoothed_position: np.ndarray = field(default_factory=lambda: np.zeros(2))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(2))
    previous_position: np.ndarray = field(default_factory=lambda: np.zeros(2))
    handedness: Handedness = Handedness.RIGHT
    emitted: bool = False
    initialized: bool = False

    def advance_position(self, palm_center: np.ndarray, smoothing: float):
        """Update velocity then smooth the position.

        Velocity is measured against the smoothed position from before this
        frame's smoothing is applied. The first sighting seeds the smoothed
        position so it does not register as motion.
        """
        palm_center = np.asarray(palm_center, dtype=np.float64)[:2]
        if not self.initialized:
            self.smoothed_position = palm_center.copy()
            self.previous_position = palm_center.copy()
            self.velocity = np.zeros(2)
            self.initialized = True
            return

        self.velocity = palm_center - self.smoothed_position
        self.previous_position = self.smoothed_position.copy()
        self.smoothed_position = self.smoothed_position * smoothing + palm_center * (1.0 - smoothing)

    def observe(self, gesture_type: GestureType, detected_confidence: float,
                now: float, identity_factory: Callable[[], str]) -> bool:
        """Fold a classified gesture into the identity/confidence state.

        Returns:
            True if a new identity was started
        """
        detected_confidence = min(1.0, max(0.0, float(detected_confidence)))
        if gesture_type != self.last_gesture_type:
            self.last_gesture_type = gesture_type
            self.gesture_start_time = now
            self.gesture_identity_id = identity_factory()
            self.confidence = detected_confidence
            self.emitted = False
            return True

        # c*0.8 + d*0.2, written so a steady input stays exactly steady
        self.confidence += (detected_confidence - self.confidence) * (1.0 - CONFIDENCE_DECAY)
        return False

    def reset_gesture(self):
        self.last_gesture_type = None
        self.gesture_identity_id = None
        self.confidence = 0.0
        self.emitted = False

    def held_for(self, now: float) -> float:
        return now - self.gesture_start_time


@dataclass(frozen=True)
class FilterResult:
    event: Optional[GestureEvent] = None
    ended: Optional[GestureEnded] = None


class TemporalFilter:
    """Owns the per-hand state map and applies the emission gate."""

    def __init__(self, config: dict = None, identity_factory: Callable[[], str] = None):
        config = config or {}
        self.smoothing = config.get("smoothing", 0.6)
        self.confidence_threshold = config.get("confidence_threshold", 0.8)
        self.hold_ms = config.get("hold_ms", 150)
        self._identity_factory = identity_factory or _new_identity_id
        self._states: Dict[int, HandTrackingState] = {}

    def get_state(self, hand_id: int) -> Optional[HandTrackingState]:
        return self._states.get(hand_id)

    @property
    def hand_ids(self) -> list:
        return list(self._states.keys())

    def track(self, hand_id: int, palm_center) -> HandTrackingState:
        """Create the hand's state lazily and advance its position."""
        state = self._states.get(hand_id)
        if state is None:
            state = HandTrackingState()
            self._states[hand_id] = state
            logger.debug("Temporal state created for hand %s", hand_id)
        state.advance_position(palm_center, self.smoothing)
        return state

    def resolve(self, hand_id: int, handedness: Handedness, detection, now: float,
                hold_ms: Optional[float] = None) -> FilterResult:
        """Apply a frame's detection (or None) to the hand and gate emission.

        Args:
            hand_id: tracker id of the hand
            handedness: label reported with the frame
            detection: Detection from the classifier, or None
            now: frame timestamp (ms)
            hold_ms: hold time for this gesture; defaults to self.hold_ms
        """
        state = self._states[hand_id]
        state.handedness = handedness

        if detection is None:
            ended = self._end_transition(state, hand_id, now, EndReason.RELEASED)
            state.reset_gesture()
            return FilterResult(ended=ended)

        ended = None
        if detection.type != state.last_gesture_type:
            ended = self._end_transition(state, hand_id, now, EndReason.CHANGED)
        state.observe(detection.type, detection.confidence, now, self._identity_factory)

        hold = self.hold_ms if hold_ms is None else hold_ms
        held = state.held_for(now)
        if state.confidence >= self.confidence_threshold and held >= hold:
            state.emitted = True
            event = GestureEvent(
                identity_id=state.gesture_identity_id,
                type=detection.type,
                confidence=state.confidence,
                normalized_position=(float(state.smoothed_position[0]),
                                     float(state.smoothed_position[1])),
                handedness=handedness,
                timestamp=now,
                data=detection.data,
                hand_id=hand_id,
                hold_duration_ms=held,
            )
            return FilterResult(event=event, ended=ended)

        return FilterResult(ended=ended)

    def drop(self, hand_id: int, now: float) -> Optional[GestureEnded]:
        """Forget a hand whose track was lost."""
        state = self._states.pop(hand_id, None)
        if state is None:
            return None
        return self._end_transition(state, hand_id, now, EndReason.LOST)

    def reset(self):
        self._states.clear()

    @staticmethod
    def _end_transition(state: HandTrackingState, hand_id: int, now: float,
                        reason: EndReason) -> Optional[GestureEnded]:
        # Only identities that reached downstream need a terminal signal
        if not (state.emitted and state.gesture_identity_id):
            return None
        return GestureEnded(state.gesture_identity_id, state.last_gesture_type,
                            hand_id, state.handedness, now, reason)
