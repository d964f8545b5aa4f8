"""
Shared domain types for the touchless gesture input core.

Centralizes enums, data classes, and type definitions used across modules
to eliminate circular imports and ensure type consistency.
"""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional, Dict, Tuple, Sequence, Any

import numpy as np

NUM_LANDMARKS = 21


def _is_number(value) -> bool:
    # bool is an int subclass but never a valid quantity
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


# =============================================================================
# Gesture Types
# =============================================================================

class GestureType(Enum):
    """All gesture types known to the system."""
    OPEN_PALM = "open_palm"
    CLOSED_FIST = "closed_fist"
    THUMBS_UP = "thumbs_up"
    THUMBS_DOWN = "thumbs_down"
    SWIPE_LEFT = "swipe_left"
    SWIPE_RIGHT = "swipe_right"
    PUSH_FORWARD = "push_forward"
    PINCH = "pinch"
    PINCH_ROTATE = "pinch_rotate"
    TWO_FINGER_SPREAD = "two_finger_spread"
    TWO_FINGER_PINCH = "two_finger_pinch"
    GESTURE_COMBO = "gesture_combo"

    @classmethod
    def from_string(cls, name: str) -> Optional['GestureType']:
        """Convert a string gesture name to GestureType, or None if unknown."""
        try:
            return cls(name)
        except ValueError:
            return None


class Handedness(Enum):
    LEFT = "Left"
    RIGHT = "Right"

    @classmethod
    def from_label(cls, label: str) -> 'Handedness':
        """Parse a detector label ('Left', 'left', 'RIGHT', ...)."""
        return cls.LEFT if str(label).strip().lower() == "left" else cls.RIGHT


class EndReason(Enum):
    """Why a gesture identity stopped."""
    CHANGED = "changed"      # classified type changed
    RELEASED = "released"    # no rule matched
    LOST = "lost"            # hand track dropped


# =============================================================================
# Landmark Input
# =============================================================================

@dataclass(frozen=True)
class Landmark:
    x: float
    y: float
    z: float = 0.0
    visibility: Optional[float] = None


@dataclass(frozen=True)
class LandmarkFrame:
    """One hand observation delivered by the vision collaborator.

    Coordinates are normalized to [0, 1]; ``timestamp`` is the capture time
    in milliseconds.
    """
    landmarks: Tuple[Landmark, ...]
    handedness: Handedness
    confidence: float
    timestamp: float

    @property
    def is_complete(self) -> bool:
        """True when all 21 landmarks are present and finite."""
        if len(self.landmarks) < NUM_LANDMARKS:
            return False
        return all(
            math.isfinite(lm.x) and math.isfinite(lm.y) and math.isfinite(lm.z)
            for lm in self.landmarks
        )

    def to_array(self) -> np.ndarray:
        """Landmarks as an (N, 3) float array."""
        return np.array([[lm.x, lm.y, lm.z] for lm in self.landmarks], dtype=np.float64)

    @classmethod
    def from_points(cls, points: Sequence[Sequence[float]], handedness="Right",
                    confidence: float = 1.0, timestamp: float = 0.0) -> 'LandmarkFrame':
        """Build a frame from ``[(x, y, z[, visibility]), ...]``."""
        landmarks = tuple(
            Landmark(float(p[0]), float(p[1]),
                     float(p[2]) if len(p) > 2 else 0.0,
                     float(p[3]) if len(p) > 3 and p[3] is not None else None)
            for p in points
        )
        if not isinstance(handedness, Handedness):
            handedness = Handedness.from_label(handedness)
        return cls(landmarks, handedness, float(confidence), float(timestamp))

    @classmethod
    def from_dict(cls, data: dict, timestamp: Optional[float] = None) -> 'LandmarkFrame':
        """Build a frame from a replay record.

        Expected keys: ``landmarks`` (list of [x, y, z] or {x, y, z}),
        ``handedness``, ``confidence`` and optionally ``timestamp``.
        """
        points = []
        for p in data.get("landmarks", []):
            if isinstance(p, dict):
                points.append((p.get("x", 0.0), p.get("y", 0.0), p.get("z", 0.0),
                               p.get("visibility")))
            else:
                points.append(tuple(p))
        ts = data.get("timestamp", timestamp if timestamp is not None else 0.0)
        return cls.from_points(points, data.get("handedness", "Right"),
                               data.get("confidence", 1.0), ts)

    @classmethod
    def from_mediapipe(cls, hand_landmarks, handedness_label: str = "Right",
                       score: float = 1.0, timestamp: float = 0.0) -> 'LandmarkFrame':
        """Convert a MediaPipe ``NormalizedLandmarkList``-like object."""
        points = [
            (lm.x, lm.y, lm.z, getattr(lm, "visibility", None))
            for lm in hand_landmarks.landmark
        ]
        return cls.from_points(points, handedness_label, score, timestamp)


# =============================================================================
# Gesture Events
# =============================================================================

@dataclass(frozen=True)
class GestureEvent:
    """A confidence- and hold-time-gated gesture emission.

    ``identity_id`` stays the same across consecutive frames classified as
    the same gesture for the same hand.
    """
    identity_id: str
    type: GestureType
    confidence: float
    normalized_position: Tuple[float, float]
    handedness: Handedness
    timestamp: float
    data: Optional[Dict[str, Any]] = None
    hand_id: int = -1
    hold_duration_ms: float = 0.0

    def __repr__(self):
        return (f"GestureEvent({self.type.value}, id={self.identity_id}, "
                f"conf={self.confidence:.2f}, t={self.timestamp:.0f})")


@dataclass(frozen=True)
class GestureEnded:
    """Terminal transition for an identity that had emitted events."""
    identity_id: str
    type: GestureType
    hand_id: int
    handedness: Handedness
    timestamp: float
    reason: EndReason


# =============================================================================
# Gesture ↔ Action Mapping
# =============================================================================

@dataclass
class GestureMapping:
    gesture: GestureType
    action: str
    require_focus: bool = False
    global_: bool = False
    hold_millis: Optional[float] = None
    confidence_threshold: Optional[float] = None
    continuous: bool = False

    def __post_init__(self):
        if not isinstance(self.gesture, GestureType):
            raise ValueError(f"Mapping gesture must be a GestureType, got {self.gesture!r}")
        if not isinstance(self.action, str) or not self.action.strip():
            raise ValueError(f"Mapping for {self.gesture.value}: action must be a non-empty "
                             f"string, got {self.action!r}")
        for name in ("require_focus", "global_", "continuous"):
            if not isinstance(getattr(self, name), bool):
                raise ValueError(f"Mapping for {self.gesture.value}: {name} must be a bool, "
                                 f"got {getattr(self, name)!r}")
        if self.hold_millis is not None and not (
                _is_number(self.hold_millis) and self.hold_millis >= 0):
            raise ValueError(f"Mapping for {self.gesture.value}: hold_millis must be a "
                             f"number >= 0, got {self.hold_millis!r}")
        if self.confidence_threshold is not None and not (
                _is_number(self.confidence_threshold) and 0 <= self.confidence_threshold <= 1):
            raise ValueError(f"Mapping for {self.gesture.value}: confidence_threshold must be "
                             f"in [0, 1], got {self.confidence_threshold!r}")

    @classmethod
    def from_dict(cls, gesture: GestureType, data: dict) -> 'GestureMapping':
        """Build a mapping from a config entry (accepts camelCase keys too).

        Raises:
            ValueError: if a field has the wrong type or is out of range
        """
        def pick(*keys, default=None):
            for key in keys:
                if key in data:
                    return data[key]
            return default

        return cls(
            gesture=gesture,
            action=data.get("action"),
            require_focus=pick("require_focus", "requireFocus", default=False),
            global_=pick("global", "global_", default=False),
            hold_millis=pick("hold_millis", "holdMillis"),
            confidence_threshold=pick("confidence_threshold", "confidenceThreshold"),
            continuous=pick("continuous", default=False),
        )

    def updated(self, **changes) -> 'GestureMapping':
        if "global" in changes:
            changes["global_"] = changes.pop("global")
        changes.pop("gesture", None)
        return replace(self, **changes)


DEFAULT_MAPPINGS = (
    GestureMapping(GestureType.OPEN_PALM, "open-launcher", global_=True),
    GestureMapping(GestureType.PINCH, "drag", require_focus=True, hold_millis=80,
                   continuous=True),
    GestureMapping(GestureType.PUSH_FORWARD, "click", require_focus=True),
    GestureMapping(GestureType.SWIPE_LEFT, "prev-desktop", global_=True),
    GestureMapping(GestureType.SWIPE_RIGHT, "next-desktop", global_=True),
    GestureMapping(GestureType.TWO_FINGER_PINCH, "minimize", require_focus=True),
    GestureMapping(GestureType.TWO_FINGER_SPREAD, "maximize", require_focus=True),
    GestureMapping(GestureType.CLOSED_FIST, "grab", require_focus=True),
)


# =============================================================================
# Session State
# =============================================================================

@dataclass
class DragSession:
    """Stateful lifetime of one continuous drag."""
    window_id: str
    anchor_offset: Tuple[float, float]
    active_identity_id: str
    started_at: float
    timer: Any = field(default=None, repr=False)
    updates: int = 0
