"""
Rule-based gesture classifier over 21-point hand landmarks.

An ordered heuristic cascade: the first matching rule wins and no later
rule is evaluated.

    1. >= 4 fingers extended             -> open_palm          (0.90)
    2. no finger extended                -> closed_fist        (0.90)
    3. only the thumb extended           -> thumbs_up          (0.85)
    4. thumb+index extended, tips close  -> pinch              (0.90)
    5. index extended, index base pushed -> push_forward       (0.80)
    6. fast horizontal palm motion       -> swipe_left/right   (0.80)
    7. exactly index+middle extended     -> two_finger_spread/pinch (0.80)
"""

import logging
from dataclasses import dataclass
from typing import Optional, Dict, Any

import numpy as np

from core.types import GestureType
from modules.detection.landmark_extractor import (
    LandmarkExtractor, INDEX_MCP,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Detection:
    """Raw per-frame classification, before temporal gating."""
    type: GestureType
    confidence: float
    data: Optional[Dict[str, Any]] = None


class GestureClassifier:
    """Classifies a single frame of landmarks plus the hand's current velocity."""

    def __init__(self, config: dict = None, extractor: LandmarkExtractor = None):
        config = config or {}
        self._extractor = extractor or LandmarkExtractor(config.get("mirrored", True))
        self._pinch_distance = config.get("pinch_distance", 0.05)
        self._push_depth = config.get("push_depth", -0.1)
        self._swipe_velocity = config.get("swipe_velocity", 0.02)
        self._spread_distance = config.get("two_finger_spread_distance", 0.08)

    @property
    def extractor(self) -> LandmarkExtractor:
        return self._extractor

    def set_mirrored(self, mirrored: bool):
        self._extractor.mirrored = mirrored

    def classify(self, landmarks: np.ndarray, velocity=(0.0, 0.0)) -> Optional[Detection]:
        """Classify one frame.

        Args:
            landmarks: np.ndarray of shape (21, 3) with normalized coordinates
            velocity: palm velocity (dx, dy) in normalized units per frame

        Returns:
            Detection, or None when no rule matches
        """
        states = self._extractor.get_finger_states(landmarks)
        extended = sum(1 for v in states.values() if v)

        if extended >= 4:
            return Detection(GestureType.OPEN_PALM, 0.9)

        if extended == 0:
            return Detection(GestureType.CLOSED_FIST, 0.9)

        if extended == 1 and states["thumb"]:
            return Detection(GestureType.THUMBS_UP, 0.85)

        pinch_distance = self._extractor.get_thumb_index_distance(landmarks)
        if pinch_distance < self._pinch_distance and states["thumb"] and states["index"]:
            return Detection(GestureType.PINCH, 0.9, {"distance": pinch_distance})

        if landmarks[INDEX_MCP, 2] < self._push_depth and states["index"]:
            return Detection(GestureType.PUSH_FORWARD, 0.8)

        vx = float(velocity[0])
        if abs(vx) > self._swipe_velocity:
            gesture = GestureType.SWIPE_RIGHT if vx > 0 else GestureType.SWIPE_LEFT
            return Detection(gesture, 0.8)

        if extended == 2 and states["index"] and states["middle"]:
            spread = self._extractor.get_index_middle_distance(landmarks)
            if spread > self._spread_distance:
                return Detection(GestureType.TWO_FINGER_SPREAD, 0.8)
            return Detection(GestureType.TWO_FINGER_PINCH, 0.8)

        return None
