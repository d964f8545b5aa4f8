"""
21-point hand landmark geometry used by tracking and classification.
"""

import logging
import numpy as np

logger = logging.getLogger(__name__)

# MediaPipe hand landmark indices
WRIST = 0
THUMB_CMC = 1
THUMB_MCP = 2
THUMB_IP = 3
THUMB_TIP = 4
INDEX_MCP = 5
INDEX_PIP = 6
INDEX_DIP = 7
INDEX_TIP = 8
MIDDLE_MCP = 9
MIDDLE_PIP = 10
MIDDLE_DIP = 11
MIDDLE_TIP = 12
RING_MCP = 13
RING_PIP = 14
RING_DIP = 15
RING_TIP = 16
PINKY_MCP = 17
PINKY_PIP = 18
PINKY_DIP = 19
PINKY_TIP = 20

FINGER_NAMES = ("thumb", "index", "middle", "ring", "pinky")
FINGER_TIPS = [THUMB_TIP, INDEX_TIP, MIDDLE_TIP, RING_TIP, PINKY_TIP]
# Reference joint for the extension test; the thumb uses its IP joint
FINGER_PIPS = [THUMB_IP, INDEX_PIP, MIDDLE_PIP, RING_PIP, PINKY_PIP]

PALM_INDICES = [WRIST, INDEX_MCP, MIDDLE_MCP, RING_MCP, PINKY_MCP]


class LandmarkExtractor:
    """Extracts geometric features from normalized (21, 3) landmark arrays."""

    def __init__(self, mirrored: bool = True):
        # Mirrored (selfie) view: an extended thumb tip lies at larger x
        self.mirrored = mirrored

    def get_palm_center(self, landmarks: np.ndarray) -> np.ndarray:
        """Midpoint of the wrist and the middle-finger base, (x, y)."""
        return (landmarks[WRIST, :2] + landmarks[MIDDLE_MCP, :2]) / 2.0

    def get_tracking_center(self, landmarks: np.ndarray) -> np.ndarray:
        """Mean of wrist and finger bases, used for frame-to-frame association."""
        return np.mean(landmarks[PALM_INDICES, :2], axis=0)

    def is_thumb_extended(self, landmarks: np.ndarray) -> bool:
        tip_x = landmarks[THUMB_TIP, 0]
        ip_x = landmarks[THUMB_IP, 0]
        return bool(tip_x > ip_x) if self.mirrored else bool(tip_x < ip_x)

    def get_finger_states(self, landmarks: np.ndarray) -> dict:
        """Which fingers are extended.

        Non-thumb fingers are extended when the tip is above (smaller y
        than) the PIP joint.

        Returns:
            dict with finger names -> bool (True = extended)
        """
        states = {"thumb": self.is_thumb_extended(landmarks)}
        for name, tip, pip in zip(FINGER_NAMES[1:], FINGER_TIPS[1:], FINGER_PIPS[1:]):
            states[name] = bool(landmarks[tip, 1] < landmarks[pip, 1])
        return states

    @staticmethod
    def get_distance_2d(landmarks: np.ndarray, a: int, b: int) -> float:
        return float(np.linalg.norm(landmarks[a, :2] - landmarks[b, :2]))

    def get_thumb_index_distance(self, landmarks: np.ndarray) -> float:
        return self.get_distance_2d(landmarks, THUMB_TIP, INDEX_TIP)

    def get_index_middle_distance(self, landmarks: np.ndarray) -> float:
        return self.get_distance_2d(landmarks, INDEX_TIP, MIDDLE_TIP)
