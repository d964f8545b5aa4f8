"""
Multi-hand tracking with persistent ID assignment.

Hands are associated across frames by palm position, not by the
handedness label, so a label flip between frames keeps the same ID.
"""

import logging
from typing import List, Tuple

import numpy as np

from core.types import LandmarkFrame
from modules.detection.landmark_extractor import LandmarkExtractor

logger = logging.getLogger(__name__)


class TrackedHand:
    """Represents a tracked hand with persistent ID."""

    def __init__(self, hand_id: int, frame: LandmarkFrame, landmarks: np.ndarray,
                 center: np.ndarray, now: float):
        self.hand_id = hand_id
        self.frame = frame
        self.landmarks = landmarks
        self.center = center
        self.first_seen = now
        self.last_seen = now
        self.frames_tracked = 1

    def update(self, frame: LandmarkFrame, landmarks: np.ndarray, center: np.ndarray, now: float):
        self.frame = frame
        self.landmarks = landmarks
        self.center = center
        self.last_seen = now
        self.frames_tracked += 1

    @property
    def handedness(self):
        return self.frame.handedness

    def __repr__(self):
        return (f"TrackedHand(id={self.hand_id}, {self.handedness.value}, "
                f"frames={self.frames_tracked})")


class HandTracker:
    """Assigns persistent IDs to observed hands across frames.

    All timing uses frame timestamps (ms) so replays are deterministic.
    """

    def __init__(self, config: dict = None, extractor: LandmarkExtractor = None):
        config = config or {}
        self._max_hands = config.get("max_hands", 2)
        self._lost_timeout_ms = config.get("lost_timeout_ms", 500)
        self._match_distance = config.get("match_distance", 0.2)
        self._extractor = extractor or LandmarkExtractor()
        self._tracked_hands = {}
        self._next_id = 0

    def update(self, frames, now: float) -> Tuple[List[TrackedHand], List[int]]:
        """Associate this tick's observations with existing tracks.

        Args:
            frames: iterable of LandmarkFrame
            now: tick timestamp (ms)

        Returns:
            (hands observed this tick, ids of tracks dropped this tick)
        """
        detections = []
        for frame in frames:
            if not frame.is_complete:
                logger.debug("Skipping incomplete hand frame (%d landmarks)",
                             len(frame.landmarks))
                continue
            landmarks = frame.to_array()
            detections.append((frame, landmarks, self._extractor.get_tracking_center(landmarks)))

        # Greedy nearest-neighbour association, closest pairs first
        pairs = []
        for det_idx, (_, _, center) in enumerate(detections):
            for hand_id, hand in self._tracked_hands.items():
                dist = float(np.linalg.norm(center - hand.center))
                if dist < self._match_distance:
                    pairs.append((dist, det_idx, hand_id))
        pairs.sort(key=lambda p: p[0])

        assigned = {}
        matched_ids = set()
        for _, det_idx, hand_id in pairs:
            if det_idx in assigned or hand_id in matched_ids:
                continue
            assigned[det_idx] = hand_id
            matched_ids.add(hand_id)

        observed = []
        for det_idx, (frame, landmarks, center) in enumerate(detections):
            hand_id = assigned.get(det_idx)
            if hand_id is not None:
                hand = self._tracked_hands[hand_id]
                hand.update(frame, landmarks, center, now)
            else:
                if len(self._tracked_hands) >= self._max_hands:
                    logger.debug("Ignoring extra hand; already tracking %d",
                                 len(self._tracked_hands))
                    continue
                hand_id = self._next_id
                self._next_id += 1
                hand = TrackedHand(hand_id, frame, landmarks, center, now)
                self._tracked_hands[hand_id] = hand
                matched_ids.add(hand_id)
                logger.debug("New hand tracked: ID=%d, handedness=%s",
                             hand_id, frame.handedness.value)
            observed.append(hand)

        lost_ids = [
            hand_id for hand_id, hand in self._tracked_hands.items()
            if hand_id not in matched_ids and now - hand.last_seen > self._lost_timeout_ms
        ]
        for hand_id in lost_ids:
            logger.debug("Hand lost: ID=%d", hand_id)
            del self._tracked_hands[hand_id]

        return observed, lost_ids

    @property
    def hand_count(self) -> int:
        return len(self._tracked_hands)

    @property
    def tracked_hands(self) -> dict:
        return self._tracked_hands.copy()

    def reset(self):
        """Clear all tracking state."""
        self._tracked_hands.clear()
