"""
Tests for Hand Tracking
========================
"""

import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.types import Handedness, LandmarkFrame
from modules.detection.tracking import HandTracker
from mock_hands import pose_frame, pose_landmarks


class TestHandTracker:
    """Test suite for persistent hand ids."""

    @pytest.fixture
    def tracker(self):
        return HandTracker()

    def test_new_hand_gets_id(self, tracker):
        hands, lost = tracker.update([pose_frame("open_palm")], 0)
        assert [h.hand_id for h in hands] == [0]
        assert lost == []
        assert tracker.hand_count == 1

    def test_id_survives_label_flip(self, tracker):
        """Association is by position, not by the handedness label."""
        first, _ = tracker.update([pose_frame("open_palm", handedness="Right")], 0)
        second, _ = tracker.update([pose_frame("open_palm", handedness="Left")], 30)
        assert first[0].hand_id == second[0].hand_id
        assert second[0].handedness == Handedness.LEFT
        assert second[0].frames_tracked == 2

    def test_small_motion_keeps_id(self, tracker):
        tracker.update([pose_frame("open_palm")], 0)
        hands, _ = tracker.update([pose_frame("open_palm", shift_x=0.05, shift_y=0.05)], 30)
        assert hands[0].hand_id == 0

    def test_large_jump_is_new_hand(self, tracker):
        tracker.update([pose_frame("open_palm")], 0)
        hands, _ = tracker.update([pose_frame("open_palm", shift_x=-0.35)], 30)
        assert hands[0].hand_id == 1
        assert tracker.hand_count == 2

    def test_two_hands_swap_labels(self, tracker):
        """Two hands keep their ids when both labels flip."""
        tracker.update([
            pose_frame("open_palm", handedness="Right"),
            pose_frame("closed_fist", handedness="Left", shift_x=-0.3),
        ], 0)
        hands, _ = tracker.update([
            pose_frame("closed_fist", handedness="Right", shift_x=-0.3),
            pose_frame("open_palm", handedness="Left"),
        ], 30)
        by_id = {h.hand_id: h for h in hands}
        assert by_id[0].handedness == Handedness.LEFT
        assert by_id[1].handedness == Handedness.RIGHT

    def test_max_hands(self):
        tracker = HandTracker({"max_hands": 1})
        hands, _ = tracker.update([
            pose_frame("open_palm"),
            pose_frame("open_palm", shift_x=-0.3),
        ], 0)
        assert len(hands) == 1
        assert tracker.hand_count == 1

    def test_lost_after_timeout(self, tracker):
        tracker.update([pose_frame("open_palm")], 0)
        _, lost = tracker.update([], 500)
        assert lost == []
        _, lost = tracker.update([], 501)
        assert lost == [0]
        assert tracker.hand_count == 0

    def test_incomplete_frame_is_skipped(self, tracker):
        frame = LandmarkFrame.from_points(pose_landmarks("open_palm").tolist()[:10])
        hands, _ = tracker.update([frame], 0)
        assert hands == []
        assert tracker.hand_count == 0

    def test_ids_are_not_reused(self, tracker):
        tracker.update([pose_frame("open_palm")], 0)
        tracker.update([], 1000)
        hands, _ = tracker.update([pose_frame("open_palm")], 1030)
        assert hands[0].hand_id == 1

    def test_reset(self, tracker):
        tracker.update([pose_frame("open_palm")], 0)
        tracker.reset()
        assert tracker.hand_count == 0
