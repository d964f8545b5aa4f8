"""
Gesture input layer: per-tick entry point of the recognition stage.

Frames -> HandTracker -> (TemporalFilter + GestureClassifier) per hand
-> GestureEvent / GestureEnded notifications.
"""

import logging
from typing import Callable, Iterable, List, Optional

from core.events import Signal, Subscription
from core.types import GestureEvent, GestureEnded, GestureType, LandmarkFrame
from modules.detection.landmark_extractor import LandmarkExtractor
from modules.detection.tracking import HandTracker
from modules.recognition.gesture_classifier import GestureClassifier
from modules.recognition.temporal_filter import TemporalFilter

logger = logging.getLogger(__name__)


class GestureInputLayer:
    """Turns landmark frames into gated gesture events."""

    def __init__(self, config: dict = None, tracking_config: dict = None,
                 identity_factory: Callable[[], str] = None,
                 hold_resolver: Callable[[GestureType], Optional[float]] = None):
        """
        Args:
            config: recognition section (smoothing, confidence_threshold,
                    hold_ms, mirrored and classifier thresholds)
            tracking_config: tracking section
            identity_factory: produces gesture identity ids
            hold_resolver: per-gesture hold time override, None -> global
        """
        config = config or {}
        self._extractor = LandmarkExtractor(config.get("mirrored", True))
        self._tracker = HandTracker(tracking_config, self._extractor)
        self._classifier = GestureClassifier(config, self._extractor)
        self._filter = TemporalFilter(config, identity_factory)
        self._hold_resolver = hold_resolver

        self._gesture_signal = Signal("gesture_event")
        self._end_signal = Signal("gesture_end")
        self._lost_signal = Signal("hand_lost")

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def on_gesture_event(self, callback: Callable[[GestureEvent], None]) -> Subscription:
        return self._gesture_signal.subscribe(callback)

    def on_gesture_end(self, callback: Callable[[GestureEnded], None]) -> Subscription:
        return self._end_signal.subscribe(callback)

    def on_hand_lost(self, callback: Callable[[int], None]) -> Subscription:
        return self._lost_signal.subscribe(callback)

    def set_hold_resolver(self, resolver: Callable[[GestureType], Optional[float]]):
        self._hold_resolver = resolver

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_frames(self, frames: Iterable[LandmarkFrame], now: float) -> List[GestureEvent]:
        """Process one tick of hand observations.

        Args:
            frames: per-hand observations for this tick
            now: tick timestamp (ms)

        Returns:
            The gesture events emitted this tick
        """
        hands, lost_ids = self._tracker.update(frames, now)

        events = []
        for hand in hands:
            result = self._process_hand(hand, now)
            if result.ended is not None:
                self._end_signal.emit(result.ended)
            if result.event is not None:
                events.append(result.event)
                self._gesture_signal.emit(result.event)

        for hand_id in lost_ids:
            ended = self._filter.drop(hand_id, now)
            if ended is not None:
                self._end_signal.emit(ended)
            self._lost_signal.emit(hand_id)

        return events

    def _process_hand(self, hand, now: float):
        landmarks = hand.landmarks
        state = self._filter.track(hand.hand_id, self._extractor.get_palm_center(landmarks))
        detection = self._classifier.classify(landmarks, state.velocity)

        hold_ms = None
        if detection is not None and self._hold_resolver is not None:
            hold_ms = self._hold_resolver(detection.type)

        return self._filter.resolve(hand.hand_id, hand.handedness, detection, now, hold_ms)

    # ------------------------------------------------------------------
    # Runtime configuration
    # ------------------------------------------------------------------

    def update_config(self, smoothing: float = None, confidence_threshold: float = None,
                      hold_ms: float = None, mirrored: bool = None):
        if smoothing is not None:
            self._filter.smoothing = smoothing
        if confidence_threshold is not None:
            self._filter.confidence_threshold = confidence_threshold
        if hold_ms is not None:
            self._filter.hold_ms = hold_ms
        if mirrored is not None:
            self._classifier.set_mirrored(mirrored)
        logger.debug("Input layer config: smoothing=%.2f threshold=%.2f hold=%sms",
                     self._filter.smoothing, self._filter.confidence_threshold,
                     self._filter.hold_ms)

    def get_config(self) -> dict:
        return {
            "smoothing": self._filter.smoothing,
            "confidence_threshold": self._filter.confidence_threshold,
            "hold_ms": self._filter.hold_ms,
            "mirrored": self._extractor.mirrored,
        }

    @property
    def temporal_filter(self) -> TemporalFilter:
        return self._filter

    @property
    def tracker(self) -> HandTracker:
        return self._tracker

    @property
    def classifier(self) -> GestureClassifier:
        return self._classifier

    def reset(self):
        self._tracker.reset()
        self._filter.reset()
