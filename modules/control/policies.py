"""
Gating policies applied to a mapped gesture before it may fire an action.

Each policy is a named strategy object carrying its own state, so it can
be inspected, replaced, and tested in isolation. A dispatch proceeds only
when every registered policy passes.
"""

import logging
from typing import Callable, Dict, Optional

from core.types import GestureEvent, GestureMapping, GestureType

logger = logging.getLogger(__name__)


class Policy:
    """Base class for gating policies."""

    name = "policy"

    def evaluate(self, event: GestureEvent, mapping: GestureMapping) -> bool:
        raise NotImplementedError

    def reset(self):
        """Clear any internal bookkeeping."""

    def describe(self) -> dict:
        return {"name": self.name, "type": type(self).__name__}

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"


class ConfidencePolicy(Policy):
    """Pass when the event confidence reaches the mapping or default threshold."""

    name = "confidence"

    def __init__(self, default_threshold: float = 0.8):
        self.default_threshold = default_threshold

    def threshold_for(self, mapping: GestureMapping) -> float:
        if mapping.confidence_threshold is not None:
            return mapping.confidence_threshold
        return self.default_threshold

    def evaluate(self, event: GestureEvent, mapping: GestureMapping) -> bool:
        threshold = self.threshold_for(mapping)
        if event.confidence >= threshold:
            return True
        logger.debug("Confidence %.2f below %.2f for %s",
                     event.confidence, threshold, event.type.value)
        return False

    def describe(self) -> dict:
        info = super().describe()
        info["default_threshold"] = self.default_threshold
        return info


class RateLimitPolicy(Policy):
    """Minimum interval between two accepted events of the same gesture type.

    The acceptance time is recorded only when the gap is satisfied, so a
    burst of rejected events does not extend the window. Continuation
    frames of a continuous mapping (same identity as the last accepted
    event) are not limited: the drag inactivity timeout equals the default
    interval, so a limited drag could never receive its next update.
    """

    name = "rate_limit"

    def __init__(self, min_interval_ms: float = 200):
        self.min_interval_ms = min_interval_ms
        self._last_accepted: Dict[GestureType, float] = {}
        self._last_identity: Dict[GestureType, str] = {}

    def evaluate(self, event: GestureEvent, mapping: GestureMapping) -> bool:
        if mapping.continuous and self._last_identity.get(event.type) == event.identity_id:
            return True
        last = self._last_accepted.get(event.type)
        if last is not None and event.timestamp - last < self.min_interval_ms:
            logger.debug("Rate limited %s (%.0fms since last)",
                         event.type.value, event.timestamp - last)
            return False
        self._last_accepted[event.type] = event.timestamp
        self._last_identity[event.type] = event.identity_id
        return True

    def last_accepted(self, gesture_type: GestureType) -> Optional[float]:
        return self._last_accepted.get(gesture_type)

    def reset(self):
        self._last_accepted.clear()
        self._last_identity.clear()

    def describe(self) -> dict:
        info = super().describe()
        info["min_interval_ms"] = self.min_interval_ms
        return info


class ContextPolicy(Policy):
    """Global mappings always pass; focus-required mappings need a focused window.

    Without a focus provider every mapping passes.
    """

    name = "context"

    def __init__(self, focus_provider: Callable[[], Optional[str]] = None):
        self.focus_provider = focus_provider

    def evaluate(self, event: GestureEvent, mapping: GestureMapping) -> bool:
        if mapping.global_:
            return True
        if mapping.require_focus and self.focus_provider is not None:
            if self.focus_provider() is None:
                logger.debug("No focused window for %s -> %s",
                             event.type.value, mapping.action)
                return False
        return True

    def describe(self) -> dict:
        info = super().describe()
        info["focus_aware"] = self.focus_provider is not None
        return info


class CallablePolicy(Policy):
    """Adapts a plain predicate ``fn(event) -> bool`` (or ``fn(event, mapping)``)."""

    def __init__(self, name: str, predicate: Callable, with_mapping: bool = False):
        self.name = name
        self._predicate = predicate
        self._with_mapping = with_mapping

    def evaluate(self, event: GestureEvent, mapping: GestureMapping) -> bool:
        if self._with_mapping:
            return bool(self._predicate(event, mapping))
        return bool(self._predicate(event))
