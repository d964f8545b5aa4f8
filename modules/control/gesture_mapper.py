"""
Gesture-to-action mapping with policy gating.

Looks up the mapping for a gesture event, asks every registered policy,
and fans the action out to subscribers when all of them pass. Unmapped
gestures and policy rejections are dropped silently (DEBUG log only).
"""

import logging
from collections import OrderedDict
from typing import Callable, Dict, Optional

from core.events import Signal, Subscription
from core.types import DEFAULT_MAPPINGS, GestureEvent, GestureMapping, GestureType
from modules.control.policies import (
    Policy, CallablePolicy, ConfidencePolicy, RateLimitPolicy, ContextPolicy,
)

logger = logging.getLogger(__name__)


def _as_gesture_type(gesture) -> Optional[GestureType]:
    if isinstance(gesture, GestureType):
        return gesture
    return GestureType.from_string(str(gesture))


class GestureMapper:
    """Maps gesture events to named actions under configurable policies."""

    def __init__(self, config: dict = None, focus_provider: Callable[[], Optional[str]] = None):
        """
        Args:
            config: mapping section (confidence_threshold, rate_limit_ms)
            focus_provider: returns the focused window id or None; enables
                            the focus check of the context policy
        """
        config = config or {}
        self._mappings: Dict[GestureType, GestureMapping] = {}
        self._policies: "OrderedDict[str, Policy]" = OrderedDict()
        self._actions = Signal("action")

        self._confidence_policy = ConfidencePolicy(config.get("confidence_threshold", 0.8))
        self._rate_limit_policy = RateLimitPolicy(config.get("rate_limit_ms", 200))
        self._context_policy = ContextPolicy(focus_provider)

        for mapping in DEFAULT_MAPPINGS:
            self._mappings[mapping.gesture] = mapping.updated()
        for policy in (self._confidence_policy, self._rate_limit_policy, self._context_policy):
            self._policies[policy.name] = policy

        self._dispatched = 0
        self._rejected = 0

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def process_gesture(self, event: GestureEvent) -> Optional[str]:
        """Gate a gesture event and dispatch its action.

        Returns:
            The dispatched action name, or None if dropped
        """
        mapping = self._mappings.get(event.type)
        if mapping is None:
            logger.debug("Unmapped gesture: %s", event.type.value)
            return None

        # Every policy is asked, even after one has failed
        failed = []
        for name, policy in list(self._policies.items()):
            try:
                passed = policy.evaluate(event, mapping)
            except Exception as e:
                logger.error("Policy '%s' raised on %s: %s", name, event.type.value, e)
                passed = False
            if not passed:
                failed.append(name)

        if failed:
            self._rejected += 1
            logger.debug("Gesture %s -> %s blocked by %s",
                         event.type.value, mapping.action, ", ".join(failed))
            return None

        self._dispatched += 1
        self._actions.emit(mapping.action, event)
        return mapping.action

    def on_action(self, callback: Callable[[str, GestureEvent], None]) -> Subscription:
        """Subscribe to dispatched ``(action, event)`` pairs."""
        return self._actions.subscribe(callback)

    # ------------------------------------------------------------------
    # Mapping table
    # ------------------------------------------------------------------

    def add_mapping(self, gesture, action: str = None, **options) -> GestureMapping:
        """Add or replace the mapping for a gesture.

        Accepts a ready GestureMapping or ``(gesture, action, **options)``.
        """
        if isinstance(gesture, GestureMapping):
            mapping = gesture
        else:
            gesture_type = _as_gesture_type(gesture)
            if gesture_type is None:
                raise ValueError(f"Unknown gesture type: {gesture!r}")
            if not action:
                raise ValueError(f"No action given for {gesture_type.value}")
            mapping = GestureMapping.from_dict(gesture_type, dict(options, action=action))
        self._mappings[mapping.gesture] = mapping
        logger.debug("Mapping set: %s -> %s", mapping.gesture.value, mapping.action)
        return mapping

    def update_mapping(self, gesture, **updates) -> Optional[GestureMapping]:
        """Patch an existing mapping. Unknown gestures are ignored."""
        gesture_type = _as_gesture_type(gesture)
        existing = self._mappings.get(gesture_type)
        if existing is None:
            return None
        mapping = existing.updated(**updates)
        self._mappings[gesture_type] = mapping
        return mapping

    def remove_mapping(self, gesture) -> bool:
        return self._mappings.pop(_as_gesture_type(gesture), None) is not None

    def add_mappings(self, mappings: dict):
        """Bulk add/overwrite from a configuration dict.

        ``{"pinch": {"action": "drag", "hold_millis": 80}, ...}``. Invalid
        entries are skipped with a warning.
        """
        for name, options in mappings.items():
            try:
                mapping = self._parse_entry(name, options)
            except ValueError as e:
                logger.warning("Skipping mapping for '%s': %s", name, e)
                continue
            self._mappings[mapping.gesture] = mapping

    def parse_mappings(self, mappings: dict) -> Dict[GestureType, GestureMapping]:
        """Validate a configuration dict without touching the table.

        Raises:
            ValueError: on the first invalid entry
        """
        if not isinstance(mappings, dict):
            raise ValueError(f"mappings must be a dict, got {type(mappings).__name__}")
        parsed = {}
        for name, options in mappings.items():
            mapping = self._parse_entry(name, options)
            parsed[mapping.gesture] = mapping
        return parsed

    @staticmethod
    def _parse_entry(name, options) -> GestureMapping:
        gesture_type = _as_gesture_type(name)
        if gesture_type is None:
            raise ValueError(f"unknown gesture {name!r}")
        if not isinstance(options, dict):
            raise ValueError(f"expected a dict, got {type(options).__name__}")
        return GestureMapping.from_dict(gesture_type, options)

    def replace_mappings(self, mappings: dict):
        """Replace the whole table from a configuration dict."""
        self._mappings.clear()
        self.add_mappings(mappings)
        logger.info("Mapping table replaced (%d entries)", len(self._mappings))

    def get_mapping(self, gesture) -> Optional[GestureMapping]:
        return self._mappings.get(_as_gesture_type(gesture))

    def get_mappings(self) -> Dict[GestureType, GestureMapping]:
        return dict(self._mappings)

    def hold_millis_for(self, gesture_type: GestureType) -> Optional[float]:
        """Per-gesture hold override, or None to use the global hold time."""
        mapping = self._mappings.get(gesture_type)
        return mapping.hold_millis if mapping is not None else None

    # ------------------------------------------------------------------
    # Policies
    # ------------------------------------------------------------------

    def add_policy(self, policy, predicate: Callable = None) -> Policy:
        """Register a policy object, or a name plus predicate ``fn(event)``."""
        if not isinstance(policy, Policy):
            if predicate is None:
                raise ValueError("A predicate is required when registering by name")
            policy = CallablePolicy(str(policy), predicate)
        self._policies[policy.name] = policy
        logger.debug("Policy registered: %s", policy.name)
        return policy

    def remove_policy(self, name: str) -> bool:
        return self._policies.pop(name, None) is not None

    def get_policy(self, name: str) -> Optional[Policy]:
        return self._policies.get(name)

    def get_policies(self) -> Dict[str, Policy]:
        return OrderedDict(self._policies)

    def set_default_threshold(self, threshold: float):
        self._confidence_policy.default_threshold = threshold

    def set_rate_limit(self, min_interval_ms: float):
        self._rate_limit_policy.min_interval_ms = min_interval_ms

    @property
    def default_threshold(self) -> float:
        return self._confidence_policy.default_threshold

    @property
    def rate_limit_ms(self) -> float:
        return self._rate_limit_policy.min_interval_ms

    def set_focus_provider(self, focus_provider: Callable[[], Optional[str]]):
        self._context_policy.focus_provider = focus_provider

    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        return {"dispatched": self._dispatched, "rejected": self._rejected}

    def reset(self):
        for policy in self._policies.values():
            policy.reset()
        self._dispatched = 0
        self._rejected = 0
