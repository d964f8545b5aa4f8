"""
Centralized configuration manager.
Loads YAML configs on top of built-in defaults and provides typed access.

Instances are plain objects handed around through the RuntimeContext;
there is no process-wide configuration.
"""

import copy
import math
import os
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

DEFAULTS = {
    "recognition": {
        "smoothing": 0.6,
        "confidence_threshold": 0.8,
        "hold_ms": 150,
        "mirrored": True,
        "pinch_distance": 0.05,
        "push_depth": -0.1,
        "swipe_velocity": 0.02,
        "two_finger_spread_distance": 0.08,
    },
    "tracking": {
        "max_hands": 2,
        "lost_timeout_ms": 500,
        "match_distance": 0.2,
    },
    "mapping": {
        "confidence_threshold": 0.8,
        "rate_limit_ms": 200,
    },
    "session": {
        "drag_timeout_ms": 200,
        "min_visible_width": 200,
        "title_bar_height": 50,
    },
    "screen": {
        "width": 1920,
        "height": 1080,
        "desktops": 4,
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "max_size_mb": 10,
        "backup_count": 3,
    },
    "mappings": {},
}

# Schema: sections and their expected types
_CONFIG_SCHEMA = {
    "recognition": {
        "smoothing": float,
        "confidence_threshold": float,
        "hold_ms": float,
        "mirrored": bool,
        "pinch_distance": float,
        "push_depth": float,
        "swipe_velocity": float,
        "two_finger_spread_distance": float,
    },
    "tracking": {
        "max_hands": int,
        "lost_timeout_ms": float,
        "match_distance": float,
    },
    "mapping": {
        "confidence_threshold": float,
        "rate_limit_ms": float,
    },
    "session": {
        "drag_timeout_ms": float,
        "min_visible_width": float,
        "title_bar_height": float,
    },
    "screen": {
        "width": int,
        "height": int,
        "desktops": int,
    },
}

# Inclusive (min, max) bounds for numeric fields; None leaves a side open
_CONFIG_RANGES = {
    "recognition": {
        "smoothing": (0.0, 1.0),
        "confidence_threshold": (0.0, 1.0),
        "hold_ms": (0.0, None),
        "pinch_distance": (0.0, None),
        "swipe_velocity": (0.0, None),
        "two_finger_spread_distance": (0.0, None),
    },
    "tracking": {
        "max_hands": (1, None),
        "lost_timeout_ms": (0.0, None),
        "match_distance": (0.0, None),
    },
    "mapping": {
        "confidence_threshold": (0.0, 1.0),
        "rate_limit_ms": (0.0, None),
    },
    "session": {
        "drag_timeout_ms": (0.0, None),
        "min_visible_width": (0.0, None),
        "title_bar_height": (0.0, None),
    },
    "screen": {
        "width": (1, None),
        "height": (1, None),
        "desktops": (1, None),
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _in_range(value, bounds) -> bool:
    low, high = bounds
    if isinstance(value, float) and math.isnan(value):
        return False
    return (low is None or value >= low) and (high is None or value <= high)


def _type_matches(value, expected_type) -> bool:
    # bool is an int subclass; only accept it where bool is expected
    if isinstance(value, bool):
        return expected_type is bool
    if expected_type is float:
        return isinstance(value, (int, float))
    return isinstance(value, expected_type)


class Config:
    """Configuration holder: built-in defaults plus YAML overrides."""

    def __init__(self, data: dict = None):
        self._data = copy.deepcopy(DEFAULTS)
        if data:
            self._data = _deep_merge(self._data, data)
            self._validate()

    def load(self, config_path=None, gestures_path=None):
        """Load configuration from YAML files."""
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")
        gestures_path = gestures_path or os.path.join(_CONFIG_DIR, "gestures.yaml")

        data = self._read_yaml(config_path)
        if data is not None:
            self._data = _deep_merge(self._data, data)
            logger.info("Loaded config from %s", config_path)
        else:
            logger.warning("Config file not loaded: %s, using defaults", config_path)

        gesture_data = self._read_yaml(gestures_path)
        if gesture_data is not None:
            mappings = gesture_data.get("mappings", {})
            if isinstance(mappings, dict):
                self._data["mappings"] = _deep_merge(self._data.get("mappings", {}), mappings)
            else:
                logger.warning("Ignoring 'mappings' in %s: expected a dict", gestures_path)
            logger.info("Loaded gestures from %s", gestures_path)
        else:
            logger.warning("Gestures file not loaded: %s", gestures_path)

        # Validate schema
        self._validate()

        return self

    @staticmethod
    def _read_yaml(path):
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            return None
        except yaml.YAMLError as e:
            logger.warning("Invalid YAML in %s: %s", path, e)
            return None
        if not isinstance(data, dict):
            logger.warning("Top level of %s should be a mapping, got %s",
                           path, type(data).__name__)
            return None
        return data

    def _validate(self):
        """Validate config fields against schema, restoring defaults on mismatch."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if not isinstance(section, dict):
                warnings.append(f"Section '{section_name}' should be a dict, "
                                f"got {type(section).__name__}")
                self._data[section_name] = copy.deepcopy(DEFAULTS[section_name])
                continue
            for field_name, expected_type in fields.items():
                if field_name not in section:
                    continue
                value = section[field_name]
                if not _type_matches(value, expected_type):
                    warnings.append(
                        f"{section_name}.{field_name}: expected {expected_type.__name__}, "
                        f"got {type(value).__name__} ({value!r})"
                    )
                    section[field_name] = DEFAULTS[section_name][field_name]
                    continue
                bounds = _CONFIG_RANGES.get(section_name, {}).get(field_name)
                if bounds is not None and not _in_range(value, bounds):
                    warnings.append(
                        f"{section_name}.{field_name}: {value!r} outside (min, max) {bounds}"
                    )
                    section[field_name] = DEFAULTS[section_name][field_name]

        if not isinstance(self._data.get("mappings"), dict):
            warnings.append(f"Section 'mappings' should be a dict, "
                            f"got {type(self._data.get('mappings')).__name__}")
            self._data["mappings"] = {}

        if warnings:
            for w in warnings:
                logger.warning("Config validation: %s", w)
        else:
            logger.debug("Config validation passed")
        return warnings

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'tracking.max_hands'."""
        keys = key_path.split(".")
        value = self._data
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value):
        """Set a nested value using dot notation, creating sections as needed."""
        keys = key_path.split(".")
        target = self._data
        for key in keys[:-1]:
            target = target.setdefault(key, {})
        target[keys[-1]] = value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        return self._data.get(section, {})

    def as_dict(self) -> dict:
        return copy.deepcopy(self._data)

    @property
    def recognition(self) -> dict:
        return self._data.get("recognition", {})

    @property
    def tracking(self) -> dict:
        return self._data.get("tracking", {})

    @property
    def mapping(self) -> dict:
        return self._data.get("mapping", {})

    @property
    def session(self) -> dict:
        return self._data.get("session", {})

    @property
    def screen(self) -> dict:
        return self._data.get("screen", {})

    @property
    def logging(self) -> dict:
        return self._data.get("logging", {})

    @property
    def mappings(self) -> dict:
        return self._data.get("mappings", {})

    @property
    def base_dir(self) -> str:
        return _BASE_DIR
