"""
Tests for Configuration
========================
"""

import logging
import pytest
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.context import RuntimeContext
from modules.utils.config import Config
from modules.utils.logger import GestureLogger
from mock_hands import make_event

CONFIG_YAML = """
recognition:
  smoothing: 0.4
  hold_ms: 100
tracking:
  max_hands: 1
screen:
  width: 1280
  height: 720
"""

GESTURES_YAML = """
mappings:
  thumbs_up:
    action: screenshot
    global: true
"""


@pytest.fixture
def config_files(tmp_path):
    config_path = tmp_path / "config.yaml"
    gestures_path = tmp_path / "gestures.yaml"
    config_path.write_text(CONFIG_YAML)
    gestures_path.write_text(GESTURES_YAML)
    return str(config_path), str(gestures_path)


class TestConfig:
    """Test suite for YAML loading and validation."""

    def test_defaults(self):
        config = Config()
        assert config.get("recognition.smoothing") == 0.6
        assert config.get("recognition.hold_ms") == 150
        assert config.get("mapping.rate_limit_ms") == 200
        assert config.get("session.drag_timeout_ms") == 200
        assert config.mappings == {}

    def test_load_merges_onto_defaults(self, config_files):
        config = Config().load(*config_files)
        assert config.recognition["smoothing"] == 0.4
        assert config.recognition["hold_ms"] == 100
        assert config.recognition["confidence_threshold"] == 0.8
        assert config.tracking["max_hands"] == 1
        assert config.screen["width"] == 1280
        assert config.mappings["thumbs_up"]["action"] == "screenshot"

    def test_missing_files_use_defaults(self, tmp_path):
        config = Config().load(str(tmp_path / "nope.yaml"), str(tmp_path / "nope2.yaml"))
        assert config.get("tracking.lost_timeout_ms") == 500

    def test_invalid_yaml_is_ignored(self, tmp_path):
        bad = tmp_path / "bad.yaml"
        bad.write_text("recognition: [unclosed")
        config = Config().load(str(bad), str(tmp_path / "none.yaml"))
        assert config.get("recognition.smoothing") == 0.6

    def test_wrong_type_restores_default(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = Config({"recognition": {"smoothing": "fast"}, "tracking": {"max_hands": 3}})
        assert config.get("recognition.smoothing") == 0.6
        assert config.get("tracking.max_hands") == 3
        assert "recognition.smoothing" in caplog.text

    def test_int_accepted_for_float(self):
        config = Config({"recognition": {"confidence_threshold": 1}})
        assert config.get("recognition.confidence_threshold") == 1

    def test_bool_is_not_a_number(self):
        config = Config({"tracking": {"max_hands": True}})
        assert config.get("tracking.max_hands") == 2

    def test_get_with_default(self):
        config = Config()
        assert config.get("recognition.missing", 7) == 7
        assert config.get("nothing.at.all") is None

    def test_set(self):
        config = Config()
        config.set("session.drag_timeout_ms", 300)
        config.set("extra.flag", True)
        assert config.session["drag_timeout_ms"] == 300
        assert config.get("extra.flag") is True

    def test_instances_are_independent(self):
        first, second = Config(), Config()
        first.set("recognition.hold_ms", 10)
        assert second.get("recognition.hold_ms") == 150

    def test_shipped_config_files_load(self):
        config = Config().load()
        assert config.get("recognition.smoothing") == 0.6
        assert config.mappings["pinch"]["hold_millis"] == 80


class TestRuntimeContext:
    """Test suite for context construction."""

    def test_default_host_uses_screen_section(self, config_files):
        context = RuntimeContext.from_files(*config_files)
        assert context.host.screen_size == (1280.0, 720.0)
        assert context.scheduler.now == 0


class TestGestureLogger:
    """Test suite for the gesture event logger."""

    def test_history_and_counts(self):
        gesture_logger = GestureLogger(max_history=2)
        for i in range(3):
            gesture_logger.log_action("click", make_event(timestamp=i))
        assert gesture_logger.total_gestures == 2
        assert gesture_logger.action_counts == {"click": 3}
        assert gesture_logger.get_history(last_n=1)[0]["timestamp"] == 2


class TestConfigRanges:
    """Test suite for numeric bounds in the loaded configuration."""

    def test_out_of_range_restores_default(self, caplog):
        with caplog.at_level(logging.WARNING):
            config = Config({
                "recognition": {"smoothing": 5.0, "confidence_threshold": 3.0, "hold_ms": -1},
                "mapping": {"rate_limit_ms": -10},
                "screen": {"width": 0},
            })
        assert config.get("recognition.smoothing") == 0.6
        assert config.get("recognition.confidence_threshold") == 0.8
        assert config.get("recognition.hold_ms") == 150
        assert config.get("mapping.rate_limit_ms") == 200
        assert config.get("screen.width") == 1920
        assert "recognition.smoothing" in caplog.text

    def test_range_bounds_are_inclusive(self):
        config = Config({"recognition": {"smoothing": 0, "confidence_threshold": 1.0, "hold_ms": 0}})
        assert config.get("recognition.smoothing") == 0
        assert config.get("recognition.confidence_threshold") == 1.0
        assert config.get("recognition.hold_ms") == 0

    def test_nan_is_out_of_range(self):
        config = Config({"recognition": {"smoothing": float("nan")}})
        assert config.get("recognition.smoothing") == 0.6

    def test_out_of_range_yaml_value(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("recognition:\n  smoothing: 5.0\nmapping:\n  confidence_threshold: 3\n")
        config = Config().load(str(path), str(tmp_path / "none.yaml"))
        assert config.get("recognition.smoothing") == 0.6
        assert config.get("mapping.confidence_threshold") == 0.8

    def test_mappings_must_be_a_dict(self):
        config = Config({"mappings": ["pinch"]})
        assert config.mappings == {}
