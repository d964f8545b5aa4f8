#!/usr/bin/env python3
"""
Touchless gesture input - landmark replay tool.

Feeds a recorded landmark stream through the gesture pipeline against an
in-memory VirtualDesktop and logs every dispatched action.

Recording format: JSON lines, one frame per line:
    {"timestamp": 1033.4, "hands": [{"handedness": "Right", "confidence": 0.97,
                                      "landmarks": [[x, y, z], ...]}]}

Usage:
    python main.py recording.jsonl
    python main.py recording.jsonl --windows 3 --log-level DEBUG
    cat recording.jsonl | python main.py -
"""

import sys
import os
import json
import signal
import argparse
import logging

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, PROJECT_ROOT)

from modules.utils.config import Config
from modules.utils.logger import setup_logging, GestureLogger
from modules.control.window_host import VirtualDesktop

from core.context import RuntimeContext
from core.events import Events
from core.pipeline import GesturePipeline
from core.types import LandmarkFrame

logger = logging.getLogger(__name__)


class ReplaySession:
    """Drives a GesturePipeline from a JSON-lines landmark recording."""

    def __init__(self, config: Config, windows: int = 2):
        screen = config.screen
        self._desktop = VirtualDesktop(
            width=screen.get("width", 1920),
            height=screen.get("height", 1080),
            desktops=screen.get("desktops", 4),
        )
        for i in range(windows):
            self._desktop.open_window(f"Window {i + 1}")

        self._context = RuntimeContext(config=config, host=self._desktop)
        self._pipeline = GesturePipeline(self._context)
        self._gesture_logger = GestureLogger()
        self._running = False
        self._frames = 0
        self._skipped = 0

        # --- Wire Event Callbacks ---
        bus = self._context.bus
        bus.subscribe(Events.ACTION_DISPATCHED, self._on_action_dispatched)
        bus.subscribe(Events.ACTION_FAILED, self._on_action_failed)
        bus.subscribe(Events.SESSION_ENDED, self._on_session_ended)

    def _on_action_dispatched(self, **kwargs):
        action = kwargs.get("action", "")
        event = kwargs.get("event")
        focused = self._desktop.focused_window_id or "-"
        self._gesture_logger.log_action(action, event, detail=f"focus={focused}")

    def _on_action_failed(self, **kwargs):
        self._gesture_logger.log_action(kwargs.get("action", ""), kwargs.get("event"),
                                        success=False, detail=str(kwargs.get("error", "")))

    def _on_session_ended(self, **kwargs):
        self._gesture_logger.log_session(kwargs["session"], kwargs.get("reason", ""))

    def run(self, stream) -> int:
        """Replay every frame in the stream. Returns the number of frames processed."""
        self._running = True
        for line_no, line in enumerate(stream, 1):
            if not self._running:
                break
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
                timestamp = float(record["timestamp"])
                frames = [LandmarkFrame.from_dict(hand, timestamp)
                          for hand in record.get("hands", [])]
            except (ValueError, KeyError, TypeError) as e:
                self._skipped += 1
                logger.warning("Skipping line %d: %s", line_no, e)
                continue

            self._pipeline.process_frame(frames, timestamp)
            self._frames += 1

        self._shutdown()
        return self._frames

    def _shutdown(self):
        self._running = False
        self._pipeline.close()

        logger.info("Replayed %d frames (%d skipped)", self._frames, self._skipped)
        for action, count in sorted(self._gesture_logger.action_counts.items()):
            logger.info("  %-15s x%d", action, count)
        for window in self._desktop.windows:
            logger.info("  %s '%s' at (%.0f, %.0f)%s", window.window_id, window.title,
                        window.x, window.y, " [minimized]" if window.minimized else "")

    def handle_signal(self, signum, frame):
        """Handle SIGINT/SIGTERM for graceful shutdown."""
        logger.info("Signal %d received, stopping replay...", signum)
        self._running = False

    @property
    def desktop(self) -> VirtualDesktop:
        return self._desktop

    @property
    def pipeline(self) -> GesturePipeline:
        return self._pipeline


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Touchless gesture input - replay a landmark recording"
    )
    parser.add_argument(
        "recording",
        help="JSON-lines landmark recording ('-' for stdin)"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to config.yaml"
    )
    parser.add_argument(
        "--gestures", type=str, default=None,
        help="Path to gestures.yaml"
    )
    parser.add_argument(
        "--windows", type=int, default=2,
        help="Number of windows to open on the virtual desktop"
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        help="Override logging.level from the config"
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    # Load configuration
    config = Config().load(config_path=args.config, gestures_path=args.gestures)

    # Setup logging
    log_cfg = config.get_section("logging")
    setup_logging(
        level=args.log_level or log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    replay = ReplaySession(config, windows=args.windows)

    # Register signal handlers
    signal.signal(signal.SIGINT, replay.handle_signal)
    signal.signal(signal.SIGTERM, replay.handle_signal)

    if args.recording == "-":
        replay.run(sys.stdin)
    else:
        try:
            with open(args.recording, "r") as f:
                replay.run(f)
        except FileNotFoundError:
            logger.error("Recording not found: %s", args.recording)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
