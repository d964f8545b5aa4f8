"""
Structured logging with gesture and action event logging.
"""

import os
import logging
import logging.handlers
import time
from functools import wraps


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Configure structured logging for the application."""
    # Clean console format, compact and readable
    console_format = "%(asctime)s  %(levelname)-5s  %(message)s"
    # Verbose format for log file
    file_format = "%(asctime)s [%(levelname)-7s] %(name)-25s | %(message)s"
    date_format = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # Remove existing handlers
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(root_logger.level)
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    # File handler (rotating)
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    return root_logger


class GestureLogger:
    """Specialized logger for gesture events and dispatched actions."""

    def __init__(self, max_history: int = 1000):
        self.logger = logging.getLogger("gesture_events")
        self._max_history = max_history
        self._gesture_history = []
        self._action_counts = {}

    def log_gesture(self, event, action=None):
        """Log a gesture event, optionally with the action it dispatched."""
        entry = {
            "timestamp": event.timestamp,
            "gesture": event.type.value,
            "identity_id": event.identity_id,
            "hand_id": event.hand_id,
            "confidence": event.confidence,
            "action": action,
        }
        self._gesture_history.append(entry)
        if len(self._gesture_history) > self._max_history:
            del self._gesture_history[0]
        self.logger.debug(
            "Gesture: %-17s | Hand: %d | Confidence: %.2f | Action: %s",
            event.type.value,
            event.hand_id,
            event.confidence,
            action or "none",
        )

    def log_action(self, action_name, event=None, success=True, detail=""):
        """Log an executed system action."""
        self._action_counts[action_name] = self._action_counts.get(action_name, 0) + 1
        if event is not None:
            self.log_gesture(event, action_name)
        self.logger.info(
            "Action: %-15s | Success: %s | %s",
            action_name,
            success,
            detail,
        )

    def log_session(self, session, reason):
        self.logger.info(
            "Drag: %-15s | Updates: %d | Ended: %s",
            session.window_id,
            session.updates,
            reason,
        )

    def get_history(self, last_n=None):
        """Get recent gesture history."""
        if last_n:
            return self._gesture_history[-last_n:]
        return self._gesture_history.copy()

    @property
    def action_counts(self) -> dict:
        return dict(self._action_counts)

    @property
    def total_gestures(self):
        return len(self._gesture_history)


def log_timing(func):
    """Decorator to log function execution time."""
    logger = logging.getLogger(func.__module__)

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("%s took %.2fms", func.__name__, elapsed)
        return result

    return wrapper
