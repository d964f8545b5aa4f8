"""
Runtime context: the shared collaborators of one running system.

Built once at startup and passed explicitly to the components that need
it, in place of module-level singletons.
"""

import logging
from dataclasses import dataclass, field

from core.events import EventBus
from modules.control.scheduler import FrameScheduler
from modules.control.window_host import VirtualDesktop, WindowHost
from modules.utils.config import Config

logger = logging.getLogger(__name__)


@dataclass
class RuntimeContext:
    config: Config = field(default_factory=Config)
    bus: EventBus = field(default_factory=EventBus)
    scheduler: FrameScheduler = field(default_factory=FrameScheduler)
    host: WindowHost = None

    def __post_init__(self):
        if self.host is None:
            screen = self.config.screen
            self.host = VirtualDesktop(
                width=screen.get("width", 1920),
                height=screen.get("height", 1080),
                desktops=screen.get("desktops", 4),
            )
            logger.debug("No window host given, using VirtualDesktop %sx%s",
                         screen.get("width", 1920), screen.get("height", 1080))

    @classmethod
    def from_files(cls, config_path=None, gestures_path=None, host: WindowHost = None):
        """Build a context from the YAML configuration files."""
        config = Config().load(config_path=config_path, gestures_path=gestures_path)
        return cls(config=config, host=host)
