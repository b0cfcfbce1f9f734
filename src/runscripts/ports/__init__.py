from .process import KillSignal, ProcessHandle, ProcessLauncher
from .eventbus import EventBus, Handler

__all__ = ["KillSignal", "ProcessHandle", "ProcessLauncher", "EventBus", "Handler"]
