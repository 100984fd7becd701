from .bus import TaskEventBus
from .messages import end_message, error_message, log_message, session_message
from .sse import LogStreamHub
from .subscribers import TaskSubscribers
from .ws import TerminalHub

__all__ = [
    "LogStreamHub",
    "TaskEventBus",
    "TaskSubscribers",
    "TerminalHub",
    "end_message",
    "error_message",
    "log_message",
    "session_message",
]
