from .events import EndEvent, ErrorEvent, LogEvent, RunEvent, RunEventStream, SessionEvent
from .images import ImageManager, template_exists, template_path
from .isolated import IsolatedRunner
from .refs import ContainerRunRef, ProcessRunRef, RunRef, parse_run_ref
from .registry import RunHandle, RunRegistry
from .stream import StreamJsonParser

__all__ = [
    "ContainerRunRef",
    "EndEvent",
    "ErrorEvent",
    "ImageManager",
    "IsolatedRunner",
    "LogEvent",
    "ProcessRunRef",
    "RunEvent",
    "RunEventStream",
    "RunHandle",
    "RunRef",
    "RunRegistry",
    "SessionEvent",
    "StreamJsonParser",
    "parse_run_ref",
    "template_exists",
    "template_path",
]
