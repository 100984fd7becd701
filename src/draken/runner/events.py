"""Typed events produced by one run and the per-run event source."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Union


@dataclass(frozen=True)
class LogEvent:
    text: str


@dataclass(frozen=True)
class SessionEvent:
    session_id: str


@dataclass(frozen=True)
class EndEvent:
    exit_code: int


@dataclass(frozen=True)
class ErrorEvent:
    error: BaseException

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


RunEvent = Union[LogEvent, SessionEvent, EndEvent, ErrorEvent]
TerminalEvent = Union[EndEvent, ErrorEvent]


class RunEventStream:
    """Ordered event source for a single run.

    Any number of ``LogEvent``/``SessionEvent`` items are followed by exactly one
    terminal event (``EndEvent`` or ``ErrorEvent``). Anything emitted after the
    terminal event is discarded, and iteration stops once it has been yielded.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[RunEvent] = asyncio.Queue()
        self._terminal: Optional[TerminalEvent] = None

    @property
    def terminated(self) -> bool:
        return self._terminal is not None

    @property
    def terminal_event(self) -> Optional[TerminalEvent]:
        return self._terminal

    def emit(self, event: RunEvent) -> bool:
        if self._terminal is not None:
            return False
        if isinstance(event, (EndEvent, ErrorEvent)):
            self._terminal = event
        self._queue.put_nowait(event)
        return True

    def log(self, text: str) -> bool:
        if not text:
            return False
        return self.emit(LogEvent(text))

    def session(self, session_id: str) -> bool:
        return self.emit(SessionEvent(session_id))

    def finish(self, exit_code: int) -> bool:
        return self.emit(EndEvent(exit_code))

    def fail(self, error: BaseException) -> bool:
        return self.emit(ErrorEvent(error))

    async def __aiter__(self) -> AsyncIterator[RunEvent]:
        while True:
            event = await self._queue.get()
            yield event
            if isinstance(event, (EndEvent, ErrorEvent)):
                return
