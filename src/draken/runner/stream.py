"""Parse the agent's newline-delimited stream-json output into run events."""

from __future__ import annotations

import codecs
import json
from typing import Any

from loguru import logger

from ..logging_utils import preview
from .events import LogEvent, RunEvent, SessionEvent


def _content_blocks(record: dict[str, Any]) -> list[Any]:
    message = record.get("message")
    if not isinstance(message, dict):
        return []
    content = message.get("content")
    return content if isinstance(content, list) else []


def _error_text(record: dict[str, Any]) -> str:
    error = record.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    return json.dumps(record)


def record_events(record: dict[str, Any]) -> list[RunEvent]:
    """Translate one decoded stream-json record into run events."""
    events: list[RunEvent] = []
    session_id = record.get("session_id")
    if session_id:
        events.append(SessionEvent(str(session_id)))

    kind = record.get("type")
    if kind == "assistant":
        for block in _content_blocks(record):
            if not isinstance(block, dict):
                continue
            if block.get("type") == "text" and block.get("text"):
                events.append(LogEvent(str(block["text"])))
            elif block.get("type") == "tool_use":
                events.append(LogEvent(f"\n[Tool: {block.get('name', 'unknown')}]\n"))
    elif kind == "result":
        if record.get("result"):
            events.append(LogEvent(f"\n{record['result']}\n"))
    elif kind == "error":
        events.append(LogEvent(f"\nError: {_error_text(record)}\n"))
    return events


class StreamJsonParser:
    """Incremental parser for the agent's stdout.

    Bytes are fed as they arrive. Complete lines are decoded as JSON records;
    lines that are not JSON objects are passed through verbatim as log text. A
    trailing fragment without a newline is kept until more data arrives and is
    discarded by ``close()``.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[RunEvent]:
        self._buffer += self._decoder.decode(chunk)
        if "\n" not in self._buffer:
            return []
        *lines, self._buffer = self._buffer.split("\n")
        events: list[RunEvent] = []
        for line in lines:
            events.extend(self._parse_line(line))
        return events

    def close(self) -> None:
        self._buffer += self._decoder.decode(b"", final=True)
        if self._buffer:
            logger.debug("Dropping unterminated output fragment: {}", preview(self._buffer))
        self._buffer = ""

    def _parse_line(self, line: str) -> list[RunEvent]:
        if not line.strip():
            return []
        try:
            record = json.loads(line)
        except ValueError:
            logger.debug("Non-JSON output line passed through: {}", preview(line))
            return [LogEvent(line + "\n")]
        if not isinstance(record, dict):
            return [LogEvent(line + "\n")]
        return record_events(record)
