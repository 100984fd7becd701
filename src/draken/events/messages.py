"""Wire messages shared by the log stream and the terminal socket.

Both transports carry the same JSON objects, discriminated by ``type``::

    {"type": "log", "data": "..."}
    {"type": "session", "sessionId": "..."}
    {"type": "end", "status": "completed", "exitCode": 0}
    {"type": "error", "message": "..."}
"""

from __future__ import annotations

import json
from typing import Any, Optional

Message = dict[str, Any]


def log_message(data: str) -> Message:
    return {"type": "log", "data": data}


def session_message(session_id: str) -> Message:
    return {"type": "session", "sessionId": session_id}


def end_message(status: str, exit_code: Optional[int]) -> Message:
    return {"type": "end", "status": status, "exitCode": exit_code}


def error_message(message: str) -> Message:
    return {"type": "error", "message": message}


def encode(message: Message) -> str:
    return json.dumps(message, ensure_ascii=False)


def is_terminal(message: Message) -> bool:
    return message.get("type") in ("end", "error")
