from __future__ import annotations

import asyncio
import json

from draken.domain.models import Task
from draken.events.bus import TaskEventBus
from draken.events.messages import end_message, is_terminal, log_message
from draken.events.sse import LogStreamHub
from draken.events.subscribers import CLOSE, TaskSubscribers


def _decode(frames: list[dict[str, str]]) -> list[dict]:
    return [json.loads(frame["data"]) for frame in frames]


def _drain(queue: asyncio.Queue) -> list[object]:
    return [queue.get_nowait() for _ in range(queue.qsize())]


def test_publish_without_subscribers_is_noop() -> None:
    hub = TaskSubscribers()

    hub.publish(1, log_message("nobody listening"))
    hub.close(1, end_message("completed", 0))

    assert hub.count(1) == 0
    assert hub.task_ids() == []


def test_close_delivers_final_message_and_prunes() -> None:
    async def _go() -> list[object]:
        hub = TaskSubscribers()
        queue = hub.subscribe(4)
        hub.publish(4, log_message("a"))
        hub.close(4, end_message("failed", 1))
        hub.publish(4, log_message("late"))
        assert hub.task_ids() == []
        return [queue.get_nowait() for _ in range(queue.qsize())]

    items = asyncio.run(_go())

    assert items == [log_message("a"), end_message("failed", 1), CLOSE]


def test_unsubscribe_drops_empty_sets() -> None:
    async def _go() -> None:
        hub = TaskSubscribers()
        first = hub.subscribe(2)
        second = hub.subscribe(2)
        hub.unsubscribe(2, first)
        assert hub.count(2) == 1
        hub.unsubscribe(2, second)
        hub.unsubscribe(2, second)
        assert hub.task_ids() == []

    asyncio.run(_go())


def test_two_log_stream_clients_see_identical_sequences() -> None:
    async def _go() -> tuple[list[dict], list[dict]]:
        hub = LogStreamHub()
        task = Task(id=7, project_id=1, prompt="go", status="running", logs="earlier\n")
        first = hub.open_stream(task)
        second = hub.open_stream(task)
        assert hub.count(7) == 2

        hub.publish(7, log_message("one"))
        hub.publish(7, {"type": "session", "sessionId": "s-1"})
        hub.close(7, end_message("completed", 0))

        frames_a = [frame async for frame in first]
        frames_b = [frame async for frame in second]
        assert hub.count(7) == 0
        return _decode(frames_a), _decode(frames_b)

    frames_a, frames_b = asyncio.run(_go())

    assert frames_a == frames_b
    assert frames_a[0] == log_message("earlier\n")
    assert frames_a[-1] == end_message("completed", 0)
    assert [is_terminal(m) for m in frames_a] == [False, False, False, True]


def test_log_stream_for_finished_task_replays_then_ends() -> None:
    async def _go() -> list[dict]:
        hub = LogStreamHub()
        task = Task(id=3, project_id=1, prompt="go", status="failed", logs="boom\n", exit_code=2)
        frames = [frame async for frame in hub.open_stream(task)]
        assert hub.count(3) == 0
        return _decode(frames)

    assert asyncio.run(_go()) == [log_message("boom\n"), end_message("failed", 2)]


def test_log_stream_with_empty_log_skips_replay() -> None:
    async def _go() -> list[dict]:
        hub = LogStreamHub()
        task = Task(id=5, project_id=1, prompt="go", status="completed", exit_code=0)
        return _decode([frame async for frame in hub.open_stream(task)])

    assert asyncio.run(_go()) == [end_message("completed", 0)]


def test_bus_fans_out_to_both_transports() -> None:
    async def _go() -> tuple[list[object], list[object]]:
        bus = TaskEventBus()
        log_queue = bus.logs.subscribe(9)
        term_queue = bus.terminal.subscribe(9)
        bus.log(9, "hi")
        bus.error(9, "exploded")
        return _drain(log_queue), _drain(term_queue)

    logs, terminal = asyncio.run(_go())

    expected = [log_message("hi"), {"type": "error", "message": "exploded"}, CLOSE]
    assert logs == expected
    assert terminal == expected
