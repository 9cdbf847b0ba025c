import asyncio
import json

from conftest import drain_frames
from app.services import query_stream
from app.services.broadcast import ConnectionHub, build_envelope, dedup_key, isolation_key


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _envelope(**update):
    return build_envelope({"queryId": "q-1", "action": "updated", **update})


def test_broadcast_with_exclusion_reaches_all_others():
    local = ConnectionHub(stale_after=65, queue_size=10)
    connections = [local.open() for _ in range(5)]
    excluded = connections[2]

    delivered = local.deliver(_envelope(), exclude_connection_id=excluded.id)

    assert delivered == 4
    for connection in connections:
        expected = 0 if connection is excluded else 1
        assert connection.queue.qsize() == expected


def test_envelope_carries_isolation_fields():
    envelope = _envelope(appNo="APP-1")
    assert envelope["type"] == "query_update"
    assert envelope["isolationKey"] == "query_q-1"
    assert envelope["broadcastId"].startswith("broadcast_")
    assert "timestamp" in envelope
    assert isolation_key({"appNo": "APP-9"}) == "query_APP-9"


def test_same_publish_delivered_once_per_connection():
    local = ConnectionHub(stale_after=65, queue_size=10)
    connection = local.open()
    envelope = _envelope()
    relayed = json.loads(json.dumps(envelope))
    assert dedup_key(envelope) == dedup_key(relayed)

    local.deliver(envelope)
    local.deliver(relayed)

    assert [f["action"] for f in drain_frames(connection)] == ["updated"]


def test_identical_payloads_from_separate_publishes_all_arrive():
    local = ConnectionHub(stale_after=65, queue_size=10)
    connection = local.open()
    first = _envelope(status="waiting for approval")
    second = _envelope(status="waiting for approval")
    assert dedup_key(first) != dedup_key(second)

    local.deliver(first)
    local.deliver(second)

    assert len(drain_frames(connection)) == 2


def test_sweep_removes_stale_connections():
    clock = FakeClock()
    local = ConnectionHub(stale_after=65, queue_size=10, clock=clock)
    stale = local.open()
    clock.now += 40
    fresh = local.open()
    clock.now += 30

    removed = local.sweep()

    assert removed == [stale.id]
    assert stale.id not in local.connections
    assert fresh.id in local.connections
    assert stale.closed is True
    delivered = local.deliver(_envelope())
    assert delivered == 1
    assert stale.queue.get_nowait() is None


def test_touch_keeps_connection_alive():
    clock = FakeClock()
    local = ConnectionHub(stale_after=65, queue_size=10, clock=clock)
    connection = local.open()
    clock.now += 60
    local.touch(connection.id)
    clock.now += 60
    assert local.sweep() == []


def test_full_queue_drops_connection():
    local = ConnectionHub(stale_after=65, queue_size=1)
    slow = local.open()
    healthy = local.open()
    local.deliver(_envelope())
    drain_frames(healthy)

    delivered = local.deliver(_envelope(action="resolved"))

    assert delivered == 1
    assert slow.id not in local.connections
    assert healthy.id in local.connections


def test_scoped_connection_only_sees_its_query():
    local = ConnectionHub(stale_after=65, queue_size=10)
    chat_one = local.open(scope="1")
    chat_ten = local.open(scope="10")

    local.deliver(build_envelope({"queryId": "1", "action": "message_added"}))

    assert chat_one.queue.qsize() == 1
    assert chat_ten.queue.qsize() == 0


def test_event_stream_opens_with_connected_then_heartbeat():
    local = ConnectionHub(stale_after=65, queue_size=10)

    async def _run():
        connection = local.open()
        stream = query_stream.event_stream(connection, target=local, heartbeat_seconds=0.01)
        first = await stream.__anext__()
        second = await stream.__anext__()
        local.deliver(_envelope())
        third = await stream.__anext__()
        await stream.aclose()
        return connection, first, second, third

    connection, first, second, third = asyncio.run(_run())

    connected = json.loads(first[len("data: "):])
    assert connected["type"] == "connected"
    assert connected["connectionId"] == connection.id
    assert json.loads(second[len("data: "):])["type"] == "heartbeat"
    assert json.loads(third[len("data: "):])["action"] == "updated"
    assert len(local) == 0


def test_event_stream_ends_when_connection_closed():
    local = ConnectionHub(stale_after=65, queue_size=10)

    async def _run():
        connection = local.open()
        stream = query_stream.event_stream(connection, target=local, heartbeat_seconds=5)
        frames = [await stream.__anext__()]
        local.remove(connection.id)
        async for frame in stream:
            frames.append(frame)
        return frames

    frames = asyncio.run(_run())
    assert len(frames) == 1


def test_fanout_message_delivers_into_hub():
    local = ConnectionHub(stale_after=65, queue_size=10)
    sender = local.open()
    receiver = local.open()
    raw = json.dumps({"envelope": _envelope(), "excludeConnectionId": sender.id})

    assert query_stream.handle_fanout_message(raw, target=local) == 1
    assert receiver.queue.qsize() == 1
    assert sender.queue.qsize() == 0
    assert query_stream.handle_fanout_message("not json", target=local) == 0
