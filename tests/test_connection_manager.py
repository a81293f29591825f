"""
Tests for the in-memory WebSocket connection manager.
"""
import asyncio
import json
import threading
import uuid

from app.chat.connection_manager import ConnectionManager


class FakeSocket:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(json.loads(text))


def test_broadcast_reaches_subscribers_only():
    async def scenario():
        manager = ConnectionManager()
        conv, other = uuid.uuid4(), uuid.uuid4()
        a, b, c = FakeSocket(), FakeSocket(), FakeSocket()
        await manager.subscribe(a, conv)
        await manager.subscribe(b, conv)
        await manager.subscribe(c, other)

        await manager.broadcast(conv, "user_typing", {"typing": True}, exclude_websocket=b)
        return a, b, c, conv

    a, b, c, conv = asyncio.run(scenario())
    assert a.sent == [{"event": "user_typing", "conversation_id": str(conv), "payload": {"typing": True}}]
    assert b.sent == []
    assert c.sent == []


def test_dead_sockets_are_pruned():
    async def scenario():
        manager = ConnectionManager()
        conv = uuid.uuid4()
        await manager.subscribe(FakeSocket(fail=True), conv)
        live = FakeSocket()
        await manager.subscribe(live, conv)
        await manager.broadcast(conv, "message_created", {"id": "m1"})
        return manager, conv, live

    manager, conv, live = asyncio.run(scenario())
    assert manager.subscriber_count(conv) == 1
    assert live.sent[0]["payload"] == {"id": "m1"}


def test_unsubscribe_all():
    async def scenario():
        manager = ConnectionManager()
        ws = FakeSocket()
        convs = {uuid.uuid4(), uuid.uuid4()}
        for cid in convs:
            await manager.subscribe(ws, cid)
        await manager.unsubscribe_all(ws, convs)
        return manager, convs

    manager, convs = asyncio.run(scenario())
    assert all(manager.subscriber_count(cid) == 0 for cid in convs)


def test_publish_from_worker_thread_keeps_order():
    async def scenario():
        manager = ConnectionManager()
        conv = uuid.uuid4()
        ws = FakeSocket()
        await manager.subscribe(ws, conv)

        def worker():
            manager.publish(conv, "message_created", {"status": "uploading"})
            manager.publish(conv, "message_updated", {"status": "sent"})

        thread = threading.Thread(target=worker)
        thread.start()
        await asyncio.get_running_loop().run_in_executor(None, thread.join)
        for _ in range(10):
            if len(ws.sent) == 2:
                break
            await asyncio.sleep(0.01)
        return ws

    ws = asyncio.run(scenario())
    assert [m["event"] for m in ws.sent] == ["message_created", "message_updated"]


def test_publish_without_loop_is_dropped():
    manager = ConnectionManager()
    manager.publish(uuid.uuid4(), "message_created", {})


def test_publish_on_loop_holds_task_until_sent():
    async def scenario():
        manager = ConnectionManager()
        conv = uuid.uuid4()
        ws = FakeSocket()
        await manager.subscribe(ws, conv)
        manager.publish(conv, "presence", {"online": True})
        pending = len(manager._tasks)
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        return manager, ws, pending

    manager, ws, pending = asyncio.run(scenario())
    assert pending == 1
    assert manager._tasks == set()
    assert [m["event"] for m in ws.sent] == ["presence"]
