"""Tests for the swap update channel."""

import json

import pytest
from websockets.exceptions import ConnectionClosed

from lightswap.channel.base import SwapUpdate, parse_message, subscribe_message
from lightswap.channel.memory import QueueEventChannel
from lightswap.channel.websocket import WebSocketEventChannel
from lightswap.errors import ProtocolError, TransportError


def update_frame(*args) -> str:
    return json.dumps({"event": "update", "channel": "swap.update", "args": list(args)})


class TestParseMessage:
    """Tests for frame parsing."""

    def test_update(self):
        """Test a single update frame."""
        updates = parse_message(update_frame({"id": "abc", "status": "invoice.set"}))

        assert updates == [SwapUpdate(id="abc", status="invoice.set")]

    def test_bytes_frame(self):
        """Test frames delivered as bytes."""
        updates = parse_message(update_frame({"id": "abc", "status": "transaction.mempool"}).encode())

        assert updates[0].status == "transaction.mempool"

    def test_multiple_updates_keep_order(self):
        """Test that updates keep frame order."""
        updates = parse_message(
            update_frame(
                {"id": "a", "status": "invoice.set"},
                {"id": "b", "status": "swap.expired", "failureReason": "timeout"},
            )
        )

        assert [u.id for u in updates] == ["a", "b"]
        assert updates[1].failure_reason == "timeout"

    def test_subscribe_ack_carries_no_updates(self):
        """Test that subscribe acks are not updates."""
        assert parse_message({"event": "subscribe", "channel": "swap.update", "args": ["abc"]}) == []

    @pytest.mark.parametrize(
        "frame",
        [
            "not json",
            "[1, 2]",
            '"update"',
            {"event": "error", "reason": "unknown swap"},
            {"event": "update", "args": "abc"},
            {"event": "update", "args": [{"id": "abc"}]},
            {"event": "update", "args": [{"id": "", "status": "invoice.set"}]},
            {"event": "update", "args": ["abc"]},
        ],
    )
    def test_malformed_frames(self, frame):
        """Test malformed frames raise ProtocolError."""
        with pytest.raises(ProtocolError):
            parse_message(frame)

    def test_subscribe_message(self):
        """Test the subscribe frame layout."""
        assert subscribe_message(["abc"]) == {
            "op": "subscribe",
            "channel": "swap.update",
            "args": ["abc"],
        }


class TestQueueEventChannel:
    """Tests for the in-memory channel."""

    @pytest.mark.asyncio
    async def test_subscribe_requires_open(self):
        """Test subscribing before open."""
        channel = QueueEventChannel()

        with pytest.raises(TransportError):
            await channel.subscribe(["abc"])

    @pytest.mark.asyncio
    async def test_updates_in_order(self):
        """Test updates are delivered in push order."""
        channel = QueueEventChannel()
        await channel.open()
        await channel.subscribe(["abc"])
        channel.push_update("abc", "invoice.set")
        channel.push_update("abc", "transaction.mempool")

        assert (await channel.receive()).status == "invoice.set"
        assert (await channel.receive()).status == "transaction.mempool"
        assert channel.subscriptions == {"abc"}

    @pytest.mark.asyncio
    async def test_malformed_frame_does_not_break_channel(self):
        """A bad frame raises once and the channel keeps working."""
        channel = QueueEventChannel()
        await channel.open()
        channel.push("garbage")
        channel.push_update("abc", "invoice.set")

        with pytest.raises(ProtocolError):
            await channel.receive()
        assert (await channel.receive()).status == "invoice.set"

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        """Test repeated close."""
        channel = QueueEventChannel()
        await channel.open()
        await channel.close()
        await channel.close()

        assert channel.closed
        assert channel.close_calls == 2
        assert await channel.receive() is None

    @pytest.mark.asyncio
    async def test_fail(self):
        """Test a simulated connection drop."""
        channel = QueueEventChannel()
        await channel.open()
        channel.fail()

        with pytest.raises(TransportError):
            await channel.receive()

    @pytest.mark.asyncio
    async def test_fail_on_open(self):
        """Test a simulated connect failure."""
        with pytest.raises(TransportError):
            await QueueEventChannel(fail_on_open=True).open()

    @pytest.mark.asyncio
    async def test_async_iteration_stops_on_close(self):
        """Test async iteration ends when the channel closes."""
        channel = QueueEventChannel()
        await channel.open()
        channel.push_update("abc", "invoice.set")
        channel.push_update("abc", "transaction.mempool")

        seen = []
        async for update in channel:
            seen.append(update.status)
            if len(seen) == 2:
                await channel.close()

        assert seen == ["invoice.set", "transaction.mempool"]

    @pytest.mark.asyncio
    async def test_context_manager(self):
        """Test async context manager usage."""
        async with QueueEventChannel() as channel:
            await channel.subscribe(["abc"])

        assert channel.closed


class FakeWebSocket:
    """Scripted websocket connection."""

    def __init__(self, frames):
        self.frames = list(frames)
        self.sent = []
        self.closed = False

    async def send(self, data):
        self.sent.append(json.loads(data))

    async def recv(self):
        if not self.frames:
            raise ConnectionClosed(None, None)
        return self.frames.pop(0)

    async def close(self):
        self.closed = True


class TestWebSocketEventChannel:
    """Tests for the WebSocket channel."""

    @pytest.fixture
    def connect(self, monkeypatch):
        """Patch websockets.connect; returns the list of opened fakes."""
        opened = []

        def install(frames):
            async def fake_connect(url, open_timeout=None):
                ws = FakeWebSocket(frames)
                opened.append((url, ws))
                return ws

            monkeypatch.setattr("lightswap.channel.websocket.websockets.connect", fake_connect)
            return opened

        return install

    @pytest.mark.asyncio
    async def test_subscribe_and_receive(self, connect):
        """Test subscribe and receive over a websocket."""
        opened = connect([update_frame({"id": "abc", "status": "invoice.set"})])
        channel = WebSocketEventChannel("wss://boltz.test/v2/ws")

        await channel.open()
        await channel.subscribe(["abc"])
        update = await channel.receive()

        url, ws = opened[0]
        assert url == "wss://boltz.test/v2/ws"
        assert ws.sent == [subscribe_message(["abc"])]
        assert update.id == "abc"
        assert update.status == "invoice.set"

    @pytest.mark.asyncio
    async def test_skips_frames_without_updates(self, connect):
        """Test that acks are skipped while waiting for updates."""
        connect([
            json.dumps({"event": "subscribe", "args": ["abc"]}),
            update_frame({"id": "abc", "status": "transaction.mempool"}),
        ])
        channel = WebSocketEventChannel("wss://boltz.test/v2/ws")
        await channel.open()

        assert (await channel.receive()).status == "transaction.mempool"

    @pytest.mark.asyncio
    async def test_unexpected_close_raises(self, connect):
        """Test a server-side close."""
        connect([])
        channel = WebSocketEventChannel("wss://boltz.test/v2/ws")
        await channel.open()

        with pytest.raises(TransportError):
            await channel.receive()

    @pytest.mark.asyncio
    async def test_local_close(self, connect):
        """Test a local close."""
        opened = connect([])
        channel = WebSocketEventChannel("wss://boltz.test/v2/ws")
        await channel.open()

        await channel.close()
        await channel.close()

        assert opened[0][1].closed
        assert channel.closed
        assert await channel.receive() is None

    @pytest.mark.asyncio
    async def test_connect_failure(self, monkeypatch):
        """Test connection refused on open."""
        async def refuse(url, open_timeout=None):
            raise OSError("connection refused")

        monkeypatch.setattr("lightswap.channel.websocket.websockets.connect", refuse)
        channel = WebSocketEventChannel("wss://boltz.test/v2/ws")

        with pytest.raises(TransportError):
            await channel.open()

    @pytest.mark.asyncio
    async def test_receive_before_open(self):
        """Test receive on an unopened channel."""
        with pytest.raises(TransportError):
            await WebSocketEventChannel("wss://boltz.test/v2/ws").receive()
