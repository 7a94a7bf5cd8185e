"""
Unit Tests for Binance WebSocket Client

These tests verify that BinanceWebSocketClient:
- Builds stream names and URLs correctly
- Parses and yields messages properly
- Skips invalid JSON
- Reconnects after the server closes the stream
- Gracefully closes connections

Run with:
    pytest tests/unit/test_ws_client.py -v
"""

import pytest
import json
from datetime import datetime, timezone
from aiohttp import WSMsgType

from exchanges.binance.ws_client import (
    BinanceWebSocketClient,
    create_kline_stream,
    create_ticker_stream,
    stream_kline_to_candle,
)


# ============================================
# Fake WebSocket Layer
# ============================================

class MockWSMessage:
    """Mock aiohttp WebSocket message"""

    def __init__(self, msg_type, data=None):
        self.type = msg_type
        self.data = data


def text(payload) -> MockWSMessage:
    return MockWSMessage(WSMsgType.TEXT, json.dumps(payload))


class FakeWebSocket:
    """Iterates over a fixed list of messages, then reports itself closed"""

    def __init__(self, messages):
        self.messages = messages
        self.closed = False
        self.close_calls = 0

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for msg in self.messages:
            if msg.type in (WSMsgType.CLOSED, WSMsgType.ERROR):
                self.closed = True
            yield msg
        self.closed = True

    async def close(self):
        self.closed = True
        self.close_calls += 1


class FakeSession:
    """Hands out one FakeWebSocket per ws_connect call"""

    def __init__(self, sockets):
        self.sockets = list(sockets)
        self.urls = []
        self.closed = False

    async def ws_connect(self, url, **kwargs):
        self.urls.append(url)
        return self.sockets.pop(0)

    async def close(self):
        self.closed = True


def make_client(sockets, **kwargs) -> BinanceWebSocketClient:
    client = BinanceWebSocketClient("BTCUSDT", "kline_1m", max_reconnect_delay=0, **kwargs)
    client.session = FakeSession(sockets)
    client._is_running = True
    return client


KLINE_EVENT = {
    "e": "kline",
    "s": "BTCUSDT",
    "k": {
        "t": 1704067200000,
        "o": "42000.0",
        "h": "42100.0",
        "l": "41900.0",
        "c": "42050.0",
        "v": "12.5",
        "x": False
    }
}


# ============================================
# Tests for Naming / Builders
# ============================================

class TestStreamNames:

    def test_symbol_lowercased(self):
        """Verify symbol is lowercased (Binance requirement)"""
        client = BinanceWebSocketClient("BTCUSDT", "kline_1h")

        assert client.symbol == "btcusdt"
        assert client.stream_name == "btcusdt@kline_1h"

    def test_default_url(self):
        client = BinanceWebSocketClient("BTCUSDT", "ticker")

        assert client.url == "wss://stream.binance.com:9443/ws/btcusdt@ticker"

    def test_custom_base_url_trailing_slash(self):
        client = BinanceWebSocketClient("ETHUSDT", "ticker", "wss://testnet.binance.vision/ws/")

        assert client.url == "wss://testnet.binance.vision/ws/ethusdt@ticker"

    def test_create_kline_stream(self):
        client = create_kline_stream("BTCUSDT", "1m", max_reconnect_delay=5)

        assert client.stream == "kline_1m"
        assert client.max_reconnect_delay == 5

    def test_create_ticker_stream(self):
        client = create_ticker_stream("SOLUSDT")

        assert client.stream_name == "solusdt@ticker"


class TestStreamKlineToCandle:

    def test_parses_kline_payload(self):
        candle = stream_kline_to_candle(KLINE_EVENT["k"])

        assert candle.time == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert candle.open == 42000.0
        assert candle.high == 42100.0
        assert candle.low == 41900.0
        assert candle.close == 42050.0
        assert candle.volume == 12.5


# ============================================
# Tests for Connection Management
# ============================================

class TestConnectionManagement:
    """Tests for WebSocket connection lifecycle"""

    @pytest.mark.asyncio
    async def test_context_manager_creates_and_closes_session(self):
        client = BinanceWebSocketClient("BTCUSDT", "kline_1m")
        assert client.session is None

        async with client:
            assert client.session is not None
            assert client._is_running is True

        assert client._is_running is False
        assert client.session.closed

    @pytest.mark.asyncio
    async def test_connect_raises_without_session(self):
        client = BinanceWebSocketClient("BTCUSDT", "kline_1m")

        with pytest.raises(RuntimeError, match="not initialized"):
            await client.connect()

    @pytest.mark.asyncio
    async def test_connect_uses_stream_url(self):
        client = make_client([FakeWebSocket([])])

        await client.connect()

        assert client.session.urls == ["wss://stream.binance.com:9443/ws/btcusdt@kline_1m"]

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        ws = FakeWebSocket([])
        client = make_client([ws])
        await client.connect()

        await client.close()
        await client.close()

        assert ws.close_calls == 1
        assert client.session.closed


# ============================================
# Tests for Message Streaming
# ============================================

class TestMessageStreaming:
    """Tests for listen() message streaming"""

    @pytest.mark.asyncio
    async def test_listen_yields_parsed_json(self):
        client = make_client([FakeWebSocket([text(KLINE_EVENT)])])

        received = []
        async for msg in client.listen():
            received.append(msg)
            client.stop()

        assert received == [KLINE_EVENT]

    @pytest.mark.asyncio
    async def test_listen_skips_invalid_json(self):
        client = make_client([FakeWebSocket([
            MockWSMessage(WSMsgType.TEXT, "{not json"),
            text({"e": "24hrTicker", "c": "1.0"}),
        ])])

        received = []
        async for msg in client.listen():
            received.append(msg)
            client.stop()

        assert received == [{"e": "24hrTicker", "c": "1.0"}]

    @pytest.mark.asyncio
    async def test_listen_ignores_non_text_frames(self):
        client = make_client([FakeWebSocket([
            MockWSMessage(WSMsgType.PING, b""),
            text({"e": "kline"}),
        ])])

        received = []
        async for msg in client.listen():
            received.append(msg)
            client.stop()

        assert received == [{"e": "kline"}]

    @pytest.mark.asyncio
    async def test_listen_reconnects_after_close(self):
        """A CLOSED frame triggers a reconnect on a fresh socket"""
        first = FakeWebSocket([MockWSMessage(WSMsgType.CLOSED, None)])
        second = FakeWebSocket([text({"e": "kline", "n": 2})])
        client = make_client([first, second])

        received = []
        async for msg in client.listen():
            received.append(msg)
            client.stop()

        assert received == [{"e": "kline", "n": 2}]
        assert len(client.session.urls) == 2

    @pytest.mark.asyncio
    async def test_listen_reconnects_after_error_frame(self):
        first = FakeWebSocket([MockWSMessage(WSMsgType.ERROR, "boom")])
        second = FakeWebSocket([text({"n": 1})])
        client = make_client([first, second])

        async for msg in client.listen():
            client.stop()

        assert len(client.session.urls) == 2

    @pytest.mark.asyncio
    async def test_listen_not_running_yields_nothing(self):
        client = make_client([FakeWebSocket([text({"n": 1})])])
        client.stop()

        received = [msg async for msg in client.listen()]

        assert received == []
        assert client.session.urls == []
