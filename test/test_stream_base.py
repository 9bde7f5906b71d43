from alpaca_python_client.base_stream import StreamState, WebSocketClient
from alpaca_python_client.errors import DeserializeError, StreamingError
from websockets.exceptions import ConnectionClosedError
from unittest.mock import patch
import asyncio
import gc
import json
import pytest


URL = "wss://stream.example.com/v2/test"


@pytest.mark.asyncio
async def test_frames_delivered_in_order_then_none(fake_ws):
    """Every frame arrives once, in order, then None forever."""
    ws, connector = fake_ws(["a", "b", "c"], closed_after=True)
    client = await WebSocketClient.connect(URL, connector=connector)

    assert [await client.recv() for _ in range(3)] == ["a", "b", "c"]
    assert await client.recv() is None
    assert await client.recv() is None
    assert ws.urls == [URL]

    await client.close()


@pytest.mark.asyncio
async def test_binary_frames_decoded_as_utf8(fake_ws):
    ws, connector = fake_ws(
        ['{"x": 1}'.encode("utf-8"), "plain"], closed_after=True
    )
    client = await WebSocketClient.connect(URL, connector=connector)

    assert await client.recv() == '{"x": 1}'
    assert await client.recv() == "plain"
    assert await client.recv() is None

    await client.close()


@pytest.mark.asyncio
async def test_invalid_utf8_frame_is_dropped(fake_ws):
    """A non-UTF8 binary frame is logged and skipped, the reader goes on."""
    ws, connector = fake_ws()
    client = await WebSocketClient.connect(URL, connector=connector)

    with patch.object(client.logger, "warning") as warning:
        ws.feed(b"\xff\xfe")
        ws.feed("after")

        assert await client.recv() == "after"
    warning.assert_called_once()

    await client.close()


@pytest.mark.asyncio
async def test_read_error_surfaces_once_then_none(fake_ws):
    ws, connector = fake_ws(["first", ConnectionClosedError(None, None)])
    client = await WebSocketClient.connect(URL, connector=connector)

    assert await client.recv() == "first"
    with pytest.raises(StreamingError, match="Read error"):
        await client.recv()
    assert await client.recv() is None

    await client.close()


@pytest.mark.asyncio
async def test_auth_payload_is_first_frame(fake_ws):
    ws, connector = fake_ws()
    client = await WebSocketClient.connect(
        URL, {"action": "auth", "key": "k"}, connector=connector
    )
    await client.send({"action": "subscribe"})

    assert json.loads(ws.sent[0]) == {"action": "auth", "key": "k"}
    assert json.loads(ws.sent[1]) == {"action": "subscribe"}
    assert client.state == StreamState.OPEN

    await client.close()


@pytest.mark.asyncio
async def test_connect_failure_raises_streaming_error():
    async def connector(url):
        raise OSError("connection refused")

    with pytest.raises(StreamingError, match="Connection failed"):
        await WebSocketClient.connect(URL, connector=connector)


@pytest.mark.asyncio
async def test_connect_timeout_raises_streaming_error():
    async def connector(url):
        raise asyncio.TimeoutError()

    with pytest.raises(StreamingError, match="Connection failed"):
        await WebSocketClient.connect(URL, connector=connector)


@pytest.mark.asyncio
async def test_auth_send_failure_closes_socket(fake_ws):
    ws, connector = fake_ws()
    ws.send_error = OSError("broken pipe")

    with pytest.raises(StreamingError, match="Auth send failed"):
        await WebSocketClient.connect(
            URL, {"action": "auth"}, connector=connector
        )

    assert ws.close_calls == 1


@pytest.mark.asyncio
async def test_unserializable_message_is_rejected(fake_ws):
    ws, connector = fake_ws()
    client = await WebSocketClient.connect(URL, connector=connector)

    with pytest.raises(StreamingError, match="Serialization"):
        await client.send({"bad": object()})
    assert ws.sent == []

    await client.close()


@pytest.mark.asyncio
async def test_small_queue_applies_backpressure(fake_ws):
    """With a one-slot queue the reader waits for the consumer."""
    ws, connector = fake_ws(["1", "2", "3"], closed_after=True)
    client = await WebSocketClient.connect(
        URL, connector=connector, queue_size=1
    )

    await asyncio.sleep(0)
    assert client._queue.qsize() <= 1

    received = []
    while (frame := await client.recv()) is not None:
        received.append(frame)
        assert client._queue.qsize() <= 1

    assert received == ["1", "2", "3"]

    await client.close()


@pytest.mark.asyncio
async def test_concurrent_sends_are_whole_frames(fake_ws):
    ws, connector = fake_ws()
    client = await WebSocketClient.connect(URL, connector=connector)

    await asyncio.gather(*(client.send({"n": n}) for n in range(10)))

    assert sorted(json.loads(text)["n"] for text in ws.sent) == list(
        range(10)
    )

    await client.close()


@pytest.mark.asyncio
async def test_send_failure_raises(fake_ws):
    ws, connector = fake_ws()
    client = await WebSocketClient.connect(URL, connector=connector)
    ws.send_error = OSError("reset")

    with pytest.raises(StreamingError, match="Send failed"):
        await client.send({"action": "ping"})

    await client.close()


@pytest.mark.asyncio
async def test_close_is_idempotent_and_blocks_sends(fake_ws):
    ws, connector = fake_ws()
    client = await WebSocketClient.connect(URL, connector=connector)

    await client.close()
    await client.close()

    assert ws.close_calls == 1
    assert client.state == StreamState.CLOSED
    with pytest.raises(StreamingError):
        await client.send({"action": "subscribe"})


@pytest.mark.asyncio
async def test_close_wakes_blocked_consumer(fake_ws):
    ws, connector = fake_ws()
    client = await WebSocketClient.connect(URL, connector=connector)

    pending = asyncio.create_task(client.recv())
    await asyncio.sleep(0)
    assert not pending.done()

    await client.close()

    assert await asyncio.wait_for(pending, timeout=1) is None
    assert client._reader.done()


@pytest.mark.asyncio
@pytest.mark.parametrize("queue_size", [256, 1])
async def test_recv_after_close_drops_buffered_frames(fake_ws, queue_size):
    """Frames buffered but never read are not delivered after close()."""
    ws, connector = fake_ws(["a", "b"])
    client = await WebSocketClient.connect(
        URL, connector=connector, queue_size=queue_size
    )
    await asyncio.sleep(0)
    assert not client._queue.empty()

    await client.close()

    assert await client.recv() is None
    assert await client.recv() is None


@pytest.mark.asyncio
async def test_abandoned_client_stops_reader(fake_ws):
    """Dropping a client without close() still ends its reader task."""
    ws, connector = fake_ws()
    client = await WebSocketClient.connect(
        URL, connector=connector, queue_size=2
    )
    reader = client._reader
    for n in range(5):
        ws.feed(str(n))
    await asyncio.sleep(0)
    assert not reader.done()

    del client
    gc.collect()
    await asyncio.wait([reader], timeout=1)

    assert reader.done()


@pytest.mark.asyncio
async def test_async_with_closes_connection(fake_ws):
    ws, connector = fake_ws(['{"T": "success"}'])

    async with await WebSocketClient.connect(
        URL, connector=connector
    ) as client:
        assert await client.recv_json() == {"T": "success"}

    assert ws.close_calls == 1
    assert client.state == StreamState.CLOSED


@pytest.mark.asyncio
async def test_recv_json_rejects_non_json(fake_ws):
    ws, connector = fake_ws(["not json"], closed_after=True)
    client = await WebSocketClient.connect(URL, connector=connector)

    with pytest.raises(DeserializeError):
        await client.recv_json()
    assert await client.recv_json() is None

    await client.close()
