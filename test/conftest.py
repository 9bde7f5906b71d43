from websockets.exceptions import ConnectionClosedOK
import asyncio
import pytest


class FakeWebSocket:
    """
    Transport-level stand-in for a websockets client connection.

    Frames pushed with `feed()` are returned by `recv()` in order; an
    exception instance is raised instead of returned. `close()` behaves
    like the server acknowledging the close handshake.
    """

    def __init__(self, frames=(), *, closed_after=False):
        self.frames = asyncio.Queue()
        self.sent = []
        self.close_calls = 0
        self.send_error = None
        for frame in frames:
            self.feed(frame)
        if closed_after:
            self.feed(ConnectionClosedOK(None, None))

    def feed(self, frame):
        self.frames.put_nowait(frame)

    async def recv(self):
        item = await self.frames.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, text):
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(text)

    async def close(self):
        self.close_calls += 1
        self.feed(ConnectionClosedOK(None, None))


@pytest.fixture
def fake_ws():
    """Build a FakeWebSocket and a connector that returns it."""
    def make(frames=(), *, closed_after=False):
        ws = FakeWebSocket(frames, closed_after=closed_after)
        ws.urls = []

        async def connector(url):
            ws.urls.append(url)
            return ws

        return ws, connector

    return make
