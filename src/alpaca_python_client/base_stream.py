from typing import Any, Awaitable, Callable, Optional
from contextlib import suppress
from enum import Enum
from pydantic import BaseModel
from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosedOK, WebSocketException
from .errors import DeserializeError, StreamingError
import asyncio
import logging
import json


DEFAULT_QUEUE_SIZE = 256

# Marks the end of the frame sequence on the internal queue.
_END_OF_STREAM = object()

Connector = Callable[[str], Awaitable[Any]]


class StreamState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


def _get_stream_logger() -> logging.Logger:
    logger = logging.getLogger("alpaca.stream")
    if not logger.handlers:
        handler = logging.StreamHandler()
        fmt = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def _to_json_text(message: Any) -> str:
    if isinstance(message, BaseModel):
        message = message.model_dump(
            mode="json", by_alias=True, exclude_none=True
        )
    try:
        return json.dumps(message)
    except (TypeError, ValueError) as exc:
        raise StreamingError(f"Serialization: {exc}") from exc


async def _read_frames(
    ws: Any,
    queue: asyncio.Queue,
    logger: logging.Logger
) -> None:
    """
    Forward decoded frames to `queue` until the socket ends.

    Holds no reference to the owning `WebSocketClient`, so an abandoned
    client can be collected and its finalizer can cancel this task.
    """
    while True:
        try:
            frame = await ws.recv()
        except ConnectionClosedOK:
            logger.debug("WebSocket closed by server")
            break
        except (WebSocketException, OSError) as exc:
            logger.error(f"WebSocket read error: {exc}")
            await queue.put(StreamingError(f"Read error: {exc}"))
            break

        if isinstance(frame, (bytes, bytearray, memoryview)):
            try:
                frame = bytes(frame).decode("utf-8")
            except UnicodeDecodeError as exc:
                logger.warning(f"Non-UTF8 binary message: {exc}")
                continue

        await queue.put(frame)

    await queue.put(_END_OF_STREAM)


class WebSocketClient:
    """
    Persistent WebSocket connection with a background reader.

    Alpaca streams push JSON text frames over a long-lived socket. This
    class owns the connection plumbing shared by every stream flavor:

      • opening the socket and sending the optional auth payload,
      • running exactly one reader task that drains the socket into a
        bounded FIFO queue,
      • serializing outbound JSON messages,
      • closing the socket and stopping the reader.

    The reader task is the only coroutine that reads from the socket;
    the caller only writes to it and pulls from the queue. A full queue
    blocks the reader, so a slow consumer stalls the socket instead of
    losing frames.

    Attributes
    ----------
    state : StreamState
        Current lifecycle state.
    logger : logging.Logger
        Logger named `alpaca.stream`.

    Notes
    -----
    - There is no reconnect: once `recv()` returns `None` (or raises a
      `StreamingError`) a new connection must be opened.
    - Prefer `async with`. A client dropped without `close()` cancels
      its reader when it is garbage-collected.
    """

    def __init__(
        self,
        ws: Any,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE
    ) -> None:
        self._ws = ws
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._send_lock = asyncio.Lock()
        self._reader: Optional[asyncio.Task] = None
        self._eof = False
        self.state = StreamState.CONNECTING
        self.logger = _get_stream_logger()

    @classmethod
    async def connect(
        cls,
        url: str,
        auth_payload: Any = None,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        connector: Optional[Connector] = None,
    ) -> "WebSocketClient":
        """
        Open a connection and start its background reader.

        Parameters
        ----------
        url : str
            WebSocket endpoint (`wss://...`).
        auth_payload : dict or pydantic model, optional
            Sent as the first frame. The server's answer arrives later
            as a regular message and must be checked by the caller.
        queue_size : int, default=256
            Capacity of the frame queue between reader and consumer.
        connector : callable, optional
            Coroutine factory `connector(url) -> connection`; defaults
            to `websockets.asyncio.client.connect`.

        Raises
        ------
        StreamingError
            If the socket cannot be opened or the auth frame fails.
        """
        logger = _get_stream_logger()
        logger.debug(f"WebSocket connecting to {url}")

        try:
            ws = await (connector or ws_connect)(url)
        except (WebSocketException, OSError, asyncio.TimeoutError) as exc:
            raise StreamingError(f"Connection failed: {exc}") from exc

        client = cls(ws, queue_size=queue_size)

        if auth_payload is not None:
            client.state = StreamState.AUTHENTICATING
            text = _to_json_text(auth_payload)
            try:
                await ws.send(text)
            except (WebSocketException, OSError) as exc:
                client.state = StreamState.CLOSED
                with suppress(WebSocketException, OSError):
                    await ws.close()
                raise StreamingError(f"Auth send failed: {exc}") from exc
            logger.debug("WebSocket auth message sent")

        client._reader = asyncio.create_task(
            _read_frames(ws, client._queue, client.logger)
        )
        client.state = StreamState.OPEN
        logger.info(f"Connected stream: {url}")
        return client

    async def send(self, message: Any) -> None:
        """Serialize `message` to JSON and write it as one text frame."""
        if self.state in (StreamState.CLOSING, StreamState.CLOSED):
            raise StreamingError("Send failed: connection is closed")

        text = _to_json_text(message)
        async with self._send_lock:
            try:
                await self._ws.send(text)
            except (WebSocketException, OSError) as exc:
                raise StreamingError(f"Send failed: {exc}") from exc

    async def recv(self) -> Optional[str]:
        """
        Return the next frame as text.

        Returns
        -------
        str or None
            `None` once the reader has stopped and every buffered frame
            was consumed; every later call returns `None` as well.

        Raises
        ------
        StreamingError
            When the reader hit a socket error. The following call
            returns `None`.
        """
        if self._eof:
            return None

        reader_done = self._reader is None or self._reader.done()
        if reader_done and self._queue.empty():
            self._eof = True
            return None

        item = await self._queue.get()
        if item is _END_OF_STREAM:
            self._eof = True
            return None
        if isinstance(item, StreamingError):
            raise item
        return item

    async def recv_json(self) -> Any:
        """Like `recv()`, decoding the frame as JSON."""
        text = await self.recv()
        if text is None:
            return None
        try:
            return json.loads(text)
        except ValueError as exc:
            raise DeserializeError(str(exc)) from exc

    async def close(self) -> None:
        """
        Send a close frame and stop the reader task.

        Safe to call more than once. Afterwards `send()` raises and
        `recv()` returns `None`; frames not yet received are dropped.
        """
        if self.state in (StreamState.CLOSING, StreamState.CLOSED):
            return

        self.state = StreamState.CLOSING
        try:
            async with self._send_lock:
                await self._ws.close()
        except (WebSocketException, OSError) as exc:
            raise StreamingError(f"Close failed: {exc}") from exc
        finally:
            await self._stop_reader()
            self._eof = True
            self.state = StreamState.CLOSED
            self.logger.info("Stream closed.")

    async def _stop_reader(self) -> None:
        if self._reader is None:
            return
        if not self._reader.done():
            self._reader.cancel()
        with suppress(asyncio.CancelledError):
            await self._reader

        # Frames still buffered are discarded; the marker then wakes a
        # consumer blocked on the empty queue.
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_END_OF_STREAM)

    async def __aenter__(self) -> "WebSocketClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __del__(self) -> None:
        # An abandoned connection must not leave its reader running.
        reader = getattr(self, "_reader", None)
        if reader is not None and not reader.done():
            with suppress(RuntimeError):
                reader.cancel()

