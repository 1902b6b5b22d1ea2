import asyncio
import contextlib
import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Callable

import websockets
from websockets.exceptions import WebSocketException

from chessroom import protocol
from chessroom.errors import ProtocolViolation, TransportError

logger = logging.getLogger(__name__)

# Local signals, delivered through the same subscription API as server events.
CONNECT = "connect"
DISCONNECT = "disconnect"

AckCallback = Callable[[dict], None]


class Channel(ABC):
    """Bidirectional named-event channel to a single server."""

    @abstractmethod
    def on(self, name: str, handler: Callable) -> None: ...

    @abstractmethod
    def emit(self, name: str, data: dict | None = None, ack: AckCallback | None = None) -> None:
        """Send a request; ``ack`` receives the server's acknowledgement data.

        Raises TransportError when there is no open connection.
        """

    @abstractmethod
    async def connect(self) -> None: ...

    @abstractmethod
    async def close(self) -> None: ...


class WebSocketChannel(Channel):
    """Channel over one WebSocket, reconnecting with exponential backoff."""

    def __init__(self, url: str, reconnect_delay: float = 1.0, max_reconnect_attempts: int = 5) -> None:
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_attempts = max_reconnect_attempts
        self._handlers: dict[str, list[Callable]] = {}
        self._acks: dict[int, AckCallback] = {}
        self._next_ack_id = 1
        self._ws = None
        self._outbox: asyncio.Queue | None = None
        self._run_task: asyncio.Task | None = None
        self._closing = False

    @classmethod
    def from_settings(cls, settings) -> "WebSocketChannel":
        return cls(settings.server_url, settings.reconnect_delay, settings.max_reconnect_attempts)

    @property
    def connected(self) -> bool:
        return self._ws is not None

    def on(self, name: str, handler: Callable) -> None:
        self._handlers.setdefault(name, []).append(handler)

    def emit(self, name: str, data: dict | None = None, ack: AckCallback | None = None) -> None:
        if self._ws is None or self._outbox is None:
            raise TransportError("Not connected")
        ack_id = None
        if ack is not None:
            ack_id = self._next_ack_id
            self._next_ack_id += 1
            self._acks[ack_id] = ack
        self._outbox.put_nowait(protocol.encode_frame(name, data, ack_id))
        logger.debug("Queued %s (ack %s)", name, ack_id)

    async def connect(self) -> None:
        if self._run_task is not None and not self._run_task.done():
            return
        self._closing = False
        self._run_task = asyncio.create_task(self._run())

    async def close(self) -> None:
        self._closing = True
        task, self._run_task = self._run_task, None
        if task is None:
            return
        if self._ws is not None:
            await self._ws.close()
        else:
            # Still dialing or backing off; nothing to hand a disconnect to.
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    # ---- Internals ----
    def _signal(self, name: str, *args) -> None:
        for handler in list(self._handlers.get(name, ())):
            try:
                handler(*args)
            except Exception:
                logger.exception("%s handler failed", name)

    def _handle_frame(self, raw) -> None:
        try:
            name, data, ack_id = protocol.decode_frame(raw)
        except ProtocolViolation as exc:
            logger.warning("Dropping frame: %s", exc)
            return

        if name == protocol.ACK:
            callback = self._acks.pop(ack_id, None)
            if callback is None:
                logger.debug("No request waiting for ack %s", ack_id)
                return
            callback(data)
            return

        handlers = self._handlers.get(name)
        if not handlers:
            logger.debug("No handler for %s", name)
            return
        for handler in list(handlers):
            handler(data)

    async def _writer(self, ws, outbox: asyncio.Queue) -> None:
        while True:
            text = await outbox.get()
            await ws.send(text)

    async def _run(self) -> None:
        attempt = 0
        while not self._closing:
            writer = None
            opened = False
            try:
                async with websockets.connect(self.url) as ws:
                    self._ws = ws
                    self._outbox = asyncio.Queue()
                    writer = asyncio.create_task(self._writer(ws, self._outbox))
                    opened = True
                    attempt = 0
                    logger.info("Connected to %s", self.url)
                    self._signal(CONNECT)
                    async for raw in ws:
                        try:
                            self._handle_frame(raw)
                        except Exception:
                            logger.exception("Handler failed for frame %.200r", raw)
                reason = "closed" if self._closing else "closed by server"
            except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
                reason = str(exc) or type(exc).__name__
                logger.warning("Connection to %s lost: %s", self.url, reason)
            finally:
                if writer is not None:
                    writer.cancel()
                    with contextlib.suppress(asyncio.CancelledError, OSError, WebSocketException):
                        await writer
                self._ws = None
                self._outbox = None
                # Requests in flight will never be acknowledged on a new socket.
                self._acks.clear()

            if opened:
                self._signal(DISCONNECT, reason)
            if self._closing:
                break

            attempt += 1
            if attempt > self.max_reconnect_attempts:
                logger.error("Giving up on %s after %d attempts", self.url, attempt - 1)
                break
            # Exponential backoff with jitter
            delay = self.reconnect_delay * (2 ** (attempt - 1))
            delay += random.uniform(0, self.reconnect_delay * 0.1)
            logger.info("Reconnecting in %.1fs (attempt %d/%d)", delay, attempt, self.max_reconnect_attempts)
            await asyncio.sleep(delay)
