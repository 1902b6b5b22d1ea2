import asyncio
import logging
import time
from collections import deque
from functools import partial

from chessroom import events as ev
from chessroom import protocol
from chessroom.clock import ClockPresenter
from chessroom.commands import CancelTimer, Emit, StartTimer
from chessroom.config import Settings
from chessroom.errors import ProtocolViolation, TransportError
from chessroom.reconciler import reduce
from chessroom.rules import ChessRules
from chessroom.state import SessionState, Side, initial_state
from chessroom.transport import CONNECT, DISCONNECT, Channel

logger = logging.getLogger(__name__)


class _LoopScheduler:
    def call_later(self, delay, callback, *args):
        return asyncio.get_running_loop().call_later(delay, callback, *args)


class GameSession:
    """Client side of one player's seat in a room.

    Owns the SessionState and is its only writer: user intents and channel
    events are turned into reducer events and applied one at a time.
    """

    def __init__(
        self,
        channel: Channel,
        oracle=None,
        settings: Settings | None = None,
        scheduler=None,
        now=time.monotonic,
    ) -> None:
        self.settings = settings or Settings()
        self.oracle = oracle or ChessRules()
        self.clock = ClockPresenter(now)
        self._channel = channel
        self._scheduler = scheduler or _LoopScheduler()
        self._now = now
        self._state = initial_state(self.settings.initial_clock)
        self._timers: dict = {}
        self._queue: deque = deque()
        self._dispatching = False
        self._listeners: list = []
        self._wired = False
        self.clock.update(self._state.clocks)

    # ---- Lifecycle ----
    async def start(self) -> None:
        if not self._wired:
            self._wire()
        await self._channel.connect()

    async def close(self) -> None:
        for key in list(self._timers):
            self._cancel_timer(key)
        await self._channel.close()

    def _wire(self) -> None:
        self._channel.on(CONNECT, lambda: self.dispatch(ev.Connected()))
        self._channel.on(DISCONNECT, lambda reason=None: self.dispatch(ev.Disconnected(reason)))
        for name in protocol.SERVER_EVENTS:
            self._channel.on(name, partial(self._on_server_event, name))
        self._wired = True

    # ---- Read side ----
    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener) -> None:
        """Call ``listener(state)`` after every change."""
        self._listeners.append(listener)

    @property
    def orientation(self) -> Side:
        return self._state.local_color

    def running_side(self) -> Side | None:
        if not self._state.is_playing:
            return None
        return self.oracle.side_to_move(self._state.position)

    def clocks_for_viewer(self, interpolate: bool = False) -> tuple[str, str]:
        return self.clock.for_viewer(self._state.local_color, self.running_side(), interpolate)

    # ---- User intents ----
    def create_room(self) -> None:
        self.dispatch(ev.CreateRoomRequested())

    def join_room(self, room_code: str) -> None:
        self.dispatch(ev.JoinRoomRequested(room_code or ""))

    def leave_room(self) -> None:
        self.dispatch(ev.LeaveRoomRequested())

    def select_square(self, square: str) -> None:
        self.dispatch(ev.SquareSelected(square))

    def submit_move(self, from_square: str, to_square: str) -> None:
        self.dispatch(ev.MoveRequested(from_square, to_square))

    def drop_piece(self, from_square: str, to_square: str) -> bool:
        """Drag-and-drop gesture; True when a move request went out for it."""
        before = self._state.pending_move
        self.submit_move(from_square, to_square)
        pending = self._state.pending_move
        return pending is not None and pending is not before

    def resign(self) -> None:
        self.dispatch(ev.ResignRequested())

    def offer_draw(self) -> None:
        self.dispatch(ev.DrawOfferRequested())

    def accept_draw(self) -> None:
        self.dispatch(ev.DrawResponseRequested(accept=True))

    def reject_draw(self) -> None:
        self.dispatch(ev.DrawResponseRequested(accept=False))

    def request_sync(self) -> None:
        self.dispatch(ev.SyncRequested())

    # ---- Event application ----
    def dispatch(self, event) -> None:
        self._queue.append(event)
        if self._dispatching:
            # Raised from inside a command; applied once the current event is done.
            return
        self._dispatching = True
        try:
            while self._queue:
                self._apply(self._queue.popleft())
        finally:
            self._dispatching = False
            if self._queue:
                # Left behind only when applying an event raised.
                logger.warning("Discarding %d queued events after a failed dispatch", len(self._queue))
                self._queue.clear()

    def _apply(self, event) -> None:
        previous = self._state
        transition = reduce(previous, event, self.oracle, self.settings)
        self._state = transition.state
        self.clock.update(self._state.clocks)
        for command in transition.commands:
            self._execute(command)
        if self._state is not previous:
            for listener in list(self._listeners):
                listener(self._state)

    def _on_server_event(self, name: str, data: dict) -> None:
        try:
            event = protocol.decode_server_event(name, data, self._now())
        except ProtocolViolation as exc:
            logger.warning("Ignoring malformed server event: %s", exc)
            return
        self.dispatch(event)

    # ---- Commands ----
    def _execute(self, command) -> None:
        if isinstance(command, Emit):
            self._emit(command)
        elif isinstance(command, StartTimer):
            self._cancel_timer(command.key)
            self._timers[command.key] = self._scheduler.call_later(
                command.delay, self._fire_timer, command.key, command.event
            )
        elif isinstance(command, CancelTimer):
            self._cancel_timer(command.key)
        else:
            raise TypeError(f"Unknown command {command!r}")

    def _emit(self, command: Emit) -> None:
        ack = self._ack_handler(command) if command.expects_ack else None
        try:
            self._channel.emit(command.name, command.payload, ack)
        except TransportError as exc:
            logger.warning("Could not send %s: %s", command.name, exc)
            if command.name == protocol.SUBMIT_MOVE:
                self.dispatch(ev.MoveAcknowledged(command.request_id, error=str(exc)))
            elif command.expects_ack:
                self.dispatch(ev.RequestFailed(command.name, str(exc), command.request_id))

    def _ack_handler(self, command: Emit):
        def on_ack(data: dict) -> None:
            try:
                if command.name == protocol.CREATE_ROOM:
                    event = protocol.decode_create_ack(data, command.request_id)
                elif command.name == protocol.JOIN_ROOM:
                    event = protocol.decode_join_ack(command.payload["roomCode"], data, command.request_id)
                elif command.name == protocol.SUBMIT_MOVE:
                    event = protocol.decode_move_ack(command.request_id, data)
                elif command.name == protocol.SYNC_ROOM:
                    event = protocol.decode_sync_ack(data)
                else:
                    logger.debug("Unexpected ack for %s: %r", command.name, data)
                    return
            except ProtocolViolation as exc:
                logger.warning("Ignoring malformed acknowledgement: %s", exc)
                return
            self.dispatch(event)

        return on_ack

    def _fire_timer(self, key: str, event) -> None:
        self._timers.pop(key, None)
        self.dispatch(event)

    def _cancel_timer(self, key: str) -> None:
        handle = self._timers.pop(key, None)
        if handle is not None:
            handle.cancel()
