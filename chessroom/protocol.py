"""
Wire vocabulary and JSON framing.

Frames are JSON objects: ``{"event": name, "data": {...}}`` with an optional
``"ackId"``. The server answers a request that carried an ``ackId`` with an
``"ack"`` frame echoing it.
"""

import json as _json
import math

from chessroom import events as ev
from chessroom.errors import ProtocolViolation
from chessroom.state import Clocks, Side

# ---- Server -> client ----
COLOR_ASSIGNED = "color-assigned"
GAME_STARTED = "game-started"
BOARD_UPDATED = "board-updated"
TIMER_UPDATED = "timer-updated"
GAME_OVER = "game-over"
OPPONENT_LEFT = "opponent-left"
DRAW_OFFERED = "draw-offered"
DRAW_OFFER_EXPIRED = "draw-offer-expired"
DRAW_DECLINED = "draw-declined"
ACK = "ack"

SERVER_EVENTS = (
    COLOR_ASSIGNED,
    GAME_STARTED,
    BOARD_UPDATED,
    TIMER_UPDATED,
    GAME_OVER,
    OPPONENT_LEFT,
    DRAW_OFFERED,
    DRAW_OFFER_EXPIRED,
    DRAW_DECLINED,
)

# ---- Client -> server ----
CREATE_ROOM = "create-room"
JOIN_ROOM = "join-room"
SUBMIT_MOVE = "submit-move"
RESIGN = "resign"
OFFER_DRAW = "offer-draw"
ACCEPT_DRAW = "accept-draw"
REJECT_DRAW = "reject-draw"
LEAVE_ROOM = "leave-room"
SYNC_ROOM = "sync-room"

_SIDE_NAMES = {
    "w": Side.FIRST,
    "white": Side.FIRST,
    "b": Side.SECOND,
    "black": Side.SECOND,
}


# ---- Framing ----
def encode_frame(name: str, data: dict | None = None, ack_id: int | None = None) -> str:
    frame = {"event": name, "data": data or {}}
    if ack_id is not None:
        frame["ackId"] = ack_id
    return _json.dumps(frame)


def decode_frame(text: str) -> tuple[str, dict, int | None]:
    """Split a raw frame into (event name, data, ack id)."""
    try:
        frame = _json.loads(text)
    except ValueError:
        raise ProtocolViolation("frame", "not valid JSON") from None
    if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
        raise ProtocolViolation("frame", "missing event name")
    data = frame.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ProtocolViolation(frame["event"], "data must be an object")
    ack_id = frame.get("ackId")
    if ack_id is not None and not isinstance(ack_id, int):
        raise ProtocolViolation(frame["event"], "ackId must be an integer")
    return frame["event"], data, ack_id


# ---- Field helpers ----
def parse_side(value, event: str) -> Side:
    side = _SIDE_NAMES.get(value) if isinstance(value, str) else None
    if side is None:
        raise ProtocolViolation(event, f"unknown side {value!r}")
    return side


def _position(data: dict, event: str) -> str:
    position = data.get("position")
    if not isinstance(position, str) or not position:
        raise ProtocolViolation(event, "missing position")
    return position


def _notation(value, event: str) -> str:
    if isinstance(value, str):
        return value
    # Some servers send the move as {"from": "e2", "to": "e4"}
    if isinstance(value, dict) and value.get("from") and value.get("to"):
        return f"{value['from']}{value['to']}"
    raise ProtocolViolation(event, f"unreadable move {value!r}")


def _history(value, event: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ProtocolViolation(event, "history must be a list")
    return tuple(_notation(item, event) for item in value)


def parse_clocks(value, event: str) -> Clocks:
    if not isinstance(value, dict):
        raise ProtocolViolation(event, "clocks must be an object")
    try:
        first = value[Side.FIRST.value]
        second = value[Side.SECOND.value]
    except KeyError as exc:
        raise ProtocolViolation(event, f"missing clock for {exc.args[0]!r}") from None
    for seconds in (first, second):
        if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
            raise ProtocolViolation(event, f"clock value {seconds!r} is not a number")
        if not math.isfinite(seconds):
            raise ProtocolViolation(event, f"clock value {seconds!r} is not finite")
    return Clocks(float(first), float(second))


def _error(data: dict) -> str | None:
    error = data.get("error")
    if error is None:
        return None
    return str(error)


# ---- Server pushes ----
def decode_server_event(name: str, data: dict, now: float):
    """Turn one pushed server event into a reducer event.

    ``now`` is the local receipt time, used to stamp draw offers.
    """
    if name == COLOR_ASSIGNED:
        return ev.ColorAssigned(parse_side(data.get("side"), name))

    if name == GAME_STARTED:
        return ev.GameStarted(_position(data, name))

    if name == BOARD_UPDATED:
        position = _position(data, name)
        if data.get("history") is not None:
            return ev.BoardUpdated(position, history=_history(data["history"], name))
        if data.get("lastMove") is not None:
            return ev.BoardUpdated(position, last_move=_notation(data["lastMove"], name))
        return ev.BoardUpdated(position)

    if name == TIMER_UPDATED:
        return ev.TimerUpdated(parse_clocks(data.get("clocks"), name))

    if name == GAME_OVER:
        kind = data.get("outcomeKind")
        if not isinstance(kind, str) or not kind:
            raise ProtocolViolation(name, "missing outcomeKind")
        winner = data.get("winningSide")
        return ev.GameOver(kind, parse_side(winner, name) if winner is not None else None)

    if name == OPPONENT_LEFT:
        return ev.OpponentLeft()

    if name == DRAW_OFFERED:
        return ev.DrawOffered(received_at=now)

    if name == DRAW_OFFER_EXPIRED:
        return ev.DrawOfferExpired()

    if name == DRAW_DECLINED:
        return ev.DrawDeclined()

    raise ProtocolViolation(name, "unknown event")


# ---- Acknowledgements ----
def decode_create_ack(data: dict, request_id: int | None = None):
    error = _error(data)
    if error is not None:
        return ev.RequestFailed(CREATE_ROOM, error, request_id)
    code = data.get("roomCode")
    if not isinstance(code, str) or not code:
        raise ProtocolViolation(CREATE_ROOM, "missing roomCode")
    side = data.get("assignedSide")
    return ev.RoomCreated(
        room_code=code,
        position=_position(data, CREATE_ROOM),
        side=parse_side(side, CREATE_ROOM) if side is not None else None,
        request_id=request_id,
    )


def decode_join_ack(room_code: str, data: dict, request_id: int | None = None):
    return ev.JoinAcknowledged(room_code, error=_error(data), request_id=request_id)


def decode_move_ack(request_id: int, data: dict):
    return ev.MoveAcknowledged(request_id, error=_error(data))


def decode_sync_ack(data: dict):
    error = _error(data)
    if error is not None:
        return ev.RequestFailed(SYNC_ROOM, error)
    history = data.get("history")
    clocks = data.get("clocks")
    return ev.SyncReceived(
        position=_position(data, SYNC_ROOM),
        history=_history(history, SYNC_ROOM) if history is not None else None,
        clocks=parse_clocks(clocks, SYNC_ROOM) if clocks is not None else None,
    )
