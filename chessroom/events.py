"""
Typed events fed to the reducer.

Three families share one stream: server pushes (and request acknowledgements),
local user intents, and local timer firings. All are frozen so a recorded
sequence can be replayed deterministically.
"""

from dataclasses import dataclass

from chessroom.state import Clocks, Side


# ---- Transport signals ----
@dataclass(frozen=True)
class Connected:
    pass


@dataclass(frozen=True)
class Disconnected:
    reason: str | None = None


# ---- Server pushes ----
@dataclass(frozen=True)
class ColorAssigned:
    side: Side


@dataclass(frozen=True)
class GameStarted:
    position: str


@dataclass(frozen=True)
class BoardUpdated:
    position: str
    last_move: str | None = None
    history: tuple[str, ...] | None = None


@dataclass(frozen=True)
class TimerUpdated:
    clocks: Clocks


@dataclass(frozen=True)
class GameOver:
    kind: str
    winner: Side | None = None


@dataclass(frozen=True)
class OpponentLeft:
    pass


@dataclass(frozen=True)
class DrawOffered:
    received_at: float


@dataclass(frozen=True)
class DrawOfferExpired:
    # None when the server announced the expiry, otherwise the local firing time.
    at: float | None = None


@dataclass(frozen=True)
class DrawDeclined:
    pass


# ---- Acknowledgements ----
@dataclass(frozen=True)
class RoomCreated:
    room_code: str
    position: str
    side: Side | None = None
    request_id: int | None = None


@dataclass(frozen=True)
class JoinAcknowledged:
    room_code: str
    error: str | None = None
    request_id: int | None = None


@dataclass(frozen=True)
class MoveAcknowledged:
    request_id: int
    error: str | None = None


@dataclass(frozen=True)
class SyncReceived:
    position: str
    history: tuple[str, ...] | None = None
    clocks: Clocks | None = None


@dataclass(frozen=True)
class RequestFailed:
    request: str
    reason: str
    request_id: int | None = None


# ---- Local intents ----
@dataclass(frozen=True)
class CreateRoomRequested:
    pass


@dataclass(frozen=True)
class JoinRoomRequested:
    room_code: str


@dataclass(frozen=True)
class LeaveRoomRequested:
    pass


@dataclass(frozen=True)
class SquareSelected:
    square: str


@dataclass(frozen=True)
class MoveRequested:
    from_square: str
    to_square: str


@dataclass(frozen=True)
class ResignRequested:
    pass


@dataclass(frozen=True)
class DrawOfferRequested:
    pass


@dataclass(frozen=True)
class DrawResponseRequested:
    accept: bool


@dataclass(frozen=True)
class SyncRequested:
    pass


# ---- Local timers ----
@dataclass(frozen=True)
class MoveUnresolved:
    request_id: int
