from dataclasses import dataclass, replace
from enum import Enum

# The one aggregate describing what this client currently believes.
# Instances are frozen; only the reducer produces new ones.


class Side(str, Enum):
    FIRST = "w"
    SECOND = "b"

    @property
    def opposite(self) -> "Side":
        return Side.SECOND if self is Side.FIRST else Side.FIRST


class ConnectionStatus(Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class SessionPhase(Enum):
    IDLE = "idle"
    WAITING_FOR_OPPONENT = "waiting"
    PLAYING = "playing"
    FINISHED = "finished"


class DrawOfferState(Enum):
    NONE = "none"
    OFFERED_BY_LOCAL = "offered_by_local"
    OFFERED_BY_REMOTE = "offered_by_remote"


START_POSITION = "start"


@dataclass(frozen=True)
class Selection:
    square: str
    targets: frozenset[str]


@dataclass(frozen=True)
class PendingMove:
    from_square: str
    to_square: str
    request_id: int
    acknowledged: bool = False


@dataclass(frozen=True)
class RoomRequest:
    """A create-room or join-room request still waiting for its ack."""

    kind: str
    request_id: int
    room_code: str | None = None


@dataclass(frozen=True)
class DrawOffer:
    state: DrawOfferState = DrawOfferState.NONE
    deadline: float | None = None


NO_DRAW_OFFER = DrawOffer()


@dataclass(frozen=True)
class Clocks:
    first: float
    second: float

    def for_side(self, side: Side) -> float:
        return self.first if side is Side.FIRST else self.second


@dataclass(frozen=True)
class Outcome:
    kind: str
    winner: Side | None = None


@dataclass(frozen=True)
class SessionState:
    connection_status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    room_code: str | None = None
    local_color: Side = Side.FIRST
    phase: SessionPhase = SessionPhase.IDLE
    position: str = START_POSITION
    move_history: tuple[str, ...] = ()
    clocks: Clocks = Clocks(300.0, 300.0)
    selection: Selection | None = None
    pending_move: PendingMove | None = None
    room_request: RoomRequest | None = None
    draw_offer: DrawOffer = NO_DRAW_OFFER
    outcome: Outcome | None = None
    last_message: str = ""
    # Set once a game has begun in the current room; the side is fixed from then on.
    color_locked: bool = False
    # Monotonic counter for request ids; survives leave so late acks never collide.
    next_request_id: int = 1

    @property
    def is_playing(self) -> bool:
        return self.phase is SessionPhase.PLAYING

    @property
    def in_room(self) -> bool:
        return self.room_code is not None

    def update(self, **changes) -> "SessionState":
        return replace(self, **changes)


def initial_state(initial_clock: float = 300.0) -> SessionState:
    """Idle defaults used at application load and after leaving a room."""
    return SessionState(clocks=Clocks(initial_clock, initial_clock))


def reset_for_leave(state: SessionState, initial_clock: float = 300.0) -> SessionState:
    """Back to Idle defaults, keeping connectivity and the request counter."""
    return replace(
        initial_state(initial_clock),
        connection_status=state.connection_status,
        next_request_id=state.next_request_id,
    )
