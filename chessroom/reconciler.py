"""
Session reducer.

``reduce(state, event, oracle, settings)`` is the only way a SessionState
changes. It returns the next state plus the commands (requests, timers) the
caller must carry out. Handlers assume any other event may have been applied
just before them; nothing here depends on cross-event ordering.
"""

import logging
from typing import NamedTuple

from chessroom import draw, moves, protocol
from chessroom import events as ev
from chessroom.commands import DRAW_OFFER_TIMER, MOVE_CONFIRM_TIMER, CancelTimer, Emit
from chessroom.config import Settings
from chessroom.errors import ProtocolViolation, RequestRejected
from chessroom.state import (
    ConnectionStatus,
    Outcome,
    RoomRequest,
    SessionPhase,
    Selection,
    SessionState,
    Side,
    initial_state,
    reset_for_leave,
)

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS = Settings()


class Transition(NamedTuple):
    state: SessionState
    commands: list


# ---- Outcome messages ----
_DECISIVE = {
    "checkmate": "Checkmate",
    "resign": "Resign",
    "resignation": "Resign",
    "timeout": "Timeout",
}


def describe_outcome(outcome: Outcome, local_color: Side) -> str:
    label = _DECISIVE.get(outcome.kind)
    if label is not None:
        if outcome.winner is None:
            return f"{label} - game over"
        return f"{label} - {'you win' if outcome.winner is local_color else 'you lose'}"
    if outcome.kind in ("draw", "stalemate", "agreement"):
        return "Game drawn"
    return f"Game over: {outcome.kind}"


# ---- Helpers ----
def _leave_play(state: SessionState, **changes):
    """Drop everything that only exists while a game is in progress."""
    state, commands = moves.clear_pending(state)
    state, more = draw.clear(state)
    return state.update(selection=None, **changes), commands + more


def _replace_board(state: SessionState, position: str, history=None, last_move=None):
    state, commands = moves.clear_pending(state)
    if history is not None:
        move_history = tuple(history)
    elif last_move is not None:
        move_history = state.move_history + (last_move,)
    else:
        move_history = state.move_history
    return state.update(position=position, move_history=move_history, selection=None), commands


def _is_local_turn(state: SessionState, oracle) -> bool:
    return oracle.side_to_move(state.position) is state.local_color


def _answers_room_request(state: SessionState, request_id) -> bool:
    return state.room_request is not None and state.room_request.request_id == request_id


# ---- Transport signals ----
def _on_connected(state, event, oracle, settings):
    logger.info("Connected%s", f" (room {state.room_code})" if state.room_code else "")
    state = state.update(connection_status=ConnectionStatus.CONNECTED)
    if settings.resync_on_reconnect and state.in_room:
        return state, [Emit(protocol.SYNC_ROOM, {"roomCode": state.room_code}, expects_ack=True)]
    return state, []


def _on_disconnected(state, event, oracle, settings):
    logger.info("Disconnected%s", f": {event.reason}" if event.reason else "")
    # The channel drops unanswered acks with the socket.
    return state.update(connection_status=ConnectionStatus.DISCONNECTED, room_request=None), []


# ---- Server pushes ----
def _on_color_assigned(state, event, oracle, settings):
    if event.side is state.local_color:
        return state, []
    if state.color_locked:
        logger.warning(
            "%s",
            ProtocolViolation(
                protocol.COLOR_ASSIGNED,
                f"side changed from {state.local_color.value} to {event.side.value} after play began; ignored",
            ),
        )
        return state, []
    return state.update(local_color=event.side), []


def _on_game_started(state, event, oracle, settings):
    if state.phase is SessionPhase.IDLE and not state.in_room and state.room_request is None:
        logger.debug("Ignoring game start while idle")
        return state, []
    logger.info("Game started in room %s", state.room_code)
    state, commands = _leave_play(state)
    return (
        state.update(
            phase=SessionPhase.PLAYING,
            position=event.position,
            move_history=(),
            outcome=None,
            last_message="Game started",
            color_locked=True,
        ),
        commands,
    )


def _on_board_updated(state, event, oracle, settings):
    return _replace_board(state, event.position, history=event.history, last_move=event.last_move)


def _on_timer_updated(state, event, oracle, settings):
    return state.update(clocks=event.clocks), []


def _on_game_over(state, event, oracle, settings):
    if state.phase is SessionPhase.IDLE:
        logger.debug("Ignoring game over while idle")
        return state, []
    outcome = Outcome(event.kind, event.winner)
    logger.info("Game over in room %s: %s (winner %s)", state.room_code, event.kind, event.winner)
    return _leave_play(
        state,
        phase=SessionPhase.FINISHED,
        outcome=outcome,
        last_message=describe_outcome(outcome, state.local_color),
    )


def _on_opponent_left(state, event, oracle, settings):
    if state.phase is SessionPhase.IDLE:
        return state, []
    changes = {"last_message": "Opponent left the room"}
    if state.phase in (SessionPhase.PLAYING, SessionPhase.FINISHED):
        changes["phase"] = SessionPhase.WAITING_FOR_OPPONENT
    return _leave_play(state, **changes)


def _on_draw_offered(state, event, oracle, settings):
    return draw.receive_offer(state, event.received_at, settings.draw_offer_timeout)


def _on_draw_offer_expired(state, event, oracle, settings):
    return draw.expire(state, event)


def _on_draw_declined(state, event, oracle, settings):
    return draw.declined(state)


# ---- Acknowledgements ----
def _on_room_created(state, event, oracle, settings):
    if not _answers_room_request(state, event.request_id):
        # The server made a room nobody here wants any more.
        logger.info("Leaving room %s created by a superseded request", event.room_code)
        return state, [Emit(protocol.LEAVE_ROOM, {"roomCode": event.room_code})]
    logger.info("Room %s created", event.room_code)
    state = state.update(room_request=None)
    if state.phase is not SessionPhase.IDLE:
        # The game already started under us; only the code is news.
        return state.update(room_code=event.room_code), []
    return (
        state.update(
            room_code=event.room_code,
            position=event.position,
            local_color=event.side or state.local_color,
            phase=SessionPhase.WAITING_FOR_OPPONENT,
            move_history=(),
            last_message="Room created - waiting for opponent",
        ),
        [],
    )


def _on_join_acknowledged(state, event, oracle, settings):
    if not _answers_room_request(state, event.request_id):
        # Leaving already told the server to drop this join.
        logger.debug("Dropping join ack for %s (request %s)", event.room_code, event.request_id)
        return state, []
    state = state.update(room_request=None)
    if event.error is not None:
        logger.warning("%s", RequestRejected(protocol.JOIN_ROOM, event.error))
        return state.update(last_message=event.error), []
    logger.info("Joined room %s", event.room_code)
    if state.phase is not SessionPhase.IDLE:
        return state.update(room_code=event.room_code), []
    return (
        state.update(
            room_code=event.room_code,
            phase=SessionPhase.PLAYING,
            color_locked=True,
            last_message="Joined room - game started",
        ),
        [],
    )


def _on_move_acknowledged(state, event, oracle, settings):
    return moves.apply_move_ack(state, event)


def _on_sync_received(state, event, oracle, settings):
    if not state.in_room:
        return state, []
    state, commands = _replace_board(state, event.position, history=event.history)
    if event.clocks is not None:
        state = state.update(clocks=event.clocks)
    return state, commands


def _on_request_failed(state, event, oracle, settings):
    if event.request_id is not None:
        if not _answers_room_request(state, event.request_id):
            logger.debug("Dropping failure of superseded %s request %d", event.request, event.request_id)
            return state, []
        state = state.update(room_request=None)
    logger.warning("%s", RequestRejected(event.request, event.reason))
    return state.update(last_message=event.reason), []


# ---- Local intents ----
def _can_request_room(state: SessionState) -> bool:
    return state.phase is SessionPhase.IDLE and not state.in_room and state.room_request is None


def _on_create_room(state, event, oracle, settings):
    if not _can_request_room(state):
        return state, []
    request_id = state.next_request_id
    return (
        state.update(room_request=RoomRequest(protocol.CREATE_ROOM, request_id), next_request_id=request_id + 1),
        [Emit(protocol.CREATE_ROOM, expects_ack=True, request_id=request_id)],
    )


def _on_join_room(state, event, oracle, settings):
    code = event.room_code.strip()
    if not code:
        return state.update(last_message="Enter room code"), []
    if not _can_request_room(state):
        return state, []
    request_id = state.next_request_id
    return (
        state.update(room_request=RoomRequest(protocol.JOIN_ROOM, request_id, code), next_request_id=request_id + 1),
        [Emit(protocol.JOIN_ROOM, {"roomCode": code}, expects_ack=True, request_id=request_id)],
    )


def _on_leave_room(state, event, oracle, settings):
    if not state.in_room and state.phase is SessionPhase.IDLE and state.room_request is None:
        return state, []
    commands = [CancelTimer(MOVE_CONFIRM_TIMER), CancelTimer(DRAW_OFFER_TIMER)]
    # A join still in flight names its room; a create's code only arrives with its ack.
    room_code = state.room_code
    if room_code is None and state.room_request is not None:
        room_code = state.room_request.room_code
    if room_code is not None:
        commands.append(Emit(protocol.LEAVE_ROOM, {"roomCode": room_code}))
        logger.info("Leaving room %s", room_code)
    return reset_for_leave(state, settings.initial_clock).update(last_message="Left room"), commands


def _on_square_selected(state, event, oracle, settings):
    if not state.is_playing or state.pending_move is not None:
        return state, []

    selection = state.selection
    if selection is not None:
        if event.square in selection.targets:
            return moves.submit_move(state, selection.square, event.square, oracle, settings.move_confirm_timeout)
        if event.square == selection.square:
            return state.update(selection=None), []

    if not _is_local_turn(state, oracle) or oracle.piece_at(state.position, event.square) is not state.local_color:
        return state.update(selection=None), []

    targets = oracle.legal_targets(state.position, event.square)
    return state.update(selection=Selection(event.square, frozenset(targets))), []


def _on_move_requested(state, event, oracle, settings):
    return moves.submit_move(state, event.from_square, event.to_square, oracle, settings.move_confirm_timeout)


def _on_resign(state, event, oracle, settings):
    if not state.is_playing:
        return state, []
    return state.update(last_message="Resigning"), [Emit(protocol.RESIGN, {"roomCode": state.room_code})]


def _on_draw_offer_requested(state, event, oracle, settings):
    return draw.offer(state)


def _on_draw_response(state, event, oracle, settings):
    return draw.respond(state, event.accept)


def _on_sync_requested(state, event, oracle, settings):
    if not state.in_room:
        return state, []
    return state, [Emit(protocol.SYNC_ROOM, {"roomCode": state.room_code}, expects_ack=True)]


def _on_move_unresolved(state, event, oracle, settings):
    return moves.expire_move(state, event)


_HANDLERS = {
    ev.Connected: _on_connected,
    ev.Disconnected: _on_disconnected,
    ev.ColorAssigned: _on_color_assigned,
    ev.GameStarted: _on_game_started,
    ev.BoardUpdated: _on_board_updated,
    ev.TimerUpdated: _on_timer_updated,
    ev.GameOver: _on_game_over,
    ev.OpponentLeft: _on_opponent_left,
    ev.DrawOffered: _on_draw_offered,
    ev.DrawOfferExpired: _on_draw_offer_expired,
    ev.DrawDeclined: _on_draw_declined,
    ev.RoomCreated: _on_room_created,
    ev.JoinAcknowledged: _on_join_acknowledged,
    ev.MoveAcknowledged: _on_move_acknowledged,
    ev.SyncReceived: _on_sync_received,
    ev.RequestFailed: _on_request_failed,
    ev.CreateRoomRequested: _on_create_room,
    ev.JoinRoomRequested: _on_join_room,
    ev.LeaveRoomRequested: _on_leave_room,
    ev.SquareSelected: _on_square_selected,
    ev.MoveRequested: _on_move_requested,
    ev.ResignRequested: _on_resign,
    ev.DrawOfferRequested: _on_draw_offer_requested,
    ev.DrawResponseRequested: _on_draw_response,
    ev.SyncRequested: _on_sync_requested,
    ev.MoveUnresolved: _on_move_unresolved,
}


def reduce(state: SessionState, event, oracle, settings: Settings = DEFAULT_SETTINGS) -> Transition:
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unhandled event type {type(event).__name__}")
    logger.debug("Applying %r", event)
    new_state, commands = handler(state, event, oracle, settings)
    return Transition(new_state, list(commands))


def replay(events, oracle, state: SessionState | None = None, settings: Settings = DEFAULT_SETTINGS) -> SessionState:
    """Fold a recorded event sequence over a state, discarding commands."""
    current = state if state is not None else initial_state(settings.initial_clock)
    for event in events:
        current = reduce(current, event, oracle, settings).state
    return current
