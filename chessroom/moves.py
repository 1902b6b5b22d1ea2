"""
Move submission pipeline.

At most one move request is ever outstanding. Nothing is applied to the
displayed position here; only a board update from the server moves pieces.
"""

import logging

from chessroom import protocol
from chessroom.commands import MOVE_CONFIRM_TIMER, CancelTimer, Emit, StartTimer
from chessroom.errors import RequestRejected
from chessroom.events import MoveAcknowledged, MoveUnresolved
from chessroom.state import PendingMove, SessionState

logger = logging.getLogger(__name__)


def submit_move(state: SessionState, from_square: str, to_square: str, oracle, confirm_timeout: float):
    if not state.is_playing:
        logger.debug("Ignoring move %s%s: not playing (%s)", from_square, to_square, state.phase.value)
        return state, []
    if state.pending_move is not None:
        logger.debug(
            "Ignoring move %s%s: request %d still outstanding",
            from_square,
            to_square,
            state.pending_move.request_id,
        )
        return state, []

    request_id = state.next_request_id
    payload = {"roomCode": state.room_code, "from": from_square, "to": to_square}
    promotion = oracle.promotion_for(state.position, from_square, to_square)
    if promotion:
        payload["promotion"] = promotion

    new_state = state.update(
        pending_move=PendingMove(from_square, to_square, request_id),
        selection=None,
        next_request_id=request_id + 1,
    )
    return new_state, [
        Emit(protocol.SUBMIT_MOVE, payload, expects_ack=True, request_id=request_id),
        StartTimer(MOVE_CONFIRM_TIMER, confirm_timeout, MoveUnresolved(request_id)),
    ]


def _is_current(state: SessionState, request_id: int) -> bool:
    return state.pending_move is not None and state.pending_move.request_id == request_id


def apply_move_ack(state: SessionState, ack: MoveAcknowledged):
    if not _is_current(state, ack.request_id):
        # Already superseded by a board update, a game end or a leave.
        logger.debug("Dropping stale acknowledgement for move request %d", ack.request_id)
        return state, []

    if ack.error is not None:
        logger.warning("%s", RequestRejected(protocol.SUBMIT_MOVE, ack.error))
        return (
            state.update(pending_move=None, last_message=ack.error),
            [CancelTimer(MOVE_CONFIRM_TIMER)],
        )

    # Accepted: keep waiting for the board update until the confirm timer fires.
    pending = state.pending_move
    acknowledged = PendingMove(pending.from_square, pending.to_square, pending.request_id, acknowledged=True)
    return state.update(pending_move=acknowledged), []


def expire_move(state: SessionState, event: MoveUnresolved):
    if not _is_current(state, event.request_id):
        return state, []
    pending = state.pending_move
    logger.debug(
        "Move %s%s (request %d) unresolved after %s; clearing",
        pending.from_square,
        pending.to_square,
        pending.request_id,
        "acknowledgement" if pending.acknowledged else "no acknowledgement",
    )
    return state.update(pending_move=None), []


def clear_pending(state: SessionState):
    """Drop any outstanding move; used whenever an authoritative event supersedes it."""
    if state.pending_move is None:
        return state, []
    return state.update(pending_move=None), [CancelTimer(MOVE_CONFIRM_TIMER)]
