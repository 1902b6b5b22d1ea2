import logging

from chessroom import protocol
from chessroom.commands import DRAW_OFFER_TIMER, CancelTimer, Emit, StartTimer
from chessroom.events import DrawOfferExpired
from chessroom.state import NO_DRAW_OFFER, DrawOffer, DrawOfferState, SessionState

logger = logging.getLogger(__name__)


def offer(state: SessionState):
    if not state.is_playing or state.draw_offer.state is not DrawOfferState.NONE:
        logger.debug("Ignoring draw offer in %s/%s", state.phase.value, state.draw_offer.state.value)
        return state, []
    return (
        state.update(draw_offer=DrawOffer(DrawOfferState.OFFERED_BY_LOCAL), last_message="Draw offered"),
        [Emit(protocol.OFFER_DRAW, {"roomCode": state.room_code})],
    )


def receive_offer(state: SessionState, received_at: float, timeout: float):
    if not state.is_playing:
        logger.debug("Ignoring draw offer received in %s", state.phase.value)
        return state, []
    # Crossing offers are not a mutual accept: the remote one simply wins.
    deadline = received_at + timeout
    return (
        state.update(
            draw_offer=DrawOffer(DrawOfferState.OFFERED_BY_REMOTE, deadline),
            last_message="Opponent offers a draw",
        ),
        [StartTimer(DRAW_OFFER_TIMER, timeout, DrawOfferExpired(at=deadline))],
    )


def respond(state: SessionState, accept: bool):
    if state.draw_offer.state is not DrawOfferState.OFFERED_BY_REMOTE:
        logger.debug("No remote draw offer to %s", "accept" if accept else "reject")
        return state, []
    name = protocol.ACCEPT_DRAW if accept else protocol.REJECT_DRAW
    return (
        state.update(draw_offer=NO_DRAW_OFFER),
        [CancelTimer(DRAW_OFFER_TIMER), Emit(name, {"roomCode": state.room_code})],
    )


def expire(state: SessionState, event: DrawOfferExpired):
    current = state.draw_offer
    if event.at is None:
        # Announced by the server: whatever offer is open is gone.
        if current.state is DrawOfferState.NONE:
            return state, []
        return state.update(draw_offer=NO_DRAW_OFFER, last_message="Draw offer expired"), [CancelTimer(DRAW_OFFER_TIMER)]

    if current.state is not DrawOfferState.OFFERED_BY_REMOTE or event.at < current.deadline:
        return state, []
    return state.update(draw_offer=NO_DRAW_OFFER, last_message="Draw offer expired"), []


def declined(state: SessionState):
    if state.draw_offer.state is not DrawOfferState.OFFERED_BY_LOCAL:
        return state, []
    return state.update(draw_offer=NO_DRAW_OFFER, last_message="Draw declined"), []


def clear(state: SessionState):
    if state.draw_offer.state is DrawOfferState.NONE:
        return state, []
    return state.update(draw_offer=NO_DRAW_OFFER), [CancelTimer(DRAW_OFFER_TIMER)]
