from chessroom import draw
from chessroom.commands import DRAW_OFFER_TIMER, CancelTimer, Emit, StartTimer
from chessroom.events import DrawOfferExpired
from chessroom.state import DrawOfferState, initial_state


def test_local_offer(playing):
    state, commands = draw.offer(playing)
    assert state.draw_offer.state is DrawOfferState.OFFERED_BY_LOCAL
    assert commands == [Emit("offer-draw", {"roomCode": "abc123"})]

    # A second click does nothing
    again, commands = draw.offer(state)
    assert again is state
    assert commands == []


def test_offer_needs_a_game():
    idle = initial_state()
    state, commands = draw.offer(idle)
    assert state is idle
    assert commands == []


def test_remote_offer_sets_deadline(playing):
    state, commands = draw.receive_offer(playing, received_at=100.0, timeout=30.0)
    assert state.draw_offer.state is DrawOfferState.OFFERED_BY_REMOTE
    assert state.draw_offer.deadline == 130.0
    assert commands == [StartTimer(DRAW_OFFER_TIMER, 30.0, DrawOfferExpired(at=130.0))]


def test_crossing_offers_do_not_agree_a_draw(playing):
    state, _ = draw.offer(playing)
    state, _ = draw.receive_offer(state, received_at=10.0, timeout=30.0)
    assert state.draw_offer.state is DrawOfferState.OFFERED_BY_REMOTE


def test_accept_and_reject_are_optimistic(playing):
    offered, _ = draw.receive_offer(playing, received_at=0.0, timeout=30.0)

    state, commands = draw.respond(offered, accept=True)
    assert state.draw_offer.state is DrawOfferState.NONE
    assert commands == [CancelTimer(DRAW_OFFER_TIMER), Emit("accept-draw", {"roomCode": "abc123"})]

    state, commands = draw.respond(offered, accept=False)
    assert state.draw_offer.state is DrawOfferState.NONE
    assert Emit("reject-draw", {"roomCode": "abc123"}) in commands


def test_cannot_answer_own_offer(playing):
    state, _ = draw.offer(playing)
    after, commands = draw.respond(state, accept=True)
    assert after is state
    assert commands == []


def test_offer_decays_at_deadline(playing):
    state, _ = draw.receive_offer(playing, received_at=0.0, timeout=30.0)

    early, _ = draw.expire(state, DrawOfferExpired(at=29.9))
    assert early.draw_offer.state is DrawOfferState.OFFERED_BY_REMOTE

    expired, _ = draw.expire(state, DrawOfferExpired(at=30.0))
    assert expired.draw_offer.state is DrawOfferState.NONE
    assert expired.last_message == "Draw offer expired"


def test_timer_from_an_earlier_offer_does_not_clear_a_new_one(playing):
    state, _ = draw.receive_offer(playing, received_at=0.0, timeout=30.0)
    state, _ = draw.receive_offer(state, received_at=20.0, timeout=30.0)
    after, _ = draw.expire(state, DrawOfferExpired(at=30.0))
    assert after.draw_offer.deadline == 50.0


def test_server_expiry_and_decline_clear_local_offer(playing):
    offered, _ = draw.offer(playing)

    state, _ = draw.expire(offered, DrawOfferExpired())
    assert state.draw_offer.state is DrawOfferState.NONE

    state, _ = draw.declined(offered)
    assert state.draw_offer.state is DrawOfferState.NONE
    assert state.last_message == "Draw declined"
