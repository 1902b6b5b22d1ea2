import json

import pytest

from chessroom import events as ev
from chessroom import protocol
from chessroom.errors import ProtocolViolation
from chessroom.state import Clocks, Side


def test_encode_frame_carries_ack_id_only_when_requested():
    plain = json.loads(protocol.encode_frame("leave-room", {"roomCode": "abc"}))
    assert plain == {"event": "leave-room", "data": {"roomCode": "abc"}}

    acked = json.loads(protocol.encode_frame("create-room", None, 7))
    assert acked == {"event": "create-room", "data": {}, "ackId": 7}


def test_decode_frame():
    assert protocol.decode_frame('{"event": "ack", "ackId": 3, "data": {"ok": true}}') == ("ack", {"ok": True}, 3)
    assert protocol.decode_frame('{"event": "opponent-left"}') == ("opponent-left", {}, None)


@pytest.mark.parametrize(
    "raw",
    ["not json", "[1, 2]", '{"data": {}}', '{"event": "x", "data": [1]}', '{"event": "ack", "ackId": "1"}'],
)
def test_decode_frame_rejects_garbage(raw):
    with pytest.raises(ProtocolViolation):
        protocol.decode_frame(raw)


def test_board_update_payload_shapes_are_exclusive():
    full = protocol.decode_server_event(
        "board-updated", {"position": "P1", "lastMove": "a4", "history": ["e4", "e5"]}, now=0
    )
    # A full history wins; the last move is not appended on top of it
    assert full == ev.BoardUpdated("P1", history=("e4", "e5"))

    single = protocol.decode_server_event("board-updated", {"position": "P1", "lastMove": "a4"}, now=0)
    assert single == ev.BoardUpdated("P1", last_move="a4")

    bare = protocol.decode_server_event("board-updated", {"position": "P1"}, now=0)
    assert bare == ev.BoardUpdated("P1")


def test_move_given_as_squares_is_flattened():
    event = protocol.decode_server_event(
        "board-updated", {"position": "P1", "lastMove": {"from": "e2", "to": "e4"}}, now=0
    )
    assert event.last_move == "e2e4"


def test_side_and_clock_decoding():
    assert protocol.decode_server_event("color-assigned", {"side": "b"}, 0) == ev.ColorAssigned(Side.SECOND)
    assert protocol.decode_server_event("color-assigned", {"side": "white"}, 0) == ev.ColorAssigned(Side.FIRST)
    timers = protocol.decode_server_event("timer-updated", {"clocks": {"w": 299, "b": 300.5}}, 0)
    assert timers == ev.TimerUpdated(Clocks(299.0, 300.5))


def test_game_over_and_draw_offer():
    over = protocol.decode_server_event("game-over", {"outcomeKind": "checkmate", "winningSide": "w"}, 0)
    assert over == ev.GameOver("checkmate", Side.FIRST)
    drawn = protocol.decode_server_event("game-over", {"outcomeKind": "draw"}, 0)
    assert drawn == ev.GameOver("draw", None)
    # Receipt time is stamped locally
    assert protocol.decode_server_event("draw-offered", {}, 42.0) == ev.DrawOffered(received_at=42.0)


@pytest.mark.parametrize(
    "name,data",
    [
        ("color-assigned", {"side": "red"}),
        ("board-updated", {}),
        ("timer-updated", {"clocks": {"w": 10}}),
        ("timer-updated", {"clocks": {"w": "ten", "b": 1}}),
        ("game-over", {}),
        ("made-up", {}),
    ],
)
def test_malformed_server_events(name, data):
    with pytest.raises(ProtocolViolation):
        protocol.decode_server_event(name, data, 0)


def test_non_finite_clocks_are_rejected():
    data = json.loads('{"clocks": {"w": Infinity, "b": 10}}')
    with pytest.raises(ProtocolViolation, match="not finite"):
        protocol.decode_server_event("timer-updated", data, 0)
    with pytest.raises(ProtocolViolation):
        protocol.decode_sync_ack(json.loads('{"position": "start", "clocks": {"w": 1, "b": NaN}}'))


def test_create_ack():
    ack = protocol.decode_create_ack({"roomCode": "k3x9", "position": "start", "assignedSide": "b"})
    assert ack == ev.RoomCreated("k3x9", "start", Side.SECOND)
    assert protocol.decode_create_ack({"error": "server full"}) == ev.RequestFailed("create-room", "server full")
    with pytest.raises(ProtocolViolation):
        protocol.decode_create_ack({"position": "start"})

    tagged = protocol.decode_create_ack({"roomCode": "k3x9", "position": "start"}, request_id=3)
    assert tagged.request_id == 3
    assert protocol.decode_create_ack({"error": "full"}, 3) == ev.RequestFailed("create-room", "full", 3)


def test_join_move_and_sync_acks():
    assert protocol.decode_join_ack("abc", {"ok": True}) == ev.JoinAcknowledged("abc")
    assert protocol.decode_join_ack("abc", {"error": "no such room"}) == ev.JoinAcknowledged("abc", "no such room")
    assert protocol.decode_join_ack("abc", {}, 5) == ev.JoinAcknowledged("abc", request_id=5)
    assert protocol.decode_move_ack(4, {"error": "illegal move"}) == ev.MoveAcknowledged(4, "illegal move")

    sync = protocol.decode_sync_ack({"position": "P3", "history": ["e4"], "clocks": {"w": 1, "b": 2}})
    assert sync == ev.SyncReceived("P3", ("e4",), Clocks(1.0, 2.0))
