"""Client-side session controller for two-player online chess rooms."""

from chessroom.config import Settings
from chessroom.rules import ChessRules
from chessroom.session import GameSession
from chessroom.state import ConnectionStatus, DrawOfferState, SessionPhase, SessionState, Side
from chessroom.transport import Channel, WebSocketChannel

__all__ = [
    "ChessRules",
    "Channel",
    "ConnectionStatus",
    "DrawOfferState",
    "GameSession",
    "SessionPhase",
    "SessionState",
    "Settings",
    "Side",
    "WebSocketChannel",
]
