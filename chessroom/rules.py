from functools import lru_cache

import chess

from chessroom.state import START_POSITION, Side

# Move-legality oracle over python-chess. The server stays authoritative;
# this only decides what the local player may try.


@lru_cache(maxsize=16)
def _board(position: str) -> chess.Board | None:
    # Rebuilt from the position string on demand, never kept as session state.
    fen = chess.STARTING_FEN if position == START_POSITION else position
    try:
        return chess.Board(fen)
    except ValueError:
        return None


def _side(color: chess.Color) -> Side:
    return Side.FIRST if color == chess.WHITE else Side.SECOND


def _parse_square(square: str) -> int | None:
    try:
        return chess.parse_square(square)
    except ValueError:
        return None


class ChessRules:
    """Rules oracle for standard chess positions given as FEN (or ``"start"``)."""

    def side_to_move(self, position: str) -> Side | None:
        board = _board(position)
        if board is None:
            return None
        return _side(board.turn)

    def piece_at(self, position: str, square: str) -> Side | None:
        """Return the side owning the piece on ``square``, if any."""
        board = _board(position)
        index = _parse_square(square)
        if board is None or index is None:
            return None
        piece = board.piece_at(index)
        if not piece:
            return None
        return _side(piece.color)

    def legal_targets(self, position: str, square: str) -> frozenset[str]:
        board = _board(position)
        src = _parse_square(square)
        if board is None or src is None:
            return frozenset()
        return frozenset(
            chess.square_name(mv.to_square)
            for mv in board.legal_moves
            if mv.from_square == src
        )

    def promotion_for(self, position: str, from_square: str, to_square: str) -> str | None:
        """Auto-queen: ``"q"`` when a pawn move lands on the last rank."""
        board = _board(position)
        src = _parse_square(from_square)
        dst = _parse_square(to_square)
        if board is None or src is None or dst is None:
            return None
        piece = board.piece_at(src)
        if piece and piece.piece_type == chess.PAWN:
            rank = chess.square_rank(dst)
            if (piece.color and rank == 7) or ((not piece.color) and rank == 0):
                return "q"
        return None
