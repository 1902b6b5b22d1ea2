"""Clock display derived from the server's timer snapshots."""

import math
import time

from chessroom.state import Clocks, Side


def format_clock(seconds: float) -> str:
    """Render remaining time as ``m:ss``; negative or non-finite values show as ``0:00``."""
    if not math.isfinite(seconds) or seconds < 0:
        seconds = 0
    whole = int(seconds)
    return f"{whole // 60}:{whole % 60:02d}"


class ClockPresenter:
    """Formats the latest authoritative clocks.

    With ``interpolate=True`` the side to move is counted down locally between
    snapshots. Each new snapshot replaces whatever was extrapolated.
    """

    def __init__(self, now=time.monotonic) -> None:
        self._now = now
        self._snapshot: Clocks | None = None
        self._received_at = 0.0

    def update(self, clocks: Clocks) -> None:
        if clocks is self._snapshot:
            return
        self._snapshot = clocks
        self._received_at = self._now()

    def remaining(self, side: Side, running: Side | None = None, interpolate: bool = False) -> float:
        if self._snapshot is None:
            return 0.0
        value = self._snapshot.for_side(side)
        if interpolate and running is side:
            value -= self._now() - self._received_at
        return max(0.0, value)

    def display(self, running: Side | None = None, interpolate: bool = False) -> dict[Side, str]:
        return {
            side: format_clock(self.remaining(side, running, interpolate))
            for side in (Side.FIRST, Side.SECOND)
        }

    def for_viewer(self, local: Side, running: Side | None = None, interpolate: bool = False) -> tuple[str, str]:
        """(own clock, opponent clock) as seen from ``local``."""
        shown = self.display(running, interpolate)
        return shown[local], shown[local.opposite]
