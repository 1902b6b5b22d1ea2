from dataclasses import dataclass, field
from typing import Any

# Side effects requested by the reducer. The session executes them in order.

MOVE_CONFIRM_TIMER = "move-confirm"
DRAW_OFFER_TIMER = "draw-offer"


@dataclass(frozen=True)
class Emit:
    name: str
    payload: dict = field(default_factory=dict)
    expects_ack: bool = False
    request_id: int | None = None


@dataclass(frozen=True)
class StartTimer:
    key: str
    delay: float
    event: Any


@dataclass(frozen=True)
class CancelTimer:
    key: str
