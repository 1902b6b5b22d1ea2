import math
import os
from dataclasses import dataclass

from chessroom.errors import ConfigError

ENV_PREFIX = "CHESSROOM_"
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    server_url: str = "ws://localhost:8000/ws"
    draw_offer_timeout: float = 30.0
    move_confirm_timeout: float = 5.0
    initial_clock: float = 300.0
    resync_on_reconnect: bool = True
    reconnect_delay: float = 1.0
    max_reconnect_attempts: int = 5

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        """Build settings from CHESSROOM_* variables, falling back to defaults."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def number(name: str, default, cast=float):
            raw = env.get(ENV_PREFIX + name)
            if raw is None or raw.strip() == "":
                return default
            try:
                value = cast(raw)
            except ValueError:
                raise ConfigError(ENV_PREFIX + name, raw) from None
            if value < 0 or not math.isfinite(value):
                raise ConfigError(ENV_PREFIX + name, raw)
            return value

        def flag(name: str, default: bool) -> bool:
            raw = env.get(ENV_PREFIX + name)
            if raw is None or raw.strip() == "":
                return default
            lowered = raw.strip().lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ConfigError(ENV_PREFIX + name, raw)

        return cls(
            server_url=env.get(ENV_PREFIX + "SERVER_URL") or defaults.server_url,
            draw_offer_timeout=number("DRAW_OFFER_TIMEOUT", defaults.draw_offer_timeout),
            move_confirm_timeout=number("MOVE_CONFIRM_TIMEOUT", defaults.move_confirm_timeout),
            initial_clock=number("INITIAL_CLOCK", defaults.initial_clock),
            resync_on_reconnect=flag("RESYNC_ON_RECONNECT", defaults.resync_on_reconnect),
            reconnect_delay=number("RECONNECT_DELAY", defaults.reconnect_delay),
            max_reconnect_attempts=number("MAX_RECONNECT_ATTEMPTS", defaults.max_reconnect_attempts, int),
        )
