class SessionError(Exception):
    pass


class ProtocolViolation(SessionError):
    """Server data that contradicts what the client knows to be true."""

    def __init__(self, event: str, detail: str):
        self.event = event
        self.detail = detail
        super().__init__(f"{event}: {detail}")


class RequestRejected(SessionError):
    def __init__(self, request: str, reason: str):
        self.request = request
        self.reason = reason
        super().__init__(f"{request} rejected: {reason}")


class TransportError(SessionError):
    pass


class ConfigError(SessionError):
    def __init__(self, name: str, value: str):
        self.name = name
        self.value = value
        super().__init__(f"Invalid value for {name}: {value!r}")
