class GptshError(Exception):
    pass


class ConfigError(GptshError):
    """Missing credential or unusable setting. Fatal at startup."""


class TransportError(GptshError):
    """Network failure, non-success status or a body that is not JSON."""

    def __init__(self, message: str, status=None, body: str = ""):
        super().__init__(message)
        self.status = status
        self.body = body


class ProtocolError(GptshError):
    """The backend answered, but not in a way the engine can act on."""


class BadBackendResponse(ProtocolError):
    pass


class MalformedFunctionArgs(ProtocolError):
    pass


class UnknownFunction(ProtocolError):
    def __init__(self, name: str):
        super().__init__(f"Assistant requested an unknown function '{name}'.")
        self.name = name


class ExecutionError(GptshError):
    """The child shell could not be spawned."""
