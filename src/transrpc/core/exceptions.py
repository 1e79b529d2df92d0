"""Exceptions raised by the Transmission client."""


class TransmissionError(Exception):
    """Base exception for client errors."""

    pass


class ValidationError(TransmissionError, ValueError):
    """Caller supplied arguments the daemon call cannot accept.

    Raised before any request is sent.
    """

    pass


class TransportError(TransmissionError):
    """Network failure, undecodable reply, or a failed session-id retry."""

    pass


class RpcError(TransmissionError):
    """The daemon answered with a non-success status."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class WaitTimeoutError(TransmissionError, TimeoutError):
    """A torrent did not reach the desired state before the deadline."""

    def __init__(self, torrent_id: int, desired_state: object, timeout: float):
        state = getattr(desired_state, "name", desired_state)
        super().__init__(
            f"Torrent {torrent_id} did not reach {state} within {timeout}s"
        )
        self.torrent_id = torrent_id
        self.desired_state = desired_state
        self.timeout = timeout
