"""Asyncio client for the Transmission daemon's RPC interface."""
from transrpc.core.config import Settings, settings
from transrpc.core.exceptions import (
    RpcError,
    TransmissionError,
    TransportError,
    ValidationError,
    WaitTimeoutError,
)
from transrpc.models.schemas import RpcEnvelope, RpcResponse, TorrentStatus
from transrpc.services.session import SessionClient
from transrpc.services.transmission import Transmission
from transrpc.tasks.poller import AsyncioClock, Clock, PollEngine, PollJob

__version__ = "0.1.0"

__all__ = [
    "AsyncioClock",
    "Clock",
    "PollEngine",
    "PollJob",
    "RpcEnvelope",
    "RpcError",
    "RpcResponse",
    "SessionClient",
    "Settings",
    "TorrentStatus",
    "Transmission",
    "TransmissionError",
    "TransportError",
    "ValidationError",
    "WaitTimeoutError",
    "settings",
]
