"""Models package initialization."""
from .schemas import RpcEnvelope, RpcResponse, TorrentStatus

__all__ = [
    "RpcEnvelope",
    "RpcResponse",
    "TorrentStatus",
]
