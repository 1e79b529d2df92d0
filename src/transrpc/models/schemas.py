"""Pydantic models for the daemon's RPC envelope and replies."""
from enum import IntEnum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class TorrentStatus(IntEnum):
    """Torrent lifecycle states as reported in the ``status`` field."""

    STOPPED = 0
    CHECK_WAIT = 1
    CHECK = 2
    DOWNLOAD_WAIT = 3
    DOWNLOAD = 4
    SEED_WAIT = 5
    SEED = 6
    ISOLATED = 7


class RpcEnvelope(BaseModel):
    """Request body posted to the daemon."""

    model_config = ConfigDict(frozen=True)

    method: str = Field(..., description="RPC method name")
    arguments: dict[str, Any] = Field(
        default_factory=dict, description="Method arguments"
    )
    tag: Optional[int] = Field(
        default=None, ge=0, description="Correlation tag echoed by the daemon"
    )

    def to_payload(self) -> dict[str, Any]:
        """Serialize for the wire, dropping unset fields."""
        return self.model_dump(exclude_none=True)


class RpcResponse(BaseModel):
    """Successful HTTP reply body."""

    model_config = ConfigDict(extra="ignore")

    result: Optional[str] = Field(default=None, description="'success' or an error string")
    arguments: dict[str, Any] = Field(default_factory=dict, description="Method results")
    tag: Optional[int] = Field(default=None, description="Echoed correlation tag")

    @property
    def succeeded(self) -> bool:
        """Whether the daemon reported success (a missing result counts as success)."""
        return self.result is None or self.result == "success"
