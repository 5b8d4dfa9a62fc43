"""Pydantic v2 models for user-supplied connection options."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator

from mevtrace.errors import ConfigurationError


class TraceMode(str, Enum):
    REVM = "revm"
    RPC = "rpc"

    @classmethod
    def parse(cls, value: str) -> TraceMode:
        """Exact, case-sensitive match on ``revm`` or ``rpc``."""
        try:
            return cls(value)
        except ValueError:
            raise ConfigurationError(f"Invalid tracing mode {value!r}, expected 'revm' or 'rpc'") from None


class ConnectionOptions(BaseModel):
    rpc_url: str | None = Field(default=None, description="HTTP(S) JSON-RPC endpoint")
    trace: TraceMode | None = Field(default=None, description="EVM tracing mode")

    # ConfigurationError is not a ValueError, so pydantic lets it propagate as is
    @field_validator("trace", mode="before")
    @classmethod
    def parse_trace(cls, value):
        if isinstance(value, str):
            return TraceMode.parse(value)
        return value
