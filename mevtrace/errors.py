"""Exception taxonomy for the startup path.

Every fatal category aborts bootstrap. Unknown chains are not an error at
all: they are logged and degrade to ``ChainIdentity.unknown``.
"""

from __future__ import annotations


class MevtraceError(Exception):
    """Base class for all mevtrace errors."""


class ConfigurationError(MevtraceError):
    """Missing RPC URL, malformed URL or invalid trace mode. Never retried."""


class TransportError(MevtraceError):
    """An RPC request failed terminally (non-transient, or retries exhausted)."""

    def __init__(self, message: str, attempts: int = 1):
        super().__init__(message)
        self.attempts = attempts


class BootstrapError(MevtraceError):
    """The local cache database could not be created or downloaded."""


class ChainIdentificationError(MevtraceError):
    """The chain id query on the bootstrap path failed."""
