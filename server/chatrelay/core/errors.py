"""
Error types raised along the relay path.

Errors raised before the first byte is sent become a JSON error response
with ``status_code``; errors raised later are reported according to the
configured error mode.
"""

from __future__ import annotations

from typing import Optional


class RelayError(Exception):
    """Base relay error."""

    status_code: int = 500

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.provider = provider

    def to_dict(self) -> dict:
        body = {"type": self.__class__.__name__, "message": self.message}
        if self.provider:
            body["provider"] = self.provider
        return {"error": body}


class PayloadEncodeError(RelayError):
    """The outbound request envelope could not be serialized."""

    status_code = 500


class ProviderInvocationError(RelayError):
    """The provider rejected or failed the initial streaming call."""

    status_code = 502


class ProviderStreamError(RelayError):
    """The provider's event stream broke after it was opened."""

    status_code = 502


class ChunkDecodeError(RelayError):
    """A chunk payload was not a decodable delta."""

    status_code = 502
