from __future__ import annotations
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Protocol, Union

from chatrelay.schemas.chat import InvokeEnvelope


@dataclass(frozen=True)
class ChunkEvent:
    """Raw bytes of one JSON chunk from the model."""

    payload: bytes


@dataclass(frozen=True)
class UnknownEvent:
    """A stream member this relay does not understand."""

    tag: str


# None stands for a stream member that carried no structured type
StreamEvent = Optional[Union[ChunkEvent, UnknownEvent]]


class StreamingProvider(Protocol):
    id: str

    async def invoke_stream(self, envelope: InvokeEnvelope) -> AsyncIterator[StreamEvent]:
        """Open the streaming call and return its events.

        Raises ProviderInvocationError before returning when the call is
        rejected, and ProviderStreamError from the iterator when the stream
        breaks.
        """
        ...

    async def aclose(self) -> None:
        ...
