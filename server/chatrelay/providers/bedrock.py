from __future__ import annotations
import asyncio
import logging
from typing import Any, AsyncIterator, Dict, Iterable, Optional

import boto3
from botocore.config import Config
from botocore.eventstream import ParserError
from botocore.exceptions import BotoCoreError, ClientError
from urllib3.exceptions import HTTPError as TransportError

from chatrelay.core.errors import ProviderInvocationError, ProviderStreamError
from chatrelay.providers.base import ChunkEvent, StreamEvent, UnknownEvent
from chatrelay.schemas.chat import InvokeEnvelope

logger = logging.getLogger(__name__)

_DONE = object()


def to_stream_event(event: Dict[str, Any]) -> StreamEvent:
    """Map one boto3 event-stream member onto the relay's event union."""
    if not event:
        return None
    if "chunk" in event:
        return ChunkEvent(payload=(event["chunk"] or {}).get("bytes", b""))
    return UnknownEvent(tag=next(iter(event)))


class BedrockProvider:
    id = "bedrock"

    def __init__(self, client: Any = None, region: Optional[str] = None, read_timeout: int = 3600) -> None:
        # boto3 clients are thread-safe, so one client serves every request
        self.client = client or boto3.client(
            "bedrock-runtime",
            region_name=region,
            config=Config(read_timeout=read_timeout, retries={"total_max_attempts": 1}),
        )

    async def invoke_stream(self, envelope: InvokeEnvelope) -> AsyncIterator[StreamEvent]:
        logger.debug("invoke_model_with_response_stream model=%s bytes=%d", envelope.model_id, len(envelope.body))
        try:
            response = await asyncio.to_thread(
                self.client.invoke_model_with_response_stream,
                body=envelope.body,
                modelId=envelope.model_id,
                contentType=envelope.content_type,
                accept=envelope.accept,
            )
        except (ClientError, BotoCoreError) as e:
            raise ProviderInvocationError(str(e), provider=self.id) from e
        return self._events(response["body"])

    async def _events(self, stream: Iterable[Dict[str, Any]]) -> AsyncIterator[StreamEvent]:
        iterator = iter(stream)
        try:
            while True:
                try:
                    # Each read blocks on the socket; keep it off the event loop
                    event = await asyncio.to_thread(next, iterator, _DONE)
                except (ClientError, BotoCoreError, ParserError, TransportError) as e:
                    # EventStreamError (modelStreamErrorException and friends) is a ClientError;
                    # frame checksum failures and dropped sockets surface raw from botocore
                    raise ProviderStreamError(str(e), provider=self.id) from e
                if event is _DONE:
                    return
                yield to_stream_event(event)
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()

    async def aclose(self) -> None:
        self.client.close()
