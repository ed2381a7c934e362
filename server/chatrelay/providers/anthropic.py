from __future__ import annotations
import json
import logging
from typing import AsyncIterator, Optional

import httpx

from chatrelay.core.errors import PayloadEncodeError, ProviderInvocationError, ProviderStreamError
from chatrelay.providers.base import ChunkEvent, StreamEvent, UnknownEvent
from chatrelay.schemas.chat import InvokeEnvelope

logger = logging.getLogger(__name__)

# Event names of the Messages streaming API whose data is a delta-shaped chunk
MESSAGE_EVENTS = {
    "message_start",
    "content_block_start",
    "content_block_delta",
    "content_block_stop",
    "message_delta",
    "message_stop",
    "ping",
}


class AnthropicProvider:
    """Streams from the Anthropic Messages API directly over SSE."""

    id = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.anthropic.com",
        api_version: str = "2023-06-01",
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.api_version = api_version
        # No read timeout: a stream stays open as long as the model keeps talking
        timeout = httpx.Timeout(connect=10.0, read=None, write=30.0, pool=10.0)
        self.client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout, trust_env=True)

    def _payload(self, envelope: InvokeEnvelope) -> dict:
        try:
            payload = json.loads(envelope.body)
        except ValueError as e:
            raise PayloadEncodeError(f"envelope body is not JSON: {e}", provider=self.id) from e
        # Bedrock carries the protocol version in the body, the public API in a header
        payload.pop("anthropic_version", None)
        payload["model"] = self.model
        payload["stream"] = True
        return payload

    async def invoke_stream(self, envelope: InvokeEnvelope) -> AsyncIterator[StreamEvent]:
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
            "content-type": envelope.content_type,
            "accept": "text/event-stream",
        }
        request = self.client.build_request("POST", "/v1/messages", headers=headers, json=self._payload(envelope))
        try:
            response = await self.client.send(request, stream=True)
        except httpx.HTTPError as e:
            raise ProviderInvocationError(f"request failed: {e}", provider=self.id) from e

        if response.status_code >= 400:
            body = await response.aread()
            await response.aclose()
            detail = body.decode("utf-8", errors="ignore")
            raise ProviderInvocationError(f"HTTP {response.status_code}: {detail}", provider=self.id)
        return self._events(response)

    async def _events(self, response: httpx.Response) -> AsyncIterator[StreamEvent]:
        event_name: Optional[str] = None
        try:
            async for line in response.aiter_lines():
                if not line:
                    event_name = None
                    continue
                if line.startswith("event:"):
                    event_name = line[len("event:"):].strip()
                    continue
                if not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if event_name == "error":
                    raise ProviderStreamError(f"provider reported: {data}", provider=self.id)
                if event_name is not None and event_name not in MESSAGE_EVENTS:
                    yield UnknownEvent(tag=event_name)
                    continue
                yield ChunkEvent(payload=data.encode("utf-8"))
        except httpx.HTTPError as e:
            raise ProviderStreamError(f"stream interrupted: {e}", provider=self.id) from e
        finally:
            await response.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()
