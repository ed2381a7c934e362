"""
Streaming relay between a chat request and the provider's event stream.

Every text delta received from the provider is yielded as its own piece of
the response body; the ASGI server sends (and flushes) each piece as one
HTTP chunk. Nothing is buffered or coalesced.
"""

from __future__ import annotations

import json
import logging
from typing import AsyncIterator, Optional

from pydantic import ValidationError

from chatrelay.config import Settings
from chatrelay.core.errors import (
    ChunkDecodeError,
    PayloadEncodeError,
    ProviderInvocationError,
    ProviderStreamError,
    RelayError,
)
from chatrelay.providers.base import ChunkEvent, StreamEvent, StreamingProvider, UnknownEvent
from chatrelay.schemas.chat import ChatRequest, InferenceRequest, InvokeEnvelope, StreamDelta

logger = logging.getLogger(__name__)

LEGACY_ERROR_TEXT = b"ERROR"


def decode_chunk(payload: bytes) -> StreamDelta:
    try:
        return StreamDelta.model_validate_json(payload)
    except ValidationError as e:
        raise ChunkDecodeError(f"undecodable chunk: {e.errors()[0].get('msg', e)}") from e


class PlainFormat:
    """Raw delta text, no framing."""

    media_type = "text/plain; charset=utf-8"

    def __init__(self, legacy: bool = False) -> None:
        self.legacy = legacy

    def delta(self, text: str) -> bytes:
        return text.encode("utf-8")

    def error(self, err: RelayError) -> Optional[bytes]:
        # Plain bodies have no out-of-band channel except aborting the response
        return LEGACY_ERROR_TEXT if self.legacy else None

    def done(self) -> Optional[bytes]:
        return None

    @property
    def aborts_on_stream_error(self) -> bool:
        return not self.legacy


class SSEFormat:
    """Server-sent events with distinct delta, error and done frames."""

    media_type = "text/event-stream"
    aborts_on_stream_error = False

    @staticmethod
    def _frame(event: str, data: dict) -> bytes:
        return f"event: {event}\ndata: {json.dumps(data)}\n\n".encode("utf-8")

    def delta(self, text: str) -> bytes:
        return self._frame("delta", {"text": text})

    def error(self, err: RelayError) -> Optional[bytes]:
        return self._frame("error", err.to_dict()["error"])

    def done(self) -> Optional[bytes]:
        return self._frame("done", {})


ResponseFormat = PlainFormat | SSEFormat


class RelayStream:
    """One request's pass over the provider stream.

    States: awaiting first chunk (``started`` is False), then streaming.
    """

    def __init__(
        self,
        events: Optional[AsyncIterator[StreamEvent]],
        fmt: ResponseFormat,
        pending_error: Optional[RelayError] = None,
    ) -> None:
        self.events = events
        self.fmt = fmt
        self.pending_error = pending_error
        self.started = False
        self.deltas = 0
        # First undecodable chunk; a plain strict body is aborted once the stream ends
        self.decode_error: Optional[ChunkDecodeError] = None

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        if self.pending_error is not None or self.events is None:
            out = self.fmt.error(self.pending_error) if self.pending_error else None
            if out:
                yield out
            return

        try:
            async for event in self.events:
                out = self._handle(event)
                if out:
                    yield out
        except ProviderStreamError as e:
            logger.error("provider stream failed after %d deltas: %s", self.deltas, e)
            if self.fmt.aborts_on_stream_error:
                raise
            out = self.fmt.error(e)
            if out:
                yield out
            return

        if self.decode_error is not None and self.fmt.aborts_on_stream_error:
            logger.error("aborting response after %d deltas: %s", self.deltas, self.decode_error)
            raise self.decode_error

        logger.info("relay finished deltas=%d", self.deltas)
        out = self.fmt.done()
        if out:
            yield out

    def _handle(self, event: StreamEvent) -> Optional[bytes]:
        if isinstance(event, ChunkEvent):
            try:
                delta = decode_chunk(event.payload)
            except ChunkDecodeError as e:
                logger.warning("%s payload=%r", e, event.payload[:200])
                if self.decode_error is None:
                    self.decode_error = e
                return self.fmt.error(e)
            if not delta.text:
                return None
            self.started = True
            self.deltas += 1
            return self.fmt.delta(delta.text)
        if isinstance(event, UnknownEvent):
            logger.warning("unknown tag: %s", event.tag)
            return None
        logger.warning("union is nil or unknown type: %r", event)
        return None


class StreamingRelay:
    def __init__(self, provider: StreamingProvider, settings: Settings) -> None:
        self.provider = provider
        self.settings = settings

    @property
    def legacy(self) -> bool:
        return self.settings.error_mode == "legacy"

    def response_format(self, accept: Optional[str]) -> ResponseFormat:
        if accept and "text/event-stream" in accept:
            return SSEFormat()
        return PlainFormat(legacy=self.legacy)

    def build_inference_request(self, request: ChatRequest) -> InferenceRequest:
        return InferenceRequest(
            max_tokens=self.settings.max_tokens,
            temperature=self.settings.temperature,
            anthropic_version=self.settings.anthropic_version,
            messages=request.messages,
        )

    def build_envelope(self, request: ChatRequest) -> InvokeEnvelope:
        try:
            body = self.build_inference_request(request).model_dump_json().encode("utf-8")
        except (ValueError, TypeError) as e:
            raise PayloadEncodeError(f"could not serialize request: {e}", provider=self.provider.id) from e
        return InvokeEnvelope(model_id=self.settings.model_id, body=body)

    async def open(self, request: ChatRequest, fmt: ResponseFormat) -> RelayStream:
        """Serialize the request and open the provider stream.

        In strict mode failures here are raised so the caller can answer with
        a status code before any byte is sent. In legacy mode they are handed
        to the stream, which reports them in the body.
        """
        try:
            envelope = self.build_envelope(request)
            events = await self.provider.invoke_stream(envelope)
        except (PayloadEncodeError, ProviderInvocationError) as e:
            logger.error("relay could not start: %s", e)
            if not self.legacy:
                raise
            return RelayStream(None, fmt, pending_error=e)
        return RelayStream(events, fmt)
