from __future__ import annotations
import asyncio
import json
from typing import AsyncIterator, List

from chatrelay.providers.base import ChunkEvent, StreamEvent
from chatrelay.schemas.chat import InvokeEnvelope


def _chunk(obj: dict) -> ChunkEvent:
    return ChunkEvent(payload=json.dumps(obj).encode("utf-8"))


def _last_user_text(body: bytes) -> str:
    messages = json.loads(body).get("messages") or []
    for message in reversed(messages):
        if message.get("role") != "user":
            continue
        parts: List[str] = []
        for part in message.get("content") or []:
            if isinstance(part, dict) and part.get("type") == "text":
                parts.append(part.get("text", ""))
            elif isinstance(part, dict) and part.get("type") == "image":
                parts.append("<image>")
        return " ".join(p for p in parts if p)
    return ""


class MockProvider:
    """Offline stand-in that echoes the last user message back."""

    id = "mock"

    def __init__(self, delay: float = 0.05) -> None:
        self.delay = delay

    async def invoke_stream(self, envelope: InvokeEnvelope) -> AsyncIterator[StreamEvent]:
        text = f"[mock] You said: '{_last_user_text(envelope.body)}'"
        return self._events(text)

    async def _events(self, text: str) -> AsyncIterator[StreamEvent]:
        yield _chunk({"type": "message_start", "message": {"role": "assistant", "content": []}})
        words = text.split()
        for i, word in enumerate(words):
            tok = word + (" " if i < len(words) - 1 else "")
            yield _chunk({"type": "content_block_delta", "index": 0, "delta": {"type": "text_delta", "text": tok}})
            if self.delay:
                await asyncio.sleep(self.delay)
        yield _chunk({"type": "message_stop"})

    async def aclose(self) -> None:
        return None
