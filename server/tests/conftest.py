import json
from typing import List, Optional

import pytest

from chatrelay.config import Settings
from chatrelay.providers.base import ChunkEvent, StreamEvent


def delta_chunk(text: str, index: int = 0) -> ChunkEvent:
    """Chunk shaped like a Claude content_block_delta."""
    return ChunkEvent(
        payload=json.dumps(
            {"type": "content_block_delta", "index": index, "delta": {"type": "text_delta", "text": text}}
        ).encode("utf-8")
    )


class FakeProvider:
    """Scripted provider that records every envelope it receives."""

    id = "fake"

    def __init__(
        self,
        events: Optional[List[StreamEvent]] = None,
        invoke_error: Optional[Exception] = None,
        stream_error: Optional[Exception] = None,
    ) -> None:
        self.events = events or []
        self.invoke_error = invoke_error
        self.stream_error = stream_error
        self.calls = []
        self.closed = False

    async def invoke_stream(self, envelope):
        self.calls.append(envelope)
        if self.invoke_error is not None:
            raise self.invoke_error
        return self._events()

    async def _events(self):
        for event in self.events:
            yield event
        if self.stream_error is not None:
            raise self.stream_error

    async def aclose(self) -> None:
        self.closed = True


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def messages():
    return [
        {"role": "user", "content": [{"type": "text", "text": "What is in this picture?"}]},
        {
            "role": "user",
            "content": [
                {"type": "image", "source": {"type": "base64", "media_type": "image/png", "data": "iVBORw0KGgo="}},
                {"type": "text", "text": "Describe it."},
            ],
        },
    ]
