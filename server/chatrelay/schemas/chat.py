from __future__ import annotations
from typing import Any, List, Optional
from pydantic import BaseModel, ConfigDict


class ChatMessage(BaseModel):
    role: str
    # Text or image blocks, passed through untouched
    content: List[Any]


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    messages: List[ChatMessage]


class InferenceRequest(BaseModel):
    max_tokens: int
    temperature: float
    anthropic_version: str
    messages: List[ChatMessage]


class InvokeEnvelope(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    content_type: str = "application/json"
    accept: str = "application/json"
    body: bytes


class Delta(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str = ""
    text: str = ""


class StreamDelta(BaseModel):
    """One decoded chunk of the provider stream."""

    model_config = ConfigDict(extra="ignore")

    type: str = ""
    index: int = 0
    delta: Optional[Delta] = None

    @property
    def text(self) -> str:
        return self.delta.text if self.delta else ""
