from fastapi import APIRouter, Request
import logging
from fastapi.responses import StreamingResponse

from chatrelay.schemas.chat import ChatRequest
from chatrelay.relay import StreamingRelay

router = APIRouter()
logger = logging.getLogger(__name__)


def get_relay(http_request: Request) -> StreamingRelay:
    return http_request.app.state.relay


async def _stream_chat(request: ChatRequest, http_request: Request) -> StreamingResponse:
    relay = get_relay(http_request)
    fmt = relay.response_format(http_request.headers.get("accept"))
    logger.info(
        "%s start provider=%s messages=%d format=%s",
        http_request.url.path,
        relay.provider.id,
        len(request.messages),
        type(fmt).__name__,
    )
    # RelayError raised here becomes a JSON error response before any byte is sent
    stream = await relay.open(request, fmt)
    return StreamingResponse(
        stream,
        media_type=fmt.media_type,
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@router.post("/chat/stream")
async def stream_chat(request: ChatRequest, http_request: Request):
    """Stream the model's reply to the given messages."""
    return await _stream_chat(request, http_request)


# Path the image analyzer page posts to
legacy_router = APIRouter()


@legacy_router.post("/claude-haiku-image")
async def claude_haiku_image(request: ChatRequest, http_request: Request):
    return await _stream_chat(request, http_request)
