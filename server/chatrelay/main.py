import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, APIRouter, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, get_settings
from .core.errors import PayloadEncodeError, ProviderInvocationError, RelayError
from .core.logging import setup_logging
from .providers.base import StreamingProvider
from .providers.factory import build_provider
from .relay import StreamingRelay

# API routers
from .api.pages import router as pages_router
from .api.v1.chat import router as chat_router, legacy_router as legacy_chat_router

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, provider: Optional[StreamingProvider] = None) -> FastAPI:
    settings = settings or get_settings()
    # Setup logging early
    setup_logging(settings.log_level)
    app = FastAPI(title="chatrelay", version="0.1.0")

    # The provider client is built once and shared read-only by every request
    provider = provider or build_provider(settings)
    app.state.settings = settings
    app.state.relay = StreamingRelay(provider, settings)

    allow_all = "*" in settings.allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.allowed_origins,
        allow_credentials=not allow_all,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    async def _relay_error(request: Request, exc: RelayError) -> JSONResponse:
        logger.error("%s failed before streaming: %s", request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Only errors that can happen before the first byte get a status code;
    # a broken stream aborts the response instead
    app.add_exception_handler(PayloadEncodeError, _relay_error)
    app.add_exception_handler(ProviderInvocationError, _relay_error)

    # Mount API v1
    api_v1 = APIRouter()
    api_v1.include_router(chat_router, prefix="/v1")
    app.include_router(api_v1, prefix="/api")
    app.include_router(legacy_chat_router)
    app.include_router(pages_router)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        await provider.aclose()

    @app.get("/healthz")
    def healthz():
        return {"status": "ok", "provider": provider.id}

    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(create_app(settings), host=settings.host, port=settings.server_port)


if __name__ == "__main__":
    run()
