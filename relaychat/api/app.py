from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from relaychat import __version__
from relaychat.api.routes.chat import router as chat_router
from relaychat.api.routes.health import router as health_router
from relaychat.domain.errors import ChatError
from relaychat.utils.logger import api_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    if hasattr(app.state, "config_manager"):
        from relaychat.api.deps import invalidate_chat_service

        def on_config_change(new_config):
            api_logger.info(
                "Configuration changed, invalidating cached components",
                changed_keys=list(new_config.keys()),
            )
            invalidate_chat_service()

        app.state.config_manager.register_change_callback(on_config_change)
        await app.state.config_manager.start_watching()
        api_logger.info("Config file watcher started with change callback")

    yield

    try:
        api_logger.info("Starting shutdown cleanup")
        from relaychat.api.deps import dispose_db_engine
        from relaychat.core.background_tasks import get_background_manager
        from relaychat.streams.context import reset_stream_context

        if hasattr(app.state, "config_manager"):
            try:
                await app.state.config_manager.stop_watching()
                api_logger.info("Config file watcher stopped")
            except asyncio.CancelledError:
                api_logger.debug("Config watcher stop cancelled, continuing cleanup")

        # Let in-flight generations finish and persist their replies
        bg_manager = get_background_manager()
        try:
            await bg_manager.shutdown(timeout=10.0)
        except asyncio.CancelledError:
            api_logger.debug("Background tasks shutdown cancelled, continuing cleanup")

        dispose_db_engine()
        reset_stream_context()
        api_logger.info("Shutdown completed")
    except Exception as e:
        api_logger.error("Shutdown cleanup failed", exc_info=True, error=str(e))


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    api_logger.info(
        "Request rejected",
        method=request.method,
        path=request.url.path,
        code=exc.code,
        status_code=exc.status_code,
    )
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


def create_app() -> FastAPI:
    app = FastAPI(
        title="RelayChat Server",
        description="Chat backend with resumable streaming replies",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ChatError, chat_error_handler)

    app.include_router(chat_router)
    app.include_router(health_router)

    @app.middleware("http")
    async def add_request_id_header(request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        response = await call_next(request)
        response.headers.setdefault("x-request-id", request_id)
        return response

    return app
