from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.routes import router as api_router
from app.clients.backend_api import BackendGateway
from app.core.cache import QueryCache
from app.core.config import get_settings, load_app_config
from app.core.errors import ClinicError
from app.core.logger import log_event
from app.core.logging import configure_logging
from app.core.queue_sync import QueueSyncService
from app.core.realtime import ChangeFeed
from app.core.scheduler import start_scheduler, stop_scheduler


def create_app(
    gateway: BackendGateway | None = None, feed: ChangeFeed | None = None
) -> FastAPI:
    """애플리케이션을 생성하고 FastAPI를 설정

    Args:
        gateway: 백엔드 게이트웨이(없으면 설정으로 생성)
        feed: 변경 알림 허브(없으면 새로 생성)

    Returns:
        FastAPI 애플리케이션
    """
    settings = get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        config = load_app_config()
        owns_gateway = gateway is None
        app.state.clinic = config.clinic
        app.state.cache = QueryCache()
        app.state.feed = feed or ChangeFeed()
        app.state.gateway = gateway or BackendGateway(settings)
        queue_sync = QueueSyncService(app.state.feed, app.state.cache, config.clinic)
        app.state.queue_sync = queue_sync
        try:
            async with queue_sync:
                if settings.scheduler_enabled:
                    start_scheduler(config, app.state.cache)
                yield
        finally:
            stop_scheduler()
            if owns_gateway:
                await app.state.gateway.aclose()

    app = FastAPI(title="Clinic Link", version=settings.version, lifespan=lifespan)
    app.include_router(api_router)

    @app.exception_handler(ClinicError)
    async def handle_clinic_error(request: Request, exc: ClinicError) -> JSONResponse:
        clinic = getattr(request.app.state, "clinic", None)
        log_event(
            "request_failed",
            "WARNING" if exc.status_code < 500 else "ERROR",
            clinic.clinic_id if clinic else "-",
            "api",
            f"{request.method} {request.url.path}: {exc.message}",
            error_code=exc.code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error_code": exc.code, "message": exc.message},
        )

    return app


app = create_app()
