from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request

from app.core.auth import require_admin
from app.core.config import get_settings, reload_app_config
from app.core.scheduler import start_scheduler
from app.core.telemetry import TelemetryStore

router = APIRouter()


@router.get("/logs")
def admin_logs(
    event: str | None = None,
    limit: int = Query(default=200, ge=1, le=1000),
    admin: None = Depends(require_admin),
) -> list[dict]:
    """최근 텔레메트리 로그 목록

    Args:
        event: 이벤트 이름 필터(선택)
        limit: 최대 행 수
        admin: 관리자 인증 의존성

    Returns:
        로그 목록
    """
    return TelemetryStore().query_logs(event, limit)


@router.get("/sync")
def admin_sync(request: Request, admin: None = Depends(require_admin)) -> dict:
    """대기열 동기화 채널 상태

    Args:
        request: FastAPI 요청 객체
        admin: 관리자 인증 의존성

    Returns:
        현재 채널 상태와 저장된 상태 이력
    """
    sync = request.app.state.queue_sync
    return {
        "active": sync.active,
        "invalidation_count": sync.invalidation_count,
        "cached_keys": [list(key) for key in request.app.state.cache.keys()],
        "tracked_keys": request.app.state.cache.tracked_keys(),
        "channels": TelemetryStore().query_sync_status(),
    }


@router.post("/config/reload")
async def admin_reload_config(
    request: Request, admin: None = Depends(require_admin)
) -> dict:
    """클리닉 설정 파일을 다시 로드해 앱 상태와 대기열 동기화에 적용

    Args:
        request: FastAPI 요청 객체
        admin: 관리자 인증 의존성

    Returns:
        다시 로드된 클리닉 설정
    """
    config = reload_app_config()
    request.app.state.clinic = config.clinic
    await request.app.state.queue_sync.reconfigure(config.clinic)
    if get_settings().scheduler_enabled:
        start_scheduler(config, request.app.state.cache)
    return config.clinic.model_dump()
