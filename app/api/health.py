from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health_check(request: Request) -> dict:
    """서비스 헬스 상태와 대기열 구독 상태를 반환"""
    sync = getattr(request.app.state, "queue_sync", None)
    return {
        "status": "정상",
        "queue_sync": "open" if sync is not None and sync.active else "closed",
    }
