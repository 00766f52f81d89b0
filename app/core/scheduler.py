from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler

from app.core.cache import QueryCache
from app.core.config import AppConfig
from app.core.queue_sync import evict_previous_days

_scheduler: BackgroundScheduler | None = None


def start_scheduler(config: AppConfig, cache: QueryCache) -> BackgroundScheduler:
    """날짜 전환(자정) 캐시 정리용 백그라운드 스케줄러를 시작

    Args:
        config: 클리닉 설정 객체
        cache: 조회 캐시

    Returns:
        BackgroundScheduler 인스턴스
    """
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
    clinic = config.clinic
    scheduler = BackgroundScheduler(timezone=clinic.timezone)
    scheduler.add_job(
        evict_previous_days,
        "cron",
        hour=0,
        minute=0,
        args=[cache, clinic],
        id=f"rollover-{clinic.clinic_id}",
        replace_existing=True,
    )
    scheduler.start()
    _scheduler = scheduler
    return scheduler


def stop_scheduler() -> None:
    """실행 중인 스케줄러를 중지"""
    global _scheduler
    if _scheduler and _scheduler.running:
        _scheduler.shutdown(wait=False)
    _scheduler = None
