from __future__ import annotations

from datetime import date

from app.core.cache import CacheKey, QueryCache
from app.core.config import ClinicConfig
from app.core.logger import log_event, utc_now_iso
from app.core.realtime import Channel, ChangeFeed
from app.core.telemetry import TelemetryStore
from app.models.change import ChangeEvent
from app.utils.parsing import today_in

VISITS_TABLE = "visits"

# 환자 단위 키는 날짜 전환 시 모두 비운다
PER_PATIENT_KINDS = frozenset({"patient-detail", "patient-account"})


def visits_key(day: date) -> CacheKey:
    """날짜별 내원 목록 캐시 키 접두사"""
    return ("visits", day.isoformat())


def _patient_ids(change: ChangeEvent) -> set[str]:
    """변경 전후 행에 담긴 환자 식별자"""
    rows = (change.record or {}, change.old_record or {})
    return {str(row["patient_id"]) for row in rows if row.get("patient_id")}


class QueueSyncService:
    """내원 테이블 변경 알림으로 오늘 대기열 캐시를 무효화하는 동기화 서비스

    활성화 시 채널을 하나만 열고, 비활성화는 몇 번을 호출해도 안전하다.
    "오늘"은 무효화할 때마다 클리닉 시간대 기준으로 다시 계산한다.
    """

    def __init__(self, feed: ChangeFeed, cache: QueryCache, clinic: ClinicConfig) -> None:
        self._feed = feed
        self._cache = cache
        self._clinic = clinic
        self._channel: Channel | None = None
        self._opened_at: str | None = None
        self._invalidations = 0

    @property
    def active(self) -> bool:
        return self._channel is not None and not self._channel.closed

    @property
    def clinic(self) -> ClinicConfig:
        return self._clinic

    @property
    def invalidation_count(self) -> int:
        return self._invalidations

    def today(self) -> date:
        return today_in(self._clinic.timezone)

    async def activate(self) -> Channel:
        """visits 테이블 전체 이벤트 구독 채널을 연다

        Returns:
            채널 핸들(이미 활성 상태면 기존 채널)
        """
        if self.active:
            return self._channel
        self._channel = await self._feed.subscribe(
            self._clinic.queue_channel, VISITS_TABLE, self._on_change, event="*"
        )
        self._opened_at = utc_now_iso()
        log_event(
            "queue_sync_opened",
            "INFO",
            self._clinic.clinic_id,
            "realtime",
            f"대기열 구독 시작: {self._clinic.queue_channel}",
        )
        self._record_status("open")
        return self._channel

    async def deactivate(self) -> None:
        """채널을 닫는다(중복 호출 허용)"""
        channel = self._channel
        if channel is None:
            return
        self._channel = None
        if channel.closed:
            return
        await self._feed.remove_channel(channel)
        log_event(
            "queue_sync_closed",
            "INFO",
            self._clinic.clinic_id,
            "realtime",
            f"대기열 구독 종료: {channel.name}",
            record_count=self._invalidations,
        )
        self._record_status("closed")

    async def __aenter__(self) -> "QueueSyncService":
        await self.activate()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.deactivate()

    async def reconfigure(self, clinic: ClinicConfig) -> None:
        """다시 로드된 클리닉 설정을 적용

        채널 이름이 바뀌면 채널을 다시 열고, 시간대가 바뀌면 "오늘" 키가
        달라지므로 내원 목록 캐시를 모두 무효화한다.

        Args:
            clinic: 새 클리닉 설정
        """
        previous = self._clinic
        reopen = self.active and clinic.queue_channel != previous.queue_channel
        if reopen:
            await self.deactivate()
        self._clinic = clinic
        if clinic.timezone != previous.timezone:
            self._cache.invalidate(("visits",))
        if reopen:
            await self.activate()

    def _on_change(self, change: ChangeEvent) -> None:
        if not self.active:
            return
        today = self.today()
        self._cache.invalidate(visits_key(today))
        patient_ids = _patient_ids(change)
        for patient_id in patient_ids:
            self._cache.invalidate(("patient-detail", patient_id))
        self._invalidations += 1
        log_event(
            "queue_invalidated",
            "DEBUG",
            self._clinic.clinic_id,
            "realtime",
            f"{change.type} {change.table}: {today.isoformat()} 대기열 무효화",
            record_count=len(patient_ids),
        )
        self._record_status("open", change)

    def _record_status(self, state: str, change: ChangeEvent | None = None) -> None:
        TelemetryStore().update_sync_status(
            {
                "channel": self._clinic.queue_channel,
                "clinic_id": self._clinic.clinic_id,
                "state": state,
                "opened_at": self._opened_at,
                "last_event_at": utc_now_iso() if change else None,
                "last_event_type": change.type if change else None,
                "invalidation_count": self._invalidations,
            }
        )


def evict_previous_days(cache: QueryCache, clinic: ClinicConfig) -> int:
    """오늘 이전 날짜의 내원 목록과 환자 단위 캐시를 제거

    Args:
        cache: 조회 캐시
        clinic: 클리닉 설정

    Returns:
        제거된 키 수
    """
    today = today_in(clinic.timezone).isoformat()

    def _is_expired(key: CacheKey) -> bool:
        if key[0] in PER_PATIENT_KINDS:
            return True
        return (
            len(key) >= 2
            and key[0] == "visits"
            and isinstance(key[1], str)
            and key[1] < today
        )

    removed = cache.evict(_is_expired)
    log_event(
        "day_rollover",
        "INFO",
        clinic.clinic_id,
        "cache",
        f"이전 날짜 캐시 제거: {today}",
        record_count=removed,
    )
    return removed
