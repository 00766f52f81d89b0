from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from app.core.telemetry import TelemetryStore


def utc_now_iso() -> str:
    """현재 UTC 시각을 ISO8601(Z) 문자열로 반환"""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def elapsed_ms(started: float) -> int:
    """perf_counter 기준 경과 시간(밀리초)"""
    return int((time.perf_counter() - started) * 1000)


def log_event(
    event: str,
    level: str,
    clinic_id: str,
    stage: str,
    message: str,
    error_code: str | None = None,
    duration_ms: int | None = None,
    record_count: int | None = None,
) -> None:
    """이벤트를 표준 로깅과 DuckDB에 기록

    Args:
        event: 이벤트 이름
        level: 로깅 레벨 문자열
        clinic_id: 클리닉 식별자
        stage: 처리 단계
        message: 로그 메시지
        error_code: 에러 코드(선택)
        duration_ms: 처리 시간(밀리초, 선택)
        record_count: 레코드 수(선택)
    """
    level = level.upper()
    logging.getLogger("clinic-link").log(
        getattr(logging, level, logging.INFO),
        message,
        extra={"event": event, "clinic_id": clinic_id, "stage": stage},
    )

    TelemetryStore().insert_log(
        {
            "timestamp": utc_now_iso(),
            "level": level,
            "event": event,
            "clinic_id": clinic_id,
            "stage": stage,
            "error_code": error_code,
            "message": message,
            "duration_ms": duration_ms,
            "record_count": record_count,
        }
    )
