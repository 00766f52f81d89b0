from __future__ import annotations

import time
from datetime import date
from typing import Iterable

from app.clients.backend_api import BackendGateway
from app.core.cache import QueryCache
from app.core.config import ClinicConfig
from app.core.errors import ConflictError, NotFoundError, ValidationError
from app.core.logger import elapsed_ms, log_event
from app.models.visit import QueueBoard, QueueItem, Visit, VisitStatus
from app.services.status_flow import (
    STATION_GROUPS,
    STATUS_LABELS,
    allowed_transitions,
    needs_consult,
    next_status,
)
from app.utils.parsing import require_text, today_in

VISIT_COLUMNS = "*, patients (id, hn, first_name, last_name, dob, allergies)"


def _parse_status(value: VisitStatus | str, field: str = "status") -> VisitStatus:
    try:
        return VisitStatus(value)
    except ValueError as exc:
        raise ValidationError(field, f"알 수 없는 단계: {value}") from exc


async def list_visits(
    gateway: BackendGateway,
    cache: QueryCache,
    day: date | None = None,
    statuses: Iterable[VisitStatus | str] | None = None,
) -> list[Visit]:
    """내원 목록을 대기 번호 순으로 조회(캐시 사용)

    Args:
        gateway: 백엔드 게이트웨이
        cache: 조회 캐시
        day: 내원 일자(없으면 전체)
        statuses: 단계 필터(없으면 전체)

    Returns:
        환자 요약이 조인된 내원 목록
    """
    status_values = tuple(sorted({_parse_status(s).value for s in statuses or ()}))
    key = ("visits", day.isoformat() if day else None, status_values)

    async def _load() -> list[Visit]:
        filters: dict = {}
        if day:
            filters["visit_date"] = day.isoformat()
        if status_values:
            filters["status"] = list(status_values)
        rows = await gateway.select(
            "visits",
            columns=VISIT_COLUMNS,
            filters=filters,
            order="queue_number.asc",
        )
        return [Visit(**row) for row in rows]

    return await cache.fetch(key, _load)


def build_queue_item(visit: Visit) -> QueueItem:
    """내원 카드 표시 정보를 구성"""
    successor = next_status(visit.status)
    return QueueItem(
        visit=visit,
        label=STATUS_LABELS[visit.status],
        next_status=successor,
        next_label=STATUS_LABELS[successor] if successor else None,
        has_allergies=visit.has_allergies,
        needs_consult=needs_consult(visit.status),
    )


async def today_queue(
    gateway: BackendGateway, cache: QueryCache, clinic: ClinicConfig
) -> QueueBoard:
    """오늘 대기열을 스테이션별로 묶어 반환

    Args:
        gateway: 백엔드 게이트웨이
        cache: 조회 캐시
        clinic: 클리닉 설정

    Returns:
        스테이션별 대기열
    """
    today = today_in(clinic.timezone)
    visits = await list_visits(gateway, cache, day=today)
    groups: dict[str, list[QueueItem]] = {name: [] for name in STATION_GROUPS}
    for visit in visits:
        item = build_queue_item(visit)
        for name, members in STATION_GROUPS.items():
            if visit.status in members:
                groups[name].append(item)
                break
    return QueueBoard(visit_date=today, total=len(visits), groups=groups)


async def _max_queue_number(gateway: BackendGateway, day: date) -> int:
    rows = await gateway.select(
        "visits",
        columns="queue_number",
        filters={"visit_date": day.isoformat()},
        order="queue_number.desc.nullslast",
        limit=1,
    )
    if not rows:
        return 0
    return rows[0].get("queue_number") or 0


async def create_visit(
    gateway: BackendGateway,
    cache: QueryCache,
    clinic: ClinicConfig,
    patient_id: str,
) -> Visit:
    """오늘 대기열에 환자를 추가

    당일 최대 대기 번호 + 1(없으면 1)을 부여한다. (visit_date, queue_number)
    고유 제약 충돌 시 설정된 횟수만큼 다시 읽고 삽입한다.

    Args:
        gateway: 백엔드 게이트웨이
        cache: 조회 캐시
        clinic: 클리닉 설정
        patient_id: 환자 식별자

    Returns:
        생성된 내원

    Raises:
        ValidationError: 환자 식별자 누락
        ConflictError: 재시도 후에도 대기 번호가 충돌할 때
    """
    patient_id = require_text(patient_id, "patient_id")
    today = today_in(clinic.timezone)
    attempts = max(1, clinic.queue_number_retries)
    started = time.perf_counter()
    row: dict | None = None
    for attempt in range(1, attempts + 1):
        queue_number = await _max_queue_number(gateway, today) + 1
        try:
            row = await gateway.insert(
                "visits",
                {
                    "patient_id": patient_id,
                    "visit_date": today.isoformat(),
                    "queue_number": queue_number,
                    "status": VisitStatus.IN_QUEUE.value,
                },
            )
            break
        except ConflictError as exc:
            log_event(
                "queue_number_conflict",
                "WARNING",
                clinic.clinic_id,
                "visit",
                f"대기 번호 충돌({attempt}/{attempts}): {queue_number}",
                error_code=exc.code,
            )
            if attempt == attempts:
                raise
    visit = Visit(**row)
    cache.invalidate(("visits",))
    cache.invalidate(("patient-detail", visit.patient_id))
    log_event(
        "visit_created",
        "INFO",
        clinic.clinic_id,
        "visit",
        f"대기열 추가: {visit.id} #{visit.queue_number}",
        duration_ms=elapsed_ms(started),
        record_count=1,
    )
    return visit


async def _current_status(gateway: BackendGateway, visit_id: str) -> VisitStatus:
    row = await gateway.select_one(
        "visits", columns="id,status", filters={"id": visit_id}, maybe=True
    )
    if row is None:
        raise NotFoundError("VISIT_NOT_FOUND", f"내원 없음: {visit_id}")
    return VisitStatus(row["status"])


async def _apply_status(
    gateway: BackendGateway,
    cache: QueryCache,
    clinic: ClinicConfig,
    visit_id: str,
    current: VisitStatus,
    target: VisitStatus,
) -> Visit:
    try:
        row = await gateway.update(
            "visits",
            {"id": visit_id, "status": current.value},
            {"status": target.value},
        )
    except NotFoundError as exc:
        raise ConflictError(
            "VISIT_STATUS_STALE", f"단계가 이미 변경됨: {visit_id} ({current.value})"
        ) from exc
    visit = Visit(**row)
    cache.invalidate(("visits",))
    cache.invalidate(("patient-detail", visit.patient_id))
    log_event(
        "visit_status_changed",
        "INFO",
        clinic.clinic_id,
        "visit",
        f"단계 변경: {visit_id} {current.value} -> {target.value}",
    )
    return visit


async def update_visit_status(
    gateway: BackendGateway,
    cache: QueryCache,
    clinic: ClinicConfig,
    visit_id: str,
    status: VisitStatus | str,
) -> Visit:
    """내원 단계를 명시적으로 지정

    다음 단계 또는 수동 분기(OrderConfirmed -> PerformingProcedure)만 허용한다.

    Raises:
        ValidationError: 알 수 없는 단계
        NotFoundError: 내원 없음
        ConflictError: 허용되지 않은 전이 또는 동시 변경
    """
    visit_id = require_text(visit_id, "visit_id")
    target = _parse_status(status)
    current = await _current_status(gateway, visit_id)
    if target not in allowed_transitions(current):
        raise ConflictError(
            "VISIT_TRANSITION_INVALID",
            f"허용되지 않은 전이: {current.value} -> {target.value}",
        )
    return await _apply_status(gateway, cache, clinic, visit_id, current, target)


async def advance_visit(
    gateway: BackendGateway,
    cache: QueryCache,
    clinic: ClinicConfig,
    visit_id: str,
) -> Visit:
    """내원을 다음 단계로 진행

    Raises:
        NotFoundError: 내원 없음
        ConflictError: 종료 단계이거나 동시 변경
    """
    visit_id = require_text(visit_id, "visit_id")
    current = await _current_status(gateway, visit_id)
    target = next_status(current)
    if target is None:
        raise ConflictError("VISIT_TERMINAL", f"다음 단계 없음: {current.value}")
    return await _apply_status(gateway, cache, clinic, visit_id, current, target)
