from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.deps import get_cache, get_clinic, get_gateway
from app.clients.backend_api import BackendGateway
from app.core.cache import QueryCache
from app.core.config import ClinicConfig
from app.models.visit import QueueBoard, QueueItem, VisitStatus
from app.services.visits import (
    advance_visit,
    build_queue_item,
    create_visit,
    list_visits,
    today_queue,
    update_visit_status,
)

router = APIRouter()


class CreateVisitRequest(BaseModel):
    patient_id: str


class StatusRequest(BaseModel):
    status: VisitStatus


@router.get("/queue/today", response_model=QueueBoard)
async def get_today_queue(
    gateway: BackendGateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_cache),
    clinic: ClinicConfig = Depends(get_clinic),
) -> QueueBoard:
    """오늘 대기열을 스테이션별로 반환"""
    return await today_queue(gateway, cache, clinic)


@router.get("/visits", response_model=list[QueueItem])
async def get_visits(
    visit_date: date | None = Query(default=None, alias="date"),
    status: list[VisitStatus] | None = Query(default=None),
    gateway: BackendGateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_cache),
) -> list[QueueItem]:
    """날짜/단계 조건으로 내원 목록을 반환

    Args:
        visit_date: 내원 일자
        status: 단계 필터(반복 가능)
        gateway: 백엔드 게이트웨이
        cache: 조회 캐시

    Returns:
        내원 카드 목록
    """
    visits = await list_visits(gateway, cache, day=visit_date, statuses=status)
    return [build_queue_item(visit) for visit in visits]


@router.post("/visits", response_model=QueueItem, status_code=201)
async def post_visit(
    body: CreateVisitRequest,
    gateway: BackendGateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_cache),
    clinic: ClinicConfig = Depends(get_clinic),
) -> QueueItem:
    """환자를 오늘 대기열에 추가"""
    visit = await create_visit(gateway, cache, clinic, body.patient_id)
    return build_queue_item(visit)


@router.post("/visits/{visit_id}/advance", response_model=QueueItem)
async def post_advance(
    visit_id: str,
    gateway: BackendGateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_cache),
    clinic: ClinicConfig = Depends(get_clinic),
) -> QueueItem:
    """내원을 다음 단계로 진행"""
    visit = await advance_visit(gateway, cache, clinic, visit_id)
    return build_queue_item(visit)


@router.patch("/visits/{visit_id}/status", response_model=QueueItem)
async def patch_status(
    visit_id: str,
    body: StatusRequest,
    gateway: BackendGateway = Depends(get_gateway),
    cache: QueryCache = Depends(get_cache),
    clinic: ClinicConfig = Depends(get_clinic),
) -> QueueItem:
    """내원 단계를 명시적으로 지정"""
    visit = await update_visit_status(gateway, cache, clinic, visit_id, body.status)
    return build_queue_item(visit)
