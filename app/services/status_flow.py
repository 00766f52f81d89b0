from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from app.models.visit import VisitStatus

S = VisitStatus

NEXT_STATUS: Mapping[VisitStatus, VisitStatus | None] = MappingProxyType(
    {
        S.REGISTERED: S.IN_QUEUE,
        S.IN_QUEUE: S.VITAL_SIGNS,
        S.VITAL_SIGNS: S.WAITING_FOR_DOCTOR,
        S.WAITING_FOR_DOCTOR: S.IN_CONSULTATION,
        S.IN_CONSULTATION: S.DIAGNOSING,
        S.DIAGNOSING: S.ORDERING,
        S.ORDERING: S.ORDER_CONFIRMED,
        S.ORDER_CONFIRMED: S.AWAITING_PAYMENT,
        S.PERFORMING_PROCEDURE: S.PROCEDURE_COMPLETED,
        S.PROCEDURE_COMPLETED: S.AWAITING_PAYMENT,
        S.AWAITING_PAYMENT: S.PAYMENT_PROCESSED,
        S.PAYMENT_PROCESSED: S.DISPENSING,
        S.DISPENSING: S.COMPLETED,
        S.COMPLETED: None,
    }
)

# next_status로는 도달하지 않는 수동 진입 분기
MANUAL_BRANCHES: Mapping[VisitStatus, frozenset[VisitStatus]] = MappingProxyType(
    {
        S.ORDER_CONFIRMED: frozenset({S.PERFORMING_PROCEDURE}),
    }
)

STATUS_LABELS: Mapping[VisitStatus, str] = MappingProxyType(
    {
        S.REGISTERED: "ลงทะเบียนแล้ว",
        S.IN_QUEUE: "รอคิว",
        S.VITAL_SIGNS: "วัดสัญญาณชีพ",
        S.WAITING_FOR_DOCTOR: "รอพบแพทย์",
        S.IN_CONSULTATION: "พบแพทย์",
        S.DIAGNOSING: "วินิจฉัย",
        S.ORDERING: "สั่งการรักษา",
        S.ORDER_CONFIRMED: "ยืนยันการสั่ง",
        S.PERFORMING_PROCEDURE: "ทำหัตถการ",
        S.PROCEDURE_COMPLETED: "หัตถการเสร็จ",
        S.AWAITING_PAYMENT: "รอชำระเงิน",
        S.PAYMENT_PROCESSED: "ชำระเงินแล้ว",
        S.DISPENSING: "จ่ายยา",
        S.COMPLETED: "เสร็จสิ้น",
    }
)

STATION_GROUPS: Mapping[str, tuple[VisitStatus, ...]] = MappingProxyType(
    {
        "registration": (S.REGISTERED, S.IN_QUEUE),
        "screening": (S.VITAL_SIGNS, S.WAITING_FOR_DOCTOR),
        "consultation": (
            S.IN_CONSULTATION,
            S.DIAGNOSING,
            S.ORDERING,
            S.ORDER_CONFIRMED,
        ),
        "treatment": (S.PERFORMING_PROCEDURE, S.PROCEDURE_COMPLETED),
        "finance": (
            S.AWAITING_PAYMENT,
            S.PAYMENT_PROCESSED,
            S.DISPENSING,
            S.COMPLETED,
        ),
    }
)

CONSULT_STATUSES = frozenset(
    {
        S.WAITING_FOR_DOCTOR,
        S.IN_CONSULTATION,
        S.DIAGNOSING,
        S.ORDERING,
        S.ORDER_CONFIRMED,
    }
)


def next_status(current: VisitStatus | str) -> VisitStatus | None:
    """현재 단계의 다음 단계를 반환

    Args:
        current: 현재 진행 단계

    Returns:
        다음 단계 또는 None(종료 단계)

    Raises:
        ValueError: 알 수 없는 단계 값
    """
    return NEXT_STATUS[VisitStatus(current)]


def allowed_transitions(current: VisitStatus | str) -> frozenset[VisitStatus]:
    """명시적 단계 지정이 허용되는 대상 목록

    Args:
        current: 현재 진행 단계

    Returns:
        허용된 다음 단계 집합
    """
    current = VisitStatus(current)
    allowed = set(MANUAL_BRANCHES.get(current, frozenset()))
    successor = NEXT_STATUS[current]
    if successor is not None:
        allowed.add(successor)
    return frozenset(allowed)


def station_of(status: VisitStatus | str) -> str:
    """단계가 속한 스테이션 그룹 이름"""
    status = VisitStatus(status)
    for group, members in STATION_GROUPS.items():
        if status in members:
            return group
    raise ValueError(f"스테이션 미지정 단계: {status.value}")


def needs_consult(status: VisitStatus | str) -> bool:
    return VisitStatus(status) in CONSULT_STATUSES
