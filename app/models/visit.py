from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VisitStatus(str, Enum):
    """내원 진행 단계(스테이션) 순서"""

    REGISTERED = "Registered"
    IN_QUEUE = "InQueue"
    VITAL_SIGNS = "VitalSigns"
    WAITING_FOR_DOCTOR = "WaitingForDoctor"
    IN_CONSULTATION = "InConsultation"
    DIAGNOSING = "Diagnosing"
    ORDERING = "Ordering"
    ORDER_CONFIRMED = "OrderConfirmed"
    PERFORMING_PROCEDURE = "PerformingProcedure"
    PROCEDURE_COMPLETED = "ProcedureCompleted"
    AWAITING_PAYMENT = "AwaitingPayment"
    PAYMENT_PROCESSED = "PaymentProcessed"
    DISPENSING = "Dispensing"
    COMPLETED = "Completed"


class VitalSigns(BaseModel):
    """생체신호 측정값(모두 선택)"""

    blood_pressure: str | None = Field(default=None, description="혈압(예: 120/80)")
    pulse: int | None = Field(default=None, description="맥박수")
    temperature: float | None = Field(default=None, description="체온(섭씨)")
    weight: float | None = Field(default=None, description="체중(kg)")
    height: float | None = Field(default=None, description="신장(cm)")


class PatientSummary(BaseModel):
    """내원 목록 조인용 환자 요약"""

    id: str = Field(..., description="환자 식별자")
    hn: str = Field(..., description="병원 등록번호")
    first_name: str = Field(..., description="이름")
    last_name: str = Field(..., description="성")
    dob: date = Field(..., description="생년월일")
    allergies: list[str] = Field(default_factory=list, description="알레르기 목록")

    @field_validator("allergies", mode="before")
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        return [] if value is None else value


class Visit(BaseModel):
    """하루 한 번의 환자 내원 기록"""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="내원 식별자")
    patient_id: str = Field(..., description="환자 식별자")
    doctor_id: str | None = Field(default=None, description="담당 의사 식별자")
    visit_date: date = Field(..., description="내원 일자")
    queue_number: int | None = Field(default=None, gt=0, description="당일 대기 번호")
    vital_signs: VitalSigns = Field(default_factory=VitalSigns, description="생체신호")
    chief_complaint: str | None = Field(default=None, description="주호소")
    physical_exam_note: str | None = Field(default=None, description="신체 검진 기록")
    status: VisitStatus = Field(..., description="진행 단계")
    created_at: datetime | None = Field(default=None, description="생성 시각")
    updated_at: datetime | None = Field(default=None, description="수정 시각")
    patient: PatientSummary | None = Field(
        default=None, alias="patients", description="조인된 환자 요약"
    )

    @field_validator("vital_signs", mode="before")
    @classmethod
    def _none_as_blank_vitals(cls, value: object) -> object:
        return {} if value is None else value

    @property
    def has_allergies(self) -> bool:
        """조인된 환자에게 알레르기가 있는지 여부"""
        return bool(self.patient and self.patient.allergies)


class QueueItem(BaseModel):
    """대기열 화면의 내원 카드"""

    visit: Visit
    label: str = Field(..., description="현재 단계 표시명")
    next_status: VisitStatus | None = Field(default=None, description="진행 버튼 대상 단계")
    next_label: str | None = Field(default=None, description="진행 버튼 표시명")
    has_allergies: bool = Field(default=False, description="알레르기 경고 여부")
    needs_consult: bool = Field(default=False, description="진료 버튼 표시 여부")


class QueueBoard(BaseModel):
    """스테이션별로 묶은 당일 대기열"""

    visit_date: date
    total: int
    groups: dict[str, list[QueueItem]]
