from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator


class Patient(BaseModel):
    """환자 식별 및 인구통계 정보"""

    id: str = Field(..., description="환자 식별자")
    hn: str = Field(..., description="병원 등록번호")
    first_name: str = Field(..., description="이름")
    last_name: str = Field(..., description="성")
    dob: date = Field(..., description="생년월일")
    gender: str | None = Field(default=None, description="성별")
    national_id: str | None = Field(default=None, description="주민등록번호(13자리)")
    phone: str | None = Field(default=None, description="전화번호")
    address: str | None = Field(default=None, description="주소")
    allergies: list[str] = Field(default_factory=list, description="알레르기 목록")
    created_at: datetime | None = Field(default=None, description="생성 시각")

    @field_validator("allergies", mode="before")
    @classmethod
    def _none_as_empty(cls, value: object) -> object:
        return [] if value is None else value

    @property
    def has_allergies(self) -> bool:
        return len(self.allergies) > 0

    def age_on(self, today: date) -> int:
        """기준일의 만 나이를 계산

        Args:
            today: 기준 일자

        Returns:
            만 나이
        """
        years = today.year - self.dob.year
        if (today.month, today.day) < (self.dob.month, self.dob.day):
            years -= 1
        return years


class Diagnosis(BaseModel):
    id: str
    icd10_code: str
    description: str | None = None
    diagnosis_type: str | None = None


class Medicine(BaseModel):
    name_thai: str
    name_english: str | None = None


class Prescription(BaseModel):
    id: str
    quantity: int
    usage_instruction: str | None = None
    medicine: Medicine | None = None


class TreatmentPlan(BaseModel):
    id: str
    plan_details: str
    duration: str | None = None
    follow_up_date: date | None = None


class VisitHistoryEntry(BaseModel):
    """환자 이력 화면의 내원 항목"""

    id: str
    visit_date: date
    status: str
    chief_complaint: str | None = None
    queue_number: int | None = None
    diagnoses: list[Diagnosis] = Field(default_factory=list)
    prescriptions: list[Prescription] = Field(default_factory=list)
    treatment_plans: list[TreatmentPlan] = Field(default_factory=list)


class PatientDetail(Patient):
    """내원 이력을 포함한 환자 상세"""

    visits: list[VisitHistoryEntry] = Field(default_factory=list)
